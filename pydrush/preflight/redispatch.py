"""Init hook that re-runs a command on a remote host instead of locally.

The hook runs before every command. When the invocation carries a
``--remote-host`` option, local execution is suppressed and the same command
is handed to the backend invoker for the remote machine; the caller receives
an :class:`Outcome` holding the remote exit status and is responsible for
ending the process with it.
"""

from __future__ import annotations

import logging
from typing import Any, Iterable, Mapping, Sequence

from pydrush.backend.invoke import BackendInvoker
from pydrush.preflight.invocation import (
    HANDLE_REMOTE_COMMANDS,
    AnnotationSet,
    InvocationDescriptor,
    InvocationResult,
    Outcome,
    ParsedInvocation,
    RedispatchTarget,
)

INLINE_OVERRIDE_PREFIX = "-D"
REDISPATCH_OPTION_LIST = ("root", "uri")


class RedispatchInvariantError(RuntimeError):
    """Raised when the runtime argument vector cannot name a command."""


def alter_args_for_redispatch(tokens: Iterable[str]) -> list[str]:
    """Remove anything the remote side does not need (currently ``-D`` overrides)."""
    return [token for token in tokens if not token.startswith(INLINE_OVERRIDE_PREFIX)]


class RedispatchHook:
    def __init__(
        self,
        runtime_argv: Sequence[str],
        *,
        invoker: BackendInvoker,
        logger: logging.Logger | None = None,
        remote_script: str | None = None,
        propagate_options: bool = False,
    ) -> None:
        self._runtime_argv = tuple(runtime_argv)
        self._invoker = invoker
        self._logger = logger or logging.getLogger(__name__)
        self._remote_script = remote_script
        self._propagate_options = propagate_options

    def initialize(self, invocation: ParsedInvocation, annotations: AnnotationSet) -> Outcome:
        # Commands that fan out to remote sites themselves opt out of the generic path.
        if self.should_short_circuit(annotations):
            return Outcome.local()
        return self.redispatch_if_remote(invocation)

    def should_short_circuit(self, annotations: AnnotationSet) -> bool:
        return annotations.has(HANDLE_REMOTE_COMMANDS)

    def redispatch_if_remote(self, invocation: ParsedInvocation) -> Outcome:
        target = self.detect_remote_target(invocation)
        if target is None:
            return Outcome.local()
        return self.redispatch(invocation, target)

    def detect_remote_target(self, invocation: ParsedInvocation) -> RedispatchTarget | None:
        host = invocation.get_option("remote-host")
        if not isinstance(host, str) or not host:
            return None
        user = invocation.get_option("remote-user")
        return RedispatchTarget(host=host, user=user if isinstance(user, str) else None)

    def redispatch(self, invocation: ParsedInvocation, target: RedispatchTarget | None = None) -> Outcome:
        if target is None:
            target = self.detect_remote_target(invocation)
            if target is None:
                raise ValueError("redispatch() requires an invocation with a remote-host option.")
        descriptor = self.build_descriptor(invocation, target)
        self._logger.debug(
            "Redispatch hook %s", descriptor.command, extra={"command": descriptor.command}
        )
        values = self._invoker(
            [descriptor.to_invocation()],
            dict(descriptor.options),
            descriptor.backend_options(self._remote_script),
            None,
            descriptor.default_site(),
            None,
        )
        return self._exit_early(values)

    def build_descriptor(self, invocation: ParsedInvocation, target: RedispatchTarget) -> InvocationDescriptor:
        tokens = list(self._runtime_argv or invocation.runtime_argv)
        if len(tokens) < 2:
            raise RedispatchInvariantError(
                f"Cannot redispatch: runtime argv {tokens!r} does not contain a command name."
            )
        command_name = tokens[1]
        if invocation.command is not None and invocation.command != command_name:
            raise RedispatchInvariantError(
                f"Cannot redispatch: runtime argv names {command_name!r} but preflight parsed "
                f"{invocation.command!r}."
            )
        interactive = invocation.is_interactive()
        return InvocationDescriptor(
            command=command_name,
            args=tuple(alter_args_for_redispatch(tokens[2:])),
            options=self.redispatch_options(invocation),
            host=target.host,
            user=target.user,
            root=invocation.root,
            uri=invocation.uri,
            integrate=True,
            backend=False,
            tty=interactive,
            interactive=interactive,
        )

    def redispatch_options(self, invocation: ParsedInvocation) -> dict[str, Any]:
        """Preflight options forwarded to the remote command.

        Options typed by the user already travel in the argument list. The
        whitelist only applies when option propagation is switched on.
        """
        if not self._propagate_options:
            return {}
        result: dict[str, Any] = {}
        for option in REDISPATCH_OPTION_LIST:
            value = invocation.get_option(option, False)
            if value is True:
                result[option] = True
            elif isinstance(value, str) and value:
                result[option] = value
        return result

    def _exit_early(self, values: Mapping[str, Any]) -> Outcome:
        self._logger.debug("Redispatch hook exit early")
        result = InvocationResult.from_mapping(values)
        return Outcome.remote(result.error_status)


__all__ = [
    "INLINE_OVERRIDE_PREFIX",
    "REDISPATCH_OPTION_LIST",
    "RedispatchHook",
    "RedispatchInvariantError",
    "alter_args_for_redispatch",
]
