"""Core data structures shared by the preflight stage and the backend invoker."""

from __future__ import annotations

from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Any, Iterable, Mapping

HANDLE_REMOTE_COMMANDS = "handle-remote-commands"

OptionValue = bool | str | None


@dataclass(frozen=True)
class ParsedInvocation:
    """Read-only snapshot of one command-line invocation after preflight parsing."""

    command: str | None
    arguments: tuple[str, ...] = ()
    options: Mapping[str, OptionValue] = field(default_factory=dict)
    interactive: bool = False
    runtime_argv: tuple[str, ...] = ()
    overrides: tuple[str, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "arguments", tuple(self.arguments))
        object.__setattr__(self, "options", MappingProxyType(dict(self.options)))
        object.__setattr__(self, "runtime_argv", tuple(self.runtime_argv))
        object.__setattr__(self, "overrides", tuple(self.overrides))

    def get_option(self, name: str, default: OptionValue = None) -> OptionValue:
        return self.options.get(name, default)

    def has_option(self, name: str) -> bool:
        value = self.options.get(name)
        return value is not None and value != "" and value is not False

    @property
    def root(self) -> str | None:
        value = self.options.get("root")
        return value if isinstance(value, str) else None

    @property
    def uri(self) -> str | None:
        value = self.options.get("uri")
        return value if isinstance(value, str) else None

    def is_interactive(self) -> bool:
        return self.interactive


@dataclass(frozen=True)
class AnnotationSet:
    """Capability tags attached to a command."""

    tags: frozenset[str] = frozenset()

    @classmethod
    def of(cls, *tags: str) -> "AnnotationSet":
        return cls(frozenset(tags))

    @classmethod
    def from_iterable(cls, tags: Iterable[str] | None) -> "AnnotationSet":
        return cls(frozenset(tags or ()))

    def has(self, tag: str) -> bool:
        return tag in self.tags


@dataclass(frozen=True)
class RedispatchTarget:
    host: str
    user: str | None = None


@dataclass(frozen=True)
class InvocationDescriptor:
    """Request describing the one command to re-run on the remote side."""

    command: str
    args: tuple[str, ...]
    options: Mapping[str, Any]
    host: str
    user: str | None
    root: str | None
    uri: str | None
    integrate: bool = True
    backend: bool = False
    tty: bool = False
    interactive: bool = False

    @property
    def target(self) -> dict[str, str | None]:
        return {"host": self.host, "user": self.user, "root": self.root, "uri": self.uri}

    def to_invocation(self) -> dict[str, Any]:
        return {"command": self.command, "args": list(self.args)}

    def backend_options(self, script: str | None = None) -> dict[str, Any]:
        options: dict[str, Any] = {
            "drush-script": script,
            "remote-host": self.host,
            "remote-user": self.user,
            "additional-global-options": {},
            "integrate": self.integrate,
            "backend": self.backend,
        }
        # tty/interactive keys are only present for interactive sessions.
        if self.tty:
            options["#tty"] = True
        if self.interactive:
            options["interactive"] = True
        return options

    def default_site(self) -> dict[str, str | None]:
        return {
            "remote-host": self.host,
            "remote-user": self.user,
            "root": self.root,
            "uri": self.uri,
        }


@dataclass(frozen=True)
class InvocationResult:
    error_status: int
    values: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_mapping(cls, values: Mapping[str, Any]) -> "InvocationResult":
        return cls(error_status=int(values.get("error_status", 0) or 0), values=values)


@dataclass(frozen=True)
class Outcome:
    """Result of running the init hooks: continue locally, or stop with an exit code."""

    redispatched: bool = False
    exit_code: int = 0

    @classmethod
    def local(cls) -> "Outcome":
        return cls(redispatched=False, exit_code=0)

    @classmethod
    def remote(cls, exit_code: int) -> "Outcome":
        return cls(redispatched=True, exit_code=int(exit_code))

    @property
    def is_local(self) -> bool:
        return not self.redispatched


__all__ = [
    "HANDLE_REMOTE_COMMANDS",
    "AnnotationSet",
    "InvocationDescriptor",
    "InvocationResult",
    "OptionValue",
    "Outcome",
    "ParsedInvocation",
    "RedispatchTarget",
]
