"""pydrush command-line entry point."""

from __future__ import annotations

import functools
import logging
import sys
from typing import Sequence

from rich.console import Console
from rich.table import Table

from pydrush._constants import COMMAND, EXIT_INTERRUPTED
from pydrush.backend.invoke import BackendInvoker, backend_invoke_concurrent
from pydrush.commands import CommandContext, CommandRegistry, UnknownCommandError, default_registry
from pydrush.config import ConfigFormatError, RuntimeConfig, load_runtime_config
from pydrush.logging_utils import ensure_root_logging, level_for_verbosity
from pydrush.preflight.argv import parse_preflight
from pydrush.preflight.invocation import AnnotationSet, Outcome, ParsedInvocation
from pydrush.preflight.redispatch import RedispatchHook

logger = logging.getLogger(__name__)

EXIT_CONFIG_ERROR = 2


def _print_general_help(registry: CommandRegistry, console: Console) -> None:
    console.print(f"Usage: {COMMAND} [global options] <command> [arguments]\n")
    console.print(
        "Global options: --remote-host HOST, --remote-user USER, --root PATH, --uri URI, "
        "--config FILE, -D KEY=VALUE, -y/--yes, --no-interaction, -v/--verbose, -d/--debug\n"
    )
    table = Table(title="Commands")
    table.add_column("Command", style="bold")
    table.add_column("Aliases")
    table.add_column("Description")
    for command in registry:
        table.add_row(command.name, ", ".join(command.aliases), command.description)
    console.print(table)


def run_init_hooks(
    invocation: ParsedInvocation,
    annotations: AnnotationSet,
    hooks: Sequence[RedispatchHook],
) -> Outcome:
    """Run each init hook in order; the first non-local outcome wins."""
    for hook in hooks:
        outcome = hook.initialize(invocation, annotations)
        if not outcome.is_local:
            return outcome
    return Outcome.local()


def build_hooks(
    invocation: ParsedInvocation,
    config: RuntimeConfig,
    *,
    invoker: BackendInvoker | None = None,
) -> list[RedispatchHook]:
    invoker = invoker or functools.partial(backend_invoke_concurrent, config=config)
    return [
        RedispatchHook(
            invocation.runtime_argv,
            invoker=invoker,
            logger=logging.getLogger("pydrush.preflight.redispatch"),
            propagate_options=config.propagate_options,
        )
    ]


def main(
    argv: Sequence[str] | None = None,
    *,
    registry: CommandRegistry | None = None,
    invoker: BackendInvoker | None = None,
    stdin_isatty: bool | None = None,
    console: Console | None = None,
) -> int:
    """Unified CLI entry point; returns the process exit status."""
    raw = [COMMAND, *argv] if argv is not None else list(sys.argv)
    invocation = parse_preflight(raw, stdin_isatty=stdin_isatty)
    verbose = bool(invocation.get_option("verbose"))
    debug = bool(invocation.get_option("debug"))
    ensure_root_logging(level_for_verbosity(verbose=verbose, debug=debug))

    try:
        config = load_runtime_config(invocation.get_option("config"), invocation.overrides)
    except (ConfigFormatError, FileNotFoundError, ValueError) as exc:
        logger.error("%s", exc)
        return EXIT_CONFIG_ERROR
    if not verbose and not debug:
        ensure_root_logging(config.log_level.upper())

    registry = registry or default_registry()
    console = console or Console()
    if invocation.command is None:
        _print_general_help(registry, console)
        return 0
    hooks = build_hooks(invocation, config, invoker=invoker)
    try:
        command = registry.get(invocation.command)
    except UnknownCommandError as exc:
        # Commands unknown here may still exist on the remote host.
        if not any(hook.detect_remote_target(invocation) for hook in hooks):
            logger.error("%s Run '%s --help' for a list of commands.", exc, COMMAND)
            return 1
        command = None

    try:
        annotations = command.annotations if command is not None else AnnotationSet()
        outcome = run_init_hooks(invocation, annotations, hooks)
        if outcome.redispatched:
            return outcome.exit_code
        if command is None or invocation.get_option("help"):
            _print_general_help(registry, console)
            return 0
        return command.handler(invocation, CommandContext(config=config, console=console))
    except KeyboardInterrupt:
        logger.warning("Command %s interrupted by user.", invocation.command)
        return EXIT_INTERRUPTED
    except Exception as exc:  # noqa: BLE001
        logger.exception("Unhandled error: %s", exc)
        return 1


def run() -> None:
    """Console-script entry point."""
    raise SystemExit(main())


__all__ = ["build_hooks", "main", "run", "run_init_hooks"]
