"""Command registry and the built-in local commands."""

from __future__ import annotations

import logging
import shlex
import subprocess
from dataclasses import dataclass, field
from typing import Callable, Iterable

from rich.console import Console
from rich.table import Table

from pydrush import __version__
from pydrush._constants import EXIT_NOT_EXECUTABLE
from pydrush.backend.invoke import wrap_remote
from pydrush.config import RuntimeConfig
from pydrush.preflight.invocation import HANDLE_REMOTE_COMMANDS, AnnotationSet, ParsedInvocation

logger = logging.getLogger(__name__)


class UnknownCommandError(LookupError):
    """Raised when a command name is not registered."""


@dataclass(frozen=True)
class CommandContext:
    config: RuntimeConfig
    console: Console


CommandHandler = Callable[[ParsedInvocation, CommandContext], int]


@dataclass(frozen=True)
class Command:
    name: str
    handler: CommandHandler
    annotations: AnnotationSet = field(default_factory=AnnotationSet)
    description: str = ""
    aliases: tuple[str, ...] = ()


class CommandRegistry:
    def __init__(self, commands: Iterable[Command] = ()) -> None:
        self._commands: dict[str, Command] = {}
        self._aliases: dict[str, str] = {}
        for command in commands:
            self.register(command)

    def register(self, command: Command) -> None:
        for name in (command.name, *command.aliases):
            if name in self._commands or name in self._aliases:
                raise ValueError(f"Command name {name!r} is already registered.")
        self._commands[command.name] = command
        for alias in command.aliases:
            self._aliases[alias] = command.name

    def get(self, name: str) -> Command:
        canonical = self._aliases.get(name, name)
        try:
            return self._commands[canonical]
        except KeyError:
            raise UnknownCommandError(f"Command {name!r} is not defined.") from None

    def names(self) -> list[str]:
        return sorted(self._commands)

    def __iter__(self):
        return iter(self._commands[name] for name in self.names())


def status_command(invocation: ParsedInvocation, context: CommandContext) -> int:
    table = Table(title="pydrush status", show_header=False)
    table.add_column("Key", style="bold")
    table.add_column("Value")
    rows = [
        ("Site root", invocation.root or "-"),
        ("Site URI", invocation.uri or "-"),
        ("Remote host", str(invocation.get_option("remote-host") or "-")),
        ("Remote user", str(invocation.get_option("remote-user") or "-")),
        ("Remote script", context.config.backend.remote_script),
        ("SSH", f"{context.config.ssh.binary} {context.config.ssh.options}".strip()),
        ("Backend concurrency", str(context.config.backend.concurrency)),
        ("pydrush version", __version__),
    ]
    for key, value in rows:
        table.add_row(key, value)
    context.console.print(table)
    return 0


def version_command(invocation: ParsedInvocation, context: CommandContext) -> int:
    context.console.print(f"pydrush {__version__}")
    return 0


def core_execute_command(invocation: ParsedInvocation, context: CommandContext) -> int:
    if not invocation.arguments:
        logger.error("core-execute requires a command to run.")
        return 1
    args = list(invocation.arguments)
    logger.info("Executing %s", shlex.join(args))
    try:
        completed = subprocess.run(args, check=False)
    except OSError as exc:
        logger.error("Failed to execute %s: %s", args[0], exc)
        return EXIT_NOT_EXECUTABLE
    return completed.returncode


def site_ssh_command(invocation: ParsedInvocation, context: CommandContext) -> int:
    host = invocation.get_option("remote-host")
    if not isinstance(host, str) or not host:
        logger.error("site-ssh requires --remote-host.")
        return 1
    site = {"remote-host": host, "remote-user": invocation.get_option("remote-user")}
    remote = " ".join(invocation.arguments)
    if invocation.root:
        remote = f"cd {shlex.quote(invocation.root)} && {remote or 'exec $SHELL -l'}"
    # Arguments are shell text for the remote side, not argv tokens.
    cmd = wrap_remote(["sh", "-c", remote] if remote else [], site, config=context.config, tty=True)
    logger.info("Opening %s", shlex.join(cmd))
    try:
        completed = subprocess.run(cmd, check=False)
    except OSError as exc:
        logger.error("Failed to execute %s: %s", cmd[0], exc)
        return EXIT_NOT_EXECUTABLE
    return completed.returncode


def default_registry() -> CommandRegistry:
    return CommandRegistry(
        [
            Command("status", status_command, description="Show site and connection settings."),
            Command("version", version_command, description="Show the pydrush version."),
            Command(
                "core-execute",
                core_execute_command,
                description="Run a shell command on the site's host.",
                aliases=("exec",),
            ),
            Command(
                "site-ssh",
                site_ssh_command,
                annotations=AnnotationSet.of(HANDLE_REMOTE_COMMANDS),
                description="Open an interactive shell on the remote host.",
                aliases=("ssh",),
            ),
        ]
    )


__all__ = [
    "Command",
    "CommandContext",
    "CommandRegistry",
    "UnknownCommandError",
    "default_registry",
]
