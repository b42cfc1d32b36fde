"""Preflight parsing of the raw argument vector.

Only global options are interpreted here; everything else belongs to the
command and is passed through untouched. The runtime argv recorded on the
:class:`ParsedInvocation` is normalized so that the command name is always
the second token and separated ``-D key=value`` pairs are joined into one
``-Dkey=value`` token.
"""

from __future__ import annotations

import argparse
import sys
from typing import Sequence

from pydrush._constants import COMMAND
from pydrush.preflight.invocation import ParsedInvocation

VALUE_OPTIONS = {"--remote-host", "--remote-user", "--root", "--uri", "--config", "-D", "--define"}


def build_preflight_parser(*, short_flags: bool = True) -> argparse.ArgumentParser:
    """Global option parser.

    With ``short_flags=False`` only long options and ``-D`` are recognized, so
    flags such as ``-v`` after the command name stay with the command.
    """
    parser = argparse.ArgumentParser(prog=COMMAND, add_help=False, allow_abbrev=False)
    parser.add_argument("--remote-host", dest="remote_host", help="Run the command on this host over ssh.")
    parser.add_argument("--remote-user", dest="remote_user", help="User to connect as on the remote host.")
    parser.add_argument("--root", help="Site root directory.")
    parser.add_argument("--uri", help="Site URI.")
    parser.add_argument("--config", help="Path to a pydrush configuration file.")
    parser.add_argument(
        "-D",
        "--define",
        dest="define",
        action="append",
        default=[],
        help="Override a configuration value for this process only (KEY=VALUE, repeatable).",
    )
    parser.add_argument(*_flags("-y", "--yes", short_flags), action="store_true", help="Assume 'yes' for every prompt.")
    parser.add_argument("--no-interaction", dest="no_interaction", action="store_true")
    parser.add_argument(*_flags("-v", "--verbose", short_flags), action="store_true", help="Enable verbose logging.")
    parser.add_argument(*_flags("-d", "--debug", short_flags), action="store_true", help="Enable debug logging.")
    parser.add_argument(*_flags("-h", "--help", short_flags), action="store_true", help="Show help and exit.")
    return parser


def _flags(short: str, long: str, short_flags: bool) -> tuple[str, ...]:
    return (short, long) if short_flags else (long,)


def _split_command(tokens: Sequence[str]) -> tuple[int | None, list[str]]:
    """Locate the command token and normalize inline overrides.

    Returns the index of the command within the normalized token list (or
    ``None``) together with that list.
    """
    normalized: list[str] = []
    command_index: int | None = None
    idx = 0
    options_done = False
    while idx < len(tokens):
        token = tokens[idx]
        if not options_done and token == "--":
            options_done = True
            normalized.append(token)
            idx += 1
            continue
        if command_index is None and (options_done or not token.startswith("-")):
            command_index = len(normalized)
            normalized.append(token)
            idx += 1
            continue
        if not options_done and token in {"-D", "--define"} and idx + 1 < len(tokens):
            normalized.append(f"-D{tokens[idx + 1]}")
            idx += 2
            continue
        if not options_done and token.startswith("--define="):
            normalized.append(f"-D{token.split('=', 1)[1]}")
            idx += 1
            continue
        normalized.append(token)
        if not options_done and token in VALUE_OPTIONS and idx + 1 < len(tokens):
            normalized.append(tokens[idx + 1])
            idx += 2
            continue
        idx += 1
    return command_index, normalized


def parse_preflight(argv: Sequence[str] | None = None, *, stdin_isatty: bool | None = None) -> ParsedInvocation:
    """Parse ``argv`` (including the program path) into a :class:`ParsedInvocation`."""
    raw = list(argv) if argv is not None else list(sys.argv)
    if not raw:
        raw = [COMMAND]
    program, tokens = raw[0], raw[1:]
    command_index, normalized = _split_command(tokens)
    command = normalized[command_index] if command_index is not None else None
    if command_index is not None:
        before, after = normalized[:command_index], normalized[command_index + 1 :]
        runtime_argv = [program, command, *before, *after]
    else:
        before, after = list(normalized), []
        runtime_argv = [program, *normalized]

    before = [token for token in before if token != "--"]
    if "--" in after:
        split = after.index("--")
        after, passthrough = after[:split], after[split + 1 :]
    else:
        passthrough = []
    args, leading = build_preflight_parser().parse_known_args(before)
    # Tokens after the command only yield long global options and -D overrides.
    args, remainder = build_preflight_parser(short_flags=False).parse_known_args(after, namespace=args)
    remainder = [*leading, *remainder, *passthrough]
    if stdin_isatty is None:
        stdin_isatty = sys.stdin.isatty() if sys.stdin is not None else False
    interactive = bool(stdin_isatty) and not args.yes and not args.no_interaction

    options = {
        "remote-host": args.remote_host,
        "remote-user": args.remote_user,
        "root": args.root,
        "uri": args.uri,
        "config": args.config,
        "yes": args.yes,
        "no-interaction": args.no_interaction,
        "verbose": args.verbose,
        "debug": args.debug,
        "help": args.help,
    }
    return ParsedInvocation(
        command=command,
        arguments=tuple(remainder),
        options=options,
        interactive=interactive,
        runtime_argv=tuple(runtime_argv),
        overrides=tuple(args.define),
    )


__all__ = ["build_preflight_parser", "parse_preflight"]
