"""Root logging setup for the pydrush CLI."""

from __future__ import annotations

import logging

from rich.console import Console
from rich.logging import RichHandler

_LOGGING_INITIALIZED = False


def level_for_verbosity(*, verbose: bool = False, debug: bool = False, default: str = "WARNING") -> str:
    if debug:
        return "DEBUG"
    if verbose:
        return "INFO"
    return default.upper()


def setup_logging(level: str) -> None:
    handler = RichHandler(
        console=Console(stderr=True),
        show_path=False,
        rich_tracebacks=False,
        markup=False,
    )
    handler.setLevel(level)
    root_logger = logging.getLogger()
    for existing in list(root_logger.handlers):
        if isinstance(existing, RichHandler):
            root_logger.removeHandler(existing)
    root_logger.addHandler(handler)
    root_logger.setLevel(level)


def ensure_root_logging(level: str) -> None:
    """Configure root logging once while allowing level updates."""
    global _LOGGING_INITIALIZED
    root_logger = logging.getLogger()
    if not _LOGGING_INITIALIZED:
        setup_logging(level)
        _LOGGING_INITIALIZED = True
    else:
        root_logger.setLevel(level)
        for handler in root_logger.handlers:
            handler.setLevel(level)


__all__ = ["ensure_root_logging", "level_for_verbosity", "setup_logging"]
