"""Helpers for parsing inline ``-D key=value`` configuration overrides.

Overrides apply to the local process only: they are merged over the loaded
configuration file and are stripped from the argument list before a command
is redispatched to a remote host.

Keys may be dotted (``ssh.options=-p 2222``) to address nested settings.
"""

from __future__ import annotations

import json
from typing import Any, Iterable


def parse_inline_overrides(values: Iterable[str] | None, *, flag: str = "-D") -> dict[str, Any]:
    """Turn ``KEY=VALUE`` payloads into a nested mapping.

    Args:
        values: Raw payloads with the ``-D`` prefix already removed.
        flag: Flag name used in error messages.

    Returns:
        Nested dictionary; later entries win when keys repeat.

    Example:
        values = ["backend.concurrency=4", "ssh.binary=/usr/bin/ssh", "propagate_options=true"]
        → {"backend": {"concurrency": 4}, "ssh": {"binary": "/usr/bin/ssh"}, "propagate_options": True}
    """
    parsed: dict[str, Any] = {}
    for raw in values or ():
        if "=" not in raw:
            raise ValueError(f"{flag} entries must use the form KEY=VALUE (got {raw!r}).")
        key, value = raw.split("=", 1)
        key = key.strip()
        if not key:
            raise ValueError(f"{flag} entries must include a key before '='.")
        parts = key.split(".")
        if any(not part for part in parts):
            raise ValueError(f"{flag} key {key!r} contains an empty segment.")
        cursor = parsed
        for part in parts[:-1]:
            existing = cursor.get(part)
            if not isinstance(existing, dict):
                existing = {}
                cursor[part] = existing
            cursor = existing
        cursor[parts[-1]] = coerce_override_value(value.strip())
    return parsed


def coerce_override_value(raw: str) -> Any:
    """Smart type coercion for ``KEY=VALUE`` inputs.

    Order: booleans, null/none, JSON objects/arrays, integers, floats, strings.
    """
    if not raw:
        return ""
    text = raw.strip()
    lowered = text.lower()
    if lowered in {"true", "false"}:
        return lowered == "true"
    if lowered in {"null", "none"}:
        return None
    if text.startswith("{") or text.startswith("["):
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            return text
    try:
        return int(text)
    except ValueError:
        pass
    try:
        return float(text)
    except ValueError:
        return text


__all__ = ["coerce_override_value", "parse_inline_overrides"]
