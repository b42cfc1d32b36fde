"""Parsing of backend-mode output packets.

A command run with ``--backend`` prints its normal output followed by one
JSON packet framed by ``DRUSH_BACKEND_OUTPUT_START>>>`` and
``<<<DRUSH_BACKEND_OUTPUT_END``. The packet carries the structured result
(``error_status``, ``object``, ``log``, ``error_log``).
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping
import json
import re

from pydrush._constants import BACKEND_OUTPUT_END, BACKEND_OUTPUT_START


_PACKET_RE = re.compile(
    re.escape(BACKEND_OUTPUT_START) + r"(?P<payload>.*?)" + re.escape(BACKEND_OUTPUT_END),
    re.DOTALL,
)


class BackendOutputError(ValueError):
    """Raised when a backend packet is present but cannot be decoded."""


@dataclass(frozen=True)
class BackendOutput:
    output: str
    payload: Mapping[str, Any] = field(default_factory=dict)

    @property
    def error_status(self) -> int | None:
        value = self.payload.get("error_status")
        if value is None:
            return None
        return int(value)


def parse_backend_output(text: str) -> BackendOutput:
    match = _PACKET_RE.search(text)
    if match is None:
        return BackendOutput(output=text)
    raw = match.group("payload").strip()
    try:
        payload = json.loads(raw) if raw else {}
    except json.JSONDecodeError as exc:
        raise BackendOutputError(f"Malformed backend output packet: {exc.msg}") from exc
    if not isinstance(payload, Mapping):
        raise BackendOutputError("Backend output packet must be a JSON object.")
    output = text[: match.start()] + text[match.end() :]
    return BackendOutput(output=output.rstrip("\n"), payload=payload)


def render_backend_packet(payload: Mapping[str, Any]) -> str:
    return f"{BACKEND_OUTPUT_START}{json.dumps(payload)}{BACKEND_OUTPUT_END}"


__all__ = ["BackendOutput", "BackendOutputError", "parse_backend_output", "render_backend_packet"]
