"""Preflight stage: global option parsing and init hooks that run before every command."""

from pydrush.preflight.argv import parse_preflight
from pydrush.preflight.invocation import (
    HANDLE_REMOTE_COMMANDS,
    AnnotationSet,
    InvocationDescriptor,
    InvocationResult,
    Outcome,
    ParsedInvocation,
    RedispatchTarget,
)
from pydrush.preflight.redispatch import RedispatchHook, RedispatchInvariantError

__all__ = [
    "HANDLE_REMOTE_COMMANDS",
    "AnnotationSet",
    "InvocationDescriptor",
    "InvocationResult",
    "Outcome",
    "ParsedInvocation",
    "RedispatchHook",
    "RedispatchInvariantError",
    "RedispatchTarget",
    "parse_preflight",
]
