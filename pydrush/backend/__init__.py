"""Backend invocation: run pydrush commands as local or ssh subprocesses."""

from pydrush.backend.invoke import BackendInvoker, backend_invoke_concurrent
from pydrush.backend.output import BackendOutput, BackendOutputError, parse_backend_output

__all__ = [
    "BackendInvoker",
    "BackendOutput",
    "BackendOutputError",
    "backend_invoke_concurrent",
    "parse_backend_output",
]
