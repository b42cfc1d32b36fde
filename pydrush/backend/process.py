"""Subprocess launch and teardown for backend invocations."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Sequence
import asyncio
import os
import signal
import subprocess
import time


@dataclass(frozen=True)
class ProcessResult:
    exit_code: int
    duration_s: float
    stdout: str = ""
    stderr: str = ""
    terminated: bool = False


@dataclass
class BackendProcess:
    command: list[str]
    process: asyncio.subprocess.Process
    start_time: float
    capture: bool
    own_group: bool = False
    terminated: bool = False


async def start_process(
    command: Sequence[str],
    *,
    capture: bool,
    interactive: bool,
) -> BackendProcess:
    kwargs: dict[str, object] = {}
    # Interactive sessions keep the terminal's process group so the remote tty gets signals.
    if not interactive:
        if os.name == "posix":
            kwargs["start_new_session"] = True
        elif os.name == "nt":
            kwargs["creationflags"] = subprocess.CREATE_NEW_PROCESS_GROUP
    process = await asyncio.create_subprocess_exec(
        *list(command),
        stdin=None if interactive else subprocess.DEVNULL,
        stdout=subprocess.PIPE if capture else None,
        stderr=subprocess.PIPE if capture else None,
        **kwargs,
    )
    return BackendProcess(
        command=list(command),
        process=process,
        start_time=time.monotonic(),
        capture=capture,
        own_group=not interactive and os.name == "posix",
    )


async def wait_process(proc: BackendProcess) -> ProcessResult:
    if proc.capture:
        stdout_bytes, stderr_bytes = await proc.process.communicate()
    else:
        await proc.process.wait()
        stdout_bytes, stderr_bytes = b"", b""
    duration = time.monotonic() - proc.start_time
    exit_code = proc.process.returncode if proc.process.returncode is not None else 0
    return ProcessResult(
        exit_code=exit_code,
        duration_s=duration,
        stdout=(stdout_bytes or b"").decode("utf-8", errors="replace"),
        stderr=(stderr_bytes or b"").decode("utf-8", errors="replace"),
        terminated=proc.terminated,
    )


async def terminate_process(proc: BackendProcess, *, term_timeout_s: float = 5.0) -> None:
    if proc.process.returncode is not None:
        return
    proc.terminated = True
    pid = proc.process.pid
    if pid is None:
        return
    if proc.own_group:
        try:
            os.killpg(pid, signal.SIGTERM)
        except ProcessLookupError:
            return
        except PermissionError:
            proc.process.terminate()
    else:
        try:
            proc.process.terminate()
        except ProcessLookupError:
            return
    try:
        await asyncio.wait_for(proc.process.wait(), timeout=term_timeout_s)
        return
    except asyncio.TimeoutError:
        pass
    if proc.own_group:
        try:
            os.killpg(pid, signal.SIGKILL)
        except ProcessLookupError:
            return
        except PermissionError:
            proc.process.kill()
    else:
        try:
            proc.process.kill()
        except ProcessLookupError:
            return
    await proc.process.wait()


__all__ = [
    "BackendProcess",
    "ProcessResult",
    "start_process",
    "terminate_process",
    "wait_process",
]
