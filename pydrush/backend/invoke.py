"""Backend invocation: run one or more pydrush commands as subprocesses, locally or over ssh.

``backend_invoke_concurrent`` is the collaborator the redispatch hook hands
its invocation to. Each invocation is rendered into a command line, wrapped
in an ssh call when its site names a remote host, and executed with a cap on
how many run at once. The aggregated result always carries ``error_status``.
"""

from __future__ import annotations

import asyncio
import logging
import shlex
import sys
from typing import Any, Mapping, Protocol, Sequence

from pydrush._constants import EXIT_NOT_EXECUTABLE, EXIT_TIMEOUT
from pydrush.backend.output import BackendOutputError, parse_backend_output
from pydrush.backend.process import ProcessResult, start_process, terminate_process, wait_process
from pydrush.config import RuntimeConfig

logger = logging.getLogger(__name__)

SITE_KEYS = ("remote-host", "remote-user", "root", "uri")


class BackendInvoker(Protocol):
    def __call__(
        self,
        invocations: Sequence[Mapping[str, Any]],
        common_options: Mapping[str, Any],
        backend_options: Mapping[str, Any],
        default_command: str | None = None,
        default_site: Mapping[str, Any] | None = None,
        context: Any = None,
    ) -> Mapping[str, Any]: ...


def render_options(options: Mapping[str, Any] | None) -> list[str]:
    """Render an option mapping as ``--key`` / ``--key=value`` tokens.

    ``False`` and ``None`` values are dropped; list values repeat the option.
    """
    rendered: list[str] = []
    for key, value in (options or {}).items():
        if value is None or value is False:
            continue
        if value is True:
            rendered.append(f"--{key}")
        elif isinstance(value, (list, tuple)):
            rendered.extend(f"--{key}={item}" for item in value)
        else:
            rendered.append(f"--{key}={value}")
    return rendered


def merge_site(default_site: Mapping[str, Any] | None, site: Mapping[str, Any] | None) -> dict[str, Any]:
    merged: dict[str, Any] = {key: None for key in SITE_KEYS}
    for source in (default_site, site):
        if not source:
            continue
        for key, value in source.items():
            if value is not None:
                merged[key] = value
    return merged


def _carried_options(args: Sequence[str], names: Sequence[str]) -> set[str]:
    return {name for name in names for arg in map(str, args) if arg == f"--{name}" or arg.startswith(f"--{name}=")}


def render_command(
    command: str,
    args: Sequence[str],
    *,
    script: str,
    site: Mapping[str, Any],
    options: Mapping[str, Any] | None = None,
    global_options: Mapping[str, Any] | None = None,
    backend: bool = False,
) -> list[str]:
    cmd = [script]
    # Site options already present in the command arguments are not repeated.
    carried = _carried_options(args, ("root", "uri"))
    cmd.extend(render_options({key: site.get(key) for key in ("root", "uri") if key not in carried}))
    cmd.extend(render_options(global_options))
    if backend:
        cmd.append("--backend")
    cmd.append(command)
    cmd.extend(str(arg) for arg in args)
    cmd.extend(render_options(options))
    return cmd


def wrap_remote(cmd: Sequence[str], site: Mapping[str, Any], *, config: RuntimeConfig, tty: bool = False) -> list[str]:
    host = site.get("remote-host")
    if not host:
        return list(cmd)
    user = site.get("remote-user")
    destination = f"{user}@{host}" if user else str(host)
    wrapped = [config.ssh.binary, *shlex.split(config.ssh.options)]
    if tty:
        wrapped.append("-t")
    wrapped.append(destination)
    if cmd:
        wrapped.append(shlex.join(cmd))
    return wrapped


def backend_invoke_concurrent(
    invocations: Sequence[Mapping[str, Any]],
    common_options: Mapping[str, Any],
    backend_options: Mapping[str, Any],
    default_command: str | None = None,
    default_site: Mapping[str, Any] | None = None,
    context: Any = None,
    *,
    config: RuntimeConfig | None = None,
) -> dict[str, Any]:
    """Run every invocation and return ``{"error_status", "concurrent"}``.

    ``context`` is accepted for signature compatibility and is not used.
    """
    if not invocations:
        raise ValueError("backend_invoke_concurrent requires at least one invocation.")
    config = config or RuntimeConfig()
    script = backend_options.get("drush-script") or config.backend.remote_script
    backend = bool(backend_options.get("backend", False))
    integrate = bool(backend_options.get("integrate", True))
    interactive = bool(backend_options.get("interactive", False))
    tty = bool(backend_options.get("#tty", False))
    concurrency = int(backend_options.get("concurrency") or config.backend.concurrency)
    timeout_s = backend_options.get("timeout", config.backend.timeout_s)
    transport_site = {
        key: backend_options.get(key) for key in ("remote-host", "remote-user") if backend_options.get(key)
    }

    jobs: list[dict[str, Any]] = []
    for entry in invocations:
        command = entry.get("command") or default_command
        if not command:
            raise ValueError(f"Invocation {entry!r} does not name a command and no default command was given.")
        site = merge_site(default_site, {**transport_site, **dict(entry.get("site") or {})})
        options = {**dict(common_options or {}), **dict(entry.get("options") or {})}
        cmd = render_command(
            command,
            list(entry.get("args") or []),
            script=script,
            site=site,
            options=options,
            global_options=backend_options.get("additional-global-options"),
            backend=backend,
        )
        jobs.append(
            {
                "command": command,
                "site": site,
                "cmd": wrap_remote(cmd, site, config=config, tty=tty),
            }
        )

    results = asyncio.run(
        _run_all(
            jobs,
            concurrency=max(1, concurrency),
            timeout_s=timeout_s,
            capture=not interactive and (backend or not integrate),
            interactive=interactive,
            integrate=integrate,
        )
    )
    error_status = next((item["exit_code"] for item in results if item["exit_code"] != 0), 0)
    return {"error_status": error_status, "concurrent": results}


async def _run_all(
    jobs: Sequence[Mapping[str, Any]],
    *,
    concurrency: int,
    timeout_s: float | None,
    capture: bool,
    interactive: bool,
    integrate: bool,
) -> list[dict[str, Any]]:
    semaphore = asyncio.Semaphore(concurrency)

    async def _run(job: Mapping[str, Any]) -> dict[str, Any]:
        async with semaphore:
            return await _run_one(
                job, timeout_s=timeout_s, capture=capture, interactive=interactive, integrate=integrate
            )

    return list(await asyncio.gather(*(_run(job) for job in jobs)))


async def _run_one(
    job: Mapping[str, Any],
    *,
    timeout_s: float | None,
    capture: bool,
    interactive: bool,
    integrate: bool,
) -> dict[str, Any]:
    cmd = list(job["cmd"])
    entry: dict[str, Any] = {
        "command": job["command"],
        "site": dict(job["site"]),
        "cmd": cmd,
        "exit_code": 0,
        "output": "",
        "object": None,
        "log": [],
        "error_log": {},
        "duration_s": 0.0,
    }
    logger.debug("Backend invoke: %s", shlex.join(cmd))
    try:
        proc = await start_process(cmd, capture=capture, interactive=interactive)
    except OSError as exc:
        logger.debug("Backend invoke failed to start %s: %s", cmd[0], exc)
        entry["exit_code"] = EXIT_NOT_EXECUTABLE
        entry["error_log"] = {"spawn": [str(exc)]}
        return entry

    waiter = asyncio.ensure_future(wait_process(proc))
    timed_out = False
    try:
        result: ProcessResult = await asyncio.wait_for(asyncio.shield(waiter), timeout=timeout_s)
    except asyncio.TimeoutError:
        timed_out = True
        await terminate_process(proc)
        result = await waiter

    entry["duration_s"] = result.duration_s
    entry["exit_code"] = EXIT_TIMEOUT if timed_out else result.exit_code
    if timed_out:
        entry["error_log"] = {"timeout": [f"Command exceeded {timeout_s}s and was terminated."]}
    if capture:
        _apply_output(entry, result)
        if integrate:
            _integrate_output(entry["output"], result.stderr)
    return entry


def _apply_output(entry: dict[str, Any], result: ProcessResult) -> None:
    try:
        parsed = parse_backend_output(result.stdout)
    except BackendOutputError as exc:
        entry["output"] = result.stdout
        entry["error_log"] = {**entry["error_log"], "backend": [str(exc)]}
        if entry["exit_code"] == 0:
            entry["exit_code"] = 1
        return
    entry["output"] = parsed.output
    payload = parsed.payload
    entry["object"] = payload.get("object")
    entry["log"] = list(payload.get("log") or [])
    if payload.get("error_log"):
        entry["error_log"] = {**entry["error_log"], **dict(payload["error_log"])}
    status = parsed.error_status
    if status is not None and entry["exit_code"] == 0:
        entry["exit_code"] = status


def _integrate_output(stdout: str, stderr: str) -> None:
    if stdout:
        sys.stdout.write(stdout if stdout.endswith("\n") else f"{stdout}\n")
        sys.stdout.flush()
    if stderr:
        sys.stderr.write(stderr)
        sys.stderr.flush()


__all__ = [
    "BackendInvoker",
    "backend_invoke_concurrent",
    "merge_site",
    "render_command",
    "render_options",
    "wrap_remote",
]
