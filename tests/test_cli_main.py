import io
from pathlib import Path

import pytest
from rich.console import Console

from pydrush import __version__
from pydrush.cli import main
from pydrush.commands import Command, CommandRegistry, default_registry
from pydrush.preflight.invocation import HANDLE_REMOTE_COMMANDS, AnnotationSet


class FakeInvoker:
    def __init__(self, error_status: int = 0) -> None:
        self.error_status = error_status
        self.calls: list[tuple] = []

    def __call__(self, invocations, common_options, backend_options, default_command=None, default_site=None, context=None):
        self.calls.append((invocations, common_options, backend_options, default_command, default_site, context))
        return {"error_status": self.error_status}


@pytest.fixture(autouse=True)
def _no_config_env(monkeypatch) -> None:
    monkeypatch.delenv("PYDRUSH_CONFIG", raising=False)


def _console() -> Console:
    return Console(file=io.StringIO(), width=120)


def test_remote_host_redispatches_and_returns_remote_status() -> None:
    invoker = FakeInvoker(error_status=17)
    exit_code = main(
        ["status", "--remote-host=h1", "--remote-user=u1", "--root=/r", "--uri=http://x", "-Dfoo=bar", "extra"],
        invoker=invoker,
        stdin_isatty=False,
        console=_console(),
    )

    assert exit_code == 17
    assert len(invoker.calls) == 1
    invocations, common_options, backend_options, _, default_site, _ = invoker.calls[0]
    assert invocations == [
        {
            "command": "status",
            "args": ["--remote-host=h1", "--remote-user=u1", "--root=/r", "--uri=http://x", "extra"],
        }
    ]
    assert common_options == {}
    assert default_site == {"remote-host": "h1", "remote-user": "u1", "root": "/r", "uri": "http://x"}
    assert "#tty" not in backend_options
    assert "interactive" not in backend_options


def test_interactive_redispatch_requests_tty() -> None:
    invoker = FakeInvoker()
    assert main(["status", "--remote-host=h1"], invoker=invoker, stdin_isatty=True, console=_console()) == 0
    backend_options = invoker.calls[0][2]
    assert backend_options["#tty"] is True
    assert backend_options["interactive"] is True


def test_propagate_options_enabled_by_override() -> None:
    invoker = FakeInvoker()
    main(
        ["status", "--remote-host=h1", "--root=/r", "-Dpropagate_options=true"],
        invoker=invoker,
        stdin_isatty=False,
        console=_console(),
    )
    assert invoker.calls[0][1] == {"root": "/r"}


def test_command_handling_remote_itself_runs_locally() -> None:
    seen = []

    def handler(invocation, context) -> int:
        seen.append(invocation.get_option("remote-host"))
        return 3

    registry = CommandRegistry(
        [Command("fanout", handler, annotations=AnnotationSet.of(HANDLE_REMOTE_COMMANDS))]
    )
    invoker = FakeInvoker(error_status=99)

    exit_code = main(["fanout", "--remote-host=h1"], registry=registry, invoker=invoker, stdin_isatty=False)

    assert exit_code == 3
    assert seen == ["h1"]
    assert invoker.calls == []


def test_local_status_prints_table() -> None:
    console = _console()
    invoker = FakeInvoker()

    assert main(["status", "--root=/var/www"], invoker=invoker, stdin_isatty=False, console=console) == 0
    output = console.file.getvalue()
    assert "/var/www" in output
    assert "Remote script" in output
    assert invoker.calls == []


def test_version_command() -> None:
    console = _console()
    assert main(["version"], stdin_isatty=False, console=console) == 0
    assert __version__ in console.file.getvalue()


def test_no_command_prints_help() -> None:
    console = _console()
    assert main([], stdin_isatty=False, console=console) == 0
    output = console.file.getvalue()
    for name in default_registry().names():
        assert name in output


def test_unknown_command_fails() -> None:
    assert main(["does-not-exist"], stdin_isatty=False, console=_console()) == 1


def test_bad_config_returns_config_error(tmp_path: Path) -> None:
    bad = tmp_path / "pydrush.yml"
    bad.write_text("backend:\n  concurrency: 0\n", encoding="utf-8")
    assert main(["status", f"--config={bad}"], stdin_isatty=False, console=_console()) == 2


def test_handler_exception_returns_one() -> None:
    def boom(invocation, context) -> int:
        raise RuntimeError("boom")

    registry = CommandRegistry([Command("boom", boom)])
    assert main(["boom"], registry=registry, stdin_isatty=False) == 1


def test_interrupt_returns_130() -> None:
    def interrupted(invocation, context) -> int:
        raise KeyboardInterrupt

    registry = CommandRegistry([Command("wait", interrupted)])
    assert main(["wait"], registry=registry, stdin_isatty=False) == 130


def test_core_execute_runs_locally_and_returns_status(monkeypatch) -> None:
    calls = []

    class Completed:
        returncode = 6

    def fake_run(args, check):
        calls.append(args)
        return Completed()

    monkeypatch.setattr("pydrush.commands.subprocess.run", fake_run)
    assert main(["exec", "--", "ls", "-la"], stdin_isatty=False, console=_console()) == 6
    assert calls == [["ls", "-la"]]


def test_core_execute_keeps_short_flags_of_the_command(monkeypatch) -> None:
    calls = []

    class Completed:
        returncode = 0

    def fake_run(args, check):
        calls.append(args)
        return Completed()

    monkeypatch.setattr("pydrush.commands.subprocess.run", fake_run)
    assert main(["exec", "grep", "-v", "foo"], stdin_isatty=False, console=_console()) == 0
    assert calls == [["grep", "-v", "foo"]]


def test_unknown_command_with_remote_host_is_redispatched() -> None:
    invoker = FakeInvoker(error_status=5)
    exit_code = main(["cache-rebuild", "--remote-host=h1"], invoker=invoker, stdin_isatty=False, console=_console())

    assert exit_code == 5
    assert invoker.calls[0][0] == [{"command": "cache-rebuild", "args": ["--remote-host=h1"]}]


def test_help_with_remote_host_is_answered_remotely() -> None:
    invoker = FakeInvoker(error_status=3)
    console = _console()
    exit_code = main(["status", "--remote-host=h1", "--help"], invoker=invoker, stdin_isatty=False, console=console)

    assert exit_code == 3
    assert invoker.calls[0][0] == [{"command": "status", "args": ["--remote-host=h1", "--help"]}]
    assert console.file.getvalue() == ""


def test_help_for_local_command_prints_usage() -> None:
    invoker = FakeInvoker()
    console = _console()
    assert main(["status", "--help"], invoker=invoker, stdin_isatty=False, console=console) == 0
    assert invoker.calls == []
    assert "Usage:" in console.file.getvalue()


def test_site_ssh_opens_shell_without_redispatch(monkeypatch) -> None:
    calls = []

    class Completed:
        returncode = 0

    def fake_run(args, check):
        calls.append(args)
        return Completed()

    monkeypatch.setattr("pydrush.commands.subprocess.run", fake_run)
    invoker = FakeInvoker(error_status=1)

    exit_code = main(
        ["site-ssh", "--remote-host=h1", "--remote-user=u1", "--root=/var/www"],
        invoker=invoker,
        stdin_isatty=True,
        console=_console(),
    )

    assert exit_code == 0
    assert invoker.calls == []
    assert calls == [
        ["ssh", "-o", "PasswordAuthentication=no", "-t", "u1@h1", "sh -c 'cd /var/www && exec $SHELL -l'"]
    ]


def test_site_ssh_requires_host() -> None:
    assert main(["site-ssh"], stdin_isatty=False, console=_console()) == 1
