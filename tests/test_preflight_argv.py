from pydrush.preflight.argv import parse_preflight


def test_parse_command_and_global_options() -> None:
    invocation = parse_preflight(
        ["drush", "status", "--remote-host=example.com", "-Dfoo=bar", "extra"],
        stdin_isatty=False,
    )

    assert invocation.command == "status"
    assert invocation.get_option("remote-host") == "example.com"
    assert invocation.get_option("remote-user") is None
    assert invocation.overrides == ("foo=bar",)
    assert invocation.arguments == ("extra",)
    assert invocation.runtime_argv == ("drush", "status", "--remote-host=example.com", "-Dfoo=bar", "extra")


def test_global_options_before_command_are_moved_after_it() -> None:
    invocation = parse_preflight(
        ["pydrush", "--remote-host", "h1", "--remote-user=u1", "-D", "a=1", "cache-rebuild", "--quiet"],
        stdin_isatty=False,
    )

    assert invocation.command == "cache-rebuild"
    assert invocation.get_option("remote-host") == "h1"
    assert invocation.get_option("remote-user") == "u1"
    assert invocation.overrides == ("a=1",)
    assert invocation.arguments == ("--quiet",)
    assert invocation.runtime_argv == (
        "pydrush",
        "cache-rebuild",
        "--remote-host",
        "h1",
        "--remote-user=u1",
        "-Da=1",
        "--quiet",
    )


def test_define_long_form_is_normalized() -> None:
    invocation = parse_preflight(["pydrush", "status", "--define=ssh.binary=/bin/ssh"], stdin_isatty=False)
    assert invocation.overrides == ("ssh.binary=/bin/ssh",)
    assert invocation.runtime_argv == ("pydrush", "status", "-Dssh.binary=/bin/ssh")


def test_no_command() -> None:
    invocation = parse_preflight(["pydrush", "-v"], stdin_isatty=False)
    assert invocation.command is None
    assert invocation.get_option("verbose") is True
    assert invocation.runtime_argv == ("pydrush", "-v")


def test_passthrough_after_double_dash() -> None:
    invocation = parse_preflight(["pydrush", "core-execute", "--", "ls", "--root"], stdin_isatty=False)
    assert invocation.command == "core-execute"
    assert invocation.get_option("root") is None
    assert invocation.arguments == ("ls", "--root")


def test_interactive_requires_tty_and_no_yes_flag() -> None:
    assert parse_preflight(["pydrush", "status"], stdin_isatty=True).is_interactive() is True
    assert parse_preflight(["pydrush", "status"], stdin_isatty=False).is_interactive() is False
    assert parse_preflight(["pydrush", "-y", "status"], stdin_isatty=True).is_interactive() is False
    assert parse_preflight(["pydrush", "status", "--no-interaction"], stdin_isatty=True).is_interactive() is False


def test_site_options() -> None:
    invocation = parse_preflight(["pydrush", "status", "--root=/var/www", "--uri", "http://x"], stdin_isatty=False)
    assert invocation.root == "/var/www"
    assert invocation.uri == "http://x"


def test_short_flags_after_command_belong_to_the_command() -> None:
    invocation = parse_preflight(["pydrush", "exec", "grep", "-v", "foo", "-y", "-h"], stdin_isatty=True)
    assert invocation.command == "exec"
    assert invocation.arguments == ("grep", "-v", "foo", "-y", "-h")
    assert invocation.get_option("verbose") is False
    assert invocation.get_option("help") is False
    assert invocation.is_interactive() is True


def test_long_global_options_after_command_are_still_parsed() -> None:
    invocation = parse_preflight(["pydrush", "-v", "status", "--yes", "--debug"], stdin_isatty=True)
    assert invocation.get_option("verbose") is True
    assert invocation.get_option("debug") is True
    assert invocation.is_interactive() is False
    assert invocation.arguments == ()
