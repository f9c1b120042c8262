import pytest

from zessionizer.app import host as host_module
from zessionizer.app.host import TmuxHost
from zessionizer.errors import HostError


class FakeTmux:
    """Records commands; replies are looked up by tmux subcommand."""

    def __init__(self, replies=None):
        self.replies = replies or {}
        self.commands = []

    def __call__(self, cmd, timeout):
        self.commands.append(cmd)
        return self.replies.get(cmd[1], (0, "", ""))


def test_list_sessions_outside_tmux():
    runner = FakeTmux({"list-sessions": (0, "api\nweb\n\n", "")})
    sessions = TmuxHost(runner=runner, environ={}).list_sessions()

    assert sessions.names == frozenset({"api", "web"})
    assert sessions.current is None
    assert runner.commands == [["tmux", "list-sessions", "-F", "#{session_name}"]]


def test_list_sessions_inside_tmux_reports_current():
    runner = FakeTmux({
        "list-sessions": (0, "api\nweb\n", ""),
        "display-message": (0, "web\n", ""),
    })
    sessions = TmuxHost(runner=runner, environ={"TMUX": "/tmp/tmux-0/default,1,0"}).list_sessions()
    assert sessions.current == "web"


def test_no_server_means_no_sessions():
    runner = FakeTmux({"list-sessions": (1, "", "no server running on /tmp/tmux-0/default")})
    assert TmuxHost(runner=runner, environ={}).list_sessions().names == frozenset()


def test_list_failure_raises_host_error():
    runner = FakeTmux({"list-sessions": (1, "", "[Errno 2] No such file or directory: 'tmux'")})
    with pytest.raises(HostError):
        TmuxHost(runner=runner, environ={}).list_sessions()


def test_create_starts_detached_session_then_switches():
    runner = FakeTmux()
    TmuxHost(runner=runner, environ={"TMUX": "1"}).create("api", "/work/api")

    assert runner.commands == [
        ["tmux", "new-session", "-d", "-s", "api", "-c", "/work/api"],
        ["tmux", "switch-client", "-t", "api"],
    ]


def test_switch_outside_tmux_only_checks_the_session():
    attached = []
    runner = FakeTmux()
    host = TmuxHost(runner=runner, attacher=lambda name: attached.append(name) or 0,
                    environ={})
    host.switch("api", "/work/api")

    assert runner.commands == [["tmux", "has-session", "-t", "api"]]
    assert attached == []
    assert host.needs_attach

    host.attach("api")
    assert attached == ["api"]


def test_switch_outside_tmux_to_missing_session_fails():
    runner = FakeTmux({"has-session": (1, "", "can't find session: api\n")})
    with pytest.raises(HostError, match="can't find session"):
        TmuxHost(runner=runner, environ={}).switch("api", "/work/api")


def test_create_outside_tmux_stays_detached():
    runner = FakeTmux()
    host = TmuxHost(runner=runner, attacher=lambda name: 1, environ={})
    host.create("api", "/work/api")

    assert runner.commands == [["tmux", "new-session", "-d", "-s", "api", "-c", "/work/api"]]
    with pytest.raises(HostError, match="exit 1"):
        host.attach("api")


def test_switch_failure_raises():
    runner = FakeTmux({"switch-client": (1, "", "can't find session: api\n")})
    with pytest.raises(HostError, match="can't find session"):
        TmuxHost(runner=runner, environ={"TMUX": "1"}).switch("api", "/work/api")


def test_kill_session():
    runner = FakeTmux()
    TmuxHost(runner=runner, environ={}).kill("api")
    assert runner.commands == [["tmux", "kill-session", "-t", "api"]]

    runner = FakeTmux({"kill-session": (1, "", "session not found: api")})
    with pytest.raises(HostError):
        TmuxHost(runner=runner, environ={}).kill("api")


def test_server_crash_is_retried_once(monkeypatch):
    replies = [(1, "", "server exited unexpectedly"), (0, "api\n", "")]
    monkeypatch.setattr(host_module.time, "sleep", lambda s: None)

    host = TmuxHost(runner=lambda cmd, timeout: replies.pop(0), environ={})
    assert host.list_sessions().names == frozenset({"api"})


def test_run_reports_missing_binary(monkeypatch):
    def fake_run(cmd, **kwargs):
        raise FileNotFoundError(2, "No such file or directory", cmd[0])

    monkeypatch.setattr(host_module.subprocess, "run", fake_run)
    code, out, err = host_module.run(["tmux", "list-sessions"])
    assert code == 1
    assert out == ""
    assert "No such file" in err
