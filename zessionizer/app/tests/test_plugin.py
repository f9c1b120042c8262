from zessionizer.app.plugin import Plugin
from zessionizer.app.state import ENTER
from zessionizer.config import Config
from zessionizer.errors import HostError
from zessionizer.worker.messages import (Create, LoadProjects, RefreshSessions, ReloadConfig,
                                         SessionList, StartScan, WorkerError)
from zessionizer.worker.worker import Worker


class FakeHost:
    def __init__(self, names=(), fail=None):
        self.names = set(names)
        self.fail = fail
        self.calls = []

    def list_sessions(self):
        return SessionList(names=frozenset(self.names))

    def switch(self, name, cwd):
        self.calls.append(("switch", name))

    def create(self, name, cwd):
        if self.fail:
            raise HostError(self.fail)
        self.calls.append(("create", name))
        self.names.add(name)

    def kill(self, name):
        self.calls.append(("kill", name))
        self.names.discard(name)


def make_plugin(tmp_path, host=None, names=("api", "web")):
    root = tmp_path.resolve() / "projects"
    for name in names:
        (root / name / ".git").mkdir(parents=True)
    config = Config(scan_paths=[str(root)], data_dir=str(tmp_path / "data"))
    worker = Worker(config, host=host or FakeHost(), watch=False, poll_sessions=False)
    return Plugin(config, worker), root


def settle(plugin):
    plugin.worker.run_until_idle()
    return plugin.tick()


def test_scan_waits_for_permissions(tmp_path):
    plugin, _ = make_plugin(tmp_path)
    plugin.start(run_worker=False)

    assert plugin.scan_queued
    assert [type(c) for c in plugin.worker.inbox.drain()] == [LoadProjects]

    plugin.grant_permissions()
    assert not plugin.scan_queued
    assert [type(c) for c in plugin.worker.inbox.drain()] == [StartScan, RefreshSessions]


def test_startup_populates_the_picker(tmp_path):
    plugin, root = make_plugin(tmp_path)
    plugin.start(run_worker=False)
    plugin.grant_permissions()

    assert settle(plugin)
    assert [r.project.path for r in plugin.state.visible()] == [str(root / "api"),
                                                               str(root / "web")]
    assert plugin.scanning == {}


def test_enter_records_access_and_creates_session(tmp_path):
    host = FakeHost()
    plugin, root = make_plugin(tmp_path, host=host)
    plugin.start(run_worker=False)
    plugin.grant_permissions()
    settle(plugin)

    plugin.handle_key(ENTER)
    assert plugin.pending_request == Create(name="api", cwd=str(root / "api"))
    settle(plugin)

    assert host.calls == [("create", "api")]
    assert plugin.closed
    assert plugin.opened == Create(name="api", cwd=str(root / "api"))
    assert plugin.pending_request is None
    assert plugin.state.snapshot.get(str(root / "api")).frequency == 1
    assert plugin.state.snapshot.get(str(root / "web")).frequency == 0


def test_live_session_is_switched_to(tmp_path):
    host = FakeHost(names={"web"})
    plugin, _ = make_plugin(tmp_path, host=host)
    plugin.start(run_worker=False)
    plugin.grant_permissions()
    settle(plugin)

    plugin.handle_key("j")
    plugin.handle_key(ENTER)
    settle(plugin)
    assert host.calls == [("switch", "web")]


def test_host_failure_keeps_picker_open(tmp_path):
    plugin, _ = make_plugin(tmp_path, host=FakeHost(fail="server gone"))
    plugin.start(run_worker=False)
    plugin.grant_permissions()
    settle(plugin)
    plugin.handle_key("j")

    plugin.handle_key(ENTER)
    assert settle(plugin)
    assert not plugin.closed
    assert plugin.state.notice == "server gone"
    assert plugin.state.mode.selected == 1
    assert plugin.opened is None


def test_kill_key_ends_live_session(tmp_path):
    host = FakeHost(names={"api"})
    plugin, _ = make_plugin(tmp_path, host=host)
    plugin.start(run_worker=False)
    plugin.grant_permissions()
    settle(plugin)

    plugin.handle_key("K")
    settle(plugin)
    assert host.calls == [("kill", "api")]
    assert plugin.state.sessions.names == frozenset()
    assert not plugin.closed


def test_quit_closes_without_worker_traffic(tmp_path):
    plugin, _ = make_plugin(tmp_path)
    plugin.handle_key("q")
    assert plugin.closed
    assert plugin.worker.inbox.drain() == []


def test_worker_errors_become_notices(tmp_path):
    plugin, _ = make_plugin(tmp_path)
    assert plugin.apply(WorkerError(kind="persistence", message="disk full"))
    assert plugin.state.notice == "persistence error: disk full"


def test_reload_forwards_config(tmp_path):
    plugin, _ = make_plugin(tmp_path)
    config = plugin.config.merged({"half_life_hours": 12})
    plugin.reload(config)

    assert plugin.state.scorer.half_life == 12 * 3600
    assert [type(c) for c in plugin.worker.inbox.drain()] == [ReloadConfig]
