import json
import time

import pytest

from zessionizer import cli
from zessionizer.worker.messages import SessionList


@pytest.fixture
def workspace(tmp_path, monkeypatch):
    for key in ("ZESSIONIZER_SCAN_PATHS", "ZESSIONIZER_DATA_DIR", "ZESSIONIZER_STORE_BACKEND"):
        monkeypatch.delenv(key, raising=False)
    root = tmp_path.resolve() / "projects"
    for name in ("api", "web"):
        (root / name / ".git").mkdir(parents=True)
    (root / "notes").mkdir()
    (root / "notes" / ".zessionizer").write_text("")
    flags = ["--scan-path", str(root), "--data-dir", str(tmp_path / "data")]
    return root, flags


def run(flags, *args):
    return cli.main([*flags, *args])


def test_scan_then_list(workspace, capsys):
    root, flags = workspace

    assert run(flags, "scan") == 0
    out = capsys.readouterr().out
    assert f"[{root}] 3 projects" in out
    assert "Indexed 3 projects (3 new)" in out

    assert run(flags, "list") == 0
    lines = capsys.readouterr().out.splitlines()
    assert [line.split()[0] for line in lines] == ["api", "notes", "web"]

    assert run(flags, "list", "nts") == 0
    assert capsys.readouterr().out.split()[0] == "notes"


def test_record_changes_ranking(workspace, capsys):
    root, flags = workspace
    run(flags, "scan")
    capsys.readouterr()

    assert run(flags, "record", str(root / "web")) == 0
    assert "web: 1 accesses" in capsys.readouterr().out

    run(flags, "list")
    assert capsys.readouterr().out.split()[0] == "web"


def test_record_unknown_path_fails(workspace, capsys, tmp_path):
    _, flags = workspace
    assert run(flags, "record", str(tmp_path)) == 1
    assert "Error:" in capsys.readouterr().err


def test_open_creates_session_for_best_match(workspace, monkeypatch, capsys):
    root, flags = workspace
    run(flags, "scan")

    calls = []

    class FakeTmuxHost:
        needs_attach = True

        def list_sessions(self):
            return SessionList()

        def create(self, name, cwd):
            calls.append(("create", name, cwd))

        def attach(self, name):
            calls.append(("attach", name))

    monkeypatch.setattr(cli, "TmuxHost", FakeTmuxHost)
    assert run(flags, "open", "nt") == 0
    # The terminal is attached only after the worker has finished
    assert calls == [("create", "notes", str(root / "notes")), ("attach", "notes")]

    # The selection counted as an access
    capsys.readouterr()
    run(flags, "list")
    assert capsys.readouterr().out.split()[0] == "notes"


def test_open_without_match_fails(workspace, monkeypatch, capsys):
    _, flags = workspace
    run(flags, "scan")

    class FakeTmuxHost:
        def list_sessions(self):
            return SessionList()

    monkeypatch.setattr(cli, "TmuxHost", FakeTmuxHost)
    assert run(flags, "open", "zzz") == 1
    assert "no project matches" in capsys.readouterr().err


def test_config_file_is_read(workspace, tmp_path, capsys):
    root, _ = workspace
    config = tmp_path / "config.json"
    config.write_text(json.dumps({"scan_paths": [str(root)], "scan_depth": 1,
                                  "data_dir": str(tmp_path / "other")}))

    assert cli.main(["--config", str(config), "scan"]) == 0
    assert "Indexed 0 projects" in capsys.readouterr().out


def test_unreadable_config_file(tmp_path, capsys):
    assert cli.main(["--config", str(tmp_path / "missing.json"), "scan"]) == 1
    assert "cannot read config" in capsys.readouterr().err


def test_pick_feeds_keys_through_the_state_machine(workspace, monkeypatch, capsys):
    root, flags = workspace
    run(flags, "scan")
    calls = []

    class FakeTmuxHost:
        needs_attach = False

        def list_sessions(self):
            return SessionList(names=frozenset(n for op, n, *_ in calls if op == "create"))

        def create(self, name, cwd):
            calls.append(("create", name, cwd))

    def fake_pick(plugin):
        deadline = time.time() + 5
        while not plugin.state.snapshot.projects and time.time() < deadline:
            plugin.tick()
            time.sleep(0.01)
        for key in ("/", "w", "b", "Enter"):
            plugin.handle_key(key)
        while not plugin.closed and time.time() < deadline:
            plugin.tick()
            time.sleep(0.01)

    monkeypatch.setattr(cli, "TmuxHost", FakeTmuxHost)
    monkeypatch.setattr(cli, "pick", fake_pick)
    assert run(flags, "pick") == 0
    assert calls == [("create", "web", str(root / "web"))]
