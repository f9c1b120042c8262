import os

from zessionizer.index.registry import (MISSING_SCANS_BEFORE_REMOVAL, MarkerKind, Registry,
                                        Snapshot, canonical)

VC = MarkerKind.VERSION_CONTROLLED


def test_discovery_starts_with_zero_frequency():
    registry = Registry()
    assert registry.merge_discovered("/p/api", VC, now=100.0)

    view = registry.get("/p/api")
    assert view.frequency == 0
    assert view.last_accessed == 100.0
    assert view.created_at == 100.0
    assert view.name == "api"


def test_rediscovery_is_idempotent():
    registry = Registry()
    registry.merge_discovered("/p/api", VC, now=100.0)
    registry.record_access("/p/api", 200.0)
    before = registry.snapshot()

    assert not registry.merge_discovered("/p/api", VC, now=999.0)
    after = registry.snapshot()
    assert after == before


def test_record_access_touches_only_that_project():
    registry = Registry()
    registry.merge_discovered("/p/a", VC, now=1.0)
    registry.merge_discovered("/p/b", VC, now=1.0)

    assert registry.record_access("/p/a", 50.0)
    assert registry.get("/p/a").frequency == 1
    assert registry.get("/p/a").last_accessed == 50.0
    assert registry.get("/p/b").frequency == 0
    assert registry.get("/p/b").last_accessed == 1.0


def test_record_access_for_unknown_path_is_ignored():
    registry = Registry()
    version = registry.version
    assert not registry.record_access("/nowhere", 1.0)
    assert registry.version == version


def test_merge_record_takes_maximum_stats_in_any_order():
    first = {"path": "/p/a", "marker": "Marked", "frequency": 3, "last_accessed": 10.0,
             "created_at": 5.0}
    second = {"path": "/p/a", "marker": "Marked", "frequency": 1, "last_accessed": 40.0,
              "created_at": 2.0}

    one, two = Registry(), Registry()
    one.merge_record(first)
    one.merge_record(second)
    two.merge_record(second)
    two.merge_record(first)

    assert one.snapshot().projects == two.snapshot().projects
    view = one.get("/p/a")
    assert (view.frequency, view.last_accessed, view.created_at) == (3, 40.0, 2.0)
    assert view.marker_kind is MarkerKind.MARKED


def test_malformed_record_is_skipped():
    registry = Registry()
    assert not registry.merge_record({"frequency": 3})
    assert not registry.merge_record({"path": "/p/a", "frequency": "lots"})
    assert len(registry) == 0


def test_reset_restores_discovery_state():
    registry = Registry()
    registry.merge_discovered("/p/a", VC, now=10.0)
    registry.record_access("/p/a", 90.0)

    assert registry.reset("/p/a")
    view = registry.get("/p/a")
    assert (view.frequency, view.last_accessed) == (0, 10.0)


def test_missing_projects_removed_only_after_repeated_complete_scans():
    registry = Registry()
    registry.merge_discovered("/root/a", VC, now=1.0)
    registry.merge_discovered("/root/b", VC, now=1.0)
    gone = lambda path: False

    for _ in range(MISSING_SCANS_BEFORE_REMOVAL - 1):
        assert registry.note_scan_complete("/root", ["/root/a"], gone) == []
        assert "/root/b" in registry

    assert registry.note_scan_complete("/root", ["/root/a"], gone) == ["/root/b"]
    assert "/root/b" not in registry
    assert "/root/a" in registry


def test_missing_project_kept_while_marker_exists():
    registry = Registry()
    registry.merge_discovered("/root/deep", VC, now=1.0)

    for _ in range(MISSING_SCANS_BEFORE_REMOVAL + 2):
        registry.note_scan_complete("/root", [], lambda path: True)
    assert "/root/deep" in registry


def test_rediscovery_resets_miss_count():
    registry = Registry()
    registry.merge_discovered("/root/a", VC, now=1.0)
    gone = lambda path: False

    registry.note_scan_complete("/root", [], gone)
    registry.merge_discovered("/root/a", VC, now=2.0)
    assert registry.note_scan_complete("/root", [], gone) == []
    assert "/root/a" in registry


def test_paths_under_respects_component_boundaries():
    registry = Registry()
    for path in ("/root/app", "/root/app/sub", "/root/apple"):
        registry.merge_discovered(path, VC, now=1.0)
    assert sorted(registry.paths_under("/root/app")) == ["/root/app", "/root/app/sub"]


def test_mutations_bump_version_and_mark_dirty():
    registry = Registry()
    assert (registry.version, registry.dirty) == (0, False)

    registry.merge_discovered("/p/a", VC, now=1.0)
    assert registry.version == 1 and registry.dirty

    registry.dirty = False
    registry.remove("/p/a")
    assert registry.version == 2 and registry.dirty


def test_snapshot_is_immutable_and_sorted():
    registry = Registry()
    registry.merge_discovered("/p/b", VC, now=1.0)
    registry.merge_discovered("/p/a", VC, now=1.0)

    snapshot = registry.snapshot()
    assert isinstance(snapshot, Snapshot)
    assert snapshot.paths == ["/p/a", "/p/b"]

    registry.record_access("/p/a", 5.0)
    assert snapshot.get("/p/a").frequency == 0


def test_records_round_trip_through_merge():
    registry = Registry()
    registry.merge_discovered("/p/a", MarkerKind.MARKED, now=3.0)
    registry.record_access("/p/a", 7.0)

    rows = registry.records()
    assert rows == [{"path": "/p/a", "frequency": 1, "last_accessed": 7.0,
                     "created_at": 3.0, "marker": "Marked"}]

    copy = Registry()
    copy.merge_record(rows[0])
    assert copy.snapshot().projects == registry.snapshot().projects


def test_canonical_resolves_symlinks(tmp_path):
    real = tmp_path / "real"
    real.mkdir()
    (tmp_path / "link").symlink_to(real)
    assert canonical(tmp_path / "link") == str(real.resolve())


def test_canonical_keeps_looping_paths_absolute(tmp_path):
    loop = tmp_path.resolve() / "loop"
    os.symlink(loop, loop)
    assert canonical(loop / ".git") == os.path.abspath(str(loop / ".git"))
