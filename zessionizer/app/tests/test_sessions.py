from types import SimpleNamespace

from zessionizer.app.sessions import decide, sanitize, session_name
from zessionizer.index.registry import MarkerKind, Registry
from zessionizer.worker.messages import Create, SessionList, Switch


def project(path):
    return SimpleNamespace(path=path, name=path.rstrip("/").rsplit("/", 1)[-1])


def test_sanitize_replaces_host_reserved_characters():
    assert sanitize("my.app") == "my_app"
    assert sanitize("a:b c") == "a_b_c"
    assert sanitize("plain-name") == "plain-name"


def test_name_is_the_sanitized_directory_name():
    assert session_name(project("/work/api")) == "api"
    assert session_name(project("/work/my.api")) == "my_api"


def test_name_survives_a_colliding_project_being_discovered():
    registry = Registry()
    registry.merge_discovered("/home/u/Projects/api", MarkerKind.VERSION_CONTROLLED, 1.0)
    live = SessionList(names=frozenset({"api"}))
    first = registry.get("/home/u/Projects/api")
    before = session_name(first)

    registry.merge_discovered("/home/u/Work/api", MarkerKind.VERSION_CONTROLLED, 2.0)
    first = registry.snapshot().get("/home/u/Projects/api")

    assert session_name(first) == before == "api"
    assert decide(first, live) == Switch(name="api", cwd="/home/u/Projects/api")


def test_decide_switches_to_live_session():
    api = project("/work/api")
    live = SessionList(names=frozenset({"api"}))
    assert decide(api, live) == Switch(name="api", cwd="/work/api")


def test_decide_creates_missing_session_in_project_dir():
    api = project("/work/my.api")
    assert decide(api, SessionList()) == Create(name="my_api", cwd="/work/my.api")
