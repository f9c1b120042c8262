"""
zessionizer command line.

    zessionizer scan                  discover projects under the scan roots
    zessionizer list [QUERY]          ranked projects (fuzzy-filtered by QUERY)
    zessionizer pick                  interactive picker
    zessionizer open QUERY            switch to / create the best match's session
    zessionizer record PATH           count one access to a project
    zessionizer serve                 run the worker + status API
"""

import argparse
import json
import sys
import time
from pathlib import Path
from typing import Any, Dict, Optional

from . import log as logsetup
from .app.host import TmuxHost
from .app.plugin import Plugin
from .app.picker import pick
from .app.sessions import session_name
from .config import Config
from .errors import ConfigError, HostError, ZessionizerError
from .index.registry import canonical
from .ranking.matcher import rank
from .ranking.scorer import Scorer, time_ago
from .status.api import serve
from .worker.messages import (LoadProjects, RecordAccess, ScanProgress, StartScan,
                              WorkerError)
from .worker.worker import Worker


def load_config(args: argparse.Namespace) -> Config:
    """Environment, then --config file, then flags; later sources win."""
    config = Config.from_env()
    if args.config:
        config = config.merged(read_config_file(Path(args.config)))
    overrides: Dict[str, Any] = {
        "scan_paths": args.scan_path or None,
        "scan_depth": args.depth,
        "data_dir": args.data_dir,
        "store_backend": args.backend,
        "log_level": args.log_level,
    }
    return config.merged(overrides)


def read_config_file(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"cannot read config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigError(f"config {path} must be a JSON object")
    return data


def attach_opened(plugin: Plugin, host) -> None:
    """Attach the terminal to the session the picker opened, once the worker is gone."""
    if plugin.opened is not None and host.needs_attach:
        host.attach(plugin.opened.name)


def loaded_worker(config: Config, host=None) -> Worker:
    """Synchronous worker with the persisted projects already merged."""
    worker = Worker(config, host=host, watch=False, poll_sessions=False)
    worker.post(LoadProjects())
    worker.run_until_idle()
    return worker


# ============================================================================
# Commands
# ============================================================================

def run_scan(args: argparse.Namespace, config: Config) -> int:
    worker = loaded_worker(config)
    before = set(worker.registry.snapshot().paths)
    worker.post(StartScan())
    worker.run_until_idle()
    worker.stop()

    for event in worker.outbox.drain():
        if isinstance(event, ScanProgress) and event.done:
            suffix = f" ({event.errors} unreadable)" if event.errors else ""
            print(f"[{event.root}] {event.found} projects{suffix}")
        elif isinstance(event, WorkerError):
            print(f"Warning: {event.message}", file=sys.stderr)
    after = worker.registry.snapshot().paths
    added = len(set(after) - before)
    print(f"Indexed {len(after)} projects ({added} new)")
    return 0


def run_list(args: argparse.Namespace, config: Config) -> int:
    worker = loaded_worker(config)
    projects = worker.registry.snapshot().projects
    if args.sessions:
        live = TmuxHost().list_sessions().names
        projects = [p for p in projects if session_name(p) in live]

    now = time.time()
    query = " ".join(args.query)
    rows = rank(projects, query, Scorer(config.half_life_seconds), now, search=bool(query))
    for row in rows[:args.limit]:
        project = row.project
        print(f"{project.name:<32} {time_ago(project.last_accessed, now):>10}  {project.path}")
    if not rows:
        print("No projects found.", file=sys.stderr)
    return 0


def run_open(args: argparse.Namespace, config: Config) -> int:
    host = TmuxHost()
    plugin = Plugin(config, loaded_worker(config, host=host), permitted=True)
    plugin.tick()
    plugin.state.update_sessions(host.list_sessions())

    query = " ".join(args.query)
    rows = rank(plugin.state.snapshot.projects, query, plugin.state.scorer,
                time.time(), search=True)
    if not rows:
        raise ValueError(f"no project matches '{query}'")

    plugin.select(rows[0].project)
    plugin.worker.run_until_idle()
    plugin.worker.stop()
    plugin.tick()
    if plugin.state.notice:
        raise HostError(plugin.state.notice)
    attach_opened(plugin, host)
    return 0


def run_pick(args: argparse.Namespace, config: Config) -> int:
    host = TmuxHost()
    plugin = Plugin(config, Worker(config, host=host), permitted=True)
    plugin.start()
    try:
        pick(plugin)
    finally:
        plugin.shutdown()
    plugin.tick()
    attach_opened(plugin, host)
    return 0


def run_record(args: argparse.Namespace, config: Config) -> int:
    worker = loaded_worker(config)
    path = canonical(args.path)
    if path not in worker.registry:
        raise ValueError(f"{path} is not a known project (run `zessionizer scan`)")
    worker.post(RecordAccess(path, time.time()))
    worker.run_until_idle()
    worker.stop()
    project = worker.registry.get(path)
    print(f"{project.name}: {project.frequency} accesses")
    return 0


def run_serve(args: argparse.Namespace, config: Config) -> int:
    plugin = Plugin(config, Worker(config, host=TmuxHost()), permitted=True)
    plugin.start()
    try:
        serve(plugin, args.port or config.api_port, host=args.host)
    finally:
        plugin.shutdown()
    return 0


# ============================================================================
# Main
# ============================================================================

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="zessionizer",
                                     description="Ranked project index and session switcher")
    parser.add_argument("--config", help="JSON file with configuration keys")
    parser.add_argument("--scan-path", action="append",
                        help="root to scan (repeatable; default ~/Projects)")
    parser.add_argument("--depth", type=int, help="maximum scan depth")
    parser.add_argument("--data-dir", help="directory holding projects.json")
    parser.add_argument("--backend", choices=["json", "redis"], help="store backend")
    parser.add_argument("--log-level", help="DEBUG, INFO, WARNING or ERROR")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("scan", help="discover projects under the scan roots")
    p.set_defaults(handler=run_scan)

    p = sub.add_parser("list", help="list ranked projects")
    p.add_argument("query", nargs="*", help="fuzzy filter tokens")
    p.add_argument("--sessions", action="store_true", help="only projects with a live session")
    p.add_argument("--limit", type=int, default=20)
    p.set_defaults(handler=run_list)

    p = sub.add_parser("pick", help="interactive picker")
    p.set_defaults(handler=run_pick)

    p = sub.add_parser("open", help="switch to or create the best match's session")
    p.add_argument("query", nargs="+")
    p.set_defaults(handler=run_open)

    p = sub.add_parser("record", help="count one access to a project")
    p.add_argument("path")
    p.set_defaults(handler=run_record)

    p = sub.add_parser("serve", help="run the status API")
    p.add_argument("--port", type=int, help="port (default from config, 9996)")
    p.add_argument("--host", default="127.0.0.1")
    p.set_defaults(handler=run_serve)
    return parser


def main(argv: Optional[list] = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    handler = getattr(args, "handler", None)
    if not handler:
        parser.print_help()
        return 1
    try:
        config = load_config(args)
        logsetup.configure(config.log_level)
        return int(handler(args, config))
    except (ValueError, ZessionizerError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
