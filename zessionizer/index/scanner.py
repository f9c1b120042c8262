"""
Discovery Scanner - finds project directories under the scan roots.

A directory is a project when it holds a `.git` directory or a
`.zessionizer` marker file. Projects are yielded and never descended into,
so nested repositories are not reported. Depth follows `find -maxdepth`
applied to the marker: the root is depth 0 and a project at depth d
qualifies when d + 1 <= max_depth.
"""

import logging
import os
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

from .registry import MARKERS, MarkerKind, canonical

log = logging.getLogger(__name__)

IGNORE_DIRS = {
    'node_modules', '__pycache__', 'target', 'dist', 'build', '.next', '.nuxt',
    'vendor', 'venv', '.venv', '.idea', '.vscode', 'coverage', '.cache',
    '.tox', '.mypy_cache', '.pytest_cache', '.Trash',
}


@dataclass(frozen=True)
class Discovery:
    path: str
    marker_kind: MarkerKind
    root: str


@dataclass
class ScanReport:
    """Outcome of walking one root."""
    root: str
    found: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)
    completed: bool = False
    elapsed: float = 0.0


def detect_marker(directory: Path) -> Optional[MarkerKind]:
    """Marker kind held directly inside `directory`, if any."""
    for name, (kind, is_dir) in MARKERS.items():
        candidate = directory / name
        try:
            if candidate.is_dir() if is_dir else candidate.is_file():
                return kind
        except OSError:
            continue
    return None


def marker_present(path: str) -> bool:
    return detect_marker(Path(path)) is not None


def depth_allows(depth: int, max_depth: int) -> bool:
    """Whether a project `depth` levels below its root is within range."""
    return depth + 1 <= max_depth


def walk_root(root: Path, max_depth: int,
              report: Optional[ScanReport] = None) -> Iterator[Discovery]:
    """
    Depth-first walk of one root.

    Unreadable directories and symlink cycles are skipped with a warning.
    `report.completed` is set only when the walk ran to the end without
    any unreadable directory, since only such a scan proves absence.
    Callers supersede a walk by dropping the generator.
    """
    report = report or ScanReport(root=str(root))
    start = time.time()
    root_key = str(root)

    if not root.is_dir():
        msg = f"scan root {root} is not a readable directory"
        log.warning(msg)
        report.errors.append(msg)
        return

    visited = set()
    stack = [(root, 0)]

    while stack:
        directory, depth = stack.pop()
        try:
            st = directory.stat()
        except OSError as e:
            log.warning("skipping %s: %s", directory, e)
            report.errors.append(f"{directory}: {e}")
            continue

        key = (st.st_dev, st.st_ino)
        if key in visited:
            log.warning("skipping %s: symlink cycle", directory)
            continue
        visited.add(key)

        if depth_allows(depth, max_depth):
            kind = detect_marker(directory)
            if kind is not None:
                path = canonical(directory)
                report.found.append(path)
                yield Discovery(path=path, marker_kind=kind, root=root_key)
                continue

        if depth + 1 >= max_depth:
            continue

        try:
            with os.scandir(directory) as it:
                entries = sorted(it, key=lambda e: e.name)
        except OSError as e:
            log.warning("skipping %s: %s", directory, e)
            report.errors.append(f"{directory}: {e}")
            continue

        children = []
        for entry in entries:
            if entry.name in IGNORE_DIRS or entry.name in MARKERS:
                continue
            try:
                if entry.is_dir():
                    children.append(Path(entry.path))
            except OSError:
                continue
        for child in reversed(children):
            stack.append((child, depth + 1))

    report.completed = not report.errors
    report.elapsed = time.time() - start
    log.info("[%s] Found %d projects in %.2fs", root_key, len(report.found), report.elapsed)


def scan(roots: Iterable[Path], max_depth: int,
         reports: Optional[List[ScanReport]] = None) -> Iterator[Discovery]:
    """
    Lazily yield every project under every root.

    Depth is counted from each root independently. Pass `reports` to
    collect one ScanReport per root.
    """
    for root in roots:
        report = ScanReport(root=str(root))
        if reports is not None:
            reports.append(report)
        yield from walk_root(Path(root), max_depth, report)
