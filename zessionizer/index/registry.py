"""
Project Registry - the single owner of project records.

Lives in the worker context. The main context only ever sees immutable,
versioned snapshots of it.
"""

import logging
import os
import time
from dataclasses import asdict, dataclass
from enum import Enum
from pathlib import Path
from typing import Callable, Dict, Iterable, List, Optional, Tuple

from ..ranking.scorer import Scorer

log = logging.getLogger(__name__)

# Consecutive complete scans a project must be missing from before removal
MISSING_SCANS_BEFORE_REMOVAL = 2


class MarkerKind(str, Enum):
    VERSION_CONTROLLED = "VersionControlled"
    MARKED = "Marked"


# Marker name -> (kind, is_directory)
MARKERS = {
    ".git": (MarkerKind.VERSION_CONTROLLED, True),
    ".zessionizer": (MarkerKind.MARKED, False),
}


def canonical(path) -> str:
    """
    Absolute, symlink-resolved form used as the registry key.

    Paths that cannot be resolved (symlink loops) keep their absolute,
    unresolved form.
    """
    expanded = os.path.expanduser(str(path))
    try:
        return str(Path(expanded).resolve())
    except (RuntimeError, OSError) as e:
        log.debug("cannot resolve %s: %s", expanded, e)
        return os.path.abspath(expanded)


# ============================================================================
# Data Structures
# ============================================================================

@dataclass
class Project:
    path: str
    marker_kind: MarkerKind
    frequency: int = 0
    last_accessed: float = 0.0
    created_at: float = 0.0

    @property
    def name(self) -> str:
        return Path(self.path).name or self.path

    def view(self) -> "ProjectView":
        return ProjectView(
            path=self.path,
            marker_kind=self.marker_kind,
            frequency=self.frequency,
            last_accessed=self.last_accessed,
            created_at=self.created_at,
        )


@dataclass(frozen=True)
class ProjectView:
    """Read-only copy of a project handed to the main context."""
    path: str
    marker_kind: MarkerKind
    frequency: int
    last_accessed: float
    created_at: float

    @property
    def name(self) -> str:
        return Path(self.path).name or self.path


@dataclass(frozen=True)
class Snapshot:
    version: int
    projects: Tuple[ProjectView, ...] = ()

    def get(self, path: str) -> Optional[ProjectView]:
        for project in self.projects:
            if project.path == path:
                return project
        return None

    @property
    def paths(self) -> List[str]:
        return [p.path for p in self.projects]

    def __len__(self) -> int:
        return len(self.projects)


EMPTY_SNAPSHOT = Snapshot(version=0)


# ============================================================================
# Registry
# ============================================================================

class Registry:
    """
    Path-keyed project set with commutative, idempotent merges.

    Every mutation bumps `version` and marks the registry dirty so the
    worker knows a snapshot and a store write are due.
    """

    def __init__(self, scorer: Optional[Scorer] = None):
        self.scorer = scorer or Scorer()
        self._projects: Dict[str, Project] = {}
        self._misses: Dict[str, int] = {}
        self.version = 0
        self.dirty = False

    def __contains__(self, path: str) -> bool:
        return path in self._projects

    def __len__(self) -> int:
        return len(self._projects)

    def _touch(self):
        self.version += 1
        self.dirty = True

    def get(self, path: str) -> Optional[ProjectView]:
        project = self._projects.get(path)
        return project.view() if project else None

    # =========================================================================
    # Merges
    # =========================================================================

    def merge_discovered(self, path: str, marker_kind: MarkerKind,
                         now: Optional[float] = None) -> bool:
        """
        Add a discovered project, or confirm an existing one.

        Re-discovery never touches frequency or timestamps.

        Returns:
            True if the project was new
        """
        self._misses.pop(path, None)
        if path in self._projects:
            return False

        ts = time.time() if now is None else now
        self._projects[path] = Project(
            path=path,
            marker_kind=MarkerKind(marker_kind),
            last_accessed=ts,
            created_at=ts,
        )
        self._touch()
        log.debug("added project %s", path)
        return True

    def merge_record(self, record: Dict) -> bool:
        """
        Merge a persisted record; stats take the maximum on both sides.

        Returns:
            True if anything changed
        """
        try:
            path = str(record["path"])
            kind = MarkerKind(record.get("marker", MarkerKind.VERSION_CONTROLLED.value))
            frequency = max(0, int(record.get("frequency", 0)))
            last_accessed = float(record.get("last_accessed", 0.0))
            created_at = float(record.get("created_at", last_accessed))
        except (KeyError, TypeError, ValueError) as e:
            log.warning("skipping malformed record %r: %s", record, e)
            return False

        existing = self._projects.get(path)
        if existing is None:
            self._projects[path] = Project(path, kind, frequency, last_accessed, created_at)
            self._touch()
            return True

        merged = (
            max(existing.frequency, frequency),
            max(existing.last_accessed, last_accessed),
            min(existing.created_at, created_at),
        )
        if merged == (existing.frequency, existing.last_accessed, existing.created_at):
            return False
        existing.frequency, existing.last_accessed, existing.created_at = merged
        self._touch()
        return True

    # =========================================================================
    # Access & Removal
    # =========================================================================

    def record_access(self, path: str, timestamp: Optional[float] = None) -> bool:
        project = self._projects.get(path)
        if project is None:
            log.debug("access for unknown project %s ignored", path)
            return False
        self.scorer.record_access(project, timestamp)
        self._touch()
        return True

    def reset(self, path: str) -> bool:
        """Explicit stats reset; the only way `last_accessed` moves back."""
        project = self._projects.get(path)
        if project is None:
            return False
        project.frequency = 0
        project.last_accessed = project.created_at
        self._touch()
        return True

    def remove(self, path: str) -> bool:
        self._misses.pop(path, None)
        if self._projects.pop(path, None) is None:
            return False
        self._touch()
        log.info("removed project %s", path)
        return True

    def paths_under(self, root: str) -> List[str]:
        prefix = root.rstrip(os.sep) + os.sep
        return [p for p in self._projects if p == root or p.startswith(prefix)]

    def note_scan_complete(self, root: str, found: Iterable[str],
                           marker_present: Callable[[str], bool]) -> List[str]:
        """
        Count misses for projects under `root` that a complete scan did not
        find; remove those missing for enough scans whose marker is gone.

        Returns:
            Paths removed
        """
        found = set(found)
        removed = []
        for path in self.paths_under(root):
            if path in found:
                self._misses.pop(path, None)
                continue
            misses = self._misses.get(path, 0) + 1
            self._misses[path] = misses
            if misses >= MISSING_SCANS_BEFORE_REMOVAL and not marker_present(path):
                self.remove(path)
                removed.append(path)
        return removed

    # =========================================================================
    # Views
    # =========================================================================

    def snapshot(self) -> Snapshot:
        projects = tuple(
            self._projects[path].view() for path in sorted(self._projects)
        )
        return Snapshot(version=self.version, projects=projects)

    def records(self) -> List[Dict]:
        """Plain dicts for the persisted store."""
        rows = []
        for path in sorted(self._projects):
            data = asdict(self._projects[path])
            data["marker"] = data.pop("marker_kind").value
            rows.append(data)
        return rows
