"""
zessionizer Index Module - Project Discovery and Registry

- registry: path-keyed project records, snapshots
- scanner:  bounded-depth discovery walk
- watcher:  watchdog observers and the debounced reconciler
- store:    JSON file and redis persistence
"""

from .registry import (EMPTY_SNAPSHOT, MARKERS, MarkerKind, Project, ProjectView,
                       Registry, Snapshot, canonical)
from .scanner import Discovery, ScanReport, detect_marker, marker_present, scan, walk_root
from .store import JsonStore, RedisStore, open_store
from .watcher import EventKind, Reconciler, WatcherManager, WatchEvent

__all__ = [
    'EMPTY_SNAPSHOT', 'MARKERS', 'MarkerKind', 'Project', 'ProjectView', 'Registry',
    'Snapshot', 'canonical', 'Discovery', 'ScanReport', 'detect_marker',
    'marker_present', 'scan', 'walk_root', 'JsonStore', 'RedisStore', 'open_store',
    'EventKind', 'Reconciler', 'WatcherManager', 'WatchEvent',
]
