"""
zessionizer Worker Module - background owner of the project index

- messages: frozen command/event dataclasses and the Mailbox
- worker:   the Worker thread (registry, scans, reconciler, store, host)
"""

from .messages import (Create, Kill, LoadProjects, Mailbox, ProjectsLoaded, RecordAccess,
                       RefreshSessions, ReloadConfig, ScanProgress, SessionList, SessionRequest,
                       SessionResult, SessionsUpdated, Shutdown, SnapshotUpdated, StartScan,
                       Switch, WatchEvents, WorkerError)
from .worker import Worker

__all__ = [
    'Create', 'Kill', 'LoadProjects', 'Mailbox', 'ProjectsLoaded', 'RecordAccess',
    'RefreshSessions', 'ReloadConfig', 'ScanProgress', 'SessionList', 'SessionRequest',
    'SessionResult', 'SessionsUpdated', 'Shutdown', 'SnapshotUpdated', 'StartScan',
    'Switch', 'WatchEvents', 'WorkerError', 'Worker',
]
