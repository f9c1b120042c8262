"""
Session Orchestrator - maps projects to session names and decides
whether a selection switches to a live session or creates a new one.
"""

import re
from typing import Union

from ..worker.messages import Create, SessionList, Switch

# Characters hosts reject or reinterpret in session names
_UNSAFE = re.compile(r"[.:\s]")


def sanitize(name: str) -> str:
    return _UNSAFE.sub("_", name) or "_"


def session_name(project) -> str:
    """
    Session name for a project: its sanitized directory name.

    Derived from the path alone, so discovering another project never
    renames a live session. Projects sharing a directory name share the
    session; selecting either switches to it.
    """
    return sanitize(project.name)


def decide(project, sessions: SessionList) -> Union[Switch, Create]:
    """Switch when the project's session is live, otherwise create it."""
    name = session_name(project)
    if name in sessions.names:
        return Switch(name=name, cwd=project.path)
    return Create(name=name, cwd=project.path)
