"""
zessionizer App Module - the interactive picker

- modes:    Projects / Sessions / Search mode values
- state:    key handling and the visible ranked list
- sessions: project -> session naming, switch-or-create decisions
- host:     session hosts (tmux)
- plugin:   main-context driver tying state and worker together
- picker:   curses terminal front end feeding keys to the plugin
"""

from .host import Host, TmuxHost
from .modes import Projects, Search, Sessions
from .plugin import Plugin
from .sessions import decide, session_name
from .state import Close, InteractionState, Select

__all__ = [
    'Host', 'TmuxHost', 'Projects', 'Search', 'Sessions', 'Plugin',
    'decide', 'session_name', 'Close', 'InteractionState', 'Select',
]
