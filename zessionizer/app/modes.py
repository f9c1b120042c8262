"""
Interaction modes.

Exactly one mode is active at a time. Search remembers the browse mode it
was entered from so Escape can return to it.
"""

from dataclasses import dataclass, replace
from typing import Union


@dataclass(frozen=True)
class Projects:
    """Every known project, by frecency."""
    selected: int = 0


@dataclass(frozen=True)
class Sessions:
    """Only projects with a live session."""
    selected: int = 0


BrowseMode = Union[Projects, Sessions]


@dataclass(frozen=True)
class Search:
    query: str = ""
    cursor: int = 0           # character index into query, 0..len(query)
    selected: int = 0
    prior: BrowseMode = Projects()

    def insert(self, char: str) -> "Search":
        query = self.query[:self.cursor] + char + self.query[self.cursor:]
        return replace(self, query=query, cursor=self.cursor + len(char), selected=0)

    def backspace(self) -> "Search":
        if self.cursor == 0:
            return self
        query = self.query[:self.cursor - 1] + self.query[self.cursor:]
        return replace(self, query=query, cursor=self.cursor - 1, selected=0)

    def move_cursor(self, delta: int) -> "Search":
        cursor = max(0, min(len(self.query), self.cursor + delta))
        return replace(self, cursor=cursor)


Mode = Union[Projects, Sessions, Search]


def base_mode(mode: Mode) -> BrowseMode:
    """The browse mode whose project set `mode` shows."""
    return mode.prior if isinstance(mode, Search) else mode


def clamp(mode: Mode, count: int) -> Mode:
    """Mode with its selection pulled into [0, count)."""
    selected = max(0, min(mode.selected, count - 1)) if count else 0
    if selected == mode.selected:
        return mode
    return replace(mode, selected=selected)
