"""
zessionizer Scorer - Project Ranking by Frecency

Combines how often a project was opened (frequency) with how long ago it
was last opened (recency) into a single score:

    score = frequency * 0.5 ** (age / half_life)

A single fresh access can outrank many stale ones, but sustained use
still dominates pure recency.
"""

import time
from typing import Iterable, List, Optional

SECONDS_PER_MINUTE = 60
SECONDS_PER_HOUR = 3600
SECONDS_PER_DAY = 86400


class Scorer:
    """
    Frecency scorer for project records.

    Records only need `frequency`, `last_accessed` and `name` attributes;
    the scorer never stores them.
    """

    # Decay settings
    HALF_LIFE_SECONDS = 168 * SECONDS_PER_HOUR  # 1 week: score halves

    def __init__(self, half_life_seconds: Optional[float] = None):
        """
        Initialize scorer.

        Args:
            half_life_seconds: Age at which an access counts half (default: 1 week)
        """
        self.half_life = half_life_seconds or self.HALF_LIFE_SECONDS

    # =========================================================================
    # Scoring
    # =========================================================================

    def decay(self, age_seconds: float) -> float:
        """Recency multiplier in (0, 1]; future timestamps count as age 0."""
        age = max(0.0, age_seconds)
        return 0.5 ** (age / self.half_life)

    def score(self, frequency: int, last_accessed: float, now: Optional[float] = None) -> float:
        """
        Frecency score for one project.

        Args:
            frequency: Number of recorded accesses
            last_accessed: Unix timestamp of the most recent access
            now: Reference time (defaults to now)

        Returns:
            Non-negative score, higher = more relevant
        """
        now = time.time() if now is None else now
        return max(0, frequency) * self.decay(now - last_accessed)

    def score_of(self, project, now: Optional[float] = None) -> float:
        return self.score(project.frequency, project.last_accessed, now)

    # =========================================================================
    # Recording Access
    # =========================================================================

    def record_access(self, project, timestamp: Optional[float] = None):
        """
        Record one access: frequency + 1 and a refreshed timestamp.

        No deduplication happens here; every call is one access. An access
        older than the stored timestamp keeps the newer one.
        """
        ts = time.time() if timestamp is None else timestamp
        project.frequency += 1
        project.last_accessed = max(project.last_accessed, ts)
        return project

    # =========================================================================
    # Ranking
    # =========================================================================

    def rank(self, projects: Iterable, now: Optional[float] = None) -> List:
        """Projects sorted by frecency descending, then name ascending."""
        now = time.time() if now is None else now
        return sorted(projects, key=lambda p: (-self.score_of(p, now), p.name))


def time_ago(timestamp: float, now: Optional[float] = None) -> str:
    """Human-readable age: 'just now', '5m ago', '3h ago', '7d ago'."""
    now = time.time() if now is None else now
    diff = int(now - timestamp)

    if diff < SECONDS_PER_MINUTE:
        return "just now"
    if diff < SECONDS_PER_HOUR:
        return f"{diff // SECONDS_PER_MINUTE}m ago"
    if diff < SECONDS_PER_DAY:
        return f"{diff // SECONDS_PER_HOUR}h ago"
    return f"{diff // SECONDS_PER_DAY}d ago"
