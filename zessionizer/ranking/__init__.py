"""
zessionizer Ranking Module - Frecency and Fuzzy Matching

Provides project ranking based on:
- Frequency: How often was the project opened?
- Recency: How long ago was it last opened?
- Query affinity: How well does the name match the search tokens?

Usage:
    from zessionizer.ranking import Scorer, match, rank

    scorer = Scorer()
    rows = rank(projects, "api gw", scorer, now, search=True)
"""

from .matcher import Match, MatchWeights, Ranked, match, merge_spans, rank
from .scorer import Scorer, time_ago

__all__ = ['Match', 'MatchWeights', 'Ranked', 'Scorer', 'match', 'merge_spans', 'rank', 'time_ago']
