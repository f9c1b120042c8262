"""
zessionizer Matcher - Fuzzy Matching and Highlighting

A query is split on whitespace; every token must appear in the candidate
as a case-insensitive subsequence (AND semantics). Each token is aligned
to the candidate with the best-scoring placement, which rewards:

- contiguous runs over scattered characters
- characters at word boundaries (start, after a separator, camelCase)
- shorter candidates (more specific names)

The highlighted spans are the union of every token's matched characters.
"""

from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from .scorer import Scorer

SEPARATORS = frozenset("-_./\\: ")

Span = Tuple[int, int]


@dataclass(frozen=True)
class MatchWeights:
    """Tunable scoring weights; the defaults favor boundaries, then runs."""
    match: float = 1.0        # every matched character
    consecutive: float = 4.0  # character directly after the previous match
    boundary: float = 8.0     # character at a word boundary
    gap: float = 1.0          # each jump between non-adjacent characters
    length: float = 10.0      # scaled by len(token) / len(candidate)


@dataclass(frozen=True)
class Match:
    score: float
    spans: Tuple[Span, ...]


@dataclass(frozen=True)
class Ranked:
    """One row of a ranked list."""
    project: object
    match_score: float
    frecency: float
    spans: Tuple[Span, ...]


DEFAULT_WEIGHTS = MatchWeights()
EMPTY_MATCH = Match(0.0, ())


def is_boundary(text: str, index: int) -> bool:
    if index == 0:
        return True
    prev, cur = text[index - 1], text[index]
    if prev in SEPARATORS:
        return True
    return prev.islower() and cur.isupper()


def _align(token: Sequence[str], text: str, lowered: Sequence[str],
           weights: MatchWeights) -> Optional[Tuple[float, List[int]]]:
    """Best placement of `token` in `text` as a subsequence, or None."""
    n, m = len(token), len(text)
    if n == 0 or n > m:
        return None

    bonus = [weights.boundary if is_boundary(text, j) else 0.0 for j in range(m)]

    # best[i][j]: best score with token[i] placed at text[j]
    best: List[List[Optional[float]]] = [[None] * m for _ in range(n)]
    back = [[-1] * m for _ in range(n)]

    for j in range(m):
        if lowered[j] == token[0]:
            best[0][j] = weights.match + bonus[j]

    for i in range(1, n):
        prev_row = best[i - 1]
        run_best: Optional[float] = None
        run_idx = -1
        for j in range(m):
            k = j - 2
            if k >= 0 and prev_row[k] is not None and (run_best is None or prev_row[k] > run_best):
                run_best, run_idx = prev_row[k], k
            if lowered[j] != token[i]:
                continue

            score: Optional[float] = None
            source = -1
            if j >= 1 and prev_row[j - 1] is not None:
                score = prev_row[j - 1] + weights.match + weights.consecutive + bonus[j]
                source = j - 1
            if run_best is not None:
                scattered = run_best + weights.match + bonus[j] - weights.gap
                if score is None or scattered > score:
                    score, source = scattered, run_idx
            if score is not None:
                best[i][j] = score
                back[i][j] = source

    end = -1
    for j in range(m):
        value = best[n - 1][j]
        if value is not None and (end < 0 or value > best[n - 1][end]):
            end = j
    if end < 0:
        return None

    indices = [end]
    for i in range(n - 1, 0, -1):
        indices.append(back[i][indices[-1]])
    indices.reverse()

    total = best[n - 1][end] + weights.length * n / m
    return total, indices


def merge_spans(indices: Iterable[int]) -> Tuple[Span, ...]:
    """Collapse character indices into sorted half-open ranges."""
    spans: List[Span] = []
    for idx in sorted(set(indices)):
        if spans and idx <= spans[-1][1]:
            spans[-1] = (spans[-1][0], max(spans[-1][1], idx + 1))
        else:
            spans.append((idx, idx + 1))
    return tuple(spans)


def match(query: str, candidate: str, weights: MatchWeights = DEFAULT_WEIGHTS) -> Optional[Match]:
    """
    Match a query against one candidate name.

    Args:
        query: Whitespace-separated tokens, all of which must match
        candidate: Display name to match against
        weights: Scoring weights

    Returns:
        Match with score and highlight spans, or None if any token fails.
        An empty query matches with a neutral score and no spans.
    """
    tokens = query.split()
    if not tokens:
        return EMPTY_MATCH

    lowered = [c.lower() for c in candidate]
    total = 0.0
    matched: List[int] = []
    for token in tokens:
        aligned = _align([c.lower() for c in token], candidate, lowered, weights)
        if aligned is None:
            return None
        score, indices = aligned
        total += score
        matched.extend(indices)

    return Match(total, merge_spans(matched))


def rank(projects: Iterable, query: str, scorer: Scorer, now: float,
         search: bool = False, weights: MatchWeights = DEFAULT_WEIGHTS) -> List[Ranked]:
    """
    Filter and order projects for display.

    Search mode with a non-empty query orders by match score, otherwise by
    frecency; name ascending breaks ties in both cases.
    """
    filtering = search and bool(query.split())
    rows: List[Ranked] = []
    for project in projects:
        if filtering:
            result = match(query, project.name, weights)
            if result is None:
                continue
        else:
            result = EMPTY_MATCH
        rows.append(Ranked(project, result.score, scorer.score_of(project, now), result.spans))

    if filtering:
        rows.sort(key=lambda r: (-r.match_score, r.project.name))
    else:
        rows.sort(key=lambda r: (-r.frecency, r.project.name))
    return rows
