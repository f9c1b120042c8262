from types import SimpleNamespace

from zessionizer.ranking.scorer import Scorer, time_ago

HOUR = 3600.0
WEEK = 168 * HOUR


def project(name, frequency=0, last_accessed=0.0):
    return SimpleNamespace(name=name, frequency=frequency, last_accessed=last_accessed)


def test_score_halves_every_half_life():
    scorer = Scorer()
    now = 10 * WEEK

    assert scorer.score(4, now, now) == 4
    assert scorer.score(4, now - WEEK, now) == 2
    assert scorer.score(4, now - 2 * WEEK, now) == 1


def test_score_is_monotonic_in_age_and_frequency():
    scorer = Scorer()
    now = 1_000_000.0

    by_age = [scorer.score(3, now - age * HOUR, now) for age in (0, 1, 24, 200, 5000)]
    assert by_age == sorted(by_age, reverse=True)
    assert len(set(by_age)) == len(by_age)

    by_freq = [scorer.score(f, now - 10 * HOUR, now) for f in (1, 2, 5, 50)]
    assert by_freq == sorted(by_freq)
    assert len(set(by_freq)) == len(by_freq)


def test_score_never_negative_and_future_counts_as_now():
    scorer = Scorer()
    now = 1_000.0

    assert scorer.score(0, now - WEEK, now) == 0
    assert scorer.score(-3, now, now) == 0
    # Clock skew: an access in the future is treated as age 0
    assert scorer.score(2, now + 5 * HOUR, now) == 2


def test_fresh_access_can_outrank_stale_frequency():
    scorer = Scorer()
    now = 100 * WEEK

    stale = project("stale", frequency=10, last_accessed=now - 8 * WEEK)
    fresh = project("fresh", frequency=1, last_accessed=now)

    assert [p.name for p in scorer.rank([stale, fresh], now)] == ["fresh", "stale"]


def test_rank_breaks_ties_by_name():
    scorer = Scorer()
    rows = scorer.rank([project("zeta"), project("alpha"), project("mid")], now=0)
    assert [p.name for p in rows] == ["alpha", "mid", "zeta"]


def test_record_access_increments_and_keeps_newest_timestamp():
    scorer = Scorer()
    p = project("api", frequency=2, last_accessed=500.0)

    scorer.record_access(p, 900.0)
    assert (p.frequency, p.last_accessed) == (3, 900.0)

    # An older access still counts but never moves the timestamp back
    scorer.record_access(p, 100.0)
    assert (p.frequency, p.last_accessed) == (4, 900.0)


def test_custom_half_life():
    scorer = Scorer(half_life_seconds=HOUR)
    assert scorer.score(8, 0.0, 3 * HOUR) == 1


def test_time_ago_buckets():
    now = 1_000_000
    assert time_ago(now - 5, now) == "just now"
    assert time_ago(now - 300, now) == "5m ago"
    assert time_ago(now - 3 * 3600, now) == "3h ago"
    assert time_ago(now - 8 * 86400, now) == "8d ago"
