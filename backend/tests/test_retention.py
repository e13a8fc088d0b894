import math
from datetime import datetime, timedelta, timezone

from studyboard.utils.retention import estimate_retention, rank_by_retention

NOW = datetime(2030, 6, 1, 12, 0, tzinfo=timezone.utc)


def test_studied_just_now_is_full_retention():
    assert estimate_retention(NOW, 1.0, NOW) == (100, 0.0)
    assert estimate_retention(NOW, 5.0, NOW) == (100, 0.0)


def test_never_studied_scores_zero():
    assert estimate_retention(None, 3.0, NOW) == (0, 0.0)


def test_three_days_with_strength_two():
    retention, elapsed = estimate_retention(NOW - timedelta(days=3), 2.0, NOW)
    assert retention == round(100 * math.exp(-1.5)) == 22
    assert elapsed == 3.0


def test_missing_or_zero_strength_defaults_to_one():
    one_day_ago = NOW - timedelta(days=1)
    expected = estimate_retention(one_day_ago, 1.0, NOW)
    assert estimate_retention(one_day_ago, None, NOW) == expected
    assert estimate_retention(one_day_ago, 0, NOW) == expected
    assert expected[0] == 37


def test_monotonic_in_elapsed_days_and_strength():
    by_days = [estimate_retention(NOW - timedelta(days=d), 4.0, NOW)[0] for d in range(0, 15)]
    assert by_days == sorted(by_days, reverse=True)
    by_strength = [estimate_retention(NOW - timedelta(days=5), s, NOW)[0] for s in (0.5, 1, 2, 4, 8, 16)]
    assert by_strength == sorted(by_strength)


def test_naive_and_string_timestamps_are_treated_as_utc():
    naive = (NOW - timedelta(days=2)).replace(tzinfo=None)
    assert estimate_retention(naive, 2.0, NOW) == estimate_retention(NOW - timedelta(days=2), 2.0, NOW)
    assert estimate_retention("2030-05-29T12:00:00Z", 2.0, NOW)[0] == 22


def test_ranking_sorts_most_urgent_first_and_skips_bad_dates():
    modules = [
        {"id": 1, "title": "fresh", "last_studied_at": NOW, "strength": 1.0},
        {"id": 2, "title": "stale", "last_studied_at": NOW - timedelta(days=10), "strength": 1.0},
        {"id": 3, "title": "never", "last_studied_at": None, "strength": 1.0},
        {"id": 4, "title": "broken", "last_studied_at": "yesterday-ish", "strength": 1.0},
        {"id": 5, "title": "middle", "last_studied_at": NOW - timedelta(days=3), "strength": 2.0},
    ]
    ranked = rank_by_retention(modules, now=NOW)
    assert [m["id"] for m in ranked] == [2, 3, 5, 1]
    scores = [m["retention"] for m in ranked]
    assert scores == sorted(scores)
    assert ranked[2]["elapsed_days"] == 3.0
    assert all(not math.isnan(m["retention"]) for m in ranked)
