"""Tests for the daily stats tracker."""
from datetime import date, timedelta

import pytest

from phrasedrill.services.daily_stats import DailyStatsTracker
from phrasedrill.services.local_store import DAILY_STATS_KEY

TODAY = date(2024, 3, 15)


@pytest.fixture
def tracker(store, quiz_settings) -> DailyStatsTracker:
    return DailyStatsTracker(store, quiz_settings, today=lambda: TODAY)


def test_increment_today(tracker):
    for expected in range(1, 6):
        assert tracker.increment_today() == expected
    assert tracker.today_count() == 5
    assert tracker.yesterday_count() == 0
    assert tracker.diff() == 5


def test_diff_against_yesterday(tracker, store):
    store.set(DAILY_STATS_KEY, {"2024-03-14": 8, "2024-03-15": 3})
    assert tracker.yesterday_count() == 8
    assert tracker.diff() == -5


def test_window_is_zero_filled_and_ordered(tracker, store):
    store.set(DAILY_STATS_KEY, {"2024-03-15": 4, "2024-03-10": 2, "2023-01-01": 100})
    window = tracker.last_14_days()

    assert len(window) == 14
    assert window[0].date == (TODAY - timedelta(days=13)).isoformat()
    assert window[-1].date == "2024-03-15"
    assert window[-1].count == 4
    assert window[-1].normalized == 1.0
    assert window[-6].date == "2024-03-10"
    assert window[-6].normalized == 0.5
    assert all(0 <= day.normalized <= 1 for day in window)


def test_empty_window_is_all_zero(tracker):
    window = tracker.last_14_days()
    assert len(window) == 14
    assert all(day.count == 0 and day.normalized == 0 for day in window)


def test_days_roll_over(store, quiz_settings):
    current = [TODAY]
    tracker = DailyStatsTracker(store, quiz_settings, today=lambda: current[0])
    tracker.increment_today()
    current[0] = TODAY + timedelta(days=1)
    tracker.increment_today()
    tracker.increment_today()

    assert tracker.today_count() == 2
    assert tracker.yesterday_count() == 1
    assert store.get(DAILY_STATS_KEY) == {"2024-03-15": 1, "2024-03-16": 2}


def test_malformed_values_are_ignored(tracker, store):
    store.set(DAILY_STATS_KEY, {"2024-03-15": "many", "2024-03-14": -2, "2024-03-13": 1})
    assert tracker.today_count() == 0
    assert tracker.yesterday_count() == 0
    assert tracker.count_for("2024-03-13") == 1


def test_histogram(tracker, store):
    store.set(DAILY_STATS_KEY, {"2024-03-15": 8, "2024-03-14": 4})
    histogram = tracker.histogram()
    assert len(histogram) == 14
    assert histogram[-1] == "█"
    assert histogram[0] == "▁"
