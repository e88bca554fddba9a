"""Tests for the operator activity log (activity.py)."""

from __future__ import annotations

from datetime import datetime

from mcdcoupon.activity import ActivityLog, format_log_message


def test_format_log_message():
    assert format_log_message("Token reset", datetime(2025, 3, 1, 8, 5, 9)) == "[2025-03-01 08:05:09] Token reset"


def test_keeps_only_latest_entries():
    log = ActivityLog(max_entries=3, clock=lambda: datetime(2025, 1, 1))
    for i in range(5):
        log.add(f"event {i}")
    assert len(log) == 3
    assert [line.split("] ", 1)[1] for line in log.tail()] == ["event 2", "event 3", "event 4"]


def test_tail_count():
    log = ActivityLog(clock=lambda: datetime(2025, 1, 1))
    log.add("a")
    log.add("b")
    assert log.tail(1) == ["[2025-01-01 00:00:00] b"]
    assert log.tail(0) == []
