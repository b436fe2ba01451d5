"""Tests for the overdue calculator"""

from datetime import datetime, timedelta
from types import SimpleNamespace

import pytest

from app.services.overdue import days_overdue, is_overdue

NOW = datetime(2024, 6, 15, 12, 0, 0)


def task(status="IN_PROGRESS", due_date=None):
    return SimpleNamespace(status=status, due_date=due_date)


def test_no_due_date_is_never_overdue():
    assert not is_overdue(task(), NOW)
    assert days_overdue(task(), NOW) == 0


def test_future_due_date():
    assert not is_overdue(task(due_date=NOW + timedelta(hours=1)), NOW)


@pytest.mark.parametrize("status", ["COMPLETED", "CANCELLED"])
def test_terminal_tasks_are_never_overdue(status):
    late = task(status=status, due_date=NOW - timedelta(days=30))
    assert not is_overdue(late, NOW)
    assert days_overdue(late, NOW) == 0


def test_partial_day_rounds_up():
    late = task(due_date=NOW - timedelta(hours=2))
    assert is_overdue(late, NOW)
    assert days_overdue(late, NOW) == 1


def test_whole_days():
    late = task(status="BLOCKED", due_date=NOW - timedelta(days=3))
    assert days_overdue(late, NOW) == 3


def test_exactly_due_is_not_overdue():
    assert not is_overdue(task(due_date=NOW), NOW)
