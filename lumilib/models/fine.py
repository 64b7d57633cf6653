"""Fine calculator.

This is the only place overdue fines are computed. Views, dashboards and the
return path all call :func:`calculate_fine` so that the day-rounding policy
is applied consistently.
"""
import math
from datetime import datetime
from typing import Iterable

SECONDS_PER_DAY = 24 * 60 * 60


def overdue_days(due_date: datetime, now: datetime) -> int:
    """Number of started days between ``due_date`` and ``now``.

    Any partial day counts as a full day; zero when not past due.
    """
    if now <= due_date:
        return 0
    return math.ceil((now - due_date).total_seconds() / SECONDS_PER_DAY)


def calculate_fine(record, now: datetime, daily_rate: float) -> float:
    """Outstanding fine of a loan at instant ``now``.

    Args:
        record: A BorrowRecord.
        now: Evaluation instant.
        daily_rate: Fine per started overdue day.

    Returns:
        The stored fine for settled loans, otherwise the live overdue fine
        rounded to cents.
    """
    if record.status == 'returned':
        return record.fine
    return round(overdue_days(record.due_at, now) * daily_rate, 2)


def total_fine(records: Iterable, now: datetime, daily_rate: float) -> float:
    """Sum of :func:`calculate_fine` over ``records``."""
    return sum(calculate_fine(r, now, daily_rate) for r in records)
