"""Streak calculation over a habit's completion history.

All functions are pure. Inputs may be dates or datetimes; datetimes are
reduced to their calendar date, and several completions on the same date
count once. Both streaks are recomputed from the full history on every
completion, so cost is linear in the number of completions.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from datetime import date, datetime, timedelta

logger = logging.getLogger(__name__)

_ONE_DAY = timedelta(days=1)


def _to_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def distinct_dates(values: Iterable[date | datetime]) -> list[date]:
    """Distinct calendar dates, ascending."""
    return sorted({_to_date(v) for v in values})


def current_streak(values: Iterable[date | datetime], today: date) -> int:
    """Consecutive days ending at the most recent completion.

    The streak is 0 when the most recent completion is older than yesterday,
    even if history exists.
    """
    days = distinct_dates(values)
    if not days:
        return 0

    last = days[-1]
    if today - last > _ONE_DAY:
        logger.debug("Streak broken: %d days since last completion", (today - last).days)
        return 0

    count = 1
    cursor = last
    for day in reversed(days[:-1]):
        if day == cursor - _ONE_DAY:
            count += 1
            cursor = day
        elif day == cursor:
            continue
        else:
            break
    return count


def longest_streak(values: Iterable[date | datetime]) -> int:
    """Longest run of consecutive days anywhere in the history."""
    days = distinct_dates(values)
    if not days:
        return 0

    run = 1
    best = 1
    for previous, day in zip(days, days[1:]):
        gap = day - previous
        if gap == _ONE_DAY:
            run += 1
            best = max(best, run)
        elif gap > _ONE_DAY:
            run = 1
    return best


def is_streak_at_risk(values: Iterable[date | datetime], today: date) -> bool:
    """True when the last completion was yesterday (streak ends unless done today)."""
    days = distinct_dates(values)
    if not days:
        return False
    return today - days[-1] == _ONE_DAY
