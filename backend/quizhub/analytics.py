"""Per-day grouping helpers used by the analytics endpoints."""

from __future__ import annotations

from collections import defaultdict
from datetime import date, datetime, time, timedelta, timezone
from typing import Any, Callable, Dict, Iterable, List, Optional, Tuple


def window_for_days(days: int, now: Optional[datetime] = None, max_days: int = 365) -> Tuple[datetime, datetime]:
    """Return a half-open UTC window covering the last `days` calendar days, today included.

    Raises `ValueError` unless `1 <= days <= max_days`.
    """
    if days < 1:
        raise ValueError("days must be >= 1")
    if days > max_days:
        raise ValueError(f"days must be <= {max_days}")
    now = now or datetime.now(timezone.utc)
    today = _as_utc(now).date()
    start = datetime.combine(today - timedelta(days=days - 1), time(), tzinfo=timezone.utc)
    end = datetime.combine(today + timedelta(days=1), time(), tzinfo=timezone.utc)
    return start, end


def _as_utc(value: datetime) -> datetime:
    # SQLite hands datetimes back naive; they were written as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def mean(values: List[float]) -> float:
    """Arithmetic mean rounded to 2 places; an empty list averages to 0."""
    if not values:
        return 0.0
    return round(sum(values) / len(values), 2)


def daily_series(
    records: Iterable[Any],
    *,
    start: datetime,
    end: datetime,
    timestamp_of: Callable[[Any], Optional[datetime]],
    value_of: Callable[[Any], Optional[float]],
) -> List[Dict[str, Any]]:
    """Group `records` by UTC calendar day inside `[start, end)`.

    One bucket is emitted for every day of the window, empty days
    included, each with the record `count` and the `average` of the
    values returned by `value_of` (records whose value is `None` are
    counted but not averaged).
    """
    start = _as_utc(start)
    end = _as_utc(end)
    grouped: Dict[date, List[float]] = defaultdict(list)
    counts: Dict[date, int] = defaultdict(int)
    for r in records:
        ts = timestamp_of(r)
        if ts is None:
            continue
        ts = _as_utc(ts)
        if not (start <= ts < end):
            continue
        day = ts.date()
        counts[day] += 1
        value = value_of(r)
        if value is not None:
            grouped[day].append(float(value))
    out = []
    day = start.date()
    last = (end - timedelta(microseconds=1)).date()
    while day <= last:
        out.append({'date': day.isoformat(), 'count': counts.get(day, 0), 'average': mean(grouped.get(day, []))})
        day += timedelta(days=1)
    return out


def pass_rate(submissions: Iterable[Any]) -> float:
    """Percentage of submissions marked passed, 0 when there are none."""
    flags = [bool(s.passed) for s in submissions]
    if not flags:
        return 0.0
    return round(sum(flags) * 100.0 / len(flags), 2)


def attempts_by_quiz(submissions: Iterable[Any]) -> Dict[int, Dict[str, Any]]:
    """Summarise best and latest attempt per quiz.

    Multiple attempts are kept as independent records; callers decide
    which one matters, so both are reported.
    """
    out: Dict[int, Dict[str, Any]] = {}
    for s in sorted(submissions, key=lambda x: (x.quiz_id, x.attempt_number, x.id or 0)):
        entry = out.setdefault(s.quiz_id, {'attempts': 0, 'best_percentage': 0, 'latest_percentage': 0, 'passed': False})
        entry['attempts'] += 1
        entry['best_percentage'] = max(entry['best_percentage'], s.percentage)
        entry['latest_percentage'] = s.percentage
        entry['passed'] = entry['passed'] or bool(s.passed)
    return out
