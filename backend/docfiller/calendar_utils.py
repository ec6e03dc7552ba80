"""Calendar week helpers (Monday-start, ISO-8601 week numbering)."""

from __future__ import annotations

import datetime as dt
from typing import Iterable, Tuple, Union

DateLike = Union[str, dt.date]


def parse_date(value: DateLike) -> dt.date:
    if isinstance(value, dt.datetime):
        return value.date()
    if isinstance(value, dt.date):
        return value
    return dt.date.fromisoformat(value.strip()[:10])


def calendar_week(value: DateLike) -> int:
    return parse_date(value).isocalendar()[1]


def week_range(value: DateLike) -> Tuple[str, str]:
    """Return the Monday and Sunday (ISO strings) of the week containing `value`."""
    day = parse_date(value)
    start = day - dt.timedelta(days=day.weekday())
    end = start + dt.timedelta(days=6)
    return start.isoformat(), end.isoformat()


def format_german_date(value: DateLike) -> str:
    return parse_date(value).strftime("%d.%m.%Y")


def validate_date_range(start_date: DateLike, end_date: DateLike) -> bool:
    return parse_date(start_date) <= parse_date(end_date)


def total_hours(hours: Iterable[float]) -> float:
    return sum(h or 0 for h in hours)
