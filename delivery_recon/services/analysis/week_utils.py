"""
Monday-based week helpers. Weeks run Monday to Sunday (e.g. 2025-10-06 to 2025-10-12).
"""
from datetime import date, datetime, timedelta
from typing import Dict, Iterable, List, Union

DateLike = Union[str, date, datetime]


def _to_date(value: DateLike) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value).strip()[:10])


def get_week_start(value: DateLike) -> date:
    d = _to_date(value)
    return d - timedelta(days=d.weekday())


def get_week_end(value: DateLike) -> date:
    return get_week_start(value) + timedelta(days=6)


def get_week_range(value: DateLike) -> Dict[str, str]:
    return {
        "weekStart": get_week_start(value).isoformat(),
        "weekEnd": get_week_end(value).isoformat(),
    }


def format_week_range(week_start: DateLike) -> str:
    """Display label, e.g. "Oct 6 - 12, 2025" or "Sep 29 - Oct 5, 2025" """
    start = get_week_start(week_start)
    end = start + timedelta(days=6)
    if start.month == end.month:
        return f"{start:%b} {start.day} - {end.day}, {end.year}"
    return f"{start:%b} {start.day} - {end:%b} {end.day}, {end.year}"


def get_unique_weeks(dates: Iterable[DateLike]) -> List[Dict[str, str]]:
    """Distinct weeks covering the given dates, most recent first"""
    weeks = {}
    for value in dates:
        week = get_week_range(value)
        weeks[week["weekStart"]] = week
    return sorted(weeks.values(), key=lambda w: w["weekStart"], reverse=True)


def get_previous_week_start(value: DateLike) -> str:
    return (get_week_start(value) - timedelta(days=7)).isoformat()
