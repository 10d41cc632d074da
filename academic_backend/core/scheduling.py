"""
Time-window and weekday predicates shared by every conflict dimension.

Windows are half-open: [start, end). Two bookings that touch (one ends exactly
when the other starts) do not overlap.
"""

from datetime import time
from typing import AbstractSet, FrozenSet, Iterable, Union

from academic_backend.core.enums import Weekday

WEEKDAY_SEPARATOR = ","

_WEEK_ORDER = {day: index for index, day in enumerate(Weekday)}


def intervals_overlap(a_start: time, a_end: time, b_start: time, b_end: time) -> bool:
    return not (a_end <= b_start or b_end <= a_start)


def weekdays_intersect(a: AbstractSet[Weekday], b: AbstractSet[Weekday]) -> bool:
    return not a.isdisjoint(b)


def parse_weekdays(value: Union[str, Iterable[Union[str, Weekday]]]) -> FrozenSet[Weekday]:
    """Parse a comma-delimited string or an iterable of labels into a weekday set.

    Labels must match the Weekday values exactly ("Monday".."Sunday").
    Raises ValueError on an unknown label or when nothing is left after parsing.
    """
    if isinstance(value, (str, Weekday)):
        value = [value]
    labels = []
    for item in value:
        if isinstance(item, Weekday):
            labels.append(item.value)
        else:
            labels.extend(part.strip() for part in str(item).split(WEEKDAY_SEPARATOR))
    days = set()
    for label in labels:
        if not label:
            continue
        try:
            days.add(Weekday(label))
        except ValueError:
            allowed = ", ".join(day.value for day in Weekday)
            raise ValueError(f"Unknown weekday {label!r}. Allowed: {allowed}") from None
    if not days:
        raise ValueError("At least one weekday is required")
    return frozenset(days)


def sort_weekdays(days: Iterable[Weekday]):
    return sorted(days, key=_WEEK_ORDER.__getitem__)


def format_weekdays(days: Iterable[Weekday]) -> str:
    """Comma-delimited labels in Monday..Sunday order."""
    return WEEKDAY_SEPARATOR.join(day.value for day in sort_weekdays(days))


def format_window(start: time, end: time) -> str:
    return f"{start.strftime('%H:%M:%S')}-{end.strftime('%H:%M:%S')}"
