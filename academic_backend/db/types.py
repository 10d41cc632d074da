from sqlalchemy import String
from sqlalchemy.types import TypeDecorator

from academic_backend.core.scheduling import format_weekdays, parse_weekdays


class WeekdaySet(TypeDecorator):
    """Weekday set persisted as comma-delimited labels (e.g. "Monday,Wednesday").

    Rows always load as frozenset[Weekday]; the text form exists only in the database.
    """

    impl = String(100)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is None:
            return None
        if isinstance(value, str):
            value = parse_weekdays(value)
        return format_weekdays(value)

    def process_result_value(self, value, dialect):
        if value is None:
            return None
        return parse_weekdays(value)
