"""
Cron expression building and evaluation.

A RecurrenceExpression is the standard five-field cron string
(minute hour day-of-month month weekday). Builders translate
scheduling intents such as "every Monday at 16:30" into that string,
validating every numeric field against its range. Matching itself is
delegated to croniter.
"""

from datetime import datetime
from typing import Any, Optional, Tuple, Union

from croniter import croniter, CroniterError

from cronscheduler.exceptions import ScheduleSyntaxError

WILDCARD = '*'

EVERY_MINUTE = '* * * * *'

# (min, max) for each field, in expression order
FIELD_RANGES = {
    'minute': (0, 59),
    'hour': (0, 23),
    'day': (1, 31),
    'month': (1, 12),
    'weekday': (0, 6),
}

FieldValue = Union[int, str]


def _as_whole_number(value: Any) -> Optional[int]:
    """The value as an int, or None if it is not a whole number."""
    if isinstance(value, bool):
        return None

    try:
        number = int(value)
    except (TypeError, ValueError, OverflowError):
        return None

    if not isinstance(value, str) and number != value:
        return None

    return number


def _at_least_one(value: FieldValue) -> FieldValue:
    """Clamp an interval to 1, leaving values that are not whole numbers for validation."""
    number = _as_whole_number(value)
    if number is not None and number < 1:
        return 1
    return value


def validate_field(value: FieldValue, minimum: int, maximum: int) -> FieldValue:
    """
    Validate a single cron field value.

    Args:
        value: "*" or a whole number (int, integral float or numeric string)
        minimum: Lowest accepted value
        maximum: Highest accepted value

    Returns:
        "*" or the value as an int

    Raises:
        ScheduleSyntaxError: If the value is not "*" and not a whole number
            within range. Booleans and fractional numbers are rejected.
    """
    if value == WILDCARD:
        return WILDCARD

    number = _as_whole_number(value)

    if number is None or not minimum <= number <= maximum:
        raise ScheduleSyntaxError(
            f"Invalid cron value ({value}) - value must be either \"*\" "
            f"or between {minimum} and {maximum}"
        )

    return number


def validate_sequence(
    minute: FieldValue = WILDCARD,
    hour: FieldValue = WILDCARD,
    day: FieldValue = WILDCARD,
    month: FieldValue = WILDCARD,
    weekday: FieldValue = WILDCARD
) -> Tuple[FieldValue, FieldValue, FieldValue, FieldValue, FieldValue]:
    """Validate all five fields, returning them in expression order."""
    values = (minute, hour, day, month, weekday)
    return tuple(
        validate_field(value, *FIELD_RANGES[name])
        for name, value in zip(FIELD_RANGES, values)
    )


def parse_time(time: str) -> Tuple[str, str]:
    """
    Split an "HH:MM" string into (hour, minute).

    Leading zeros are stripped, so "09:05" and "9:5" are equivalent.
    A component made only of zeros becomes "0".

    Raises:
        ScheduleSyntaxError: If there is no ":" separator
    """
    parts = str(time).split(':', 1)
    if len(parts) != 2:
        raise ScheduleSyntaxError(f"Invalid time format: '{time}' (expected HH:MM)")

    hour, minute = (part.strip().lstrip('0') or '0' for part in parts)
    return hour, minute


class RecurrenceExpression:
    """
    Immutable five-field cron expression.

    Instances are created through the classmethod builders; `at()` accepts
    any raw expression verbatim and leaves validation to evaluation time.
    """

    def __init__(self, expression: str = EVERY_MINUTE):
        self.expression = expression

    @classmethod
    def from_fields(cls, minute, hour, day, month, weekday) -> 'RecurrenceExpression':
        return cls(' '.join(str(field) for field in (minute, hour, day, month, weekday)))

    @property
    def fields(self) -> Tuple[str, ...]:
        """The whitespace-separated fields of the expression."""
        return tuple(self.expression.split())

    def __str__(self):
        return self.expression

    def __repr__(self):
        return f"RecurrenceExpression('{self.expression}')"

    def __eq__(self, other):
        if not isinstance(other, RecurrenceExpression):
            return NotImplemented
        return self.fields == other.fields

    def __hash__(self):
        return hash(self.fields)

    # ------------------------------------------------------------------
    # Builders
    # ------------------------------------------------------------------

    @classmethod
    def at(cls, expression: str) -> 'RecurrenceExpression':
        """Use a raw cron expression as-is."""
        return cls(expression.strip())

    @classmethod
    def every_minutes(cls, minutes: int = 1) -> 'RecurrenceExpression':
        """Every n minutes (n is clamped to at least 1)."""
        minute, *_ = validate_sequence(_at_least_one(minutes))
        return cls.from_fields(f"*/{minute}", WILDCARD, WILDCARD, WILDCARD, WILDCARD)

    @classmethod
    def hourly(cls, minute: int = 0) -> 'RecurrenceExpression':
        """On the given minute of every hour."""
        minute, *_ = validate_sequence(minute)
        return cls.from_fields(minute, WILDCARD, WILDCARD, WILDCARD, WILDCARD)

    @classmethod
    def every_hours(cls, hours: int = 1) -> 'RecurrenceExpression':
        """On the hour, every n hours (n is clamped to at least 1)."""
        _, hour, *_ = validate_sequence(WILDCARD, _at_least_one(hours))
        return cls.from_fields(0, f"*/{hour}", WILDCARD, WILDCARD, WILDCARD)

    @classmethod
    def daily(cls, time: str = '00:00') -> 'RecurrenceExpression':
        """At the given time every day."""
        hour, minute = parse_time(time)
        minute, hour, *_ = validate_sequence(minute, hour)
        return cls.from_fields(minute, hour, WILDCARD, WILDCARD, WILDCARD)

    @classmethod
    def weekly(cls, weekday: int = 0, time: str = '00:00') -> 'RecurrenceExpression':
        """At the given time on a weekday (0-6 as Sunday-Saturday)."""
        hour, minute = parse_time(time)
        minute, hour, _, _, weekday = validate_sequence(
            minute, hour, WILDCARD, WILDCARD, weekday
        )
        return cls.from_fields(minute, hour, WILDCARD, WILDCARD, weekday)

    @classmethod
    def monthly(cls, day: int = 1, time: str = '00:00') -> 'RecurrenceExpression':
        """At the given time on a day of every month."""
        hour, minute = parse_time(time)
        minute, hour, day, *_ = validate_sequence(minute, hour, day)
        return cls.from_fields(minute, hour, day, WILDCARD, WILDCARD)

    @classmethod
    def every_months(cls, months: int = 1, time: str = '00:00') -> 'RecurrenceExpression':
        """At the given time on the first day of every n months."""
        hour, minute = parse_time(time)
        minute, hour, _, month, _ = validate_sequence(minute, hour, WILDCARD, months)
        return cls.from_fields(minute, hour, 1, f"*/{month}", WILDCARD)

    @classmethod
    def annually(cls, month: int = 1, day: int = 1, time: str = '00:00') -> 'RecurrenceExpression':
        """At the given time on a month and day each year."""
        hour, minute = parse_time(time)
        minute, hour, day, month, _ = validate_sequence(minute, hour, day, month)
        return cls.from_fields(minute, hour, day, month, WILDCARD)

    yearly = annually

    @classmethod
    def sunday(cls, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.weekly(0, time)

    @classmethod
    def monday(cls, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.weekly(1, time)

    @classmethod
    def tuesday(cls, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.weekly(2, time)

    @classmethod
    def wednesday(cls, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.weekly(3, time)

    @classmethod
    def thursday(cls, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.weekly(4, time)

    @classmethod
    def friday(cls, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.weekly(5, time)

    @classmethod
    def saturday(cls, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.weekly(6, time)

    @classmethod
    def january(cls, day: int = 1, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.annually(1, day, time)

    @classmethod
    def february(cls, day: int = 1, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.annually(2, day, time)

    @classmethod
    def march(cls, day: int = 1, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.annually(3, day, time)

    @classmethod
    def april(cls, day: int = 1, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.annually(4, day, time)

    @classmethod
    def may(cls, day: int = 1, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.annually(5, day, time)

    @classmethod
    def june(cls, day: int = 1, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.annually(6, day, time)

    @classmethod
    def july(cls, day: int = 1, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.annually(7, day, time)

    @classmethod
    def august(cls, day: int = 1, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.annually(8, day, time)

    @classmethod
    def september(cls, day: int = 1, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.annually(9, day, time)

    @classmethod
    def october(cls, day: int = 1, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.annually(10, day, time)

    @classmethod
    def november(cls, day: int = 1, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.annually(11, day, time)

    @classmethod
    def december(cls, day: int = 1, time: str = '00:00') -> 'RecurrenceExpression':
        return cls.annually(12, day, time)

    # ------------------------------------------------------------------
    # Evaluation
    # ------------------------------------------------------------------

    def is_due(self, when: datetime) -> bool:
        """
        Check whether the expression matches `when` (minute precision).

        Raises:
            ScheduleSyntaxError: If the expression is malformed
        """
        try:
            return croniter.match(self.expression, when)
        except (CroniterError, ValueError) as e:
            raise ScheduleSyntaxError(f"Invalid cron expression '{self.expression}': {e}") from e

    def previous(self, when: datetime) -> datetime:
        """Most recent occurrence strictly before `when`."""
        try:
            return croniter(self.expression, when).get_prev(datetime)
        except (CroniterError, ValueError) as e:
            raise ScheduleSyntaxError(f"Invalid cron expression '{self.expression}': {e}") from e

    def next(self, when: datetime) -> datetime:
        """First occurrence strictly after `when`."""
        try:
            return croniter(self.expression, when).get_next(datetime)
        except (CroniterError, ValueError) as e:
            raise ScheduleSyntaxError(f"Invalid cron expression '{self.expression}': {e}") from e
