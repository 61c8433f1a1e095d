"""
Job registry and the fluent handle used to configure a registered job.

Every registration returns a JobHandle bound to that one job, so
modifiers such as `.daily("9:00").always()` can never end up applied
to a different job registered in between.
"""

import logging
import re
from typing import Any, Callable, Dict, List

from cronscheduler.exceptions import LabelExistsError, LabelNotFoundError
from cronscheduler.expression import RecurrenceExpression
from cronscheduler.models import Action, Guard, Job, OverlapPolicy

logger = logging.getLogger(__name__)

_CAMEL_BOUNDARY = re.compile(r'(?<=[a-z0-9])(?=[A-Z])')
_SEPARATORS = re.compile(r'[^A-Za-z0-9]+')


def normalize_label(label: str) -> str:
    """
    Convert a label to lowercase kebab case.

    "Send Mail", "send_mail" and "sendMail" all become "send-mail".

    Raises:
        ValueError: If nothing is left of the label after normalization
    """
    normalized = _CAMEL_BOUNDARY.sub('-', str(label).strip())
    normalized = _SEPARATORS.sub('-', normalized).strip('-').lower()

    if not normalized:
        raise ValueError(f"Invalid job label: '{label}'")

    return normalized


class JobHandle:
    """Chainable modifiers for one registered job."""

    def __init__(self, job: Job):
        self.job = job

    @property
    def label(self) -> str:
        return self.job.label

    def __repr__(self):
        return f"JobHandle(label='{self.job.label}', schedule='{self.job.schedule}')"

    def schedule(self, expression: RecurrenceExpression) -> 'JobHandle':
        """Replace the job's schedule with a prebuilt expression."""
        self.job.schedule = expression
        return self

    # Modifiers

    def always(self) -> 'JobHandle':
        """Run even if a previous run still holds the lock (no lock file is used)."""
        self.job.overlap = OverlapPolicy.ALWAYS_RUN
        return self

    def output(self, output_file: str) -> 'JobHandle':
        """Append job output to this file instead of the scheduler default."""
        self.job.output = str(output_file)
        return self

    def when(self, function: Callable[..., Any], *params: Any) -> 'JobHandle':
        """Only run the job if `function(*params)` returns True."""
        self.job.guard = Guard(function, tuple(params))
        return self

    # Schedules

    def at(self, expression: str) -> 'JobHandle':
        return self.schedule(RecurrenceExpression.at(expression))

    def every_minutes(self, minutes: int = 1) -> 'JobHandle':
        return self.schedule(RecurrenceExpression.every_minutes(minutes))

    def hourly(self, minute: int = 0) -> 'JobHandle':
        return self.schedule(RecurrenceExpression.hourly(minute))

    def every_hours(self, hours: int = 1) -> 'JobHandle':
        return self.schedule(RecurrenceExpression.every_hours(hours))

    def daily(self, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.daily(time))

    def weekly(self, weekday: int = 0, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.weekly(weekday, time))

    def monthly(self, day: int = 1, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.monthly(day, time))

    def every_months(self, months: int = 1, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.every_months(months, time))

    def annually(self, month: int = 1, day: int = 1, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.annually(month, day, time))

    yearly = annually

    def sunday(self, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.sunday(time))

    def monday(self, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.monday(time))

    def tuesday(self, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.tuesday(time))

    def wednesday(self, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.wednesday(time))

    def thursday(self, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.thursday(time))

    def friday(self, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.friday(time))

    def saturday(self, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.saturday(time))

    def january(self, day: int = 1, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.january(day, time))

    def february(self, day: int = 1, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.february(day, time))

    def march(self, day: int = 1, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.march(day, time))

    def april(self, day: int = 1, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.april(day, time))

    def may(self, day: int = 1, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.may(day, time))

    def june(self, day: int = 1, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.june(day, time))

    def july(self, day: int = 1, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.july(day, time))

    def august(self, day: int = 1, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.august(day, time))

    def september(self, day: int = 1, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.september(day, time))

    def october(self, day: int = 1, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.october(day, time))

    def november(self, day: int = 1, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.november(day, time))

    def december(self, day: int = 1, time: str = '00:00') -> 'JobHandle':
        return self.schedule(RecurrenceExpression.december(day, time))


class JobRegistry:
    """
    Jobs registered for a single scheduler run, keyed by normalized label.

    Iteration order is registration order. The registry is built by one
    caller before a tick and not mutated while the tick runs.
    """

    def __init__(self):
        self._jobs: Dict[str, Job] = {}

    def register(self, label: str, action: Action) -> JobHandle:
        """
        Add a job that runs every minute until its schedule is changed.

        Raises:
            LabelExistsError: If the normalized label is already registered
        """
        label = normalize_label(label)

        if label in self._jobs:
            raise LabelExistsError(f"Unable to add job ({label}): label already exists")

        job = Job(label=label, action=action)
        self._jobs[label] = job
        logger.debug(f"Registered job '{label}': {type(action).__name__}")

        return JobHandle(job)

    def lookup(self, label: str) -> Job:
        """
        Get a job by label (normalized before lookup).

        Raises:
            LabelNotFoundError: If no such job was registered
        """
        try:
            key = normalize_label(label)
        except ValueError:
            key = None

        if key not in self._jobs:
            raise LabelNotFoundError(f"Job '{label}' not found")

        return self._jobs[key]

    def all(self) -> List[Job]:
        return list(self._jobs.values())

    def __len__(self):
        return len(self._jobs)

    def __contains__(self, label):
        try:
            return normalize_label(label) in self._jobs
        except ValueError:
            return False

    def __iter__(self):
        return iter(self.all())
