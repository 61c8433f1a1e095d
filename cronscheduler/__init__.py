"""
Cron Scheduler

Run periodic jobs from a single once-a-minute trigger (for example a
crontab entry). Every invocation registers all jobs and performs one
tick: find the due jobs, run them one after another and report the
results.

Features:
- Shell command, script file and Python callable jobs
- Readable schedule builders (daily, weekly, monthly, ...) or raw cron expressions
- Lock files so a slow job never overlaps with its next run
- Optional guard predicates per job
- Output appended to a per-job or scheduler-wide file
"""

from cronscheduler.engine import Scheduler
from cronscheduler.exceptions import (
    CronSchedulerError,
    FilesystemError,
    LabelExistsError,
    LabelNotFoundError,
    ScheduleSyntaxError,
)
from cronscheduler.expression import RecurrenceExpression
from cronscheduler.jobs import CommandExecutor
from cronscheduler.config import SchedulerConfig

__version__ = "0.1.0"
__all__ = [
    "Scheduler",
    "RecurrenceExpression",
    "CommandExecutor",
    "SchedulerConfig",
    "CronSchedulerError",
    "ScheduleSyntaxError",
    "LabelExistsError",
    "LabelNotFoundError",
    "FilesystemError",
]
