"""
Exceptions raised by the cron scheduler.

Errors are never retried by the scheduler itself; they propagate to the
caller, which decides whether to log, alert or abort.
"""


class CronSchedulerError(Exception):
    """Base class for all scheduler errors."""
    pass


class ScheduleSyntaxError(CronSchedulerError):
    """Raised for a malformed cron expression or time-of-day string."""
    pass


class LabelExistsError(CronSchedulerError):
    """Raised when a job label is registered twice."""
    pass


class LabelNotFoundError(CronSchedulerError):
    """Raised when looking up a label that was never registered."""
    pass


class FilesystemError(CronSchedulerError):
    """
    Raised when a lock file or output file cannot be written or removed.

    When raised from a tick, `report` holds the outcomes of the jobs that
    had already run.
    """
    report = None
