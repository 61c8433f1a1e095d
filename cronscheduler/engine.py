"""
Core scheduler: registers jobs and runs one tick at a time.

The scheduler is meant to be driven by an external once-a-minute
trigger (a crontab entry such as `* * * * * cron-scheduler tick`).
Every invocation registers all jobs again and calls `tick()`, which:

1. Takes a snapshot of the due jobs. A job is due when its expression
   matches the reference time and no lock file blocks it; its guard (if
   any) must return True. The lock is acquired as soon as the job is
   picked, before the next job is checked.
2. Runs the snapshot in order. Each job's lock is removed right after its
   action returns, then any output is appended to the job's output file
   or the scheduler default.

Checking everything before running anything keeps a slow job from
pushing later jobs out of their due minute.
"""

import logging
import os
import time
from datetime import datetime
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from cronscheduler.exceptions import FilesystemError
from cronscheduler.jobs import CommandExecutor
from cronscheduler.locks import LockStore
from cronscheduler.models import (
    Callback,
    Job,
    JobOutcome,
    ScriptInvocation,
    ShellCommand,
    TickReport,
)
from cronscheduler.registry import JobHandle, JobRegistry

logger = logging.getLogger(__name__)

DEFAULT_DATE_FORMAT = '%Y-%m-%d %H:%M:%S'
OUTPUT_FILE_MODE = 0o664
OUTPUT_DIR_MODE = 0o755


def save_output(output: str, output_file: Union[str, Path]) -> None:
    """
    Append job output to a file, creating parent directories as needed.

    Raises:
        FilesystemError: If the output cannot be written
    """
    path = Path(output_file).expanduser()

    try:
        path.parent.mkdir(mode=OUTPUT_DIR_MODE, parents=True, exist_ok=True)
        with open(path, 'a') as f:
            f.write(output)
        os.chmod(path, OUTPUT_FILE_MODE)
    except OSError as e:
        raise FilesystemError(f"Unable to save output to file ({path}): {e}") from e


class Scheduler:
    """
    Tick-driven job scheduler.

    Example:
        scheduler = Scheduler(lock_dir='/var/run/cron', output_file='/var/log/cron.log')
        scheduler.raw('backup', 'tar czf /tmp/home.tgz ~').daily('2:30')
        scheduler.call('cleanup', purge_cache, 7).every_hours(6).always()
        report = scheduler.tick()
    """

    def __init__(
        self,
        lock_dir: Optional[Union[str, Path]] = None,
        output_file: Optional[Union[str, Path]] = None,
        executor: Optional[CommandExecutor] = None
    ):
        """
        Initialize scheduler.

        Args:
            lock_dir: Existing, writable directory for lock files. None
                disables locking, so every job behaves as if `always()` was set.
            output_file: Default file that job output is appended to
            executor: Action runner (default: CommandExecutor())

        Raises:
            FilesystemError: If lock_dir is given but not writable
        """
        self.locks = LockStore.for_directory(lock_dir)
        self.output_file = str(output_file) if output_file is not None else None
        self.executor = executor or CommandExecutor()
        self.registry = JobRegistry()

        logger.debug(f"Scheduler initialized (locks: {self.locks}, output: {self.output_file})")

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def raw(self, label: str, command: str) -> JobHandle:
        """Add a shell command as a job (runs every minute by default)."""
        return self.registry.register(label, ShellCommand(command))

    def script(self, label: str, path: Union[str, Path]) -> JobHandle:
        """Add a script file as a job (runs every minute by default)."""
        return self.registry.register(label, ScriptInvocation(str(path)))

    def call(self, label: str, function: Callable[..., Any], *params: Any) -> JobHandle:
        """
        Add a Python callable as a job (runs every minute by default).

        The function should return its output rather than print it.
        """
        return self.registry.register(label, Callback(function, tuple(params)))

    def get_jobs(self) -> Dict[str, Dict[str, Any]]:
        """All registered jobs and their resolved configuration, in registration order."""
        return {job.label: job.to_dict() for job in self.registry.all()}

    # ------------------------------------------------------------------
    # Schedule queries
    # ------------------------------------------------------------------

    def previous_run(
        self,
        label: str,
        date_format: str = DEFAULT_DATE_FORMAT,
        reference_time: Optional[datetime] = None
    ) -> str:
        """
        Previous date a job was scheduled to run.

        Raises:
            LabelNotFoundError: If the label is not registered
            ScheduleSyntaxError: If the job's expression is malformed
        """
        job = self.registry.lookup(label)
        return job.schedule.previous(reference_time or datetime.now()).strftime(date_format)

    def next_run(
        self,
        label: str,
        date_format: str = DEFAULT_DATE_FORMAT,
        reference_time: Optional[datetime] = None
    ) -> str:
        """
        Next date a job is scheduled to run.

        Raises:
            LabelNotFoundError: If the label is not registered
            ScheduleSyntaxError: If the job's expression is malformed
        """
        job = self.registry.lookup(label)
        return job.schedule.next(reference_time or datetime.now()).strftime(date_format)

    # ------------------------------------------------------------------
    # Tick
    # ------------------------------------------------------------------

    def _uses_lock(self, job: Job) -> bool:
        return self.locks.enabled and not job.always_runs

    def _resolve_output_file(self, job: Job) -> Optional[str]:
        """Job output file, else the scheduler default, else None (discard)."""
        if job.output is not None:
            return job.output
        return self.output_file

    def _collect_due_jobs(self, reference_time: datetime) -> List[Job]:
        due = []

        try:
            for job in self.registry.all():
                if self._uses_lock(job) and self.locks.exists(job.label):
                    logger.debug(f"[{job.label}] Skipped: previous run still holds the lock")
                    continue

                if not job.schedule.is_due(reference_time):
                    continue

                if job.guard is not None and not job.guard.allows():
                    logger.debug(f"[{job.label}] Skipped: guard did not return True")
                    continue

                if self._uses_lock(job):
                    self.locks.acquire(job.label)

                due.append(job)

        except FilesystemError:
            raise
        except Exception as e:
            # Nothing has run yet: drop every lock taken so far
            logger.error(f"Snapshot failed after picking {len(due)} job(s), releasing their locks: {e}")
            for job in due:
                if self._uses_lock(job):
                    self.locks.release(job.label)
            raise

        return due

    def _run_job(self, job: Job) -> JobOutcome:
        job_start = datetime.now()
        started = time.monotonic()
        logger.info(f"[{job.label}] Starting job")

        output = self.executor.execute(job.action, job_name=job.label)

        if self._uses_lock(job):
            self.locks.release(job.label)

        output_file = self._resolve_output_file(job)
        if output_file is not None and isinstance(output, str) and output != '':
            save_output(output, output_file)

        elapsed = time.monotonic() - started
        logger.info(f"[{job.label}] Completed in {elapsed:.2f}s")

        return JobOutcome(start=job_start, end=datetime.now(), elapsed=elapsed, output=output)

    def tick(self, reference_time: Optional[datetime] = None) -> TickReport:
        """
        Run all jobs that are due at `reference_time` (default: now).

        Returns:
            TickReport with one JobOutcome per executed job

        Raises:
            FilesystemError: If a lock file or output file cannot be written
                or removed. Remaining jobs are not run and their locks stay.
            ScheduleSyntaxError: If a job's expression is malformed. Like any
                other error raised while picking due jobs (a failing guard),
                it releases the locks taken so far and no job runs.
        """
        reference_time = reference_time or datetime.now()
        report = TickReport(start=datetime.now())
        started = time.monotonic()

        try:
            due_jobs = self._collect_due_jobs(reference_time)
            report.count = len(due_jobs)
            logger.info(
                f"{reference_time.strftime('%H:%M')} - {len(due_jobs)} of "
                f"{len(self.registry)} job(s) due"
            )

            for job in due_jobs:
                report.jobs[job.label] = self._run_job(job)

        except FilesystemError as e:
            logger.error(f"Tick aborted: {e}")
            e.report = report
            raise

        report.end = datetime.now()
        report.elapsed = time.monotonic() - started
        logger.info(f"Tick finished: {report.count} job(s) in {report.elapsed:.2f}s")

        return report
