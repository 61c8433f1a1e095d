"""
Scheduler configuration management.

Jobs are not persisted by the scheduler itself: every invocation
registers them again. For command-line use they are described in a
JSON file which is loaded, validated and applied to a fresh Scheduler
on every tick.
"""

import importlib
import json
import logging
import os
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from croniter import croniter
from dotenv import load_dotenv

from cronscheduler.engine import Scheduler
from cronscheduler.exceptions import ScheduleSyntaxError
from cronscheduler.expression import RecurrenceExpression
from cronscheduler.jobs import CommandExecutor
from cronscheduler.registry import JobHandle

load_dotenv()

logger = logging.getLogger(__name__)

WEEKDAYS = {
    'sunday': 0, 'monday': 1, 'tuesday': 2, 'wednesday': 3,
    'thursday': 4, 'friday': 5, 'saturday': 6
}

SCHEDULE_TYPES = (
    'cron', 'minutes', 'hourly', 'hours', 'daily', 'weekly', 'monthly', 'months', 'annually'
)


def get_data_dir() -> Path:
    """Base directory for scheduler files."""
    data_dir = os.environ.get('CRON_SCHEDULER_HOME')
    if data_dir:
        return Path(data_dir).expanduser()
    return Path.home() / ".cron_scheduler"


def _get_default_log_file() -> str:
    """Get default log file path from environment or default."""
    if os.environ.get('CRON_SCHEDULER_LOG_DIR'):
        return str(Path(os.environ['CRON_SCHEDULER_LOG_DIR']).expanduser() / "scheduler.log")
    return str(get_data_dir() / "logs" / "scheduler.log")


def resolve_callable(path: str) -> Callable[..., Any]:
    """
    Import a function from a "package.module:function" path.

    Raises:
        ValueError: If the path is malformed or does not name a callable
    """
    module_name, sep, attr = path.partition(':')
    if not sep or not module_name or not attr:
        raise ValueError(f"Invalid callable path '{path}' (expected 'module:function')")

    try:
        target = importlib.import_module(module_name)
        for part in attr.split('.'):
            target = getattr(target, part)
    except (ImportError, AttributeError) as e:
        raise ValueError(f"Cannot import '{path}': {e}") from e

    if not callable(target):
        raise ValueError(f"'{path}' is not callable")

    return target


@dataclass
class ScheduleConfig:
    """Schedule timing configuration."""
    type: str = 'cron'  # one of SCHEDULE_TYPES
    cron: Optional[str] = None  # raw cron expression
    time: Optional[str] = None  # HH:MM for daily/weekly/monthly/months/annually
    minute: Optional[int] = None  # minute of the hour for hourly
    minutes: Optional[int] = None  # interval in minutes
    hours: Optional[int] = None  # interval in hours
    months: Optional[int] = None  # interval in months
    day: Optional[Union[int, str]] = None  # weekday name/number for weekly, day of month otherwise
    month: Optional[int] = None  # month for annually

    def to_expression(self) -> RecurrenceExpression:
        """
        Build the cron expression for this schedule.

        Raises:
            ScheduleSyntaxError: If a value is out of range or the type is unknown
        """
        time = self.time or '00:00'

        if self.type == 'cron':
            return RecurrenceExpression.at(self.cron or '')
        elif self.type == 'minutes':
            return RecurrenceExpression.every_minutes(self.minutes or 1)
        elif self.type == 'hourly':
            return RecurrenceExpression.hourly(self.minute or 0)
        elif self.type == 'hours':
            return RecurrenceExpression.every_hours(self.hours or 1)
        elif self.type == 'daily':
            return RecurrenceExpression.daily(time)
        elif self.type == 'weekly':
            return RecurrenceExpression.weekly(self._weekday(), time)
        elif self.type == 'monthly':
            return RecurrenceExpression.monthly(self.day or 1, time)
        elif self.type == 'months':
            return RecurrenceExpression.every_months(self.months or 1, time)
        elif self.type == 'annually':
            return RecurrenceExpression.annually(self.month or 1, self.day or 1, time)

        raise ScheduleSyntaxError(f"Unknown schedule type '{self.type}'")

    def _weekday(self) -> Union[int, str]:
        if isinstance(self.day, str) and self.day.lower() in WEEKDAYS:
            return WEEKDAYS[self.day.lower()]
        return 0 if self.day is None else self.day


@dataclass
class JobConfig:
    """
    Individual job configuration.

    Exactly one of `command`, `script` or `call` must be set.
    """
    name: str
    schedule: ScheduleConfig = field(default_factory=lambda: ScheduleConfig(cron='* * * * *'))
    command: Optional[str] = None  # Shell command
    script: Optional[str] = None  # Script file path
    call: Optional[str] = None  # "package.module:function"
    params: List[Any] = field(default_factory=list)  # Positional arguments for `call`
    enabled: bool = True
    always: bool = False  # Run even if a previous run holds the lock
    output: Optional[str] = None  # Overrides the scheduler-wide output file
    when: Optional[str] = None  # Guard, "package.module:function"
    when_params: List[Any] = field(default_factory=list)
    description: Optional[str] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'JobConfig':
        data = dict(data)
        schedule = data.pop('schedule', None)
        if isinstance(schedule, str):
            schedule = ScheduleConfig(type='cron', cron=schedule)
        elif isinstance(schedule, dict):
            schedule = ScheduleConfig(**schedule)
        else:
            schedule = ScheduleConfig(cron='* * * * *')
        return cls(schedule=schedule, **data)

    def actions(self) -> Dict[str, str]:
        return {
            key: value
            for key, value in (('command', self.command), ('script', self.script), ('call', self.call))
            if value
        }

    def register(self, scheduler: Scheduler) -> JobHandle:
        """Register this job on a scheduler and apply its modifiers."""
        if self.command:
            handle = scheduler.raw(self.name, self.command)
        elif self.script:
            handle = scheduler.script(self.name, self.script)
        elif self.call:
            handle = scheduler.call(self.name, resolve_callable(self.call), *self.params)
        else:
            raise ValueError(f"Job {self.name}: no command, script or call configured")

        handle.schedule(self.schedule.to_expression())

        if self.always:
            handle.always()
        if self.output:
            handle.output(self.output)
        if self.when:
            handle.when(resolve_callable(self.when), *self.when_params)

        return handle


@dataclass
class LoggingConfig:
    """Logging configuration."""
    level: str = "INFO"
    file: str = None  # Set dynamically in __post_init__

    def __post_init__(self):
        if self.file is None:
            self.file = _get_default_log_file()


class SchedulerConfig:
    """
    Scheduler configuration manager.

    Configuration path priority:
    1. Explicit config_path argument
    2. CRON_SCHEDULER_CONFIG_PATH environment variable
    3. Default: ~/.cron_scheduler/config.json

    CRON_SCHEDULER_LOCK_DIR and CRON_SCHEDULER_OUTPUT_FILE override the
    corresponding values from the file.
    """

    def __init__(self, config_path: Optional[str] = None):
        """
        Initialize scheduler configuration.

        Args:
            config_path: Path to configuration file. If None, uses env var or default.
        """
        if config_path:
            self.config_path = Path(config_path).expanduser()
        elif os.environ.get('CRON_SCHEDULER_CONFIG_PATH'):
            self.config_path = Path(os.environ['CRON_SCHEDULER_CONFIG_PATH']).expanduser()
        else:
            self.config_path = get_data_dir() / "config.json"

        self.lock_dir: Optional[str] = None
        self.output_file: Optional[str] = None
        self.timeout: Optional[float] = None
        self.interpreter: Optional[str] = None
        self.jobs: List[JobConfig] = []
        self.logging: LoggingConfig = LoggingConfig()

        if self.config_path.exists():
            self.load()
        else:
            logger.info(f"No config found at {self.config_path}, using defaults")
            self._load_defaults()

        # Empty values disable locking and output
        self.lock_dir = os.environ.get('CRON_SCHEDULER_LOCK_DIR', self.lock_dir) or None
        self.output_file = os.environ.get('CRON_SCHEDULER_OUTPUT_FILE', self.output_file) or None

    def load(self):
        """Load configuration from JSON file."""
        try:
            with open(self.config_path, 'r') as f:
                data = json.load(f)

            self.lock_dir = data.get('lock_dir')
            self.output_file = data.get('output_file')
            self.timeout = data.get('timeout')
            self.interpreter = data.get('interpreter')
            self.jobs = [JobConfig.from_dict(job_data) for job_data in data.get('jobs', [])]

            if 'logging' in data:
                self.logging = LoggingConfig(**data['logging'])

            logger.info(f"Loaded {len(self.jobs)} job(s) from {self.config_path}")

        except Exception as e:
            logger.error(f"Failed to load config from {self.config_path}: {e}")
            raise

    def save(self):
        """Save configuration to JSON file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)

        data = {
            'lock_dir': self.lock_dir,
            'output_file': self.output_file,
            'timeout': self.timeout,
            'interpreter': self.interpreter,
            'jobs': [asdict(job) for job in self.jobs],
            'logging': asdict(self.logging)
        }

        with open(self.config_path, 'w') as f:
            json.dump(data, f, indent=2)

        logger.info(f"Saved configuration to {self.config_path}")

    def _load_defaults(self):
        """Load default configuration."""
        self.lock_dir = str(get_data_dir() / "locks")
        self.output_file = str(get_data_dir() / "output.log")
        # Disabled example job, enable it in the file to see output
        self.jobs = [
            JobConfig(
                name="heartbeat",
                command="date",
                enabled=False,
                schedule=ScheduleConfig(type="hourly", minute=0),
                description="Example job: append the date every hour"
            )
        ]

    def add_job(self, job: JobConfig):
        """Add a new job to configuration."""
        if any(j.name == job.name for j in self.jobs):
            raise ValueError(f"Job with name '{job.name}' already exists")

        self.jobs.append(job)
        logger.info(f"Added job: {job.name}")

    def remove_job(self, name: str) -> bool:
        """
        Remove a job by name.

        Returns:
            True if job was removed, False if not found
        """
        initial_len = len(self.jobs)
        self.jobs = [j for j in self.jobs if j.name != name]

        if len(self.jobs) < initial_len:
            logger.info(f"Removed job: {name}")
            return True
        return False

    def get_job(self, name: str) -> Optional[JobConfig]:
        """Get job configuration by name."""
        for job in self.jobs:
            if job.name == name:
                return job
        return None

    def get_enabled_jobs(self) -> List[JobConfig]:
        """Get list of enabled jobs."""
        return [j for j in self.jobs if j.enabled]

    def validate(self) -> List[str]:
        """
        Validate configuration.

        Returns:
            List of validation errors (empty if valid)
        """
        errors = []

        for job in self.jobs:
            actions = job.actions()
            if len(actions) != 1:
                errors.append(f"Job {job.name}: exactly one of 'command', 'script' or 'call' is required")

            for key in ('call', 'when'):
                path = getattr(job, key)
                if path:
                    try:
                        resolve_callable(path)
                    except ValueError as e:
                        errors.append(f"Job {job.name}: '{key}' {e}")

            schedule = job.schedule
            if schedule.type not in SCHEDULE_TYPES:
                errors.append(f"Job {job.name}: unknown schedule type '{schedule.type}'")
                continue

            if schedule.type == 'cron' and not (schedule.cron and croniter.is_valid(schedule.cron)):
                errors.append(f"Job {job.name}: invalid cron expression '{schedule.cron}'")
                continue

            try:
                schedule.to_expression()
            except ScheduleSyntaxError as e:
                errors.append(f"Job {job.name}: {e}")

        return errors

    def build_scheduler(self) -> Scheduler:
        """
        Create a Scheduler and register every enabled job.

        Raises:
            ValueError: If the configuration is invalid
            FilesystemError: If the lock directory is not writable
        """
        errors = self.validate()
        if errors:
            logger.error("Configuration validation failed:")
            for error in errors:
                logger.error(f"  - {error}")
            raise ValueError("Invalid configuration")

        if self.lock_dir:
            Path(self.lock_dir).expanduser().mkdir(parents=True, exist_ok=True)

        scheduler = Scheduler(
            lock_dir=self.lock_dir,
            output_file=self.output_file,
            executor=CommandExecutor(timeout=self.timeout, interpreter=self.interpreter)
        )

        for job_config in self.get_enabled_jobs():
            job_config.register(scheduler)

        logger.debug(f"Registered {len(scheduler.registry)} job(s)")
        return scheduler

    def __repr__(self):
        return f"SchedulerConfig(jobs={len(self.jobs)}, path={self.config_path})"
