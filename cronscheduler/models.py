"""
Data models for scheduled jobs and tick reports.
"""

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Optional, Tuple, Union

from cronscheduler.expression import RecurrenceExpression


@dataclass(frozen=True)
class ShellCommand:
    """Run a command through the shell"""
    command: str

    def describe(self) -> str:
        return self.command


@dataclass(frozen=True)
class ScriptInvocation:
    """Run a script file with the configured interpreter"""
    path: str

    def describe(self) -> str:
        return self.path


@dataclass(frozen=True)
class Callback:
    """Call a Python function with bound positional parameters"""
    function: Callable[..., Any]
    params: Tuple[Any, ...] = ()

    def describe(self) -> str:
        return getattr(self.function, '__qualname__', repr(self.function))


Action = Union[ShellCommand, ScriptInvocation, Callback]


class OverlapPolicy(enum.Enum):
    """Whether a job may start while a previous run still holds its lock."""
    SKIP_IF_LOCKED = 'skip_if_locked'
    ALWAYS_RUN = 'always_run'


@dataclass(frozen=True)
class Guard:
    """Predicate checked after a job is found due; it runs only on a literal True."""
    function: Callable[..., Any]
    params: Tuple[Any, ...] = ()

    def allows(self) -> bool:
        return self.function(*self.params) is True


@dataclass
class Job:
    """A single scheduled unit of work"""
    label: str
    action: Action
    schedule: RecurrenceExpression = field(default_factory=RecurrenceExpression)
    overlap: OverlapPolicy = OverlapPolicy.SKIP_IF_LOCKED
    output: Optional[str] = None  # Overrides the scheduler-wide output file
    guard: Optional[Guard] = None

    @property
    def always_runs(self) -> bool:
        return self.overlap is OverlapPolicy.ALWAYS_RUN

    def to_dict(self) -> Dict[str, Any]:
        """Resolved configuration, suitable for listing"""
        return {
            'action': type(self.action).__name__,
            'target': self.action.describe(),
            'schedule': str(self.schedule),
            'overlap': self.overlap.value,
            'output': self.output,
            'guard': self.guard is not None,
        }


@dataclass
class JobOutcome:
    """Result of one job execution within a tick"""
    start: datetime
    end: datetime
    elapsed: float  # seconds
    output: Any = None  # Whatever the action returned; None if nothing

    def to_dict(self) -> Dict[str, Any]:
        return {
            'start': self.start.isoformat(),
            'end': self.end.isoformat(),
            'elapsed': round(self.elapsed, 3),
            'output': self.output if isinstance(self.output, str) else None,
        }


@dataclass
class TickReport:
    """Summary of one scheduler tick"""
    start: datetime
    end: Optional[datetime] = None
    elapsed: float = 0.0  # seconds
    jobs: Dict[str, JobOutcome] = field(default_factory=dict)  # label -> outcome
    count: int = 0  # Number of jobs in the execution snapshot

    def to_dict(self) -> Dict[str, Any]:
        return {
            'jobs': {label: outcome.to_dict() for label, outcome in self.jobs.items()},
            'start': self.start.isoformat(),
            'end': self.end.isoformat() if self.end else None,
            'elapsed': round(self.elapsed, 3),
            'count': self.count,
        }
