"""
Execution of job actions.

Runs shell commands, script files and Python callbacks and hands back
whatever text they produce. A failing action is not an error here:
a non-zero exit code or a raising callback is logged and the job simply
produces its output (or nothing).
"""

import logging
import subprocess
import sys
from typing import Any, Callable, List, Optional, Sequence, Union

from cronscheduler.models import Action, Callback, ScriptInvocation, ShellCommand

logger = logging.getLogger(__name__)


class CommandExecutor:
    """
    Invokes job actions and captures their output.

    The scheduler itself has no deadline mechanism; `timeout` is the only
    way to bound how long a single action may block a tick.
    """

    def __init__(self, timeout: Optional[float] = None, interpreter: Optional[str] = None):
        """
        Initialize command executor.

        Args:
            timeout: Seconds before a command or script is killed (None = no limit)
            interpreter: Program used to run script files (default: current Python)
        """
        self.timeout = timeout
        self.interpreter = interpreter or sys.executable

    def execute(self, action: Action, job_name: Optional[str] = None) -> Any:
        """
        Run any action variant.

        Returns:
            Output of the action; None when there is none
        """
        if isinstance(action, ShellCommand):
            return self.run_shell(action.command, job_name=job_name)
        elif isinstance(action, ScriptInvocation):
            return self.run_script(action.path, job_name=job_name)
        elif isinstance(action, Callback):
            return self.invoke(action.function, action.params, job_name=job_name)

        raise TypeError(f"Unsupported action: {action!r}")

    def run_shell(self, command: str, job_name: Optional[str] = None) -> Optional[str]:
        """Execute a shell command and return its combined stdout/stderr."""
        return self._run(command, shell=True, job_name=job_name)

    def run_script(self, path: str, job_name: Optional[str] = None) -> Optional[str]:
        """Execute a script file with the configured interpreter."""
        return self._run([self.interpreter, str(path)], shell=False, job_name=job_name)

    def invoke(
        self,
        function: Callable[..., Any],
        params: Sequence[Any] = (),
        job_name: Optional[str] = None
    ) -> Any:
        """
        Call a Python function with positional parameters.

        Functions should return their output rather than print it.
        An exception is logged with its traceback and treated as no output.
        """
        log_prefix = f"[{job_name}] " if job_name else ""

        try:
            return function(*params)
        except Exception as e:
            logger.error(f"{log_prefix}Callback raised {type(e).__name__}: {e}", exc_info=True)
            return None

    def _run(
        self,
        args: Union[str, List[str]],
        shell: bool,
        job_name: Optional[str] = None
    ) -> Optional[str]:
        log_prefix = f"[{job_name}] " if job_name else ""
        logger.info(f"{log_prefix}Executing: {args}")

        try:
            process = subprocess.Popen(
                args,
                shell=shell,
                stdout=subprocess.PIPE,
                stderr=subprocess.STDOUT,
                text=True
            )
        except OSError as e:
            logger.error(f"{log_prefix}Failed to start command: {e}")
            return None

        try:
            stdout, _ = process.communicate(timeout=self.timeout)
        except subprocess.TimeoutExpired:
            process.kill()
            stdout, _ = process.communicate()
            logger.error(f"{log_prefix}Command timed out after {self.timeout}s: {args}")

        if process.returncode != 0:
            logger.warning(f"{log_prefix}Command exited with code {process.returncode}")

        return stdout or None
