"""
Lock files preventing overlapping runs of the same job.

Each job label maps to a marker file `cron-<label>.lock` inside the lock
directory. The marker exists from the moment a job is picked for
execution until its action returns, so a second invocation of the
scheduler started while the first is still busy skips that job.

Locking is a two-variant policy: FileLockStore when a directory is
configured, DisabledLockStore otherwise.
"""

import logging
import os
from pathlib import Path
from typing import Optional, Union

from cronscheduler.exceptions import FilesystemError

logger = logging.getLogger(__name__)

LOCK_FILE_MODE = 0o664
LOCK_DIR_MODE = 0o755


class LockStore:
    """Interface shared by both locking variants."""

    enabled = False

    @staticmethod
    def for_directory(directory: Optional[Union[str, Path]]) -> 'LockStore':
        """Return a FileLockStore for `directory`, or a DisabledLockStore if None or empty."""
        if directory is None or str(directory) == '':
            return DisabledLockStore()
        return FileLockStore(directory)

    def exists(self, label: str) -> bool:
        raise NotImplementedError

    def acquire(self, label: str) -> None:
        raise NotImplementedError

    def release(self, label: str) -> None:
        raise NotImplementedError


class DisabledLockStore(LockStore):
    """No locking: every job behaves as if it always runs."""

    enabled = False

    def exists(self, label: str) -> bool:
        return False

    def acquire(self, label: str) -> None:
        pass

    def release(self, label: str) -> None:
        pass

    def __repr__(self):
        return "DisabledLockStore()"


class FileLockStore(LockStore):
    """Lock markers stored as empty files in a directory."""

    enabled = True

    def __init__(self, directory: Union[str, Path]):
        """
        Initialize the lock store.

        Args:
            directory: Existing, writable directory for lock files

        Raises:
            FilesystemError: If the directory is not writable
        """
        self.directory = Path(directory).expanduser()

        if not (self.directory.is_dir() and os.access(self.directory, os.W_OK)):
            raise FilesystemError(f"Lock file path is not writable: {self.directory}")

    def path_for(self, label: str) -> Path:
        """Full path of the lock file for a (normalized) label."""
        return self.directory / f"cron-{label}.lock"

    def exists(self, label: str) -> bool:
        return self.path_for(label).exists()

    def acquire(self, label: str) -> None:
        """
        Create the lock file for `label`.

        Raises:
            FilesystemError: If the file (or its directory) cannot be created
        """
        path = self.path_for(label)
        try:
            path.parent.mkdir(mode=LOCK_DIR_MODE, parents=True, exist_ok=True)
            path.write_text('')
            path.chmod(LOCK_FILE_MODE)
        except OSError as e:
            raise FilesystemError(f"Unable to create lock file ({path}): {e}") from e

        logger.debug(f"Acquired lock: {path}")

    def release(self, label: str) -> None:
        """
        Remove the lock file for `label`.

        Raises:
            FilesystemError: If the file cannot be removed (including when
                it was already removed by someone else)
        """
        path = self.path_for(label)
        try:
            path.unlink()
        except OSError as e:
            raise FilesystemError(f"Unable to remove lock file ({path}): {e}") from e

        logger.debug(f"Released lock: {path}")

    def __repr__(self):
        return f"FileLockStore(directory={self.directory})"
