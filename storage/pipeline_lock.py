"""Filesystem lock allowing one pipeline run at a time."""
import json
import logging
import os
import time
import uuid
from pathlib import Path
from typing import Any, Dict, Optional, Union

from processor.exceptions import LockHeld

logger = logging.getLogger(__name__)


class PipelineLock:
    """
    Exclusive lock file holding the owner's pid, start time and token.

    A lock older than max_age_seconds, or one that cannot be read, is
    treated as abandoned and taken over. The file is only ever removed
    while it still holds the owner data that was read or written.
    """

    def __init__(self, path: Union[str, Path], max_age_seconds: int = 3600):
        self.path = Path(path)
        self.max_age_seconds = max_age_seconds
        self._owner: Optional[Dict[str, Any]] = None

    @property
    def held(self) -> bool:
        return self._owner is not None

    def acquire(self) -> None:
        """
        Create the lock file.

        Raises:
            LockHeld: If another run holds a lock that is not yet stale
        """
        self.path.parent.mkdir(parents=True, exist_ok=True)

        owner = self._try_create()
        if owner is None:
            current = self._read_owner()
            pid, started_at = _owner_fields(current)
            age = time.time() - started_at if started_at is not None else None

            if age is not None and age < self.max_age_seconds:
                raise LockHeld(
                    f"pipeline already running (pid {pid}, "
                    f"started {int(age)}s ago)",
                    pid=pid,
                    started_at=started_at
                )

            logger.warning(
                f"Reclaiming abandoned lock {self.path} "
                f"(pid {pid}, age {'unknown' if age is None else int(age)}s)"
            )
            self._remove_if_owned_by(current)
            owner = self._try_create()
            if owner is None:
                raise LockHeld("lock was taken by another run while reclaiming")

        self._owner = owner
        logger.info(f"Acquired pipeline lock {self.path}")

    def release(self) -> None:
        """Remove the lock file if this instance still owns it."""
        if self._owner is None:
            return
        if self._remove_if_owned_by(self._owner):
            logger.info(f"Released pipeline lock {self.path}")
        else:
            logger.warning(
                f"Pipeline lock {self.path} was taken over by another run; "
                f"leaving it in place"
            )
        self._owner = None

    def __enter__(self) -> 'PipelineLock':
        self.acquire()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.release()

    def _try_create(self) -> Optional[Dict[str, Any]]:
        try:
            fd = os.open(str(self.path), os.O_CREAT | os.O_EXCL | os.O_WRONLY)
        except FileExistsError:
            return None
        owner = {
            'pid': os.getpid(),
            'started_at': time.time(),
            'token': uuid.uuid4().hex
        }
        with os.fdopen(fd, 'w', encoding='utf-8') as f:
            json.dump(owner, f)
        return owner

    def _read_owner(self) -> Optional[Dict[str, Any]]:
        """Return the lock file's owner data, or None if it cannot be read."""
        try:
            with open(self.path, encoding='utf-8') as f:
                data = json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable lock file {self.path}: {e}")
            return None
        return data if isinstance(data, dict) else None

    def _remove_if_owned_by(self, owner: Optional[Dict[str, Any]]) -> bool:
        """
        Unlink the lock file if it still holds the given owner data.

        An unreadable lock (owner None) is removed only if it is still
        unreadable. Returns True when the file was removed.
        """
        if self._read_owner() != owner:
            return False
        try:
            os.unlink(self.path)
        except FileNotFoundError:
            return False
        return True


def _owner_fields(owner: Optional[Dict[str, Any]]):
    if owner is None:
        return None, None
    try:
        started_at = float(owner['started_at'])
    except (KeyError, TypeError, ValueError):
        return owner.get('pid'), None
    return owner.get('pid'), started_at
