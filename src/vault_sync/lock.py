"""Single-flight guard: at most one push or pull per vault at a time."""

import contextlib
import logging
import threading
from pathlib import Path
from typing import Iterator, Optional

import portalocker

from .errors import SyncInProgressError

logger = logging.getLogger(__name__)


class SingleFlight:
    """
    Rejects a sync while another one is in flight.

    An in-process lock covers the scheduler thread racing a manual command;
    the optional file lock covers a second process on the same vault. Both
    are non-blocking: a late caller gets SyncInProgressError instead of
    queueing behind the running sync.
    """

    def __init__(self, lock_path: Optional[Path] = None):
        self.lock_path = lock_path
        self._thread_lock = threading.Lock()

    @property
    def busy(self) -> bool:
        return self._thread_lock.locked()

    @contextlib.contextmanager
    def hold(self) -> Iterator[None]:
        if not self._thread_lock.acquire(blocking=False):
            raise SyncInProgressError()
        try:
            if self.lock_path is None:
                yield
                return

            self.lock_path.parent.mkdir(parents=True, exist_ok=True)
            file_lock = portalocker.Lock(str(self.lock_path), "a", timeout=0, fail_when_locked=True)
            try:
                file_lock.acquire()
            except portalocker.LockException as e:
                logger.debug("Sync lock %s held by another process: %s", self.lock_path, e)
                raise SyncInProgressError() from e
            try:
                yield
            finally:
                file_lock.release()
        finally:
            self._thread_lock.release()
