"""Periodic auto-sync with an explicit start/stop lifecycle."""

import logging
import threading
from typing import Any, Callable, Optional

from .errors import IntegrityError, SyncInProgressError, VaultSyncError

logger = logging.getLogger(__name__)


class AutoSyncScheduler:
    """
    Runs an action every `interval` seconds on a background thread.

    The scheduler owns its cancellation token (a threading.Event), so stop()
    interrupts the wait immediately instead of waiting out the interval. A
    tick that finds another sync in flight is skipped, not queued. An
    integrity violation stops the loop and is kept in `error` for the caller.
    """

    def __init__(self, action: Callable[[], Any], interval: float, name: str = "vault-sync-auto"):
        if interval <= 0:
            raise ValueError(f"interval must be positive, got {interval}")
        self.action = action
        self.interval = interval
        self.name = name
        self.ticks = 0
        self.error: Optional[IntegrityError] = None
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def is_running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        """Start ticking; no-op if already running."""
        if self.is_running:
            return
        self._stop.clear()
        self.error = None
        self._thread = threading.Thread(target=self._run, name=self.name, daemon=True)
        self._thread.start()
        logger.info("Auto-sync started (every %ss)", self.interval)

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the loop to stop and wait for the current tick to finish."""
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
            logger.info("Auto-sync stopped")

    def toggle(self) -> bool:
        """Start if stopped, stop if running. Returns the new running state."""
        if self.is_running:
            self.stop()
            return False
        self.start()
        return True

    def wait(self, timeout: Optional[float] = None) -> bool:
        """Block until stop() is called; True if stopped."""
        return self._stop.wait(timeout)

    def _run(self) -> None:
        while not self._stop.wait(self.interval):
            self.run_once()

    def run_once(self) -> None:
        """Run the action once, keeping the loop alive on ordinary failures."""
        self.ticks += 1
        try:
            self.action()
        except SyncInProgressError:
            logger.info("Auto-sync tick skipped: another sync is running")
        except IntegrityError as e:
            # Never keep syncing on top of a broken hash/encoding
            logger.error("Auto-sync stopped after an integrity violation")
            self.error = e
            self._stop.set()
        except VaultSyncError as e:
            logger.warning("Auto-sync tick failed: %s", e)
        except Exception:
            logger.exception("Auto-sync tick failed")
