"""
Coordinates background cache refreshes so only one refresh per cache key is
in flight at a time.
"""

import logging
import threading
import time
from concurrent.futures import Executor, Future, ThreadPoolExecutor
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RefreshCoordinator:
    """
    Tracks in-flight refreshes per cache key.

    This never blocks: a refresh requested while one for the same key is
    already running is skipped, not queued.
    """

    def __init__(self, executor: Optional[Executor] = None, max_workers: int = 4,
                 clock: Callable[[], float] = time.time):
        """
        Initialize coordinator.

        Args:
            executor: Executor for scheduled refreshes (a small thread pool by default)
            max_workers: Pool size when no executor is given
            clock: Time source for the pending markers
        """
        self._executor = executor or ThreadPoolExecutor(
            max_workers=max_workers,
            thread_name_prefix='cache-refresh',
        )
        self._clock = clock
        self._pending: dict[str, float] = {}
        self._lock = threading.Lock()

    def _claim(self, key: str) -> bool:
        with self._lock:
            if key in self._pending:
                return False
            self._pending[key] = self._clock()
            return True

    def _release(self, key: str) -> None:
        with self._lock:
            self._pending.pop(key, None)

    def is_pending(self, key: str) -> bool:
        with self._lock:
            return key in self._pending

    def pending(self) -> dict[str, float]:
        """Snapshot of cache key -> refresh start time."""
        with self._lock:
            return dict(self._pending)

    def refresh(self, key: str, work: Callable[[], object]) -> bool:
        """
        Run ``work`` for ``key`` in the calling thread unless a refresh is already pending.

        Returns:
            True if the refresh ran, False if it was skipped

        Raises:
            Whatever ``work`` raises; the pending marker is released either way
        """
        if not self._claim(key):
            logger.debug("Refresh already pending for %s, skipping", key)
            return False
        try:
            work()
        finally:
            self._release(key)
        return True

    def schedule(self, key: str, work: Callable[[], object]) -> Optional[Future]:
        """
        Queue ``work`` on the executor without waiting for it.

        Failures are logged and never reach the caller.

        Returns:
            The future of the queued refresh, or None when one is already pending
        """
        if not self._claim(key):
            logger.debug("Refresh already pending for %s, not scheduling", key)
            return None
        try:
            return self._executor.submit(self._run_in_background, key, work)
        except RuntimeError:
            self._release(key)
            logger.warning("Refresh executor is shut down, dropping refresh for %s", key)
            return None

    def _run_in_background(self, key: str, work: Callable[[], object]) -> bool:
        try:
            work()
            logger.debug("Background refresh finished for %s", key)
            return True
        except Exception:
            logger.exception("Error in background cache refresh for %s", key)
            return False
        finally:
            self._release(key)

    def shutdown(self, wait: bool = True) -> None:
        self._executor.shutdown(wait=wait)
