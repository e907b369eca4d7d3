"""In-flight attempt bookkeeping and cooperative cancellation."""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager

from rollkeeper.core.errors import AttemptInProgressError

logger = logging.getLogger(__name__)


class WorkloadLockTable:
    """Allows at most one attempt per ``(workload, namespace)`` at a time.

    A second claim either fails immediately with ``AttemptInProgressError``
    or, when ``wait_seconds`` is positive, queues behind the running
    attempt for up to that long before failing. An entry lives only while
    someone holds or waits for it.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        # key -> [lock, number of holders plus waiters]
        self._locks: dict[tuple[str, str], list] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    def is_held(self, workload: str, namespace: str) -> bool:
        with self._guard:
            entry = self._locks.get((workload, namespace))
        return entry is not None and entry[0].locked()

    def _enter(self, key: tuple[str, str]) -> threading.Lock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.Lock(), 0]
            entry[1] += 1
            return entry[0]

    def _leave(self, key: tuple[str, str]) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if entry[1] == 0:
                del self._locks[key]

    @contextmanager
    def claim(
        self, workload: str, namespace: str, *, wait_seconds: float = 0.0
    ) -> Iterator[None]:
        key = (workload, namespace)
        lock = self._enter(key)
        try:
            if wait_seconds > 0:
                acquired = lock.acquire(timeout=wait_seconds)
            else:
                acquired = lock.acquire(blocking=False)
            if not acquired:
                raise AttemptInProgressError(
                    f"A rollout for {namespace}/{workload} is already in progress"
                )
            try:
                yield
            finally:
                lock.release()
        finally:
            self._leave(key)


# Process-wide table shared by controllers that are not given their own.
DEFAULT_LOCK_TABLE = WorkloadLockTable()


class CancellationToken:
    """Cooperative cancellation signal checked between state transitions."""

    def __init__(self) -> None:
        self._event = threading.Event()

    def cancel(self) -> None:
        if not self._event.is_set():
            logger.warning("Cancellation requested")
        self._event.set()

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def wait(self, timeout: float) -> bool:
        """Block up to *timeout* seconds; True if cancelled meanwhile."""
        return self._event.wait(timeout)
