import threading
from collections.abc import Iterable, Iterator
from contextlib import contextmanager


class SkuLockRegistry:
    """In-process mutexes keyed by SKU.

    Serializes catalog writers inside one process. Multi-process deployments
    additionally depend on row locks and version counters in the database.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}

    def _lock_for(self, sku: str) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(sku)
            if lock is None:
                lock = self._locks[sku] = threading.Lock()
            return lock

    @contextmanager
    def hold(self, skus: Iterable[str]) -> Iterator[None]:
        # Sorted acquisition keeps two overlapping batches from deadlocking.
        locks = [self._lock_for(sku) for sku in sorted(set(skus))]
        acquired: list[threading.Lock] = []
        try:
            for lock in locks:
                lock.acquire()
                acquired.append(lock)
            yield
        finally:
            for lock in reversed(acquired):
                lock.release()


sku_locks = SkuLockRegistry()
