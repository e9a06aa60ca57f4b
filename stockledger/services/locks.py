"""
In-process keyed locks.

Complements select_for_update(): row locks serialize writers across
processes on databases that support them, these serialize threads of one
process (and cover SQLite, where select_for_update is a no-op).

Multiple keys are always acquired in sorted order so two writers touching
the same pair of keys cannot deadlock.
"""

import threading
from contextlib import ExitStack, contextmanager


class KeyedLocks:
    """Registry of one lock per key, alive while someone holds or waits on it."""

    def __init__(self):
        self._guard = threading.Lock()
        # key -> [lock, number of holders and waiters]
        self._locks: dict[str, list] = {}

    def _checkout(self, key: str) -> threading.RLock:
        with self._guard:
            entry = self._locks.get(key)
            if entry is None:
                entry = self._locks[key] = [threading.RLock(), 0]
            entry[1] += 1
            return entry[0]

    def _checkin(self, key: str) -> None:
        with self._guard:
            entry = self._locks[key]
            entry[1] -= 1
            if not entry[1]:
                del self._locks[key]

    def _release(self, key: str, lock: threading.RLock) -> None:
        lock.release()
        self._checkin(key)

    @contextmanager
    def hold(self, *keys: str):
        """Acquire every key, lexicographically ordered."""
        with ExitStack() as stack:
            for key in sorted(set(keys)):
                lock = self._checkout(key)
                try:
                    lock.acquire()
                except BaseException:
                    self._checkin(key)
                    raise
                stack.callback(self._release, key, lock)
            yield


def product_key(product_id) -> str:
    return f"product:{product_id}"


def bucket_key(product_id, warehouse_id) -> str:
    return f"product:{product_id}:warehouse:{warehouse_id}"


# Process-wide registry shared by ledger and allocator
stock_locks = KeyedLocks()
