"""
Tests for KeyedLocks.
"""

import threading
import time

from stockledger.services.locks import KeyedLocks, bucket_key, product_key


class TestKeyedLocks:

    def test_locks_are_dropped_once_released(self, locks):
        with locks.hold('a', 'b'):
            assert set(locks._locks) == {'a', 'b'}

        assert locks._locks == {}

    def test_nested_holds_are_reentrant(self, locks):
        with locks.hold(product_key(1)):
            with locks.hold(product_key(1), bucket_key(1, 2)):
                assert locks._locks[product_key(1)][1] == 2
            assert set(locks._locks) == {product_key(1)}

        assert locks._locks == {}

    def test_lock_released_when_body_raises(self, locks):
        try:
            with locks.hold('a'):
                raise ValueError('boom')
        except ValueError:
            pass

        assert locks._locks == {}
        with locks.hold('a'):
            pass

    def test_contending_threads_are_serialized(self):
        locks = KeyedLocks()
        inside = []
        overlaps = []

        def worker():
            for _ in range(20):
                with locks.hold('shared', 'other'):
                    if inside:
                        overlaps.append(True)
                    inside.append(True)
                    time.sleep(0.0005)
                    inside.pop()

        threads = [threading.Thread(target=worker) for _ in range(4)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert overlaps == []
        assert locks._locks == {}
