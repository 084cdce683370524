# Overview: Pytest coverage for keyed locking, retry and store error translation.

"""
Concurrency Tests

The keyed lock registry is exercised with real threads. Database retry and
error translation are exercised by injecting SQLAlchemy exceptions.
"""

import threading
import time

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError, ProgrammingError
from sqlalchemy.orm.exc import StaleDataError

from backoffice.errors import ConcurrentModification, RecordInaccessible, StoreUnavailable
from backoffice.services.concurrency import KeyedLockRegistry, run_with_retry
from backoffice.services.persistence import store_call


class TestKeyedLockRegistry:
    """Per-(tenant, subject) mutual exclusion."""

    def test_same_key_is_serialized(self):
        registry = KeyedLockRegistry()
        active = []
        overlaps = []

        def worker():
            with registry.hold((1, "principal", 7)):
                active.append(1)
                if len(active) > 1:
                    overlaps.append(len(active))
                time.sleep(0.01)
                active.pop()

        threads = [threading.Thread(target=worker) for _ in range(8)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=5)

        assert overlaps == []

    def test_different_keys_run_concurrently(self):
        """Both holders must be inside their lock at once to pass the barrier."""
        registry = KeyedLockRegistry()
        barrier = threading.Barrier(2, timeout=5)
        errors = []

        def worker(key):
            with registry.hold(key):
                try:
                    barrier.wait()
                except threading.BrokenBarrierError as exc:
                    errors.append(exc)

        threads = [
            threading.Thread(target=worker, args=((1, "principal", 7),)),
            threading.Thread(target=worker, args=((2, "principal", 7),)),
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=10)

        assert errors == []

    def test_lock_is_reentrant(self):
        registry = KeyedLockRegistry()
        with registry.hold((1, "staff", 3)):
            with registry.hold((1, "staff", 3)):
                assert registry.active_keys() == [(1, "staff", 3)]

    def test_unused_keys_are_dropped(self):
        registry = KeyedLockRegistry()
        with registry.hold((1, "staff", 3)):
            pass
        assert registry.active_keys() == []

    def test_lock_released_on_error(self):
        registry = KeyedLockRegistry()
        with pytest.raises(RuntimeError):
            with registry.hold((1, "staff", 3)):
                raise RuntimeError("boom")
        assert registry.active_keys() == []


class _FakeDriverError(Exception):
    def __init__(self, message, pgcode=None):
        super().__init__(message)
        self.pgcode = pgcode


class TestRetryAndTranslation:
    """run_with_retry and store_call."""

    def test_retry_recovers_from_stale_data(self, db_session):
        calls = []

        def flaky():
            calls.append(1)
            if len(calls) < 3:
                raise StaleDataError("version mismatch")
            return "done"

        assert run_with_retry(flaky, backoff_base=0) == "done"
        assert len(calls) == 3

    def test_retry_gives_up(self, db_session):
        def always_locked():
            raise OperationalError("UPDATE", {}, _FakeDriverError("database is locked"))

        with pytest.raises(OperationalError):
            run_with_retry(always_locked, attempts=2, backoff_base=0)

    def test_operational_error_is_store_unavailable(self, db_session):
        with pytest.raises(StoreUnavailable):
            with store_call("lookup"):
                raise OperationalError("SELECT", {}, _FakeDriverError("timeout expired"))

    def test_stale_data_is_concurrent_modification(self, db_session):
        with pytest.raises(ConcurrentModification):
            with store_call("update"):
                raise StaleDataError("version mismatch")

    def test_permission_denied_is_record_inaccessible(self, db_session):
        with pytest.raises(RecordInaccessible):
            with store_call("lookup"):
                raise ProgrammingError("SELECT", {}, _FakeDriverError("permission denied for table", pgcode="42501"))

    def test_other_programming_error_is_store_unavailable(self, db_session):
        with pytest.raises(StoreUnavailable):
            with store_call("lookup"):
                raise ProgrammingError("SELECT", {}, _FakeDriverError("syntax error"))

    def test_integrity_error_passes_through(self, db_session):
        with pytest.raises(IntegrityError):
            with store_call("insert"):
                raise IntegrityError("INSERT", {}, _FakeDriverError("UNIQUE constraint failed"))
