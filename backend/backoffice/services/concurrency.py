# Overview: Per-(tenant, principal) mutual exclusion, row locking and retry helpers.

from __future__ import annotations

import threading
import time
from contextlib import contextmanager

from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db


class KeyedLockRegistry:
    """
    One reentrant lock per key, created on demand and dropped when unused.

    Keys always include the tenant, so writers in different organizations
    never contend for the same lock.
    """

    def __init__(self):
        self._guard = threading.Lock()
        self._locks: dict[tuple, list] = {}  # key -> [RLock, holders]

    @contextmanager
    def hold(self, key: tuple):
        with self._guard:
            entry = self._locks.setdefault(key, [threading.RLock(), 0])
            entry[1] += 1
        lock = entry[0]
        lock.acquire()
        try:
            yield
        finally:
            lock.release()
            with self._guard:
                entry[1] -= 1
                if entry[1] == 0:
                    self._locks.pop(key, None)

    def active_keys(self) -> list[tuple]:
        with self._guard:
            return list(self._locks)


_registry = KeyedLockRegistry()


def principal_lock(org_id: int, subject: str, subject_id: int):
    """
    Serialize mutations for one subject within one tenant.

    Usage:
        with principal_lock(org_id, "principal", principal_id):
            ...
    """
    return _registry.hold((org_id, subject, subject_id))


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def run_with_retry(func, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). The last failure propagates.
    """
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError):
            db.session.rollback()
            if attempt >= attempts - 1:
                raise
            time.sleep(backoff_base * (2 ** attempt))
