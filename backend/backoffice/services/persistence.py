# Overview: Translates SQLAlchemy failures into the access control error taxonomy; atomic insert-if-absent.

from __future__ import annotations

from contextlib import contextmanager

from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import (
    DBAPIError,
    IntegrityError,
    OperationalError,
    ProgrammingError,
    TimeoutError as PoolTimeoutError,
)
from sqlalchemy.orm.exc import StaleDataError

from ..errors import ConcurrentModification, RecordInaccessible, StoreUnavailable
from ..extensions import db


# PostgreSQL SQLSTATE 42501 and row-level security failures
_PERMISSION_DENIED_MARKERS = ("permission denied", "insufficient privilege", "row-level security")


def _is_permission_denied(exc: DBAPIError) -> bool:
    code = getattr(exc.orig, "pgcode", None) or getattr(exc.orig, "sqlstate", None)
    if code == "42501":
        return True
    message = str(exc.orig).lower()
    return any(marker in message for marker in _PERMISSION_DENIED_MARKERS)


@contextmanager
def store_call(operation: str):
    """
    Run database work and translate failures.

    - IntegrityError propagates unchanged (callers decide what a conflict means)
    - StaleDataError -> ConcurrentModification
    - permission-denied ProgrammingError -> RecordInaccessible
    - OperationalError, pool timeout, other DBAPIError -> StoreUnavailable

    The session is rolled back before any translated error is raised.
    """
    try:
        yield
    except IntegrityError:
        db.session.rollback()
        raise
    except StaleDataError as exc:
        db.session.rollback()
        raise ConcurrentModification(f"{operation}: record was modified concurrently") from exc
    except ProgrammingError as exc:
        db.session.rollback()
        if _is_permission_denied(exc):
            raise RecordInaccessible(f"{operation}: record not accessible") from exc
        raise StoreUnavailable(f"{operation}: {exc.orig}") from exc
    except (OperationalError, PoolTimeoutError) as exc:
        db.session.rollback()
        raise StoreUnavailable(f"{operation}: store unavailable") from exc
    except DBAPIError as exc:
        db.session.rollback()
        raise StoreUnavailable(f"{operation}: {exc.orig}") from exc


def insert_if_absent(model, values: dict, conflict_columns: list[str]) -> bool:
    """
    Insert a row unless one already exists for conflict_columns.

    Returns True when this call inserted the row. Uses ON CONFLICT DO NOTHING
    on SQLite and PostgreSQL; other dialects fall back to check-then-add,
    with the unique constraint as the final arbiter.
    """
    dialect = db.session.get_bind().dialect.name

    if dialect in ("sqlite", "postgresql"):
        insert = sqlite_insert if dialect == "sqlite" else pg_insert
        stmt = insert(model).values(**values).on_conflict_do_nothing(index_elements=conflict_columns)
        result = db.session.execute(stmt)
        return result.rowcount == 1

    filters = {column: values[column] for column in conflict_columns}
    if db.session.query(model).filter_by(**filters).first() is not None:
        return False
    try:
        with db.session.begin_nested():
            db.session.add(model(**values))
    except IntegrityError:
        return False
    return True
