# Overview: Service-layer concurrency helpers; row locking, retry on lock/version conflicts, and insert-with-conflict-retry.

from __future__ import annotations

import time
from typing import Callable, Iterable, TypeVar

from flask import current_app
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm.exc import StaleDataError

from ..extensions import db

T = TypeVar("T")


class ConflictRetryExhausted(Exception):
    """Raised when every candidate key collided with an existing row."""

    def __init__(self, attempts: int, candidates: list[str]):
        super().__init__(
            f"unique insert failed after {attempts} attempts (last candidate {candidates[-1]!r})"
            if candidates
            else f"unique insert failed after {attempts} attempts"
        )
        self.attempts = attempts
        self.candidates = candidates


def lock_for_update(query):
    """
    Apply row-level locking for critical operations.

    NOTE: SQLite ignores SELECT ... FOR UPDATE, but other DBs will honor it.
    """
    return query.with_for_update()


def _default_attempts() -> int:
    return int(current_app.config.get("DB_RETRY_ATTEMPTS", 3))


def run_with_retry(func: Callable[[], T], *, attempts: int | None = None, backoff_base: float = 0.1) -> T:
    """
    Execute a DB operation with retry on concurrency-related failures.

    Retries on OperationalError (deadlocks, locks) and StaleDataError
    (optimistic locking conflicts). func must be safe to re-run from scratch.
    """
    attempts = attempts or _default_attempts()
    last_exc = None
    for attempt in range(attempts):
        try:
            return func()
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            if attempt >= attempts - 1:
                raise
            current_app.logger.warning(
                "Retrying after concurrency conflict (attempt %d/%d): %s",
                attempt + 1, attempts, exc.__class__.__name__,
            )
            time.sleep(backoff_base * (2 ** attempt))
    if last_exc:
        raise last_exc


def _is_unique_violation(exc: IntegrityError, markers: Iterable[str]) -> bool:
    message = str(exc.orig if exc.orig is not None else exc).lower()
    return any(marker.lower() in message for marker in markers)


def insert_with_conflict_retry(
    build: Callable[[str], T],
    next_candidate: Callable[[int, str | None], str],
    *,
    attempts: int,
    conflict_markers: Iterable[str],
    backoff_base: float = 0.05,
) -> T:
    """
    Insert-with-conflict-retry for keys allocated by read-then-write.

    For each attempt:
    - next_candidate(attempt, previous_candidate) yields the key to try
    - build(candidate) stages the row(s) in the session and returns the root row
    - the session is committed

    A unique violation whose message matches one of conflict_markers rolls back
    and moves on to the next candidate. Lock and stale-version errors roll back
    and retry the same way. Any other IntegrityError propagates.

    The session must not carry uncommitted work from the caller: every
    rollback discards the whole unit of work, and build() redoes it.
    """
    markers = tuple(conflict_markers)
    tried: list[str] = []
    last_exc: Exception | None = None

    for attempt in range(attempts):
        candidate = next_candidate(attempt, tried[-1] if tried else None)
        tried.append(candidate)
        try:
            row = build(candidate)
            db.session.commit()
            return row
        except IntegrityError as exc:
            db.session.rollback()
            if not _is_unique_violation(exc, markers):
                raise
            last_exc = exc
            current_app.logger.warning(
                "Unique key collision on %r (attempt %d/%d)", candidate, attempt + 1, attempts
            )
        except (OperationalError, StaleDataError) as exc:
            db.session.rollback()
            last_exc = exc
            current_app.logger.warning(
                "Concurrency conflict inserting %r (attempt %d/%d): %s",
                candidate, attempt + 1, attempts, exc.__class__.__name__,
            )
            time.sleep(backoff_base * (2 ** attempt))
        except Exception:
            db.session.rollback()
            raise

    current_app.logger.error("Unique insert exhausted %d attempts: %s", attempts, ", ".join(tried))
    raise ConflictRetryExhausted(attempts, tried) from last_exc
