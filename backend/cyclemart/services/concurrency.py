# Overview: Transaction helpers shared by the ledger and invoice services.

from __future__ import annotations

import logging
import time

from sqlalchemy import text
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, scoped_session
from sqlalchemy.orm.exc import StaleDataError

logger = logging.getLogger(__name__)

# Failures worth another attempt: lock timeouts/deadlocks and version_id clashes
RETRYABLE = (OperationalError, StaleDataError)


def lock_for_update(query):
    """SELECT ... FOR UPDATE. A no-op on SQLite, where begin_write() holds the lock."""
    return query.with_for_update()


def begin_write(session: Session) -> None:
    """
    Open the write transaction before the first read.

    On SQLite this issues BEGIN IMMEDIATE so a concurrent writer blocks
    here instead of reading stale stock and failing at commit time.
    """
    if isinstance(session, scoped_session):
        # db.session is a registry; transaction state lives on the Session it holds
        session = session()
    if session.get_bind().dialect.name != "sqlite":
        return
    if session.in_transaction():
        # Autobegun by an earlier read in this request; end it first.
        session.commit()
    session.execute(text("BEGIN IMMEDIATE"))


def run_with_retry(session: Session, operation, *, attempts: int = 3, backoff_base: float = 0.1):
    """
    Call ``operation()`` and return its result.

    The session is rolled back on every failure. RETRYABLE errors are
    retried up to ``attempts`` times with doubling sleeps; the last one
    and any other exception propagate.
    """
    attempt = 0
    while True:
        attempt += 1
        try:
            return operation()
        except RETRYABLE as exc:
            session.rollback()
            if attempt >= attempts:
                logger.error("Giving up after %d attempts: %s", attempt, exc)
                raise
            delay = backoff_base * 2 ** (attempt - 1)
            logger.warning("Concurrency failure on attempt %d, retrying in %.2fs: %s", attempt, delay, exc)
            time.sleep(delay)
        except Exception:
            session.rollback()
            raise
