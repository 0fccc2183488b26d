# Overview: Allocation of human-facing document numbers (invoices, work orders).

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..errors import InternalError
from ..models import DocumentSequence
from ..time_utils import utcnow

DOCUMENT_INVOICE = "INVOICE"
DOCUMENT_WORK_ORDER = "WORK_ORDER"

PREFIXES = {
    DOCUMENT_INVOICE: "INV",
    DOCUMENT_WORK_ORDER: "WO",
}


def next_document_number(
    session: Session,
    *,
    document_type: str,
    year: int | None = None,
    pad: int = 6,
) -> str:
    """
    Allocate the next document number for a type/year, e.g. INV-2026-000042.

    Runs inside the caller's transaction: if the caller rolls back, the
    number is released with it. The UPDATE takes the row lock, so
    concurrent allocations serialize on the sequence row.
    """
    if document_type not in PREFIXES:
        raise ValueError(f"unknown document type {document_type}")
    year = year or utcnow().year

    number = _claim_existing(session, document_type, year)
    if number is None:
        try:
            # Savepoint so a lost race does not discard the caller's work
            with session.begin_nested():
                session.add(DocumentSequence(document_type=document_type, year=year, next_number=2))
            number = 1
        except IntegrityError as exc:
            number = _claim_existing(session, document_type, year)
            if number is None:
                raise InternalError(f"Could not allocate a {document_type} number for {year}") from exc

    return f"{PREFIXES[document_type]}-{year}-{number:0{pad}d}"


def _claim_existing(session: Session, document_type: str, year: int) -> int | None:
    """Bump an existing sequence row and return the claimed number, or None if absent."""
    bumped = session.execute(
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.year == year,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )
    if not bumped.rowcount:
        return None
    following = (
        session.query(DocumentSequence.next_number)
        .filter_by(document_type=document_type, year=year)
        .scalar()
    )
    return following - 1
