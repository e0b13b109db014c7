# Overview: Per-store document numbering for invoices and tickets.

from __future__ import annotations

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence
from .concurrency import RetryableConflict


DOC_DISTRIBUTION = "DISTRIBUTION"
DOC_OUTLET_SALE = "OUTLET_SALE"
DOC_TICKET = "TICKET"

DOCUMENT_PREFIXES = {
    DOC_DISTRIBUTION: "DIST",
    DOC_OUTLET_SALE: "SALE",
    DOC_TICKET: "TKT",
}


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


def next_document_number(*, store_id: int, document_type: str, pad: int = 6) -> str:
    """
    Allocate the next document number for a store/type.

    Runs inside the caller's transaction and never commits: the increment is
    a single UPDATE that takes the row's write lock, so the number is held
    until the caller commits and vanishes with it on rollback. A race on the
    very first number of a store surfaces as RetryableConflict and the
    caller's whole unit of work is replayed.
    """
    if not store_id:
        raise DocumentSequenceError("store_id is required")
    prefix = DOCUMENT_PREFIXES.get(document_type)
    if prefix is None:
        raise DocumentSequenceError(f"unknown document_type: {document_type}")

    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.store_id == store_id,
            DocumentSequence.document_type == document_type,
        )
        .values(next_number=DocumentSequence.next_number + 1)
        .execution_options(synchronize_session=False)
    )

    result = db.session.execute(stmt)
    if result.rowcount:
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(store_id=store_id, document_type=document_type)
            .scalar()
        )
        next_num = current - 1
    else:
        seq = DocumentSequence(store_id=store_id, document_type=document_type, next_number=2)
        db.session.add(seq)
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise RetryableConflict(f"document sequence race for store {store_id}") from exc
        next_num = 1

    return f"{prefix}-{store_id:03d}-{next_num:0{pad}d}"
