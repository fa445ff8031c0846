# Overview: Atomic allocation of human-readable document numbers.

from __future__ import annotations

from sqlalchemy import func, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import DocumentSequence, Order, Invoice
from drivncook.time_utils import utcnow


class DocumentSequenceError(Exception):
    """Raised when document sequence operations fail."""
    pass


# document_type -> (prefix, model, number column)
SEQUENCES = {
    "ORDER": ("CMD", Order, Order.order_number),
    "INVOICE": ("FACT", Invoice, Invoice.invoice_number),
}

MAX_SKIPS = 50


def _allocate(document_type: str, year: int, seed: int) -> int:
    """
    Reserve one number from the (type, year) counter.

    UPDATE ... SET next_number = next_number + 1 is atomic; the first
    allocation of a year creates the row, starting from `seed`.
    """
    stmt = (
        update(DocumentSequence)
        .where(
            DocumentSequence.document_type == document_type,
            DocumentSequence.year == year,
        )
        .values(next_number=DocumentSequence.next_number + 1)
    )

    def _read_current() -> int:
        db.session.flush()
        current = (
            db.session.query(DocumentSequence.next_number)
            .filter_by(document_type=document_type, year=year)
            .scalar()
        )
        return current - 1

    result = db.session.execute(stmt)
    if result.rowcount:
        return _read_current()

    seq = DocumentSequence(document_type=document_type, year=year, next_number=seed + 1)
    db.session.add(seq)
    try:
        db.session.flush()
        return seed
    except IntegrityError:
        # Another request created the row first
        db.session.rollback()
        result = db.session.execute(stmt)
        if not result.rowcount:
            raise
        return _read_current()


def next_document_number(document_type: str, *, year: int | None = None) -> str:
    """
    Allocate the next number for ORDER (CMD-YYYY-NNNNNN) or INVOICE
    (FACT-YYYY-NNNNNN).

    The counter of a new year is seeded with count(existing rows) + 1 so
    numbering continues the historical sequence. Numbers already taken
    (imported data) are skipped.

    Call before staging other writes in the session: a creation race on
    the counter row rolls the session back.
    """
    if document_type not in SEQUENCES:
        raise DocumentSequenceError(f"Unknown document type: {document_type}")

    prefix, model, number_col = SEQUENCES[document_type]
    year = year or utcnow().year

    seed = (db.session.query(func.count(model.id)).scalar() or 0) + 1

    for _ in range(MAX_SKIPS):
        number = f"{prefix}-{year}-{_allocate(document_type, year, seed):06d}"
        taken = db.session.query(model.id).filter(number_col == number).first()
        if not taken:
            return number

    raise DocumentSequenceError(f"Could not allocate a free {document_type} number")
