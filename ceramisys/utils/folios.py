from datetime import datetime

from sqlalchemy.orm import Session

from ceramisys.models import Sale, DocumentSequence


def _highest_number(values, prefix: str = "") -> int:
    highest = 0
    for (raw,) in values:
        raw = (raw or "").strip()
        if not raw.startswith(prefix):
            continue
        suffix = raw[len(prefix):]
        if suffix.isdigit():
            highest = max(highest, int(suffix))
    return highest


def get_next_invoice_number(db: Session, company_id: int) -> str:
    """
    Next invoice number for a company: the highest numeric invoice number
    plus one, zero padded to 6 digits. Numbers edited by hand into something
    non numeric are ignored.
    """
    numbers = db.query(Sale.invoice_number).filter(
        Sale.company_id == company_id,
        Sale.invoice_number.isnot(None),
    ).all()

    return str(_highest_number(numbers) + 1).zfill(6)


def get_next_receipt_number(db: Session, model, prefix: str, when: datetime = None) -> str:
    """
    Daily sequenced receipt number: ``{prefix}-YYYYMMDD-NNNN``. ``model`` must
    have a ``receipt_number`` column. The sequence continues from the highest
    number handed out for the stem, kept in ``document_sequences``, so a
    deleted receipt never frees its number for reuse. Flushes, never commits.
    """
    when = when or datetime.now()
    stem = f"{prefix}-{when.strftime('%Y%m%d')}-"

    sequence = db.query(DocumentSequence).filter(DocumentSequence.stem == stem).with_for_update().first()
    if sequence is None:
        # First number for the stem: continue after anything already stored
        numbers = db.query(model.receipt_number).filter(model.receipt_number.like(f"{stem}%")).all()
        sequence = DocumentSequence(stem=stem, last_value=_highest_number(numbers, stem))
        db.add(sequence)

    sequence.last_value += 1
    db.flush()
    return f"{stem}{sequence.last_value:04d}"
