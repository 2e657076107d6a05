from __future__ import annotations

from datetime import datetime
from sqlalchemy.orm import Session

from printshop.models.number_series import NumberSeries

ORDER = "ORD"
INVOICE = "INV"
PAYMENT = "PAY"
JOB = "JOB"
QUOTATION = "QUO"


def next_number(
    db: Session,
    *,
    doc_type: str,
    now: datetime,
    padding: int = 4,
) -> str:
    """
    Draw the next document number, e.g. INV-2026-0007.
    Counter restarts every calendar year.
    """
    key = now.strftime("%Y")

    row = (db.query(NumberSeries).filter(
        NumberSeries.doc_type == doc_type,
        NumberSeries.period_key == key,
    ).with_for_update().first())

    if not row:
        row = NumberSeries(
            doc_type=doc_type,
            period_key=key,
            next_number=1,
            padding=padding,
        )
        db.add(row)
        db.flush()

    n = int(row.next_number or 1)
    row.next_number = n + 1
    db.flush()

    return f"{doc_type}-{key}-{str(n).zfill(int(row.padding or padding))}"
