from sqlalchemy import Column, Integer, String, UniqueConstraint

from printshop.db.base import Base


class NumberSeries(Base):
    """
    Running counter per document type and year (ORD-2026-0001, ...).
    Row is locked while a number is drawn.
    """
    __tablename__ = "number_series"
    __table_args__ = (UniqueConstraint("doc_type",
                                       "period_key",
                                       name="uq_number_series_doc_period"), )

    id = Column(Integer, primary_key=True)
    doc_type = Column(String(10), nullable=False)  # ORD | INV | PAY | JOB | QUO
    period_key = Column(String(10), nullable=False)  # YYYY
    next_number = Column(Integer, nullable=False, default=1)
    padding = Column(Integer, nullable=False, default=4)
