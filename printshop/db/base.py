# printshop/db/base.py
from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """All print-shop tables inherit from this."""
    pass
