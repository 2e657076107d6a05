from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime

from printshop.db.base import Base


class Setting(Base):
    """Key/value shop settings (tax_rate, ...)."""
    __tablename__ = "settings"

    id = Column(Integer, primary_key=True, index=True)
    key = Column(String(100), unique=True, nullable=False)
    value = Column(String(255), nullable=True)

    updated_at = Column(DateTime,
                        default=datetime.utcnow,
                        onupdate=datetime.utcnow)
