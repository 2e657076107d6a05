from sqlalchemy import Column, Integer, String, Boolean
from printshop.db.base import Base


class Outlet(Base):
    """Shop branch; orders, quotations and invoices may be tagged with one."""
    __tablename__ = "outlets"

    id = Column(Integer, primary_key=True, index=True)
    code = Column(String(32), unique=True, nullable=False)
    name = Column(String(120), nullable=False)
    address = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True)
