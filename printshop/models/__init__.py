# printshop/models/__init__.py
from .outlet import Outlet
from .user import User, Role, UserRole
from .customer import Customer, CustomerType
from .product import Product, ProductType, PricingRule, RuleType
from .order import (Order, OrderItem, OrderStatusHistory, OrderStatus,
                    OrderType, PaymentTerms)
from .service_job import (ServiceJob, ServiceStatusHistory, ServiceJobComment,
                          JobStatus, JobPriority)
from .invoice import Invoice, Payment, InvoiceStatus, PaymentMethod
from .quotation import Quotation, QuotationItem, QuotationStatus
from .approval import ApprovalRequest, ApprovalType, ApprovalStatus
from .audit import AuditLog
from .notification import Notification
from .settings import Setting
from .number_series import NumberSeries

__all__ = [
    "Outlet",
    "User",
    "Role",
    "UserRole",
    "Customer",
    "CustomerType",
    "Product",
    "ProductType",
    "PricingRule",
    "RuleType",
    "Order",
    "OrderItem",
    "OrderStatusHistory",
    "OrderStatus",
    "OrderType",
    "PaymentTerms",
    "ServiceJob",
    "ServiceStatusHistory",
    "ServiceJobComment",
    "JobStatus",
    "JobPriority",
    "Invoice",
    "Payment",
    "InvoiceStatus",
    "PaymentMethod",
    "Quotation",
    "QuotationItem",
    "QuotationStatus",
    "ApprovalRequest",
    "ApprovalType",
    "ApprovalStatus",
    "AuditLog",
    "Notification",
    "Setting",
    "NumberSeries",
]
