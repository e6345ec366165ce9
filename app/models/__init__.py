"""ORM models package."""
from .audit import AuditLog
from .base import Base
from .order import DailyOrder
from .payment_intent import PaymentChannel, PaymentIntent, PaymentIntentStatus

__all__ = [
    "AuditLog",
    "Base",
    "DailyOrder",
    "PaymentChannel",
    "PaymentIntent",
    "PaymentIntentStatus",
]
