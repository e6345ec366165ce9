"""Payment intent model: an expected payment awaiting confirmation."""
import enum
from datetime import datetime

from sqlalchemy import (
    BigInteger,
    CheckConstraint,
    DateTime,
    Enum as SqlEnum,
    Index,
    Integer,
    JSON,
    String,
)
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class PaymentIntentStatus(str, enum.Enum):
    """Lifecycle of a payment intent; pending is the only non-terminal state."""

    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self is not PaymentIntentStatus.PENDING


class PaymentChannel(str, enum.Enum):
    """How the payer is expected to pay."""

    MANUAL = "manual"  # MoMo QR transfer, confirmed by forwarded SMS/notification
    GATEWAY = "gateway"  # PayOS payment link, confirmed by webhook or polling


class PaymentIntent(Base):
    """Represents one user's expected payment for a set of daily orders."""

    __tablename__ = "payment_intents"
    __table_args__ = (
        CheckConstraint("amount > 0", name="ck_payment_intents_positive_amount"),
        Index("ix_payment_intents_tracking_status", "tracking_code", "status"),
        Index("ix_payment_intents_user_status", "user_id", "status"),
        Index("ix_payment_intents_status_created", "status", "created_at"),
    )

    tracking_code: Mapped[str] = mapped_column(String(32), nullable=False, index=True)
    channel: Mapped[PaymentChannel] = mapped_column(
        SqlEnum(PaymentChannel, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PaymentChannel.MANUAL,
    )
    user_id: Mapped[str] = mapped_column(String(64), nullable=False)
    user_name: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    user_email: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    order_ids: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    date: Mapped[str] = mapped_column(String(10), nullable=False)
    description: Mapped[str] = mapped_column(String(255), nullable=False, default="")
    status: Mapped[PaymentIntentStatus] = mapped_column(
        SqlEnum(PaymentIntentStatus, values_callable=lambda e: [m.value for m in e]),
        nullable=False,
        default=PaymentIntentStatus.PENDING,
    )
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    paid_amount: Mapped[int | None] = mapped_column(Integer, nullable=True)
    paid_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    failed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    fail_reason: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Gateway (PayOS) mirror
    order_code: Mapped[int | None] = mapped_column(BigInteger, nullable=True, unique=True)
    payment_link_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    checkout_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    qr_code: Mapped[str | None] = mapped_column(String(1000), nullable=True)
    bin: Mapped[str | None] = mapped_column(String(16), nullable=True)
    account_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    transaction_reference: Mapped[str | None] = mapped_column(String(128), nullable=True)
    counter_account_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    counter_account_number: Mapped[str | None] = mapped_column(String(64), nullable=True)
    counter_account_bank_name: Mapped[str | None] = mapped_column(String(255), nullable=True)
