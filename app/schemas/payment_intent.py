"""Schemas for payment intents (pending payments)."""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from app.models.payment_intent import PaymentChannel

from .common import CamelModel


class PaymentIntentCreate(BaseModel):
    tracking_code: str
    user_id: str
    user_name: str = ""
    user_email: str = ""
    amount: int = Field(gt=0)
    order_ids: list[str] = Field(default_factory=list)
    date: str
    description: str = ""
    channel: PaymentChannel = PaymentChannel.MANUAL
    expires_at: Optional[datetime] = None

    # Gateway checkout data, only for gateway intents.
    order_code: Optional[int] = None
    payment_link_id: Optional[str] = None
    checkout_url: Optional[str] = None
    qr_code: Optional[str] = None
    bin: Optional[str] = None
    account_number: Optional[str] = None
    account_name: Optional[str] = None


class RegisterPaymentRequest(CamelModel):
    """Body of ``POST /api/register-payment`` (MoMo QR flow)."""

    payment_code: Optional[str] = None
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    amount: Optional[int] = None
    order_ids: Optional[list[int | str]] = None
    date: Optional[str] = None
