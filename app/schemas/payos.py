"""Schemas for the PayOS payment-link gateway."""
from datetime import datetime
from typing import Literal, Optional

from pydantic import ConfigDict, Field
from pydantic.alias_generators import to_camel

from .common import CamelModel

GatewayStatus = Literal["PENDING", "PAID", "PROCESSING", "CANCELLED", "EXPIRED"]


class PayOSItem(CamelModel):
    name: str
    quantity: int = Field(ge=1)
    price: int = Field(ge=0)


class PayOSPaymentRequest(CamelModel):
    order_code: int
    amount: int
    description: str
    cancel_url: str
    return_url: str
    buyer_name: Optional[str] = None
    buyer_email: Optional[str] = None
    buyer_phone: Optional[str] = None
    buyer_address: Optional[str] = None
    items: Optional[list[PayOSItem]] = None
    expired_at: Optional[int] = None


class PayOSPaymentLinkData(CamelModel):
    bin: str
    account_number: str
    account_name: str
    amount: int
    description: str
    order_code: int
    currency: str = "VND"
    payment_link_id: str
    status: str = "PENDING"
    checkout_url: str
    qr_code: str


class PayOSTransaction(CamelModel):
    reference: str = ""
    amount: int = 0
    account_number: str = ""
    description: str = ""
    transaction_date_time: str = ""
    virtual_account_name: Optional[str] = None
    virtual_account_number: Optional[str] = None
    counter_account_bank_id: Optional[str] = None
    counter_account_bank_name: Optional[str] = None
    counter_account_name: Optional[str] = None
    counter_account_number: Optional[str] = None


class PayOSPaymentInfoData(CamelModel):
    id: str
    order_code: int
    amount: int
    amount_paid: int = 0
    amount_remaining: int = 0
    status: GatewayStatus
    created_at: Optional[str] = None
    transactions: list[PayOSTransaction] = Field(default_factory=list)
    cancellation_reason: Optional[str] = None
    canceled_at: Optional[str] = None


class PayOSWebhookData(CamelModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="allow")

    order_code: int
    amount: int
    description: str = ""
    account_number: str = ""
    reference: str = ""
    transaction_date_time: str = ""
    currency: str = "VND"
    payment_link_id: str = ""
    code: str = ""
    desc: str = ""
    counter_account_bank_id: Optional[str] = None
    counter_account_bank_name: Optional[str] = None
    counter_account_name: Optional[str] = None
    counter_account_number: Optional[str] = None
    virtual_account_name: Optional[str] = None
    virtual_account_number: Optional[str] = None


class PayOSWebhookBody(CamelModel):
    code: str = ""
    desc: str = ""
    success: bool = False
    data: PayOSWebhookData
    signature: str


class CreatePaymentRequest(CamelModel):
    """Body of ``POST /api/payos/create-payment``; required fields are checked by the service."""

    amount: Optional[int] = None
    description: Optional[str] = None
    user_id: Optional[str] = None
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    order_ids: Optional[list[int | str]] = None
    items: Optional[list[PayOSItem]] = None


class CancelPaymentRequest(CamelModel):
    order_code: int
    reason: Optional[str] = None


class CheckoutData(CamelModel):
    """Checkout details handed back to the payer, fresh or reused."""

    order_code: int
    amount: int
    qr_code: str
    checkout_url: Optional[str] = None
    account_number: Optional[str] = None
    account_name: Optional[str] = None
    bin: Optional[str] = None
    description: str
    expires_at: datetime
