"""Schemas for payment reminders and chat notifications."""
from typing import Optional

from pydantic import Field

from .common import CamelModel


class UnpaidUser(CamelModel):
    user_id: str
    user_name: str
    user_email: str = ""
    total_amount: int = 0
    order_count: int = 0
    dates: list[str] = Field(default_factory=list)


class PaymentSuccessInfo(CamelModel):
    user_name: str
    user_email: str = ""
    amount: int
    order_count: int = 0
    payment_code: str


class ReminderRequest(CamelModel):
    user_id: Optional[str] = None
    send_to_all: bool = False
