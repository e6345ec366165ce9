"""Schema package exports."""
from .common import CamelModel
from .payment_intent import PaymentIntentCreate, RegisterPaymentRequest
from .payos import (
    CancelPaymentRequest,
    CheckoutData,
    CreatePaymentRequest,
    PayOSItem,
    PayOSPaymentInfoData,
    PayOSPaymentLinkData,
    PayOSPaymentRequest,
    PayOSTransaction,
    PayOSWebhookBody,
    PayOSWebhookData,
)
from .reminder import PaymentSuccessInfo, ReminderRequest, UnpaidUser
from .sms import InboundNotification, SmsForwarderPayload

__all__ = [
    "CamelModel",
    "CancelPaymentRequest",
    "CheckoutData",
    "CreatePaymentRequest",
    "InboundNotification",
    "PaymentIntentCreate",
    "PaymentSuccessInfo",
    "PayOSItem",
    "PayOSPaymentInfoData",
    "PayOSPaymentLinkData",
    "PayOSPaymentRequest",
    "PayOSTransaction",
    "PayOSWebhookBody",
    "PayOSWebhookData",
    "RegisterPaymentRequest",
    "ReminderRequest",
    "SmsForwarderPayload",
    "UnpaidUser",
]
