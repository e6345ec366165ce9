"""Pending-payment ledger: creation, lookup and status of payment intents."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from fastapi import status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.models.payment_intent import PaymentChannel, PaymentIntent, PaymentIntentStatus
from app.schemas.payment_intent import PaymentIntentCreate, RegisterPaymentRequest
from app.schemas.payos import CheckoutData, CreatePaymentRequest, PayOSPaymentRequest
from app.services.matching import amount_within_tolerance, generate_order_code, generate_tracking_code
from app.services.psp_payos import PayOSClient
from app.services.qr import (
    build_momo_app_link,
    build_momo_qr_url,
    build_transfer_comment,
    build_vietqr_url,
)
from app.utils.audit import log_audit
from app.utils.errors import http_error
from app.utils.time import as_utc, local_today, utcnow

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PaymentStatusResult:
    status: str
    intent: Optional[PaymentIntent] = None

    @property
    def found(self) -> bool:
        return self.intent is not None


def _newest_first(stmt):
    return stmt.order_by(PaymentIntent.created_at.desc(), PaymentIntent.id.desc())


def _pending_for_code(db: Session, tracking_code: str, user_id: str) -> PaymentIntent | None:
    stmt = _newest_first(
        select(PaymentIntent).where(
            PaymentIntent.tracking_code == tracking_code,
            PaymentIntent.user_id == user_id,
            PaymentIntent.status == PaymentIntentStatus.PENDING,
        )
    )
    return db.scalars(stmt).first()


def create_pending_payment(db: Session, data: PaymentIntentCreate) -> PaymentIntent:
    """Persist a pending intent, or return the user's pending intent with the same code."""

    existing = _pending_for_code(db, data.tracking_code, data.user_id)
    if existing is not None:
        logger.info(
            "Pending payment already registered",
            extra={"payment_intent_id": existing.id, "tracking_code": existing.tracking_code},
        )
        return existing

    expires_at = data.expires_at
    if expires_at is None:
        expires_at = utcnow() + timedelta(hours=get_settings().PENDING_PAYMENT_TTL_HOURS)

    intent = PaymentIntent(
        **data.model_dump(exclude={"expires_at", "order_ids"}),
        order_ids=[str(order_id) for order_id in data.order_ids],
        status=PaymentIntentStatus.PENDING,
        expires_at=expires_at,
    )
    db.add(intent)
    db.flush()
    log_audit(
        db,
        actor="system",
        action="PAYMENT_INTENT_CREATED",
        entity="PaymentIntent",
        entity_id=intent.id,
        data={
            "tracking_code": intent.tracking_code,
            "channel": intent.channel.value,
            "user_id": intent.user_id,
            "user_email": intent.user_email,
            "amount": intent.amount,
            "order_ids": intent.order_ids,
        },
    )
    db.commit()
    db.refresh(intent)
    logger.info(
        "Pending payment created",
        extra={
            "payment_intent_id": intent.id,
            "tracking_code": intent.tracking_code,
            "channel": intent.channel.value,
            "amount": intent.amount,
        },
    )
    return intent


def find_active_payment(
    db: Session,
    *,
    user_id: str,
    amount: int,
    channel: PaymentChannel,
    date: str | None = None,
) -> PaymentIntent | None:
    """Return the newest pending, unexpired intent for this user and exact amount."""

    stmt = select(PaymentIntent).where(
        PaymentIntent.user_id == user_id,
        PaymentIntent.amount == amount,
        PaymentIntent.channel == channel,
        PaymentIntent.status == PaymentIntentStatus.PENDING,
        PaymentIntent.expires_at > utcnow(),
    )
    if date is not None:
        stmt = stmt.where(PaymentIntent.date == date)
    return db.scalars(_newest_first(stmt)).first()


def register_manual_payment(
    db: Session, request: RegisterPaymentRequest, settings: Settings
) -> tuple[PaymentIntent, bool]:
    """Find-or-create the MoMo QR intent for a user, amount and day.

    Returns the intent and whether it was reused.
    """

    if not request.user_id or not request.amount or request.amount <= 0:
        raise http_error(
            status.HTTP_400_BAD_REQUEST,
            "MISSING_FIELDS",
            "userId and a positive amount are required.",
        )

    payment_date = request.date or local_today(settings.REMINDER_TIMEZONE)
    existing = find_active_payment(
        db,
        user_id=request.user_id,
        amount=request.amount,
        channel=PaymentChannel.MANUAL,
        date=payment_date,
    )
    if existing is not None:
        return existing, True

    tracking_code = (request.payment_code or "").strip().upper()
    if tracking_code:
        existing = _pending_for_code(db, tracking_code, request.user_id)
        if existing is not None:
            return existing, True
    else:
        tracking_code = generate_tracking_code(request.user_id, payment_date)

    user_name = request.user_name or "Unknown"
    intent = create_pending_payment(
        db,
        PaymentIntentCreate(
            tracking_code=tracking_code,
            user_id=request.user_id,
            user_name=user_name,
            user_email=request.user_email or "",
            amount=request.amount,
            order_ids=[str(order_id) for order_id in request.order_ids or []],
            date=payment_date,
            description=build_transfer_comment(user_name, payment_date, tracking_code),
            channel=PaymentChannel.MANUAL,
        ),
    )
    return intent, False


def manual_payment_instructions(intent: PaymentIntent, settings: Settings) -> dict[str, str]:
    """Transfer comment plus MoMo QR image URL and app deep link for a manual intent."""

    comment = intent.description or intent.tracking_code
    return {
        "comment": comment,
        "qrUrl": build_momo_qr_url(settings.MOMO_PHONE, intent.amount, comment),
        "appLink": build_momo_app_link(settings.MOMO_PHONE, intent.amount, comment),
        "momoPhone": settings.MOMO_PHONE,
        "momoName": settings.MOMO_NAME,
    }


def _checkout_from_intent(intent: PaymentIntent) -> CheckoutData:
    return CheckoutData(
        order_code=intent.order_code,
        amount=intent.amount,
        qr_code=build_vietqr_url(
            intent.bin or "",
            intent.account_number or "",
            intent.amount,
            intent.description,
            intent.account_name or "",
        ),
        checkout_url=intent.checkout_url,
        account_number=intent.account_number,
        account_name=intent.account_name,
        bin=intent.bin,
        description=intent.description,
        expires_at=as_utc(intent.expires_at),
    )


async def create_gateway_payment(
    db: Session,
    request: CreatePaymentRequest,
    *,
    client: PayOSClient,
    settings: Settings,
) -> tuple[CheckoutData, bool]:
    """Reuse the user's live gateway intent for this amount, or open a new PayOS link.

    Returns the checkout data and whether it was reused. ``PayOSError``
    propagates when the gateway refuses or cannot be reached.
    """

    if request.amount is None or not request.description or not request.user_id:
        raise http_error(
            status.HTTP_400_BAD_REQUEST,
            "MISSING_FIELDS",
            "amount, description and userId are required.",
        )
    if request.amount < settings.MIN_PAYMENT_AMOUNT:
        raise http_error(
            status.HTTP_400_BAD_REQUEST,
            "AMOUNT_TOO_SMALL",
            f"Minimum amount is {settings.MIN_PAYMENT_AMOUNT} VND.",
        )

    existing = find_active_payment(
        db, user_id=request.user_id, amount=request.amount, channel=PaymentChannel.GATEWAY
    )
    if existing is not None:
        logger.info(
            "Reusing pending gateway payment",
            extra={"payment_intent_id": existing.id, "order_code": existing.order_code},
        )
        return _checkout_from_intent(existing), True

    order_code = generate_order_code()
    expires_at = (utcnow() + timedelta(minutes=settings.PAYOS_LINK_TTL_MINUTES)).replace(microsecond=0)
    base_url = settings.APP_BASE_URL.rstrip("/")
    link = await client.create_payment_link(
        PayOSPaymentRequest(
            order_code=order_code,
            amount=request.amount,
            # PayOS caps descriptions at 25 characters.
            description=request.description[:25],
            cancel_url=f"{base_url}/order?payment=cancelled",
            return_url=f"{base_url}/order?payment=success&orderCode={order_code}",
            buyer_name=request.user_name or None,
            buyer_email=request.user_email or None,
            items=request.items,
            expired_at=int(expires_at.timestamp()),
        )
    )

    intent = create_pending_payment(
        db,
        PaymentIntentCreate(
            tracking_code=str(order_code),
            user_id=request.user_id,
            user_name=request.user_name or "",
            user_email=request.user_email or "",
            amount=request.amount,
            order_ids=[str(order_id) for order_id in request.order_ids or []],
            date=local_today(settings.REMINDER_TIMEZONE),
            description=link.description,
            channel=PaymentChannel.GATEWAY,
            expires_at=expires_at,
            order_code=order_code,
            payment_link_id=link.payment_link_id,
            checkout_url=link.checkout_url,
            qr_code=link.qr_code,
            bin=link.bin,
            account_number=link.account_number,
            account_name=link.account_name,
        ),
    )
    return _checkout_from_intent(intent), False


def get_pending_by_code(db: Session, code: str, amount: int | None = None) -> PaymentIntent | None:
    """Pending intent for a tracking code.

    Codes are not unique: when several pending intents share one, the newest
    whose amount is within tolerance wins, falling back to the newest.
    """

    stmt = _newest_first(
        select(PaymentIntent).where(
            PaymentIntent.tracking_code == code.upper(),
            PaymentIntent.status == PaymentIntentStatus.PENDING,
        )
    )
    candidates = list(db.scalars(stmt))
    if not candidates:
        return None
    if amount is not None:
        for candidate in candidates:
            if amount_within_tolerance(amount, candidate.amount):
                return candidate
    return candidates[0]


def get_by_order_code(db: Session, order_code: int) -> PaymentIntent | None:
    return db.scalars(select(PaymentIntent).where(PaymentIntent.order_code == order_code)).first()


def check_payment_status(db: Session, code: str) -> PaymentStatusResult:
    """Status of the newest intent carrying ``code``; ``not_found`` when none does."""

    stmt = _newest_first(select(PaymentIntent).where(PaymentIntent.tracking_code == code.strip().upper()))
    intent = db.scalars(stmt).first()
    if intent is None:
        return PaymentStatusResult(status="not_found")
    return PaymentStatusResult(status=intent.status.value, intent=intent)


__all__ = [
    "PaymentStatusResult",
    "check_payment_status",
    "create_gateway_payment",
    "create_pending_payment",
    "find_active_payment",
    "get_by_order_code",
    "get_pending_by_code",
    "manual_payment_instructions",
    "register_manual_payment",
]
