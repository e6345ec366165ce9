"""Reconciliation engine: converge payment intents and orders on incoming payment signals.

Three uncoordinated entry points can confirm the same payment: the gateway
webhook, a forwarded SMS/app notification, and client polling of the gateway.
Each re-reads the intent and only writes through a conditional update on
``status = 'pending'``, so duplicates and races collapse into no-ops.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable, Mapping, Optional

from pydantic import ValidationError
from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from app.models.order import DailyOrder
from app.models.payment_intent import PaymentIntent, PaymentIntentStatus
from app.schemas.payos import PayOSPaymentInfoData, PayOSWebhookBody
from app.schemas.reminder import PaymentSuccessInfo
from app.schemas.sms import InboundNotification
from app.services.matching import (
    ParsedNotification,
    amount_within_tolerance,
    extract_payment_code,
    is_momo_notification,
    parse_notification,
)
from app.services.notifications import ChatNotifier
from app.services.payment_intents import get_by_order_code, get_pending_by_code
from app.services.psp_payos import SUCCESS_CODE, PayOSClient
from app.utils.audit import log_audit
from app.utils.masking import mask_phone
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

SETTLEMENT_FIELDS = (
    "transaction_reference",
    "counter_account_name",
    "counter_account_number",
    "counter_account_bank_name",
)


class WebhookSignatureError(Exception):
    """The gateway webhook signature could not be verified."""


@dataclass
class ReconciliationResult:
    intent: PaymentIntent
    transitioned: bool
    orders_updated: int = 0


@dataclass
class NotificationOutcome:
    message: str
    transaction: Optional[ParsedNotification] = None
    orders_updated: int = 0
    matched: bool = False


@dataclass
class GatewayStatusOutcome:
    info: Optional[PayOSPaymentInfoData]
    result: Optional[ReconciliationResult] = None


def mark_orders_paid(db: Session, order_ids: Iterable[Any]) -> int:
    """Flip ``is_paid`` on each order independently; failures are logged and skipped."""

    updated = 0
    for raw_id in order_ids:
        try:
            order_id = int(raw_id)
        except (TypeError, ValueError):
            logger.warning("Skipping invalid order id", extra={"order_id": raw_id})
            continue
        try:
            result = db.execute(
                update(DailyOrder)
                .where(DailyOrder.id == order_id)
                .values(is_paid=True, updated_at=utcnow())
                .execution_options(synchronize_session=False)
            )
            if result.rowcount == 0:
                logger.warning("Order not found while marking paid", extra={"order_id": order_id})
                continue
            db.commit()
            updated += 1
        except SQLAlchemyError:
            logger.exception("Failed to mark order paid", extra={"order_id": order_id})
            db.rollback()
    return updated


def complete_payment(
    db: Session,
    intent: PaymentIntent,
    *,
    paid_amount: int,
    source: str,
    details: Mapping[str, Any] | None = None,
) -> ReconciliationResult:
    """Move a pending intent to completed exactly once, then mark its orders paid."""

    if intent.status.is_terminal:
        logger.info(
            "Payment intent already terminal; completion skipped",
            extra={"payment_intent_id": intent.id, "status": intent.status.value, "source": source},
        )
        return ReconciliationResult(intent=intent, transitioned=False)

    now = utcnow()
    values: dict[str, Any] = {
        "status": PaymentIntentStatus.COMPLETED,
        "paid_amount": paid_amount,
        "paid_at": now,
        "updated_at": now,
    }
    for field in SETTLEMENT_FIELDS:
        if details and details.get(field):
            values[field] = details[field]

    result = db.execute(
        update(PaymentIntent)
        .where(PaymentIntent.id == intent.id, PaymentIntent.status == PaymentIntentStatus.PENDING)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(intent)
    if result.rowcount != 1:
        logger.info(
            "Payment intent completed concurrently; completion skipped",
            extra={"payment_intent_id": intent.id, "source": source},
        )
        return ReconciliationResult(intent=intent, transitioned=False)

    orders_updated = mark_orders_paid(db, intent.order_ids or [])
    log_audit(
        db,
        actor=source,
        action="PAYMENT_INTENT_COMPLETED",
        entity="PaymentIntent",
        entity_id=intent.id,
        data={
            "tracking_code": intent.tracking_code,
            "amount": intent.amount,
            "paid_amount": paid_amount,
            "orders_total": len(intent.order_ids or []),
            "orders_updated": orders_updated,
            **{field: values[field] for field in SETTLEMENT_FIELDS if field in values},
        },
    )
    db.commit()
    logger.info(
        "Payment intent completed",
        extra={
            "payment_intent_id": intent.id,
            "tracking_code": intent.tracking_code,
            "paid_amount": paid_amount,
            "orders_updated": orders_updated,
            "source": source,
        },
    )
    return ReconciliationResult(intent=intent, transitioned=True, orders_updated=orders_updated)


def fail_payment(db: Session, intent: PaymentIntent, *, reason: str, source: str) -> ReconciliationResult:
    """Move a pending intent to failed; orders are left untouched."""

    if intent.status.is_terminal:
        return ReconciliationResult(intent=intent, transitioned=False)

    now = utcnow()
    result = db.execute(
        update(PaymentIntent)
        .where(PaymentIntent.id == intent.id, PaymentIntent.status == PaymentIntentStatus.PENDING)
        .values(
            status=PaymentIntentStatus.FAILED,
            failed_at=now,
            fail_reason=reason[:255],
            updated_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    db.refresh(intent)
    if result.rowcount != 1:
        return ReconciliationResult(intent=intent, transitioned=False)

    log_audit(
        db,
        actor=source,
        action="PAYMENT_INTENT_FAILED",
        entity="PaymentIntent",
        entity_id=intent.id,
        data={"tracking_code": intent.tracking_code, "reason": reason},
    )
    db.commit()
    logger.info(
        "Payment intent failed",
        extra={"payment_intent_id": intent.id, "reason": reason, "source": source},
    )
    return ReconciliationResult(intent=intent, transitioned=True)


async def _announce_success(notifier: ChatNotifier | None, result: ReconciliationResult) -> None:
    if notifier is None or not result.transitioned:
        return
    intent = result.intent
    info = PaymentSuccessInfo(
        user_name=intent.user_name or intent.user_id,
        user_email=intent.user_email,
        amount=intent.paid_amount or intent.amount,
        order_count=len(intent.order_ids or []),
        payment_code=intent.tracking_code,
    )
    if not await notifier.send_payment_success_notification(info):
        logger.warning(
            "Payment success notification not delivered",
            extra={"payment_intent_id": intent.id},
        )


async def handle_gateway_webhook(
    db: Session,
    payload: Mapping[str, Any],
    *,
    client: PayOSClient,
    notifier: ChatNotifier | None = None,
) -> Optional[ReconciliationResult]:
    """Apply a PayOS webhook; ``None`` when there was nothing to apply."""

    data = payload.get("data")
    if not client.verify_webhook_signature(data, payload.get("signature")):
        raise WebhookSignatureError("Invalid PayOS webhook signature.")

    try:
        body = PayOSWebhookBody.model_validate(payload)
    except ValidationError:
        logger.warning("Signed PayOS webhook has an unexpected shape; acknowledged")
        return None

    order_code = body.data.order_code
    intent = get_by_order_code(db, order_code)
    if intent is None:
        logger.warning("PayOS webhook for unknown order code", extra={"order_code": order_code})
        return None

    if body.success and body.data.code == SUCCESS_CODE:
        result = complete_payment(
            db,
            intent,
            paid_amount=body.data.amount,
            source="payos_webhook",
            details={
                "transaction_reference": body.data.reference,
                "counter_account_name": body.data.counter_account_name,
                "counter_account_number": body.data.counter_account_number,
                "counter_account_bank_name": body.data.counter_account_bank_name,
            },
        )
        await _announce_success(notifier, result)
        return result

    return fail_payment(
        db,
        intent,
        reason=body.data.desc or body.desc or "Payment failed",
        source="payos_webhook",
    )


async def process_inbound_notification(
    db: Session,
    inbound: InboundNotification,
    *,
    notifier: ChatNotifier | None = None,
) -> NotificationOutcome:
    """Match a forwarded SMS/app notification to a pending manual intent."""

    logger.info(
        "Inbound payment notification received",
        extra={"sender": mask_phone(inbound.sender), "length": len(inbound.body)},
    )
    if not is_momo_notification(inbound.sender, inbound.body):
        return NotificationOutcome(message="Not a MoMo notification, ignored")

    parsed = parse_notification(inbound.body)
    if parsed is None:
        logger.info("Could not parse inbound notification")
        return NotificationOutcome(message="Could not parse notification content")

    payment_code = parsed.payment_code or extract_payment_code(inbound.body)
    if not payment_code:
        return NotificationOutcome(message="No payment code found", transaction=parsed)

    intent = get_pending_by_code(db, payment_code, parsed.amount)
    if intent is None:
        logger.info("No pending payment for code", extra={"tracking_code": payment_code})
        return NotificationOutcome(message="No pending payment found for this code", transaction=parsed)

    if not amount_within_tolerance(parsed.amount, intent.amount):
        logger.warning(
            "Amount mismatch on matched payment code; completing anyway",
            extra={
                "tracking_code": payment_code,
                "expected_amount": intent.amount,
                "received_amount": parsed.amount,
            },
        )

    result = complete_payment(db, intent, paid_amount=parsed.amount, source="sms_webhook")
    if not result.transitioned:
        return NotificationOutcome(message="Payment already processed", transaction=parsed)

    await _announce_success(notifier, result)
    return NotificationOutcome(
        message=f"Payment verified. Updated {result.orders_updated} orders.",
        transaction=parsed,
        orders_updated=result.orders_updated,
        matched=True,
    )


async def sync_gateway_status(
    db: Session,
    order_code: int,
    *,
    client: PayOSClient,
    notifier: ChatNotifier | None = None,
) -> GatewayStatusOutcome:
    """Pull live gateway status and complete the local intent when it is paid."""

    info = await client.get_payment_info(order_code)
    if info is None:
        return GatewayStatusOutcome(info=None)
    if info.status != "PAID":
        return GatewayStatusOutcome(info=info)

    details: dict[str, Any] = {}
    if info.transactions:
        txn = info.transactions[0]
        details = {
            "transaction_reference": txn.reference,
            "counter_account_name": txn.counter_account_name,
            "counter_account_number": txn.counter_account_number,
            "counter_account_bank_name": txn.counter_account_bank_name,
        }

    result: ReconciliationResult | None = None
    try:
        intent = get_by_order_code(db, order_code)
        if intent is None:
            logger.warning("Gateway reports PAID for unknown order code", extra={"order_code": order_code})
        else:
            result = complete_payment(
                db,
                intent,
                paid_amount=info.amount_paid or info.amount,
                source="payos_poll",
                details=details,
            )
    except SQLAlchemyError:
        logger.exception("Failed to persist gateway status", extra={"order_code": order_code})
        db.rollback()
        result = None

    if result is not None:
        await _announce_success(notifier, result)
    return GatewayStatusOutcome(info=info, result=result)


async def cancel_gateway_payment(
    db: Session,
    order_code: int,
    *,
    client: PayOSClient,
    reason: str | None = None,
) -> Optional[ReconciliationResult]:
    """Cancel the gateway link, then fail the local pending intent if there is one."""

    await client.cancel_payment_link(order_code, reason)
    intent = get_by_order_code(db, order_code)
    if intent is None:
        return None
    return fail_payment(db, intent, reason=reason or "Cancelled by user", source="payos_cancel")


__all__ = [
    "GatewayStatusOutcome",
    "NotificationOutcome",
    "ReconciliationResult",
    "WebhookSignatureError",
    "cancel_gateway_payment",
    "complete_payment",
    "fail_payment",
    "handle_gateway_webhook",
    "mark_orders_paid",
    "process_inbound_notification",
    "sync_gateway_status",
]
