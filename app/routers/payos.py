"""Routes for PayOS payment links: creation, webhook, polling and cancellation."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.db import get_db
from app.schemas.payos import CancelPaymentRequest, CreatePaymentRequest
from app.services import reconciliation
from app.services.notifications import ChatNotifier, get_chat_notifier
from app.services.payment_intents import create_gateway_payment
from app.services.psp_payos import PayOSClient, PayOSError, get_payos_client
from app.utils.errors import error_response, http_error

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payos", tags=["payos"])


def _gateway_unavailable(exc: PayOSError) -> HTTPException:
    return http_error(
        status.HTTP_502_BAD_GATEWAY,
        "PAYMENT_GATEWAY_ERROR",
        str(exc) or "Payment gateway request failed.",
    )


@router.post("/create-payment")
async def create_payment(
    payload: CreatePaymentRequest,
    db: Session = Depends(get_db),
    client: PayOSClient = Depends(get_payos_client),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    try:
        checkout, reused = await create_gateway_payment(db, payload, client=client, settings=settings)
    except PayOSError as exc:
        raise _gateway_unavailable(exc) from exc
    return {
        "success": True,
        "reused": reused,
        "data": checkout.model_dump(by_alias=True, mode="json"),
    }


@router.post("/webhook", status_code=status.HTTP_200_OK)
async def payos_webhook(
    request: Request,
    db: Session = Depends(get_db),
    client: PayOSClient = Depends(get_payos_client),
    notifier: ChatNotifier = Depends(get_chat_notifier),
) -> dict[str, bool]:
    """Always acknowledge, except on a bad signature: PayOS retries anything else."""

    try:
        payload = await request.json()
    except ValueError:
        logger.warning("Undecodable PayOS webhook body; acknowledged")
        return {"success": True}
    if not isinstance(payload, dict):
        logger.warning("PayOS webhook body is not an object; acknowledged")
        return {"success": True}

    try:
        await reconciliation.handle_gateway_webhook(db, payload, client=client, notifier=notifier)
    except reconciliation.WebhookSignatureError:
        logger.warning("PayOS webhook signature rejected")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=error_response("INVALID_SIGNATURE", "Invalid signature."),
        )
    except Exception:  # noqa: BLE001
        logger.exception("PayOS webhook processing failed; acknowledged")
        db.rollback()
    return {"success": True}


@router.get("/webhook")
def payos_webhook_probe() -> dict[str, str]:
    return {"status": "ok", "message": "PayOS webhook endpoint is active"}


@router.get("/check-status")
async def check_status(
    order_code: str | None = Query(default=None, alias="orderCode"),
    db: Session = Depends(get_db),
    client: PayOSClient = Depends(get_payos_client),
    notifier: ChatNotifier = Depends(get_chat_notifier),
) -> dict[str, Any]:
    if not order_code or not order_code.strip().isdigit():
        raise http_error(status.HTTP_400_BAD_REQUEST, "ORDER_CODE_REQUIRED", "orderCode is required.")

    try:
        outcome = await reconciliation.sync_gateway_status(
            db, int(order_code), client=client, notifier=notifier
        )
    except PayOSError as exc:
        raise _gateway_unavailable(exc) from exc

    info = outcome.info
    if info is None:
        return {"success": False, "error": "Payment not found", "status": "not_found"}
    return {
        "success": True,
        "data": {
            "orderCode": info.order_code,
            "amount": info.amount,
            "amountPaid": info.amount_paid,
            "amountRemaining": info.amount_remaining,
            "status": info.status,
            "isPaid": info.status == "PAID",
            "createdAt": info.created_at,
            "transactions": [txn.model_dump(by_alias=True) for txn in info.transactions],
            "cancellationReason": info.cancellation_reason,
            "canceledAt": info.canceled_at,
        },
    }


@router.post("/cancel")
async def cancel_payment(
    payload: CancelPaymentRequest,
    db: Session = Depends(get_db),
    client: PayOSClient = Depends(get_payos_client),
) -> dict[str, Any]:
    try:
        result = await reconciliation.cancel_gateway_payment(
            db, payload.order_code, client=client, reason=payload.reason
        )
    except PayOSError as exc:
        raise _gateway_unavailable(exc) from exc
    return {
        "success": True,
        "orderCode": payload.order_code,
        "status": result.intent.status.value if result is not None else None,
    }


__all__ = ["router"]
