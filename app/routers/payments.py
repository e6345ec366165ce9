"""Manual (MoMo QR) payment registration and status polling."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.db import get_db
from app.models.payment_intent import PaymentIntentStatus
from app.schemas.payment_intent import RegisterPaymentRequest
from app.services import payment_intents
from app.utils.errors import http_error
from app.utils.time import as_utc

router = APIRouter(tags=["payments"])


@router.post("/register-payment")
def register_payment(
    payload: RegisterPaymentRequest,
    db: Session = Depends(get_db),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    intent, reused = payment_intents.register_manual_payment(db, payload, settings)
    return {
        "success": True,
        "reused": reused,
        "payment": {
            "id": intent.id,
            "paymentCode": intent.tracking_code,
            "amount": intent.amount,
            "expiresAt": as_utc(intent.expires_at).isoformat(),
            **payment_intents.manual_payment_instructions(intent, settings),
        },
    }


@router.get("/payment-status")
def payment_status(
    code: str | None = Query(default=None),
    db: Session = Depends(get_db),
) -> dict[str, Any]:
    """Polling surface: only status, paid flag and amounts are exposed."""

    if not code or not code.strip():
        raise http_error(status.HTTP_400_BAD_REQUEST, "CODE_REQUIRED", "code is required.")

    result = payment_intents.check_payment_status(db, code)
    intent = result.intent
    if intent is None:
        return {"code": code, "status": result.status, "isPaid": False, "payment": None}

    paid_at = as_utc(intent.paid_at)
    return {
        "code": code,
        "status": result.status,
        "isPaid": intent.status == PaymentIntentStatus.COMPLETED,
        "payment": {
            "amount": intent.amount,
            "paidAmount": intent.paid_amount,
            "paidAt": paid_at.isoformat() if paid_at else None,
        },
    }


__all__ = ["router"]
