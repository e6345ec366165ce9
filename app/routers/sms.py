"""SMS/notification forwarder webhook."""
from __future__ import annotations

import logging
from typing import Any

from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.db import get_db
from app.schemas.sms import SmsForwarderPayload
from app.security import extract_bearer, require_sms_secret, secret_matches, unauthorized
from app.services.notifications import ChatNotifier, get_chat_notifier
from app.services.reconciliation import process_inbound_notification
from app.utils.time import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/sms-webhook", tags=["sms"])


@router.post("")
async def sms_webhook(
    payload: SmsForwarderPayload,
    token: str | None = Depends(extract_bearer),
    settings: Settings = Depends(get_settings),
    db: Session = Depends(get_db),
    notifier: ChatNotifier = Depends(get_chat_notifier),
) -> dict[str, Any]:
    if not secret_matches(settings.SMS_WEBHOOK_SECRET, token, payload.secret):
        logger.warning("Unauthorized SMS webhook attempt")
        raise unauthorized()

    outcome = await process_inbound_notification(db, payload.to_inbound(), notifier=notifier)
    response: dict[str, Any] = {"success": True, "message": outcome.message}
    if outcome.transaction is not None:
        response["transaction"] = outcome.transaction.model_dump(by_alias=True, mode="json")
    if outcome.matched:
        response["ordersUpdated"] = outcome.orders_updated
    return response


@router.get("", dependencies=[Depends(require_sms_secret)])
def sms_webhook_probe() -> dict[str, str]:
    return {
        "status": "ok",
        "message": "SMS webhook is running",
        "timestamp": utcnow().isoformat(),
    }


__all__ = ["router"]
