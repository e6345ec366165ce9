"""Payment reminder routes: manual trigger, unpaid summary and external cron."""
from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Body, Depends, status
from sqlalchemy.orm import Session

from app.config import Settings, get_settings
from app.db import get_db
from app.schemas.reminder import ReminderRequest
from app.security import require_cron_secret
from app.services import reminders
from app.services.notifications import ChatNotifier, get_chat_notifier
from app.utils.errors import http_error

router = APIRouter(tags=["reminders"])


@router.post("/send-payment-reminder")
async def send_payment_reminder(
    payload: ReminderRequest | None = Body(default=None),
    db: Session = Depends(get_db),
    notifier: ChatNotifier = Depends(get_chat_notifier),
) -> dict[str, Any]:
    payload = payload or ReminderRequest()
    outcome = await reminders.send_reminder(
        db, notifier, user_id=payload.user_id, send_to_all=payload.send_to_all
    )
    if outcome.users_count == 0:
        return {"success": True, "message": outcome.message, "usersNotified": 0}
    if not outcome.sent:
        raise http_error(
            status.HTTP_500_INTERNAL_SERVER_ERROR,
            "CHAT_DELIVERY_FAILED",
            "Could not deliver the reminder to the team chat.",
        )
    return {"success": True, "message": outcome.message, "usersNotified": outcome.users_count}


@router.get("/send-payment-reminder")
def unpaid_summary(db: Session = Depends(get_db)) -> dict[str, Any]:
    users = reminders.collect_unpaid_users(db)
    return {
        "success": True,
        "totalUsers": len(users),
        "totalAmount": sum(user.total_amount for user in users),
        "users": [user.model_dump(by_alias=True) for user in users],
    }


@router.api_route(
    "/cron/payment-reminder",
    methods=["GET", "POST"],
    dependencies=[Depends(require_cron_secret)],
)
async def cron_payment_reminder(
    db: Session = Depends(get_db),
    notifier: ChatNotifier = Depends(get_chat_notifier),
    settings: Settings = Depends(get_settings),
) -> dict[str, Any]:
    outcome = await reminders.run_reminder_sweep(db, notifier, settings)
    response: dict[str, Any] = {"success": True, "message": outcome.message, "sent": outcome.sent}
    if outcome.users_count:
        response["usersCount"] = outcome.users_count
        response["totalAmount"] = outcome.total_amount
    return response


__all__ = ["router"]
