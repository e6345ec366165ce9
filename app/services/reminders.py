"""Unpaid-order reminders for the team chat."""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime

from fastapi import status
from sqlalchemy import select
from sqlalchemy.orm import Session

from app.config import Settings
from app.models.order import DailyOrder
from app.schemas.reminder import UnpaidUser
from app.services.notifications import ChatNotifier
from app.utils.errors import http_error
from app.utils.time import local_now, local_today

logger = logging.getLogger(__name__)


@dataclass
class ReminderOutcome:
    sent: bool
    message: str
    users_count: int = 0
    total_amount: int = 0


def collect_unpaid_users(db: Session, *, date: str | None = None) -> list[UnpaidUser]:
    """Unpaid orders grouped per user, largest outstanding total first."""

    stmt = select(DailyOrder).where(DailyOrder.is_paid.is_(False))
    if date is not None:
        stmt = stmt.where(DailyOrder.date == date)
    stmt = stmt.order_by(DailyOrder.date.desc(), DailyOrder.id)

    grouped: dict[str, UnpaidUser] = {}
    for order in db.scalars(stmt):
        user = grouped.get(order.user_id)
        if user is None:
            user = grouped[order.user_id] = UnpaidUser(
                user_id=order.user_id,
                user_name=order.user_name or order.user_id,
                user_email=order.user_email,
            )
        user.total_amount += order.amount
        user.order_count += 1
        if order.date not in user.dates:
            user.dates.append(order.date)

    return sorted(grouped.values(), key=lambda user: user.total_amount, reverse=True)


def is_within_reminder_window(now: datetime, settings: Settings) -> bool:
    """True when the local hour falls in ``[REMINDER_START_HOUR, REMINDER_END_HOUR)``."""

    hour = local_now(settings.REMINDER_TIMEZONE, now).hour
    return settings.REMINDER_START_HOUR <= hour < settings.REMINDER_END_HOUR


async def run_reminder_sweep(
    db: Session,
    notifier: ChatNotifier,
    settings: Settings,
    now: datetime | None = None,
) -> ReminderOutcome:
    """Post one consolidated reminder for today's unpaid orders, inside the window only."""

    current = local_now(settings.REMINDER_TIMEZONE, now)
    if not is_within_reminder_window(current, settings):
        return ReminderOutcome(
            sent=False,
            message=(
                f"Outside reminder hours ({settings.REMINDER_START_HOUR}:00-"
                f"{settings.REMINDER_END_HOUR}:00 {settings.REMINDER_TIMEZONE})"
            ),
        )

    today = local_today(settings.REMINDER_TIMEZONE, current)
    users = collect_unpaid_users(db, date=today)
    if not users:
        return ReminderOutcome(sent=False, message="No unpaid orders today")

    total = sum(user.total_amount for user in users)
    sent = await notifier.send_payment_reminder(users)
    logger.info(
        "Payment reminder sweep",
        extra={"date": today, "users_count": len(users), "total_amount": total, "sent": sent},
    )
    return ReminderOutcome(
        sent=sent,
        message="Payment reminder sent" if sent else "Failed to send reminder",
        users_count=len(users),
        total_amount=total,
    )


async def send_reminder(
    db: Session,
    notifier: ChatNotifier,
    *,
    user_id: str | None = None,
    send_to_all: bool = False,
) -> ReminderOutcome:
    """Manual trigger: one user's reminder, or the consolidated list for everyone."""

    users = collect_unpaid_users(db)
    if not users:
        return ReminderOutcome(sent=False, message="No unpaid orders")

    total = sum(user.total_amount for user in users)
    if user_id and not send_to_all:
        user = next((u for u in users if user_id in (u.user_id, u.user_email)), None)
        if user is None:
            raise http_error(
                status.HTTP_404_NOT_FOUND,
                "USER_HAS_NO_UNPAID_ORDERS",
                "User has no unpaid orders.",
            )
        sent = await notifier.send_individual_payment_reminder(user)
        return ReminderOutcome(
            sent=sent,
            message="Reminder sent" if sent else "Failed to send reminder",
            users_count=1,
            total_amount=user.total_amount,
        )

    sent = await notifier.send_payment_reminder(users)
    return ReminderOutcome(
        sent=sent,
        message="Reminder sent" if sent else "Failed to send reminder",
        users_count=len(users),
        total_amount=total,
    )


__all__ = [
    "ReminderOutcome",
    "collect_unpaid_users",
    "is_within_reminder_window",
    "run_reminder_sweep",
    "send_reminder",
]
