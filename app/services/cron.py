"""Background jobs run by the in-process scheduler."""
from __future__ import annotations

import logging

from app.config import get_settings
from app.db import session_scope
from app.services.notifications import ChatNotifier
from app.services.reminders import run_reminder_sweep

logger = logging.getLogger(__name__)


async def payment_reminder_once() -> None:
    """Run the windowed payment reminder sweep with a fresh session."""

    settings = get_settings()
    with session_scope() as db:
        outcome = await run_reminder_sweep(db, ChatNotifier(settings), settings)
    logger.info("Scheduled payment reminder", extra={"sent": outcome.sent, "reason": outcome.message})
