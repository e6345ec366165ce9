"""Team chat (Rocket.Chat incoming webhook) notifications."""
from __future__ import annotations

import logging
from datetime import date as date_cls
from typing import Any, Sequence

import httpx

from app.config import Settings, get_settings
from app.schemas.reminder import PaymentSuccessInfo, UnpaidUser

logger = logging.getLogger(__name__)

GOLD = "#D4AF37"
RED = "#FF6B6B"
TEAL = "#4ECDC4"


def format_money(amount: int) -> str:
    """Vietnamese currency rendering, e.g. ``50.000 ₫``."""

    return f"{amount:,}".replace(",", ".") + " ₫"


def _format_day(value: str) -> str:
    try:
        return date_cls.fromisoformat(value).strftime("%d/%m/%Y")
    except ValueError:
        return value


class ChatNotifier:
    """Posts payment messages to the team chat webhook.

    Every send returns ``True`` on a 2xx answer and ``False`` otherwise; chat
    failures never raise into the payment flow.
    """

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        self._webhook_url = settings.CHAT_WEBHOOK_URL
        self._transport = transport

    @property
    def configured(self) -> bool:
        return bool(self._webhook_url)

    async def _post(self, message: dict[str, Any]) -> bool:
        if not self._webhook_url:
            logger.warning("Chat webhook URL is not configured; message dropped")
            return False
        try:
            async with httpx.AsyncClient(
                timeout=self.settings.CHAT_TIMEOUT_SECONDS, transport=self._transport
            ) as client:
                response = await client.post(self._webhook_url, json=message)
        except httpx.HTTPError as exc:
            logger.error("Chat webhook request failed", extra={"error": str(exc)})
            return False
        if response.is_error:
            logger.error(
                "Chat webhook answered with an error",
                extra={"status_code": response.status_code},
            )
            return False
        return True

    async def send_payment_reminder(self, users: Sequence[UnpaidUser]) -> bool:
        """Consolidated reminder listing every unpaid user and the grand total."""

        if not users:
            return True
        total = sum(user.total_amount for user in users)
        lines = "\n".join(
            f"{index}. *{user.user_name}* - {format_money(user.total_amount)} ({user.order_count} đơn)"
            for index, user in enumerate(users, start=1)
        )
        return await self._post(
            {
                "text": "🔔 *Nhắc nhở thanh toán đơn hàng*",
                "attachments": [
                    {"title": "Danh sách người dùng chưa thanh toán", "text": lines, "color": GOLD},
                    {
                        "text": f"💰 *Tổng cộng:* {format_money(total)}\n"
                        "📅 Vui lòng thanh toán sớm nhất có thể!",
                        "color": RED,
                    },
                ],
            }
        )

    async def send_individual_payment_reminder(self, user: UnpaidUser) -> bool:
        dates = ", ".join(_format_day(day) for day in user.dates)
        return await self._post(
            {
                "text": "🔔 *Nhắc nhở thanh toán*",
                "attachments": [
                    {
                        "title": f"Xin chào {user.user_name}!",
                        "text": f"Bạn có *{user.order_count} đơn hàng* chưa thanh toán.\n"
                        f"📅 Ngày: {dates}\n"
                        f"💰 Tổng tiền: *{format_money(user.total_amount)}*",
                        "color": GOLD,
                    },
                    {
                        "text": "Vui lòng thanh toán qua QR code trong ứng dụng. Cảm ơn bạn! 🙏",
                        "color": TEAL,
                    },
                ],
            }
        )

    async def send_payment_success_notification(self, info: PaymentSuccessInfo) -> bool:
        return await self._post(
            {
                "text": "✅ *Thanh toán thành công*",
                "attachments": [
                    {
                        "title": f"{info.user_name} đã thanh toán",
                        "text": f"💰 Số tiền: *{format_money(info.amount)}*\n"
                        f"📦 Số đơn: {info.order_count}\n"
                        f"🔖 Mã: {info.payment_code}",
                        "color": TEAL,
                    }
                ],
            }
        )


def get_chat_notifier() -> ChatNotifier:
    """FastAPI dependency returning a notifier bound to the current settings."""

    return ChatNotifier(get_settings())


__all__ = ["ChatNotifier", "format_money", "get_chat_notifier"]
