"""Tracking codes and parsing of inbound money-received notifications.

Two inbound text shapes are recognised:

* the MoMo app notification relayed by an SMS-forwarder app, e.g.
  ``Số tiền 2.000 ₫, kèm lời nhắn: "BCMAB121804123 NGUYEN VAN A"``;
* the classic wallet/bank SMS, e.g.
  ``Ban vua nhan 50,000d tu 0987654321. ND: BCM1234ABCD USER. SD: 1,500,000d``.

Parsing is best effort: only the amount is mandatory.
"""
from __future__ import annotations

import re
import secrets
import time
import unicodedata
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from app.utils.time import utcnow

TRACKING_CODE_PREFIX = "BCM"
AMOUNT_TOLERANCE = 0.01

_AMOUNT = r"(?<![\d.,])(\d{1,3}(?:[.,]\d{3})+|\d+)"
_CURRENCY = r"\s*(?:₫|vnd|dong|d)(?![a-z])"

_PAYMENT_CODE_RE = re.compile(rf"{TRACKING_CODE_PREFIX}[A-Z0-9]{{8,}}", re.IGNORECASE)
_NOTIFICATION_AMOUNT_RE = re.compile(rf"so tien\s*{_AMOUNT}\s*(?:₫|vnd|d)(?![a-z])", re.IGNORECASE)
_NOTIFICATION_MESSAGE_RE = re.compile(r"kem loi nhan:\s*[\"“”]([^\"“”]+)[\"“”]", re.IGNORECASE)
_SMS_AMOUNT_RE = re.compile(rf"\+?{_AMOUNT}{_CURRENCY}", re.IGNORECASE)
_SMS_SENDER_RE = re.compile(r"\b(?:tu|from)\s*(?:so\s*)?(\d{10,11})", re.IGNORECASE)
_SMS_CONTENT_RE = re.compile(r"\b(?:nd|noi dung|n\.d)[:\s]+([^.]+)", re.IGNORECASE)
_SMS_BALANCE_RE = re.compile(rf"\b(?:sd|so du|s\.d)[:\s]+{_AMOUNT}{_CURRENCY}", re.IGNORECASE)
_MOMO_SENDER_RE = re.compile(r"^(9029|MoMo)")


class ParsedNotification(BaseModel):
    """Structured view of a money-received notification."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    amount: int
    sender: str = "Unknown"
    content: str = ""
    balance: Optional[int] = None
    timestamp: datetime = Field(default_factory=utcnow)
    payment_code: Optional[str] = None


@dataclass(frozen=True)
class MatchResult:
    valid: bool
    reason: str | None = None


def generate_tracking_code(user_id: str, date: str) -> str:
    """Return ``BCM`` + last 4 of the user id + MMDD + 4 random digits.

    Short enough for a 25 character transfer description. Not unique:
    lookups disambiguate collisions by status and amount.
    """

    user_short = "".join(ch for ch in user_id if ch.isalnum())[-4:].upper()
    date_short = "".join(ch for ch in date if ch.isdigit())[-4:]
    suffix = 1000 + secrets.randbelow(9000)
    return f"{TRACKING_CODE_PREFIX}{user_short}{date_short}{suffix}"


def generate_order_code() -> int:
    """Return a gateway order code: last 10 digits of the ms clock + 4 random digits."""

    timestamp = int(time.time() * 1000) % 10_000_000_000
    suffix = 1000 + secrets.randbelow(9000)
    return int(f"{timestamp}{suffix}")


def _fold_char(ch: str) -> str:
    if ch == "đ":
        return "d"
    if ch == "Đ":
        return "D"
    return unicodedata.normalize("NFD", ch)[0]


def fold_diacritics(text: str) -> str:
    """Strip Vietnamese diacritics one character at a time.

    The result has the same length as the input, so match offsets found in
    the folded text can be used to slice the original.
    """

    return "".join(_fold_char(ch) for ch in text)


def _to_int(figure: str) -> int:
    return int(re.sub(r"[.,]", "", figure))


def extract_payment_code(text: str) -> str | None:
    """Return the first tracking code in ``text``, upper-cased."""

    if not text:
        return None
    match = _PAYMENT_CODE_RE.search(text)
    return match.group(0).upper() if match else None


def _parse_app_notification(text: str, folded: str) -> ParsedNotification | None:
    amount_match = _NOTIFICATION_AMOUNT_RE.search(folded)
    if not amount_match:
        return None

    message_match = _NOTIFICATION_MESSAGE_RE.search(folded)
    content = text[message_match.start(1) : message_match.end(1)].strip() if message_match else ""

    return ParsedNotification(
        amount=_to_int(amount_match.group(1)),
        sender="MoMo",
        content=content,
        payment_code=extract_payment_code(content) or extract_payment_code(text),
    )


def _parse_sms(text: str, folded: str) -> ParsedNotification | None:
    # Outgoing transfers carry neither the "received" marker nor a leading "+".
    if "nhan" not in folded.lower() and "+" not in text:
        return None

    amount_match = _SMS_AMOUNT_RE.search(folded)
    if not amount_match:
        return None

    sender_match = _SMS_SENDER_RE.search(folded)
    content_match = _SMS_CONTENT_RE.search(folded)
    balance_match = _SMS_BALANCE_RE.search(folded)
    content = text[content_match.start(1) : content_match.end(1)].strip() if content_match else ""

    return ParsedNotification(
        amount=_to_int(amount_match.group(1)),
        sender=sender_match.group(1) if sender_match else "Unknown",
        content=content,
        balance=_to_int(balance_match.group(1)) if balance_match else None,
        payment_code=extract_payment_code(content) or extract_payment_code(text),
    )


def parse_notification(raw_text: str | None) -> ParsedNotification | None:
    """Parse an inbound notification/SMS body; ``None`` when no amount is found."""

    if not raw_text:
        return None
    text = unicodedata.normalize("NFC", raw_text)
    folded = fold_diacritics(text)
    return _parse_app_notification(text, folded) or _parse_sms(text, folded)


def amount_within_tolerance(amount: int, expected: int) -> bool:
    """True when ``amount`` is within 1% of ``expected`` (bank rounding/fees)."""

    return abs(amount - expected) <= expected * AMOUNT_TOLERANCE


def validate_match(parsed: ParsedNotification, expected_code: str, expected_amount: int) -> MatchResult:
    """Check a parsed notification against the expected tracking code and amount."""

    if not parsed.payment_code:
        return MatchResult(False, "No payment code found in the transfer content")
    if parsed.payment_code.upper() != expected_code.upper():
        return MatchResult(False, "Payment code does not match")
    if not amount_within_tolerance(parsed.amount, expected_amount):
        return MatchResult(
            False, f"Amount mismatch: received {parsed.amount}, expected {expected_amount}"
        )
    return MatchResult(True)


def is_momo_notification(sender: str | None, body: str | None) -> bool:
    """Heuristic: does this inbound message come from the MoMo wallet?"""

    sender = sender or ""
    body = body or ""
    if "momo" in sender.lower() or "momo" in body.lower():
        return True
    if "₫" in body:
        return True
    return bool(_MOMO_SENDER_RE.match(sender))


__all__ = [
    "AMOUNT_TOLERANCE",
    "TRACKING_CODE_PREFIX",
    "MatchResult",
    "ParsedNotification",
    "amount_within_tolerance",
    "extract_payment_code",
    "fold_diacritics",
    "generate_order_code",
    "generate_tracking_code",
    "is_momo_notification",
    "parse_notification",
    "validate_match",
]
