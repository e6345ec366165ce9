"""Helpers for masking personal data before it reaches logs or audit rows."""
from __future__ import annotations

from typing import Any, Mapping, Sequence

MASKED_PLACEHOLDER = "***masked***"

# Keys that should always be fully masked regardless of value length
FULL_MASK_KEYS = {
    "counter_account_name",
    "account_name",
}

# Keys containing bank account numbers
ACCOUNT_KEYS = {
    "account_number",
    "counter_account_number",
    "virtual_account_number",
}

CONTACT_KEYS = {"email", "user_email"}

PHONE_KEYS = {"phone", "sender", "momo_phone"}


def mask_account(value: Any) -> str:
    text = "" if value is None else str(value)
    normalized = "".join(ch for ch in text if ch.isalnum())
    if not normalized:
        return "***"
    if len(normalized) <= 4:
        return f"***{normalized}"
    return "*" * (len(normalized) - 4) + normalized[-4:]


def mask_email(value: Any) -> str:
    text = "" if value is None else str(value)
    if "@" not in text:
        return "***@***"
    _, domain = text.split("@", 1)
    return f"***@{domain or '***'}"


def mask_phone(value: Any) -> str:
    text = "" if value is None else str(value)
    digits = "".join(ch for ch in text if ch.isdigit())
    if not digits:
        # Brand senders ("MoMo") are not personal data.
        return text or "***"
    tail = digits[-2:] if len(digits) >= 2 else digits
    return f"***{tail}"


def _mask_leaf(key: str, value: Any) -> Any:
    if isinstance(value, bool) or value is None:
        return value

    lower = key.lower()
    if lower in FULL_MASK_KEYS:
        return MASKED_PLACEHOLDER
    if lower in CONTACT_KEYS or lower.endswith("_email"):
        return mask_email(value)
    if lower in PHONE_KEYS or "phone" in lower:
        return mask_phone(value)
    if lower in ACCOUNT_KEYS or lower.endswith("account_number"):
        return mask_account(value)
    return value


def mask_sensitive(data: Mapping[str, Any]) -> dict[str, Any]:
    """Return a copy of ``data`` with phones, e-mails and account numbers masked."""

    masked: dict[str, Any] = {}
    for key, value in data.items():
        if isinstance(value, Mapping):
            masked[key] = mask_sensitive(value)
        elif isinstance(value, Sequence) and not isinstance(value, (str, bytes, bytearray)):
            masked[key] = [
                mask_sensitive(item) if isinstance(item, Mapping) else _mask_leaf(key, item)
                for item in value
            ]
        else:
            masked[key] = _mask_leaf(key, value)
    return masked


__all__ = ["mask_sensitive", "mask_account", "mask_email", "mask_phone"]
