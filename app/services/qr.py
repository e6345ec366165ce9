"""QR and deep-link builders for the two payment channels."""
from __future__ import annotations

from datetime import date as date_cls
from urllib.parse import quote, urlencode

VIETQR_IMAGE_BASE = "https://img.vietqr.io/image"
QR_SERVER_BASE = "https://api.qrserver.com/v1/create-qr-code/"


def build_vietqr_url(
    bin: str, account_number: str, amount: int, description: str, account_name: str
) -> str:
    """Interbank (VietQR) image URL for a gateway checkout."""

    query = urlencode(
        {"amount": amount, "addInfo": description, "accountName": account_name},
        quote_via=quote,
    )
    return f"{VIETQR_IMAGE_BASE}/{bin}-{account_number}-compact2.png?{query}"


def build_transfer_comment(user_name: str, date: str, tracking_code: str) -> str:
    """``<code> <name> <d/m>``: the code comes first so truncation never drops it."""

    try:
        day = date_cls.fromisoformat(date)
        short_date = f"{day.day}/{day.month}"
    except ValueError:
        short_date = date
    return " ".join(part for part in (tracking_code, user_name.strip(), short_date) if part)


def momo_qr_payload(phone: str, amount: int, comment: str) -> str:
    """MoMo personal transfer QR data string."""

    return f"2|99|{phone}|||0|0|{amount}|{comment}|transfer_myqr"


def build_momo_qr_url(phone: str, amount: int, comment: str, size: int = 300) -> str:
    data = quote(momo_qr_payload(phone, amount, comment), safe="")
    return f"{QR_SERVER_BASE}?size={size}x{size}&data={data}"


def build_momo_app_link(phone: str, amount: int, comment: str) -> str:
    """Deep link opening the MoMo app on the transfer screen."""

    return (
        "momo://app?action=payWithApp&isScanQR=true&serviceType=qr"
        f"&sid={phone}&v=3.0&amount={amount}&comment={quote(comment, safe='')}"
    )


__all__ = [
    "build_momo_app_link",
    "build_momo_qr_url",
    "build_transfer_comment",
    "build_vietqr_url",
    "momo_qr_payload",
]
