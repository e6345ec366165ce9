"""PayOS payment-link gateway client."""
from __future__ import annotations

import hashlib
import hmac
import logging
from typing import Any, Mapping, Optional

import httpx

from app.config import Settings, get_settings
from app.schemas.payos import PayOSPaymentInfoData, PayOSPaymentLinkData, PayOSPaymentRequest

logger = logging.getLogger(__name__)

SUCCESS_CODE = "00"

# Fields covered by the webhook signature; the optional ones are signed as "".
WEBHOOK_REQUIRED_FIELDS = (
    "orderCode",
    "amount",
    "description",
    "accountNumber",
    "reference",
    "transactionDateTime",
    "currency",
    "paymentLinkId",
    "code",
    "desc",
)
WEBHOOK_OPTIONAL_FIELDS = (
    "counterAccountBankId",
    "counterAccountBankName",
    "counterAccountName",
    "counterAccountNumber",
    "virtualAccountName",
    "virtualAccountNumber",
)

PAYMENT_LINK_SIGNED_FIELDS = ("amount", "cancelUrl", "description", "orderCode", "returnUrl")


class PayOSError(Exception):
    """Raised when the gateway cannot be reached or answers with an error."""

    def __init__(
        self, message: str, *, code: str | None = None, status_code: int | None = None
    ) -> None:
        super().__init__(message)
        self.code = code
        self.status_code = status_code


def _sign_value(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


class PayOSClient:
    """Thin async wrapper around the PayOS merchant API."""

    def __init__(self, settings: Settings, transport: httpx.AsyncBaseTransport | None = None) -> None:
        self.settings = settings
        self._client_id = settings.PAYOS_CLIENT_ID
        self._api_key = settings.PAYOS_API_KEY
        self._checksum_key = settings.PAYOS_CHECKSUM_KEY
        self._transport = transport

    def create_signature(self, data: Mapping[str, Any]) -> str:
        """HMAC-SHA256 hex digest over ``k1=v1&k2=v2`` with keys sorted."""

        if not self._checksum_key:
            raise PayOSError("PayOS checksum key is missing; configure PAYOS_CHECKSUM_KEY.")
        message = "&".join(f"{key}={_sign_value(data[key])}" for key in sorted(data))
        return hmac.new(
            self._checksum_key.encode("utf-8"), message.encode("utf-8"), hashlib.sha256
        ).hexdigest()

    def verify_webhook_signature(self, data: Mapping[str, Any] | None, signature: str | None) -> bool:
        """Recompute the webhook signature; any doubt means ``False``."""

        if not signature or not isinstance(data, Mapping) or not self._checksum_key:
            return False
        try:
            if any(data.get(field) is None for field in WEBHOOK_REQUIRED_FIELDS):
                return False
            signed = {field: data[field] for field in WEBHOOK_REQUIRED_FIELDS}
            for field in WEBHOOK_OPTIONAL_FIELDS:
                signed[field] = data.get(field) or ""
            expected = self.create_signature(signed)
            return hmac.compare_digest(expected, str(signature))
        except Exception:  # noqa: BLE001
            logger.warning("PayOS webhook signature check raised", exc_info=True)
            return False

    def _ensure_configured(self) -> None:
        if not (self._client_id and self._api_key and self._checksum_key):
            raise PayOSError("PayOS credentials are not configured.", code="NOT_CONFIGURED")

    def _headers(self) -> dict[str, str]:
        return {"x-client-id": self._client_id or "", "x-api-key": self._api_key or ""}

    async def _request(self, method: str, path: str, json: dict[str, Any] | None = None) -> dict[str, Any]:
        self._ensure_configured()
        try:
            async with httpx.AsyncClient(
                base_url=self.settings.PAYOS_API_URL,
                timeout=self.settings.PAYOS_TIMEOUT_SECONDS,
                transport=self._transport,
            ) as client:
                response = await client.request(method, path, json=json, headers=self._headers())
        except httpx.HTTPError as exc:
            logger.error("PayOS request failed", extra={"path": path, "error": str(exc)})
            raise PayOSError("PayOS request failed.") from exc

        if response.is_error:
            logger.error(
                "PayOS answered with an HTTP error",
                extra={"path": path, "status_code": response.status_code},
            )
            raise PayOSError(
                f"PayOS answered HTTP {response.status_code}.", status_code=response.status_code
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise PayOSError("PayOS response is not valid JSON.", status_code=response.status_code) from exc
        if not isinstance(payload, dict):
            raise PayOSError("PayOS response has an unexpected shape.", status_code=response.status_code)
        return payload

    async def create_payment_link(self, request: PayOSPaymentRequest) -> PayOSPaymentLinkData:
        body = request.model_dump(by_alias=True, exclude_none=True)
        body["signature"] = self.create_signature({key: body.get(key) for key in PAYMENT_LINK_SIGNED_FIELDS})
        payload = await self._request("POST", "/v2/payment-requests", json=body)
        if payload.get("code") != SUCCESS_CODE or not payload.get("data"):
            raise PayOSError(payload.get("desc") or "Failed to create payment link.", code=payload.get("code"))
        logger.info("PayOS payment link created", extra={"order_code": request.order_code})
        return PayOSPaymentLinkData.model_validate(payload["data"])

    async def get_payment_info(self, order_code: int) -> Optional[PayOSPaymentInfoData]:
        """Live gateway status, or ``None`` when the gateway does not know the order."""

        payload = await self._request("GET", f"/v2/payment-requests/{order_code}")
        if payload.get("code") != SUCCESS_CODE or not payload.get("data"):
            logger.info(
                "PayOS has no payment for order code",
                extra={"order_code": order_code, "code": payload.get("code"), "desc": payload.get("desc")},
            )
            return None
        return PayOSPaymentInfoData.model_validate(payload["data"])

    async def cancel_payment_link(self, order_code: int, reason: str | None = None) -> dict[str, Any]:
        payload = await self._request(
            "POST",
            f"/v2/payment-requests/{order_code}/cancel",
            json={"cancellationReason": reason or "User cancelled"},
        )
        if payload.get("code") != SUCCESS_CODE:
            raise PayOSError(payload.get("desc") or "Failed to cancel payment link.", code=payload.get("code"))
        return payload.get("data") or {}


def get_payos_client() -> PayOSClient:
    """FastAPI dependency returning a client bound to the current settings."""

    return PayOSClient(get_settings())


__all__ = [
    "PayOSClient",
    "PayOSError",
    "WEBHOOK_OPTIONAL_FIELDS",
    "WEBHOOK_REQUIRED_FIELDS",
    "get_payos_client",
]
