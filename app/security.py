# app/security.py
"""Shared-secret checks for machine-to-machine endpoints (SMS forwarder, cron)."""
from __future__ import annotations

import hmac

from fastapi import Depends, Header, HTTPException, Query, status

from app.config import Settings, get_settings
from app.utils.errors import error_response


def extract_bearer(authorization: str | None = Header(default=None)) -> str | None:
    """Token from ``Authorization: Bearer ...``."""
    if authorization and authorization.startswith("Bearer "):
        return authorization.split(" ", 1)[1].strip()
    return None


def secret_matches(expected: str | None, *candidates: str | None) -> bool:
    """Constant-time match of any candidate; an unset secret matches nothing."""
    if not expected:
        return False
    return any(
        candidate is not None and hmac.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))
        for candidate in candidates
    )


def unauthorized(message: str = "Unauthorized") -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=error_response("UNAUTHORIZED", message),
    )


def require_sms_secret(
    token: str | None = Depends(extract_bearer),
    settings: Settings = Depends(get_settings),
) -> None:
    """Header-only check, used by the liveness probe."""
    if not secret_matches(settings.SMS_WEBHOOK_SECRET, token):
        raise unauthorized()


def require_cron_secret(
    token: str | None = Depends(extract_bearer),
    secret: str | None = Query(default=None),
    settings: Settings = Depends(get_settings),
) -> None:
    if not secret_matches(settings.CRON_SECRET, token, secret):
        raise unauthorized()


__all__ = [
    "extract_bearer",
    "require_cron_secret",
    "require_sms_secret",
    "secret_matches",
    "unauthorized",
]
