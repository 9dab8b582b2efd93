"""Request authentication helpers for cron and premium routes."""

import hmac
from typing import Optional

from fastapi import Request

BEARER_PREFIX = "Bearer "


class CronAuthorizationError(Exception):
    """Cron request rejected; carries the HTTP status."""

    def __init__(self, status_code: int, message: str):
        super().__init__(message)
        self.status_code = status_code
        self.message = message


def bearer_token(request: Request) -> Optional[str]:
    authorization = request.headers.get("authorization") or ""
    if not authorization.startswith(BEARER_PREFIX):
        return None
    return authorization[len(BEARER_PREFIX):].strip() or None


def cron_token(request: Request) -> Optional[str]:
    """First non-empty of x-cron-secret, x-vercel-cron-secret, bearer auth, ?secret=."""
    authorization = (request.headers.get("authorization") or "").replace(BEARER_PREFIX, "", 1)
    return (
        request.headers.get("x-cron-secret")
        or request.headers.get("x-vercel-cron-secret")
        or authorization
        or request.query_params.get("secret")
    )


def verify_cron_request(request: Request, secret: Optional[str]) -> None:
    """
    Check the cron secret on a request.

    Raises:
        CronAuthorizationError: 500 when no secret is configured, 401 on mismatch
    """
    if not secret:
        raise CronAuthorizationError(500, "CRON_SECRET is not configured.")

    token = cron_token(request)
    if not token or not hmac.compare_digest(token.encode(), secret.encode()):
        raise CronAuthorizationError(401, "Unauthorized.")
