"""
Webhook authentication.

The ticketing system's webhook authenticates with a shared secret, sent
either as a bearer token or as a preshared-key header depending on how the
webhook was set up.

Environment variables
---------------------
BEARER_TOKEN    Expected value of "Authorization: Bearer <token>".
PRESHARED_KEY   Expected value of X-Preshared-Key (X-Api-Key is an alias).

With neither configured every request is rejected.
"""

import hmac
import logging
import os
from typing import Optional

from fastapi import Header, HTTPException

logger = logging.getLogger(__name__)


def _bearer_token(authorization: Optional[str]) -> Optional[str]:
    if not authorization:
        return None
    parts = authorization.split(" ")
    if len(parts) != 2 or parts[0] != "Bearer":
        return None
    return parts[1]


def _matches(provided: Optional[str], expected: str) -> bool:
    if not provided or not expected:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


async def verify_webhook_token(
    authorization: Optional[str] = Header(None),
    x_preshared_key: Optional[str] = Header(None),
    x_api_key: Optional[str] = Header(None),
) -> None:
    """
    FastAPI dependency: accept the request if any supplied credential
    matches its configured secret.

    Raises 401 if no secret is configured or nothing matches.
    """
    bearer_secret = os.getenv("BEARER_TOKEN", "")
    preshared_secret = os.getenv("PRESHARED_KEY", "")

    if not bearer_secret and not preshared_secret:
        logger.warning(
            "No webhook secret configured (BEARER_TOKEN / PRESHARED_KEY); "
            "all webhook requests will be rejected"
        )
        raise HTTPException(status_code=401, detail="Webhook secret not configured")

    if _matches(_bearer_token(authorization), bearer_secret):
        return
    if _matches(x_preshared_key or x_api_key, preshared_secret):
        return

    logger.warning("Rejected webhook request with invalid credentials")
    raise HTTPException(status_code=401, detail="Invalid bearer token")
