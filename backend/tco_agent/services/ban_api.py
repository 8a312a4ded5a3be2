"""
Client for the internal user-ban API.

Request:  POST {"users": [<ExtractedRecord payload>, ...]}
Response: {"success": bool,
           "data": {"banned":    [{"userId": str, "decision": str}, ...],
                    "not_found": [{"userId": str, "decision": str}, ...]}}

The API reports users by identifier (username or email).  Identifiers are
mapped back onto the submitted records by exact string match; identifiers
that match no record are dropped.

Environment variables
---------------------
BAN_API_URL         Endpoint (default: https://local.finya.de/api/tco/ban).
BAN_API_KEY         Bearer token; required.
BAN_API_VERIFY_TLS  "false" disables certificate checks for local realms (default: true).
"""

import json
import logging
import os
from typing import List, Optional, Tuple

import httpx

from tco_agent.config import get_http_timeout, require_env
from tco_agent.errors import BanApiError
from tco_agent.models.decision import ExtractedRecord
from tco_agent.services.http_retry import send_with_retry

logger = logging.getLogger(__name__)

DEFAULT_BAN_API_URL = "https://local.finya.de/api/tco/ban"


def find_record_by_identifier(
    records: List[ExtractedRecord], user_id: str
) -> Optional[ExtractedRecord]:
    """First record whose username or email equals user_id exactly."""
    for record in records:
        if record.decision.username == user_id or record.decision.email == user_id:
            return record
    return None


def reconcile_ban_response(
    records: List[ExtractedRecord], data: dict
) -> Tuple[List[ExtractedRecord], List[ExtractedRecord]]:
    """Map the API's banned / not_found identifiers back to records."""
    banned: List[ExtractedRecord] = []
    not_found: List[ExtractedRecord] = []

    for bucket_key, bucket in (("banned", banned), ("not_found", not_found)):
        for entry in data.get(bucket_key) or []:
            user_id = entry.get("userId", "") if isinstance(entry, dict) else str(entry)
            record = find_record_by_identifier(records, user_id) if user_id else None
            if record is None:
                logger.warning(f"Ban API reported unknown user {user_id!r} as {bucket_key}; ignoring")
                continue
            bucket.append(record)

    return banned, not_found


def _verify_tls() -> bool:
    return os.getenv("BAN_API_VERIFY_TLS", "true").strip().lower() not in ("0", "false", "no")


class BanApiClient:
    """Sends ready records to the ban API."""

    def __init__(
        self,
        url: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.url = url
        self.api_key = api_key
        self._client = client

    def ban(
        self, records: List[ExtractedRecord]
    ) -> Tuple[List[ExtractedRecord], List[ExtractedRecord]]:
        """
        Ban the users behind records.

        Returns:
            (banned, not_found) — subsets of records.

        Raises:
            ConfigError: BAN_API_KEY is not set.
            NetworkError: the API was unreachable after retries.
            BanApiError: error status, unparseable body, or success=false.
        """
        api_key = self.api_key or require_env("BAN_API_KEY")
        url = self.url or os.getenv("BAN_API_URL", "").strip() or DEFAULT_BAN_API_URL

        body = {"users": [record.to_ban_payload() for record in records]}
        logger.debug(f"Ban API request: {json.dumps(body)}")

        client = self._client or httpx.Client(timeout=get_http_timeout(), verify=_verify_tls())
        try:
            request = client.build_request(
                "POST",
                url,
                headers={"Authorization": f"Bearer {api_key}"},
                json=body,
            )
            response = send_with_retry(client, request)
        finally:
            if self._client is None:
                client.close()

        logger.debug(f"Ban API response: {response.text}")

        if response.status_code >= 400:
            raise BanApiError(f"ban API returned status {response.status_code}: {response.text}")

        try:
            payload = response.json()
        except ValueError as exc:
            raise BanApiError(f"failed to parse ban API response: {exc}")

        if not isinstance(payload, dict) or not payload.get("success"):
            raise BanApiError("failed to process fraud users")

        banned, not_found = reconcile_ban_response(records, payload.get("data") or {})
        logger.info(
            f"Ban API: {len(banned)} banned, {len(not_found)} not found "
            f"out of {len(records)} submitted"
        )
        return banned, not_found
