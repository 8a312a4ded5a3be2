"""
Post a one-message summary of each pipeline run to a Slack incoming webhook.

SLACK_WEBHOOK_URL unset means notifications are disabled (no-op).
"""

import logging
import os
from typing import List, Optional

import httpx

from tco_agent.config import get_http_timeout
from tco_agent.errors import DeliveryError
from tco_agent.models.decision import ExtractedRecord, OutcomeRecord
from tco_agent.services.http_retry import send_with_retry
from tco_agent.services.messages import fallback_value, format_identifiers

logger = logging.getLogger(__name__)

MAX_SUMMARY_ENTRIES = 3


def summarize_decisions(records: List[ExtractedRecord]) -> str:
    """Up to MAX_SUMMARY_ENTRIES entries, then "...and N more"."""
    if not records:
        return "none"

    entries = []
    for record in records[:MAX_SUMMARY_ENTRIES]:
        identifiers = format_identifiers(record.decision)
        reference = fallback_value(record.decision.reference_number, "N/A")
        entries.append(f"{identifiers} (ref {reference})")

    if len(records) > MAX_SUMMARY_ENTRIES:
        entries.append(f"...and {len(records) - MAX_SUMMARY_ENTRIES} more")

    return "; ".join(entries)


def build_slack_text(outcome: OutcomeRecord) -> str:
    if outcome.error is not None:
        status = f":warning: Ticket processing ended with errors: {outcome.error}"
    elif outcome.action_count == 0:
        status = ":information_source: Ticket processed with no actions"
    else:
        status = ":white_check_mark: Ticket processed"
    if outcome.ticket_id:
        status = f"{status} ({outcome.ticket_id})"

    lines = [status]
    if outcome.subject.strip():
        lines.append(f"*Subject*: {outcome.subject.strip()}")

    lines.extend([
        f"*Banned*: {summarize_decisions(outcome.banned)}",
        f"*Not found*: {summarize_decisions(outcome.not_found)}",
        f"*Need more info*: {summarize_decisions(outcome.more_info)}",
    ])
    return "\n".join(lines)


class SlackNotifier:
    """Sends OutcomeRecord summaries to Slack."""

    def __init__(self, webhook_url: Optional[str] = None, client: Optional[httpx.Client] = None):
        self.webhook_url = webhook_url
        self._client = client

    def notify(self, outcome: OutcomeRecord) -> None:
        """
        Raises:
            NetworkError: Slack was unreachable after retries.
            DeliveryError: Slack answered with a non-2xx status.
        """
        webhook_url = self.webhook_url or os.getenv("SLACK_WEBHOOK_URL", "").strip()
        if not webhook_url:
            logger.debug("SLACK_WEBHOOK_URL not set; skipping notification")
            return

        client = self._client or httpx.Client(timeout=get_http_timeout())
        try:
            request = client.build_request(
                "POST", webhook_url, json={"text": build_slack_text(outcome)}
            )
            response = send_with_retry(client, request)
        finally:
            if self._client is None:
                client.close()

        if response.status_code >= 300:
            raise DeliveryError(f"slack webhook status {response.status_code}: {response.text}")
