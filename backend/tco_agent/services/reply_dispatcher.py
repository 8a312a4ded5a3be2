"""
Deliver templated replies and decision tags for one bucket of records.

Replies stop at the first delivery failure (earlier replies stay sent);
tags are best-effort and only logged when they fail.
"""

import logging
from datetime import datetime
from typing import Callable, List, Optional, Union

from tco_agent.errors import DeliveryError
from tco_agent.models.decision import ExtractedRecord
from tco_agent.services.messages import ReplyTemplate, build_message, resolve_template

logger = logging.getLogger(__name__)

AGENT_TAG = "tco-vo"
DECISION_TAG_BANNED = "tco-vo-decision-banned"
DECISION_TAG_NOT_FOUND = "tco-vo-decision-not-found"
DECISION_TAG_MORE_INFO = "tco-vo-decision-more-info"

ReplyFn = Callable[[str, str], None]
TagFn = Callable[[str, List[str]], None]


def reply_to_tickets(
    records: List[ExtractedRecord],
    template: Union[ReplyTemplate, str],
    reply_fn: ReplyFn,
    now: Optional[datetime] = None,
) -> None:
    """
    Reply to every record's ticket in list order.

    Raises:
        InvalidTemplateError: before any reply is sent.
        DeliveryError: wrapping the first failed reply; remaining records
            are skipped.
    """
    template = resolve_template(template)

    for record in records:
        message = build_message(template, record, now=now)
        try:
            reply_fn(record.decision.ticket_id, message)
        except Exception as exc:
            raise DeliveryError(
                f"failed to reply to ticket {record.decision.ticket_id}: {exc}"
            ) from exc
        logger.info(f"Replied to ticket {record.decision.ticket_id} with {template.value}")


def tag_tickets(
    records: List[ExtractedRecord],
    decision_tag: str,
    tag_fn: TagFn,
) -> None:
    """Add AGENT_TAG plus decision_tag to each record's ticket. Never raises."""
    for record in records:
        ticket_id = record.decision.ticket_id
        if not ticket_id:
            logger.warning(
                f"Skipping tag because ticket ID is empty (decision={decision_tag}). "
                f"Ticket data: {record.decision.model_dump(by_alias=True)}"
            )
            continue

        tags = [AGENT_TAG]
        if decision_tag:
            tags.append(decision_tag)

        try:
            tag_fn(ticket_id, tags)
        except Exception as exc:
            logger.error(f"Error tagging ticket {ticket_id}: {exc}")
        else:
            logger.info(f"Added tags {tags} to ticket {ticket_id}")
