"""
Webhook payload adapter.

Normalizes the two payload shapes the ticketing system sends into a Ticket
reference:

  flat       {"id": "123", "subject": "..."}
  envelope   {"detail": {"id": "123", "subject": "...", ...},
              "id": "<event uuid>", "subject": "zen:ticket:123", ...}

In the envelope shape the top-level id and subject belong to the event, not
the ticket, so "detail" always wins when it is an object.
"""

import json
from typing import Union

from pydantic import ValidationError

from tco_agent.models.ticket import Ticket


def parse_payload(body: Union[bytes, str]) -> dict:
    """
    Decode a raw request body into a JSON object.

    Raises ValueError when the body is not JSON or not an object.
    """
    try:
        payload = json.loads(body or b"")
    except (TypeError, ValueError) as exc:
        raise ValueError(f"invalid webhook payload format: {exc}")
    if not isinstance(payload, dict):
        raise ValueError("invalid webhook payload format: expected a JSON object")
    return payload


def normalize_ticket_reference(payload: dict) -> Ticket:
    """
    Extract the referenced ticket from either payload shape.

    Raises ValueError when the ticket info is malformed or carries no id.
    """
    source = payload
    if "detail" in payload:
        if not isinstance(payload["detail"], dict):
            raise ValueError("invalid ticket info format in detail")
        source = payload["detail"]

    try:
        ticket = Ticket.model_validate(source)
    except ValidationError as exc:
        raise ValueError(f"invalid ticket info format: {exc.errors()[0]['msg']}")

    if not ticket.id:
        raise ValueError("ticket id is missing")
    return ticket
