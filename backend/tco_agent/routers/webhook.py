"""
Ticket webhook router.

Receives the ticketing system's "ticket created" webhook, fetches the
referenced ticket, and launches one background pipeline run per ticket
addressed to the removal-order mailbox.  The handler never waits for a run
to finish.

Endpoints:
  POST /                       - ticket webhook (auth: bearer token or preshared key)
  GET  /, /ping, /health       - health checks, empty 200
"""

import logging
from typing import List

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from starlette.concurrency import run_in_threadpool

from tco_agent.auth import verify_webhook_token
from tco_agent.config import get_expected_recipient
from tco_agent.models.ticket import Ticket
from tco_agent.services.launcher import TicketLauncher, get_ticket_launcher
from tco_agent.services.webhook_adapter import normalize_ticket_reference, parse_payload
from tco_agent.services.zendesk import ZendeskClient

logger = logging.getLogger(__name__)

router = APIRouter()


def get_zendesk_client() -> ZendeskClient:
    return ZendeskClient()


# ---------------------------------------------------------------------------
# Internal helpers
# ---------------------------------------------------------------------------

def _fetch_tickets(zendesk: ZendeskClient, ticket_id: str) -> List[Ticket]:
    """
    Fetch the ticket individually (the single-ticket call returns more
    fields, e.g. recipient), falling back to the bulk endpoint.

    Raises whatever the bulk fetch raises.
    """
    try:
        ticket = zendesk.fetch_ticket(ticket_id)
        logger.info(f"Fetched ticket {ticket_id} individually")
        return [ticket]
    except Exception as exc:
        logger.warning(f"Single fetch of ticket {ticket_id} failed, trying bulk fetch: {exc}")
    return zendesk.fetch_tickets([ticket_id])


def _has_expected_recipient(ticket: Ticket, fetched_count: int, expected: str) -> bool:
    if not expected:
        return True
    if ticket.recipient is None:
        # Some API responses omit recipient; a lone ticket is processed anyway.
        if fetched_count == 1:
            logger.info(f"Ticket {ticket.id} has no recipient field, processing single ticket anyway")
            return True
        logger.info(f"Ticket {ticket.id} has no recipient field set")
        return False
    if ticket.recipient != expected:
        logger.info(
            f"Ticket {ticket.id} recipient {ticket.recipient} does not match expected {expected}"
        )
        return False
    return True


def filter_by_recipient(tickets: List[Ticket], expected: str) -> List[Ticket]:
    matching = [t for t in tickets if _has_expected_recipient(t, len(tickets), expected)]
    if not matching and tickets:
        logger.warning(f"No tickets matched recipient filter. Total tickets: {len(tickets)}")
    return matching


# ---------------------------------------------------------------------------
# Endpoints
# ---------------------------------------------------------------------------

@router.post("/")
async def receive_ticket_webhook(
    request: Request,
    _: None = Depends(verify_webhook_token),
    zendesk: ZendeskClient = Depends(get_zendesk_client),
    launcher: TicketLauncher = Depends(get_ticket_launcher),
) -> Response:
    """
    Accept a ticket webhook and process matching tickets in the background.

    Responds 400 for an unreadable payload, 404 when the ticket does not
    exist, 500 when the ticket could not be fetched, and 200 otherwise.
    """
    body = await request.body()
    try:
        reference = normalize_ticket_reference(parse_payload(body))
    except ValueError as exc:
        logger.error(f"Webhook payload rejected: {exc}; body: {body[:500]!r}")
        raise HTTPException(status_code=400, detail=str(exc))

    try:
        tickets = await run_in_threadpool(_fetch_tickets, zendesk, reference.id)
    except Exception as exc:
        logger.error(f"Error fetching ticket {reference.id}: {exc}")
        raise HTTPException(status_code=500, detail="Error fetching ticket data")

    if not tickets:
        logger.warning(f"Ticket not found: {reference.id}")
        raise HTTPException(status_code=404, detail="Ticket not found")

    for ticket in filter_by_recipient(tickets, get_expected_recipient()):
        launcher.launch(ticket)

    return Response(status_code=200)


@router.get("/")
@router.get("/ping")
@router.get("/health")
async def health() -> Response:
    return Response(status_code=200)
