"""
Zendesk ticketing client.

Covers what the pipeline needs (fetch tickets, download PDF attachments,
reply, tag) plus read helpers used to verify that processed tickets show
up in the agents' view.

Environment variables
---------------------
ZENDESK_DOMAIN    Subdomain, e.g. "acme" for acme.zendesk.com.
ZENDESK_USER      Agent e-mail used for API-token auth.
ZENDESK_API_KEY   API token.
"""

import logging
import os
import tempfile
from typing import List, Optional

import httpx

from tco_agent.config import get_http_timeout, require_env
from tco_agent.errors import DeliveryError, TicketingError
from tco_agent.models.ticket import Ticket, TicketAttachment, coerce_id
from tco_agent.services.http_retry import send_with_retry
from tco_agent.services.reply_dispatcher import (
    AGENT_TAG,
    DECISION_TAG_BANNED,
    DECISION_TAG_MORE_INFO,
    DECISION_TAG_NOT_FOUND,
)

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
HANDLED_TICKETS_VIEW = "TCO - Handled Tickets"


class ZendeskClient:
    """Thin wrapper over the Zendesk REST API v2."""

    def __init__(
        self,
        domain: Optional[str] = None,
        user: Optional[str] = None,
        api_key: Optional[str] = None,
        client: Optional[httpx.Client] = None,
    ):
        self.domain = domain
        self.user = user
        self.api_key = api_key
        self._client = client

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    def _base_url(self) -> str:
        domain = self.domain or require_env("ZENDESK_DOMAIN")
        return f"https://{domain}.zendesk.com/api/v2"

    def _auth(self) -> httpx.BasicAuth:
        user = self.user or require_env("ZENDESK_USER")
        api_key = self.api_key or require_env("ZENDESK_API_KEY")
        return httpx.BasicAuth(f"{user}/token", api_key)

    def _send(
        self, method: str, url: str, follow_redirects: bool = False, **kwargs
    ) -> httpx.Response:
        auth = self._auth()
        client = self._client or httpx.Client(timeout=get_http_timeout())
        try:
            request = client.build_request(method, url, **kwargs)
            return send_with_retry(
                client, request, auth=auth, follow_redirects=follow_redirects
            )
        finally:
            if self._client is None:
                client.close()

    def _get_json(self, path: str, what: str, params: Optional[dict] = None) -> dict:
        response = self._send("GET", f"{self._base_url()}{path}", params=params)
        if response.status_code >= 300:
            raise TicketingError(f"failed to {what}: status {response.status_code}: {response.text}")
        try:
            return response.json()
        except ValueError as exc:
            raise TicketingError(f"failed to parse response while trying to {what}: {exc}")

    # ------------------------------------------------------------------
    # Tickets
    # ------------------------------------------------------------------

    def fetch_ticket(self, ticket_id: str) -> Ticket:
        """Fetch a single ticket; includes fields (e.g. recipient) the bulk call may omit."""
        data = self._get_json(f"/tickets/{ticket_id}.json", f"fetch ticket {ticket_id}")
        ticket = data.get("ticket")
        if not ticket:
            raise TicketingError(f"ticket {ticket_id} missing from response")
        return Ticket.model_validate(ticket)

    def fetch_tickets(self, ticket_ids: List[str]) -> List[Ticket]:
        data = self._get_json(
            "/tickets.json", "fetch tickets", params={"ids": ",".join(ticket_ids)}
        )
        return [Ticket.model_validate(t) for t in data.get("tickets") or []]

    def get_ticket_comments(self, ticket_id: str) -> List[dict]:
        data = self._get_json(
            f"/tickets/{ticket_id}/comments.json", f"get comments for ticket {ticket_id}"
        )
        return data.get("comments") or []

    # ------------------------------------------------------------------
    # Attachments
    # ------------------------------------------------------------------

    def list_attachments(self, ticket_id: str) -> List[TicketAttachment]:
        attachments: List[TicketAttachment] = []
        for comment in self.get_ticket_comments(ticket_id):
            for raw in comment.get("attachments") or []:
                attachments.append(TicketAttachment.model_validate(raw))
        return attachments

    def download_attachment(self, ticket_id: str, attachment: TicketAttachment) -> str:
        """Download one attachment into a temp file and return its path."""
        # content_url is a signed link on a different host; Zendesk redirects it.
        response = self._send("GET", attachment.content_url, follow_redirects=True)
        if response.status_code >= 300:
            raise TicketingError(
                f"failed to download attachment {attachment.file_name} of ticket {ticket_id}: "
                f"status {response.status_code}"
            )

        with tempfile.NamedTemporaryFile(
            prefix=f"{ticket_id}-attachment-", suffix=".pdf", delete=False
        ) as tmp:
            tmp.write(response.content)
            return tmp.name

    def get_attachments(self, ticket_id: str) -> List[str]:
        """
        Download every PDF attached to the ticket.

        Returns local temp file paths; the caller owns (and deletes) them.
        Non-PDF attachments are ignored.
        """
        paths: List[str] = []
        try:
            for attachment in self.list_attachments(ticket_id):
                if attachment.content_type != PDF_CONTENT_TYPE:
                    logger.info(
                        f"Ticket {ticket_id}: skipping non-PDF attachment "
                        f"{attachment.file_name!r} ({attachment.content_type})"
                    )
                    continue
                paths.append(self.download_attachment(ticket_id, attachment))
        except Exception:
            remove_files(paths)
            raise

        logger.info(f"Ticket {ticket_id}: downloaded {len(paths)} PDF attachment(s)")
        return paths

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def reply(self, ticket_id: str, message: str) -> None:
        """Append a public comment to the ticket."""
        response = self._send(
            "PUT",
            f"{self._base_url()}/tickets/{ticket_id}.json",
            json={"ticket": {"comment": {"body": message, "public": True}}},
        )
        if response.status_code >= 300:
            raise DeliveryError(
                f"failed to add comment to ticket {ticket_id}: "
                f"status {response.status_code}: {response.text}"
            )

    def add_tags(self, ticket_id: str, tags: List[str]) -> None:
        """Add tags to the ticket, keeping the ones it already has."""
        if not tags:
            return
        response = self._send(
            "PUT",
            f"{self._base_url()}/tickets/{ticket_id}/tags.json",
            json={"tags": tags},
        )
        if response.status_code >= 300:
            raise DeliveryError(
                f"failed to tag ticket {ticket_id}: "
                f"status {response.status_code}: {response.text}"
            )

    # ------------------------------------------------------------------
    # Views
    # ------------------------------------------------------------------

    def get_ticket_tags(self, ticket_id: str) -> List[str]:
        data = self._get_json(f"/tickets/{ticket_id}.json", f"get ticket {ticket_id}")
        return (data.get("ticket") or {}).get("tags") or []

    def find_view_id(self, view_title: str) -> str:
        data = self._get_json("/views.json", "list views")
        views = data.get("views") or []
        for view in views:
            if view.get("title") == view_title:
                return coerce_id(view.get("id"))
        titles = [view.get("title") for view in views]
        raise TicketingError(f"view {view_title!r} not found. Available views: {titles}")

    def is_ticket_in_view(self, ticket_id: str, view_title: str = HANDLED_TICKETS_VIEW) -> bool:
        """
        Execute the view and look for ticket_id in its rows.

        Raises:
            TicketingError: when the ticket is absent, explaining which of
                the pipeline's tags it is missing.
        """
        view_id = self.find_view_id(view_title)
        data = self._get_json(f"/views/{view_id}/execute.json", "execute view")

        for row in data.get("rows") or []:
            row_ticket = row.get("ticket") or {}
            for candidate in (row_ticket.get("id"), row.get("ticket_id"), row.get("id")):
                if candidate is not None:
                    if coerce_id(candidate) == ticket_id:
                        return True
                    break

        tags = self.get_ticket_tags(ticket_id)
        if AGENT_TAG not in tags:
            raise TicketingError(
                f"ticket not in view: missing required tag {AGENT_TAG!r}. Current tags: {tags}"
            )
        decision_tags = {DECISION_TAG_BANNED, DECISION_TAG_NOT_FOUND, DECISION_TAG_MORE_INFO}
        if not decision_tags.intersection(tags):
            raise TicketingError(f"ticket not in view: missing decision tag. Current tags: {tags}")
        raise TicketingError(
            "ticket not in view (may need time to index or may not meet other criteria "
            f"like status). Current tags: {tags}"
        )


def remove_files(paths: List[str]) -> None:
    """Delete temp files, logging (not raising) failures."""
    for path in paths:
        try:
            os.remove(path)
        except FileNotFoundError:
            pass
        except OSError as exc:
            logger.warning(f"Could not remove temp file {path}: {exc}")
