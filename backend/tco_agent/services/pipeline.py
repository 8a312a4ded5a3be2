"""
Per-ticket processing pipeline.

Steps, in order:
  1. FetchAttachments   fatal on error
  2. Extract            fatal on any agent failure (EXTRACTION_POLICY=strict)
  3. Partition          back-fills ticket ids, splits ready / more-info
  4. TagMoreInfo        best-effort
  5. ReplyMoreInfo      error recorded, continue
  6. Ban                error recorded, continue with empty results
  7. TagNotFound        best-effort
  8. ReplyNotFound      error recorded, continue
  9. TagBanned          best-effort
 10. ReplyBanned        error recorded, stop
 11. Notify             always, exactly once

Collaborators raise; each stage turns that into an explicit error value
(see _attempt) and decides here whether the run continues.  Only the first
recorded error ends up in the outcome.
"""

import logging
from typing import Callable, List, Optional, Tuple

from tco_agent.config import (
    EXTRACTION_POLICY_PARTIAL,
    get_extraction_policy,
    load_agent_configs,
    load_system_prompt,
)
from tco_agent.errors import ExtractionError
from tco_agent.models.decision import (
    AgentSpec,
    ExtractedRecord,
    ExtractionFailure,
    OutcomeRecord,
)
from tco_agent.models.ticket import Ticket
from tco_agent.services.ban_api import BanApiClient
from tco_agent.services.classification import partition_by_required_info
from tco_agent.services.extractor import extract_data_from_attachments
from tco_agent.services.messages import ReplyTemplate
from tco_agent.services.reply_dispatcher import (
    DECISION_TAG_BANNED,
    DECISION_TAG_MORE_INFO,
    DECISION_TAG_NOT_FOUND,
    reply_to_tickets,
    tag_tickets,
)
from tco_agent.services.slack_notifier import SlackNotifier
from tco_agent.services.zendesk import ZendeskClient, remove_files

logger = logging.getLogger(__name__)

FetchAttachmentsFn = Callable[[str], List[str]]
ExtractFn = Callable[
    [List[str], List[AgentSpec], str],
    Tuple[List[ExtractedRecord], List[ExtractionFailure]],
]
BanFn = Callable[[List[ExtractedRecord]], Tuple[List[ExtractedRecord], List[ExtractedRecord]]]
ReplyFn = Callable[[str, str], None]
TagFn = Callable[[str, List[str]], None]
NotifyFn = Callable[[OutcomeRecord], None]
CleanupFn = Callable[[List[str]], None]


def _attempt(fn, *args):
    """Call fn and return (result, None) or (None, exception)."""
    try:
        return fn(*args), None
    except Exception as exc:
        return None, exc


def _no_cleanup(paths: List[str]) -> None:
    return None


class TicketPipeline:
    """Runs one ticket through extraction, ban and replies."""

    def __init__(
        self,
        fetch_attachments: FetchAttachmentsFn,
        extract: ExtractFn,
        ban: BanFn,
        reply: ReplyFn,
        tag: TagFn,
        notify: NotifyFn,
        cleanup: CleanupFn = _no_cleanup,
        agents_loader: Callable[[], List[AgentSpec]] = load_agent_configs,
        system_prompt_loader: Callable[[], str] = load_system_prompt,
        extraction_policy: Optional[str] = None,
    ):
        self.fetch_attachments = fetch_attachments
        self.extract = extract
        self.ban = ban
        self.reply = reply
        self.tag = tag
        self.notify = notify
        self.cleanup = cleanup
        self.agents_loader = agents_loader
        self.system_prompt_loader = system_prompt_loader
        self.extraction_policy = extraction_policy

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def process(self, ticket: Ticket) -> OutcomeRecord:
        """Run every step for ticket and send exactly one notification."""
        outcome = OutcomeRecord(ticket_id=ticket.id, subject=ticket.subject)
        logger.info(f"Ticket {ticket.id}: processing started")

        try:
            self._run(ticket, outcome)
        except Exception as exc:
            logger.exception(f"Ticket {ticket.id}: unexpected pipeline failure")
            outcome.record_error(exc, "unexpected error")

        self._notify(outcome)
        logger.info(
            f"Ticket {ticket.id}: finished with {len(outcome.banned)} banned, "
            f"{len(outcome.not_found)} not found, {len(outcome.more_info)} more-info"
            + (f", error: {outcome.error}" if outcome.error else "")
        )
        return outcome

    # ------------------------------------------------------------------
    # Steps
    # ------------------------------------------------------------------

    def _run(self, ticket: Ticket, outcome: OutcomeRecord) -> None:
        attachment_paths, err = _attempt(self.fetch_attachments, ticket.id)
        if err is not None:
            logger.error(f"Ticket {ticket.id}: error getting attachments: {err}")
            outcome.record_error(err, "getting attachments")
            return

        try:
            records, err, fatal = self._extract(ticket, attachment_paths)
        finally:
            self.cleanup(attachment_paths)
        if err is not None:
            logger.error(f"Ticket {ticket.id}: {err}")
            outcome.record_error(err)
            if fatal:
                return

        for record in records:
            if not record.decision.ticket_id:
                record.decision.ticket_id = ticket.id

        ready, more_info = partition_by_required_info(records)
        outcome.more_info = more_info

        tag_tickets(more_info, DECISION_TAG_MORE_INFO, self.tag)
        err = self._reply(more_info, ReplyTemplate.MORE_INFO_REQUIRED)
        if err is not None:
            logger.error(f"Ticket {ticket.id}: error replying to tickets missing info: {err}")
            outcome.record_error(err, "replying to tickets missing info")

        banned, not_found, err = self._ban(ready)
        if err is not None:
            logger.error(f"Ticket {ticket.id}: error banning users: {err}")
            outcome.record_error(err, "banning users")
        outcome.banned = banned
        outcome.not_found = not_found

        tag_tickets(not_found, DECISION_TAG_NOT_FOUND, self.tag)
        err = self._reply(not_found, ReplyTemplate.USER_NOT_FOUND)
        if err is not None:
            logger.error(f"Ticket {ticket.id}: error replying to not-found users: {err}")
            outcome.record_error(err, "replying to not-found users")

        tag_tickets(banned, DECISION_TAG_BANNED, self.tag)
        err = self._reply(banned, ReplyTemplate.USER_BANNED)
        if err is not None:
            logger.error(f"Ticket {ticket.id}: error replying to banned users: {err}")
            outcome.record_error(err, "replying to banned users")
            return

    def _extract(
        self, ticket: Ticket, attachment_paths: List[str]
    ) -> Tuple[List[ExtractedRecord], Optional[Exception], bool]:
        """Return (records, error, fatal)."""
        agents, err = _attempt(self.agents_loader)
        if err is None:
            system_prompt, err = _attempt(self.system_prompt_loader)
        if err is None:
            result, err = _attempt(self.extract, attachment_paths, agents, system_prompt)
        if err is not None:
            return [], err, True

        records, failures = result
        if not failures:
            return records, None, False

        err = ExtractionError(failures)
        policy = self.extraction_policy or get_extraction_policy()
        if policy == EXTRACTION_POLICY_PARTIAL and records:
            logger.warning(
                f"Ticket {ticket.id}: continuing with {len(records)} record(s) "
                f"despite {len(failures)} failed agent(s)"
            )
            return records, err, False
        return [], err, True

    def _reply(self, records: List[ExtractedRecord], template: ReplyTemplate) -> Optional[Exception]:
        _, err = _attempt(reply_to_tickets, records, template, self.reply)
        return err

    def _ban(
        self, ready: List[ExtractedRecord]
    ) -> Tuple[List[ExtractedRecord], List[ExtractedRecord], Optional[Exception]]:
        if not ready:
            return [], [], None
        result, err = _attempt(self.ban, ready)
        if err is not None:
            return [], [], err
        banned, not_found = result
        return banned, not_found, None

    def _notify(self, outcome: OutcomeRecord) -> None:
        _, err = _attempt(self.notify, outcome)
        if err is not None:
            logger.error(f"Ticket {outcome.ticket_id}: error sending notification: {err}")


def build_default_pipeline() -> TicketPipeline:
    """Wire the pipeline to Zendesk, the configured AI providers, the ban API and Slack."""
    zendesk = ZendeskClient()
    return TicketPipeline(
        fetch_attachments=zendesk.get_attachments,
        extract=extract_data_from_attachments,
        ban=BanApiClient().ban,
        reply=zendesk.reply,
        tag=zendesk.add_tags,
        notify=SlackNotifier().notify,
        cleanup=remove_files,
    )
