"""
Pydantic models for extraction results and per-ticket outcomes.

Models:
  AgentSpec          — one configured (provider, model) pair
  DecisionData       — fields extracted from a removal order document
  ExtractedRecord    — one agent's successful extraction for a ticket
  ExtractionFailure  — one agent's failed extraction for a ticket
  OutcomeRecord      — per-ticket summary handed to the notifier
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from tco_agent.errors import PipelineStepError

logger = logging.getLogger(__name__)


class AgentSpec(BaseModel):
    """A provider/model pair used to run extraction. Immutable."""

    model_config = {"frozen": True}

    provider: str
    model: str


class DecisionData(BaseModel):
    """
    Fields a reviewer needs to act on a removal order.

    The extractor emits camelCase keys (agencyName, referenceNumber, ticketId);
    the aliases map them onto snake_case attributes and back when the record
    is sent to the ban API.
    """

    model_config = {"populate_by_name": True, "extra": "ignore"}

    username: str = ""
    email: str = ""
    agency_name: str = Field(default="", alias="agencyName")
    reference_number: str = Field(default="", alias="referenceNumber")
    date: str = ""
    ticket_id: str = Field(default="", alias="ticketId")

    @field_validator("*", mode="before")
    @classmethod
    def _none_as_empty(cls, value):
        # Extractors occasionally emit null instead of an empty string
        return "" if value is None else value


class ExtractedRecord(BaseModel):
    """One agent's extraction result; note is set when classification fails."""

    agent: AgentSpec
    decision: DecisionData
    note: str = ""

    def to_ban_payload(self) -> dict:
        return {
            "agent": self.agent.model_dump(),
            "data": self.decision.model_dump(by_alias=True),
            "reason": self.note,
        }


class ExtractionFailure(BaseModel):
    """One agent's failed extraction."""

    model_config = {"arbitrary_types_allowed": True}

    agent: AgentSpec
    cause: Exception


@dataclass
class OutcomeRecord:
    """
    Accumulated result of one pipeline run.

    Only the first error is kept; later errors are logged by the caller and
    dropped here.
    """
    ticket_id: str
    subject: str = ""
    banned: List[ExtractedRecord] = field(default_factory=list)
    not_found: List[ExtractedRecord] = field(default_factory=list)
    more_info: List[ExtractedRecord] = field(default_factory=list)
    error: Optional[Exception] = None

    def record_error(self, err: Optional[Exception], context: str = "") -> None:
        """Keep err (prefixed with context) unless an earlier error is already recorded."""
        if err is None:
            return
        if context:
            err = PipelineStepError(context, err)
        if self.error is None:
            self.error = err
        else:
            logger.info(f"Ticket {self.ticket_id}: not recording later error: {err}")

    @property
    def action_count(self) -> int:
        return len(self.banned) + len(self.not_found) + len(self.more_info)

