"""
Ticketing models.

These mirror the subset of the ticketing API's JSON that the pipeline uses.
Unknown fields are ignored so API additions never break parsing.
"""

from typing import Optional

from pydantic import BaseModel, field_validator


def coerce_id(value) -> str:
    """Ticket and attachment ids arrive as JSON numbers or strings."""
    if value is None:
        return ""
    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    return str(value)


class Ticket(BaseModel):
    """A ticket as returned by the ticketing API. Treated as immutable."""

    model_config = {"extra": "ignore", "frozen": True}

    id: str
    subject: str = ""
    description: str = ""
    status: str = ""
    created_at: str = ""
    updated_at: str = ""
    recipient: Optional[str] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_string(cls, value):
        return coerce_id(value)

    @field_validator("subject", "description", "status", "created_at", "updated_at", mode="before")
    @classmethod
    def _null_as_empty(cls, value):
        return "" if value is None else value


class TicketAttachment(BaseModel):
    """A file attached to one of the ticket's comments."""

    model_config = {"extra": "ignore"}

    id: str = ""
    file_name: str = "attachment"
    content_type: str = "application/octet-stream"
    content_url: str = ""
    size: Optional[int] = None

    @field_validator("id", mode="before")
    @classmethod
    def _id_as_string(cls, value):
        return coerce_id(value)
