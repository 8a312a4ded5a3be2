"""
Parse and validate the extractor's raw text into a DecisionData.
"""

import json

from pydantic import ValidationError

from tco_agent.errors import DecisionValidationError, MalformedResponseError
from tco_agent.models.decision import DecisionData

# Checked in this order; the error message lists every missing field.
REQUIRED_FIELDS = (
    ("username", "username"),
    ("email", "email"),
    ("agencyName", "agency_name"),
    ("referenceNumber", "reference_number"),
    ("date", "date"),
)


def strip_code_fences(raw_text: str) -> str:
    """Remove a leading ```json / ``` marker and a trailing ``` marker."""
    clean = raw_text.strip()
    if clean.startswith("```json"):
        clean = clean[len("```json"):]
    elif clean.startswith("```"):
        clean = clean[len("```"):]
    if clean.endswith("```"):
        clean = clean[: -len("```")]
    return clean.strip()


def parse_decision_json(raw_text: str) -> DecisionData:
    """
    Turn the extractor's response text into a validated DecisionData.

    Raises:
        MalformedResponseError: the text is not a JSON object.
        DecisionValidationError: one or more of the five fields is empty;
            the message names all of them, in REQUIRED_FIELDS order.
    """
    clean = strip_code_fences(raw_text)

    try:
        payload = json.loads(clean)
    except json.JSONDecodeError as exc:
        raise MalformedResponseError(
            f"failed to parse decision JSON: {exc} (text: {clean})"
        )

    if not isinstance(payload, dict):
        raise MalformedResponseError(
            f"failed to parse decision JSON: expected an object (text: {clean})"
        )

    try:
        decision = DecisionData.model_validate(payload)
    except ValidationError as exc:
        raise MalformedResponseError(
            f"failed to parse decision JSON: {exc} (text: {clean})"
        )

    missing = [
        f"missing {json_name}"
        for json_name, attr in REQUIRED_FIELDS
        if not getattr(decision, attr)
    ]
    if missing:
        raise DecisionValidationError(missing)

    return decision
