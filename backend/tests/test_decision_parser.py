"""
Tests for parsing and validating extractor output.
"""

import pytest

from tco_agent.errors import DecisionValidationError, MalformedResponseError
from tco_agent.services.decision_parser import parse_decision_json, strip_code_fences


VALID_JSON = (
    '{"username": "user_1", "email": "u1@example.com", "agencyName": "BKA",'
    ' "referenceNumber": "REF-1", "date": "2025-01-08T10:00:00Z"}'
)


class TestStripCodeFences:
    def test_json_fence(self):
        assert strip_code_fences('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_plain_fence(self):
        assert strip_code_fences('```\n{"a": 1}\n```') == '{"a": 1}'

    def test_no_fence(self):
        assert strip_code_fences('  {"a": 1}  ') == '{"a": 1}'


class TestParseDecisionJson:
    def test_valid_payload(self):
        decision = parse_decision_json(VALID_JSON)
        assert decision.username == "user_1"
        assert decision.agency_name == "BKA"
        assert decision.reference_number == "REF-1"
        assert decision.ticket_id == ""

    def test_fenced_payload(self):
        decision = parse_decision_json(f"```json\n{VALID_JSON}\n```")
        assert decision.email == "u1@example.com"

    def test_unparseable_text_embeds_cleaned_text(self):
        with pytest.raises(MalformedResponseError) as exc_info:
            parse_decision_json("```json\nnot json at all\n```")
        assert "failed to parse decision JSON" in str(exc_info.value)
        assert "(text: not json at all)" in str(exc_info.value)

    def test_non_object_is_malformed(self):
        with pytest.raises(MalformedResponseError):
            parse_decision_json('["a", "b"]')

    def test_lists_every_missing_field_in_order(self):
        with pytest.raises(DecisionValidationError) as exc_info:
            parse_decision_json('{"username": "", "agencyName": "BKA", "date": null}')

        err = exc_info.value
        assert err.missing == [
            "missing username",
            "missing email",
            "missing referenceNumber",
            "missing date",
        ]
        assert str(err) == (
            "invalid decision format: missing username, missing email, "
            "missing referenceNumber, missing date"
        )
