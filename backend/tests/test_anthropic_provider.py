"""
Tests for the Anthropic extraction strategy with MOCKED Claude and pdfplumber.
These tests avoid real API calls and associated costs.
"""

import json
from unittest.mock import MagicMock, Mock

import anthropic
import httpx
import pytest

from tco_agent.errors import MalformedResponseError, NetworkError
from tco_agent.services.anthropic_provider import (
    DEFAULT_CLAUDE_MODEL,
    MAX_TOKENS,
    AnthropicError,
    extract_text_from_pdf,
    extract_with_claude,
)


DECISION_TEXT = json.dumps({
    "username": "user_1",
    "email": "u1@example.com",
    "agencyName": "BKA",
    "referenceNumber": "REF-1",
    "date": "2025-01-08T10:00:00Z",
})


def _mock_response(text: str) -> Mock:
    response = Mock()
    response.content = [Mock(type="text", text=text)]
    response.usage = Mock(input_tokens=1000, output_tokens=50)
    return response


def _mock_pdf(mocker, pages):
    pdf = MagicMock()
    pdf.pages = pages
    pdf.__enter__.return_value = pdf
    return mocker.patch("pdfplumber.open", return_value=pdf)


def _page(text, tables=None):
    page = Mock()
    page.extract_text.return_value = text
    page.extract_tables.return_value = tables or []
    return page


@pytest.fixture(autouse=True)
def anthropic_env(monkeypatch):
    monkeypatch.setenv("ANTHROPIC_API_KEY", "test-key")


class TestExtractTextFromPdf:
    def test_pages_and_tables(self, mocker):
        _mock_pdf(mocker, [
            _page("Removal order", tables=[[["user", "user_1"], [None, "x"]]]),
            _page(None),
        ])

        text = extract_text_from_pdf("/tmp/order.pdf")

        assert "--- Page 1 ---\nRemoval order" in text
        assert "[Table on page 1]\nuser | user_1\n | x" in text

    def test_scanned_pdf_raises(self, mocker):
        _mock_pdf(mocker, [_page(None)])
        with pytest.raises(ValueError, match="OCR not supported"):
            extract_text_from_pdf("/tmp/scan.pdf")


class TestExtractWithClaude:
    def test_extracts_decision(self, mocker):
        _mock_pdf(mocker, [_page("Removal order for user_1")])
        mock_client = MagicMock()
        mock_client.messages.create.return_value = _mock_response(f"```json\n{DECISION_TEXT}\n```")
        constructor = mocker.patch("anthropic.Anthropic", return_value=mock_client)

        decision = extract_with_claude("prompt", ["/tmp/order.pdf"], "")

        assert decision.reference_number == "REF-1"
        constructor.assert_called_once()
        call_kwargs = mock_client.messages.create.call_args[1]
        assert call_kwargs["model"] == DEFAULT_CLAUDE_MODEL
        assert call_kwargs["max_tokens"] == MAX_TOKENS
        assert call_kwargs["system"] == "prompt"
        assert "Removal order for user_1" in call_kwargs["messages"][0]["content"]

    def test_no_attachments_still_calls_model(self, mocker):
        mock_client = MagicMock()
        mock_client.messages.create.return_value = _mock_response(DECISION_TEXT)
        mocker.patch("anthropic.Anthropic", return_value=mock_client)

        extract_with_claude("prompt", [], "claude-custom")

        call_kwargs = mock_client.messages.create.call_args[1]
        assert call_kwargs["model"] == "claude-custom"
        assert call_kwargs["messages"][0]["content"] == "No documents were attached to this ticket."

    def test_empty_response(self, mocker):
        mock_client = MagicMock()
        mock_client.messages.create.return_value = _mock_response("   ")
        mocker.patch("anthropic.Anthropic", return_value=mock_client)

        with pytest.raises(MalformedResponseError):
            extract_with_claude("prompt", [], "")

    def test_connection_error(self, mocker):
        mock_client = MagicMock()
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        mock_client.messages.create.side_effect = anthropic.APIConnectionError(request=request)
        mocker.patch("anthropic.Anthropic", return_value=mock_client)

        with pytest.raises(NetworkError):
            extract_with_claude("prompt", [], "")

    def test_status_error(self, mocker):
        mock_client = MagicMock()
        request = httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        response = httpx.Response(529, request=request)
        mock_client.messages.create.side_effect = anthropic.APIStatusError(
            "overloaded", response=response, body=None
        )
        mocker.patch("anthropic.Anthropic", return_value=mock_client)

        with pytest.raises(AnthropicError, match="529"):
            extract_with_claude("prompt", [], "")
