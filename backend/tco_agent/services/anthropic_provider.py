"""
Anthropic extraction strategy.

Attachments are converted to text with pdfplumber and sent to Claude
together with the system prompt.  Scanned PDFs (no text layer) are not
supported.
"""

import logging
import os
from typing import List

import anthropic
import pdfplumber

from tco_agent.config import require_env
from tco_agent.errors import MalformedResponseError, NetworkError, PipelineError
from tco_agent.models.decision import DecisionData
from tco_agent.services.decision_parser import parse_decision_json

logger = logging.getLogger(__name__)

# Model configuration
DEFAULT_CLAUDE_MODEL = "claude-sonnet-4-5-20250929"
MAX_TOKENS = 1024
EXTRACTION_TIMEOUT = 120.0
# The SDK retries connection errors itself; 2 retries = 3 attempts.
MAX_RETRIES = 2


class AnthropicError(PipelineError):
    """The Anthropic API answered with an error status."""

    error_code = "anthropic_error"


def extract_text_from_pdf(pdf_path: str) -> str:
    """
    Extract text from a PDF using pdfplumber.
    Tables are flattened to pipe-separated rows.
    """
    text_parts = []

    with pdfplumber.open(pdf_path) as pdf:
        for i, page in enumerate(pdf.pages, start=1):
            page_text = page.extract_text()
            if page_text:
                text_parts.append(f"--- Page {i} ---\n{page_text}")

            for table in page.extract_tables():
                rows = [
                    " | ".join(str(cell).strip() if cell else "" for cell in row)
                    for row in table or []
                ]
                if rows:
                    text_parts.append(f"[Table on page {i}]\n" + "\n".join(rows))

    full_text = "\n\n".join(text_parts)

    if not full_text.strip():
        raise ValueError(
            f"No text extracted from {os.path.basename(pdf_path)}. "
            "The PDF may be scanned/image-based (OCR not supported)."
        )

    return full_text


def _build_user_message(attachment_paths: List[str]) -> str:
    if not attachment_paths:
        return "No documents were attached to this ticket."

    sections = []
    for index, path in enumerate(attachment_paths, start=1):
        sections.append(
            f"=== DOCUMENT {index}: {os.path.basename(path)} ===\n{extract_text_from_pdf(path)}"
        )
    return "\n\n".join(sections)


def extract_with_claude(
    system_prompt: str,
    attachment_paths: List[str],
    model: str,
) -> DecisionData:
    """
    Extract decision data from the attachments with a Claude model.

    Raises:
        ConfigError: ANTHROPIC_API_KEY is not set.
        NetworkError: the API was unreachable after the SDK's retries.
        AnthropicError: the API answered with an error status.
        MalformedResponseError / DecisionValidationError: see parse_decision_json.
    """
    api_key = require_env("ANTHROPIC_API_KEY")
    model = (model or "").strip() or DEFAULT_CLAUDE_MODEL

    user_message = _build_user_message(attachment_paths)

    client = anthropic.Anthropic(
        api_key=api_key,
        timeout=EXTRACTION_TIMEOUT,
        max_retries=MAX_RETRIES,
    )

    try:
        response = client.messages.create(
            model=model,
            max_tokens=MAX_TOKENS,
            system=system_prompt,
            messages=[{"role": "user", "content": user_message}],
        )
    except anthropic.APIConnectionError as exc:
        raise NetworkError(f"Anthropic API unreachable: {exc}")
    except anthropic.APIStatusError as exc:
        raise AnthropicError(f"Anthropic API returned status {exc.status_code}: {exc.message}")

    text_blocks = [
        block.text for block in response.content if getattr(block, "type", "text") == "text"
    ]
    raw_text = "\n".join(text_blocks).strip()
    if not raw_text:
        raise MalformedResponseError("no decision text found in Anthropic response")

    logger.info(
        f"Claude {model} extraction used {response.usage.input_tokens} input / "
        f"{response.usage.output_tokens} output tokens"
    )
    return parse_decision_json(raw_text)
