"""
OpenAI extraction strategy (Responses API).

Each attachment is uploaded to the Files API and referenced as an
input_file item.  The request constrains the output with a strict JSON
schema naming the five decision fields.

Response text can arrive in three shapes, checked in order:
  1. top-level "output_text" string
  2. "output_text" content blocks inside "message" output items (joined by newlines)
  3. a pre-parsed payload in the first content block's text.parsed
"""

import json
import logging
import os
from pathlib import Path
from typing import Any, List, Optional

import httpx

from tco_agent.config import DEFAULT_OPENAI_MODEL, load_system_prompt, require_env
from tco_agent.errors import MalformedResponseError, PipelineError
from tco_agent.models.decision import DecisionData
from tco_agent.services.decision_parser import parse_decision_json
from tco_agent.services.http_retry import send_with_retry

logger = logging.getLogger(__name__)

OPENAI_API_BASE = "https://api.openai.com/v1"
EXTRACTION_TIMEOUT = 120.0
FILE_PURPOSE = "user_data"

OUTPUT_SCHEMA = {
    "type": "object",
    "required": ["username", "email", "agencyName", "referenceNumber", "date"],
    "properties": {
        "username": {"type": "string"},
        "email": {"type": "string"},
        "agencyName": {"type": "string"},
        "referenceNumber": {"type": "string"},
        "date": {"type": "string", "format": "date-time"},
    },
    "additionalProperties": False,
}


class OpenAIError(PipelineError):
    """The OpenAI API answered with an error status."""

    error_code = "openai_error"


def _api_base() -> str:
    return os.getenv("OPENAI_API_BASE", OPENAI_API_BASE).rstrip("/")


def upload_file(client: httpx.Client, api_key: str, file_path: str) -> str:
    """Upload one attachment and return its file id."""
    path = Path(file_path)
    request = client.build_request(
        "POST",
        f"{_api_base()}/files",
        headers={"Authorization": f"Bearer {api_key}"},
        data={"purpose": FILE_PURPOSE},
        files={"file": (path.name, path.read_bytes(), "application/pdf")},
    )
    response = send_with_retry(client, request)
    if response.status_code >= 400:
        raise OpenAIError(
            f"failed to upload file {path.name}: status {response.status_code}: {response.text}"
        )

    file_id = response.json().get("id")
    if not file_id:
        raise MalformedResponseError(f"file upload response has no id: {response.text}")
    return file_id


def build_request_body(system_prompt: str, file_ids: List[str], model: str) -> dict:
    return {
        "model": model,
        "instructions": system_prompt,
        "input": [
            {
                "role": "user",
                "content": [{"type": "input_file", "file_id": file_id} for file_id in file_ids],
            }
        ],
        "text": {
            "format": {
                "type": "json_schema",
                "name": "ExtractedData",
                "strict": True,
                "schema": OUTPUT_SCHEMA,
            }
        },
    }


def _text_value(text: Any) -> str:
    """Content-block text is either a plain string or {value|text, parsed}."""
    if isinstance(text, str):
        return text
    if isinstance(text, dict):
        return text.get("value") or text.get("text") or ""
    return ""


def _parsed_value(text: Any) -> Optional[Any]:
    if isinstance(text, dict):
        return text.get("parsed")
    return None


def extract_response_text(payload: dict) -> str:
    """
    Pull the decision text out of a Responses API body.

    Returns an empty string when none of the known shapes carries text.
    """
    text = payload.get("output_text") or ""
    output = payload.get("output") or []

    if not text and output:
        parts = []
        for item in output:
            if item.get("type") != "message":
                continue
            for block in item.get("content") or []:
                if block.get("type") == "output_text":
                    value = _text_value(block.get("text"))
                    if value:
                        parts.append(value)
        text = "\n".join(parts)

    if not text and output:
        first_content = output[0].get("content") or []
        if first_content:
            parsed = _parsed_value(first_content[0].get("text"))
            if parsed:
                text = parsed if isinstance(parsed, str) else json.dumps(parsed)

    return text


def extract_with_openai(
    system_prompt: str,
    attachment_paths: List[str],
    model: str,
    client: Optional[httpx.Client] = None,
) -> DecisionData:
    """
    Extract decision data from the attachments with an OpenAI model.

    Raises:
        ConfigError: OPENAI_API_KEY is not set.
        NetworkError: the API was unreachable after retries.
        OpenAIError: the API answered with an error status.
        MalformedResponseError / DecisionValidationError: see parse_decision_json.
    """
    api_key = require_env("OPENAI_API_KEY")

    model = (model or "").strip() or os.getenv("OPENAI_MODEL", "").strip() or DEFAULT_OPENAI_MODEL
    if not system_prompt:
        system_prompt = load_system_prompt()

    owns_client = client is None
    if client is None:
        client = httpx.Client(timeout=EXTRACTION_TIMEOUT)

    try:
        file_ids = [upload_file(client, api_key, path) for path in attachment_paths]

        request = client.build_request(
            "POST",
            f"{_api_base()}/responses",
            headers={"Authorization": f"Bearer {api_key}"},
            json=build_request_body(system_prompt, file_ids, model),
        )
        response = send_with_retry(client, request)
    finally:
        if owns_client:
            client.close()

    if response.status_code >= 400:
        raise OpenAIError(f"OpenAI API returned status {response.status_code}: {response.text}")

    try:
        payload = response.json()
    except ValueError as exc:
        raise MalformedResponseError(f"failed to parse OpenAI response: {exc}")
    if not isinstance(payload, dict):
        raise MalformedResponseError(f"unexpected OpenAI response: {response.text}")

    text = extract_response_text(payload)
    if not text:
        raise MalformedResponseError("no decision text found in OpenAI response")

    logger.debug(f"OpenAI model {model} returned: {text}")
    return parse_decision_json(text)
