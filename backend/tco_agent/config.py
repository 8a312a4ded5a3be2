"""
Runtime configuration.

Every setting is read from the environment at call time so tests can patch
os.environ freely.  A .env file is loaded once by tco_agent.main.

Environment variables
---------------------
AI_MODELS                 Comma-separated agent list, e.g. "openai:gpt-5-mini, anthropic:claude-sonnet-4-5".
                          Bare tokens (no colon) use the default provider.
AI_PROVIDER               Provider used when AI_MODELS is empty (default: "openai").
OPENAI_MODEL              Model for the OpenAI strategy when the agent model is blank.
AI_SYSTEM_PROMPT          Inline system prompt (OPENAI_SYSTEM_PROMPT is the legacy alias).
AI_SYSTEM_PROMPT_FILE     Prompt file; .json files are validated and minified.
EXTRACTION_POLICY         "strict" (default) or "partial".
ZENDESK_TCO_EMAIL         Expected ticket recipient; unset disables the filter.
HTTP_TIMEOUT_SECONDS      Timeout for ticketing, ban and notification calls (default: 30).
"""

import json
import logging
import os
from pathlib import Path
from typing import List

from tco_agent.errors import ConfigError
from tco_agent.models.decision import AgentSpec

logger = logging.getLogger(__name__)

DEFAULT_PROVIDER = "openai"
DEFAULT_OPENAI_MODEL = "gpt-5-mini"
DEFAULT_HTTP_TIMEOUT = 30.0

EXTRACTION_POLICY_STRICT = "strict"
EXTRACTION_POLICY_PARTIAL = "partial"

DEFAULT_SYSTEM_PROMPT = """\
You are a compliance assistant for an online dating service. You receive a removal order
issued by a competent authority under Regulation (EU) 2021/784 on addressing the dissemination
of terrorist content online (TCO). Read every attached document and extract the details needed
to locate the reported account.

Extract these fields:
- username: The username or display name of the reported account, exactly as written.
- email: The e-mail address of the reported account, exactly as written.
- agencyName: The name of the authority that issued the order.
- referenceNumber: The order's reference or file number.
- date: The date the order was issued, in ISO 8601 format (YYYY-MM-DDTHH:MM:SSZ).

Rules:
- Never guess. If a field is not present in the documents, return an empty string for it.
- Copy identifiers verbatim; do not normalise case or whitespace.
- If several accounts are listed, report the first one.

Respond with ONLY valid JSON matching this schema:
{
  "username": string,
  "email": string,
  "agencyName": string,
  "referenceNumber": string,
  "date": string
}
"""


def parse_agent_list(raw: str) -> List[AgentSpec]:
    """
    Parse a comma-separated "provider:model" list into AgentSpecs.

    Order is preserved, blank segments are dropped, providers are
    lower-cased, and tokens without a colon use DEFAULT_PROVIDER.  Never
    raises; an empty or whitespace-only string yields [].
    """
    raw = (raw or "").strip()
    if not raw:
        return []

    agents: List[AgentSpec] = []
    for part in raw.split(","):
        part = part.strip()
        if not part:
            continue

        provider = DEFAULT_PROVIDER
        model = part
        if ":" in part:
            prefix, _, model = part.partition(":")
            provider = prefix.strip().lower() or DEFAULT_PROVIDER
            model = model.strip()

        agents.append(AgentSpec(provider=provider, model=model))

    return agents


def load_agent_configs() -> List[AgentSpec]:
    """
    Build the agent list from AI_MODELS, falling back to a single
    AI_PROVIDER / default-model agent when AI_MODELS is empty.
    """
    agents = parse_agent_list(os.getenv("AI_MODELS", ""))
    if agents:
        return agents

    provider = os.getenv("AI_PROVIDER", "").strip().lower() or DEFAULT_PROVIDER
    return [AgentSpec(provider=provider, model=DEFAULT_OPENAI_MODEL)]


def _read_prompt_file(path: str) -> str:
    """Read a prompt file, minifying it when it holds JSON."""
    prompt_path = Path(path)
    try:
        text = prompt_path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigError(f"AI_SYSTEM_PROMPT_FILE {path!r} cannot be read: {exc}")

    if prompt_path.suffix.lower() == ".json":
        try:
            data = json.loads(text)
        except json.JSONDecodeError as exc:
            raise ConfigError(f"AI_SYSTEM_PROMPT_FILE {path!r} is not valid JSON: {exc}")
        return json.dumps(data, separators=(",", ":"), ensure_ascii=False)

    return text.strip()


def load_system_prompt() -> str:
    """
    Resolve the extraction system prompt.

    Priority:
      1. AI_SYSTEM_PROMPT
      2. OPENAI_SYSTEM_PROMPT (legacy name)
      3. AI_SYSTEM_PROMPT_FILE
      4. DEFAULT_SYSTEM_PROMPT
    """
    for name in ("AI_SYSTEM_PROMPT", "OPENAI_SYSTEM_PROMPT"):
        prompt = os.getenv(name, "").strip()
        if prompt:
            return prompt

    prompt_file = os.getenv("AI_SYSTEM_PROMPT_FILE", "").strip()
    if prompt_file:
        prompt = _read_prompt_file(prompt_file)
        if prompt:
            return prompt

    return DEFAULT_SYSTEM_PROMPT


def get_extraction_policy() -> str:
    """Return "strict" or "partial"; unknown values fall back to strict."""
    policy = os.getenv("EXTRACTION_POLICY", EXTRACTION_POLICY_STRICT).strip().lower()
    if policy not in (EXTRACTION_POLICY_STRICT, EXTRACTION_POLICY_PARTIAL):
        logger.warning(f"Unknown EXTRACTION_POLICY {policy!r}; using {EXTRACTION_POLICY_STRICT!r}")
        return EXTRACTION_POLICY_STRICT
    return policy


def get_http_timeout() -> float:
    raw = os.getenv("HTTP_TIMEOUT_SECONDS", "").strip()
    if not raw:
        return DEFAULT_HTTP_TIMEOUT
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid HTTP_TIMEOUT_SECONDS {raw!r}; using {DEFAULT_HTTP_TIMEOUT}")
        return DEFAULT_HTTP_TIMEOUT


def get_expected_recipient() -> str:
    return os.getenv("ZENDESK_TCO_EMAIL", "").strip()


def require_env(name: str) -> str:
    """Return a required environment variable or raise ConfigError."""
    value = os.getenv(name, "").strip()
    if not value:
        raise ConfigError(f"{name} is not set")
    return value
