"""
Removal-order extraction service.

Runs every configured agent against the same attachment set and collects
successes and failures independently: one agent failing never stops the
others.

Adding a new provider:
  1. Write a function (system_prompt, attachment_paths, model) -> DecisionData.
  2. Register it with register_provider("<name>", fn), or add it to _PROVIDERS.
  3. Reference it in AI_MODELS as "<name>:<model>".
"""

import logging
from typing import Callable, List, Optional, Tuple

from tco_agent.config import DEFAULT_OPENAI_MODEL, DEFAULT_PROVIDER, load_system_prompt
from tco_agent.errors import UnsupportedProviderError
from tco_agent.models.decision import (
    AgentSpec,
    DecisionData,
    ExtractedRecord,
    ExtractionFailure,
)
from tco_agent.services.anthropic_provider import extract_with_claude
from tco_agent.services.openai_provider import extract_with_openai

logger = logging.getLogger(__name__)

ProviderRunner = Callable[[str, List[str], str], DecisionData]


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

_PROVIDERS: dict[str, ProviderRunner] = {
    "openai": extract_with_openai,
    "anthropic": extract_with_claude,
}


def register_provider(name: str, runner: ProviderRunner) -> None:
    """Register (or replace) the extraction strategy for a provider name."""
    _PROVIDERS[name.strip().lower()] = runner


def get_provider(name: str) -> Optional[ProviderRunner]:
    return _PROVIDERS.get(name)


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------

def extract_data_from_attachments(
    attachment_paths: List[str],
    agents: List[AgentSpec],
    system_prompt: Optional[str] = None,
) -> Tuple[List[ExtractedRecord], List[ExtractionFailure]]:
    """
    Run each agent in order against the attachments.

    Args:
        attachment_paths: Local file paths (may be empty).
        agents: Agents to run; an empty list is replaced by a single default agent.
        system_prompt: Instructions for the model; resolved from the
            environment when None.

    Returns:
        (records, failures) — one entry per agent in one of the two lists,
        each in agent order.
    """
    if system_prompt is None:
        system_prompt = load_system_prompt()

    if not agents:
        agents = [AgentSpec(provider=DEFAULT_PROVIDER, model=DEFAULT_OPENAI_MODEL)]

    records: List[ExtractedRecord] = []
    failures: List[ExtractionFailure] = []

    for agent in agents:
        runner = get_provider(agent.provider)
        if runner is None:
            logger.warning(f"No extraction strategy registered for provider {agent.provider!r}")
            failures.append(
                ExtractionFailure(agent=agent, cause=UnsupportedProviderError(agent.provider))
            )
            continue

        try:
            decision = runner(system_prompt, attachment_paths, agent.model)
        except Exception as exc:
            logger.error(f"Extraction with {agent.provider}:{agent.model} failed: {exc}")
            failures.append(ExtractionFailure(agent=agent, cause=exc))
            continue

        records.append(ExtractedRecord(agent=agent, decision=decision))

    logger.info(
        f"Extraction finished: {len(records)} record(s), {len(failures)} failure(s) "
        f"from {len(agents)} agent(s)"
    )
    return records, failures
