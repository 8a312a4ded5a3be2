"""
Tests for the multi-agent extraction fan-out and provider registry.

Provider strategies are replaced with plain functions; no API calls.
"""

from unittest.mock import Mock

import pytest

from tco_agent.errors import NetworkError, UnsupportedProviderError
from tco_agent.models.decision import AgentSpec, DecisionData
from tco_agent.services import extractor
from tco_agent.services.extractor import (
    extract_data_from_attachments,
    get_provider,
    register_provider,
)


def _decision(username: str) -> DecisionData:
    return DecisionData(
        username=username,
        email=f"{username}@example.com",
        agency_name="BKA",
        reference_number="REF-1",
        date="2025-01-08T10:00:00Z",
    )


@pytest.fixture()
def providers(monkeypatch):
    """Isolated registry with two fake providers."""
    ok = Mock(side_effect=lambda prompt, paths, model: _decision(model))
    broken = Mock(side_effect=NetworkError("connection refused"))
    monkeypatch.setattr(extractor, "_PROVIDERS", {"ok": ok, "broken": broken})
    return ok, broken


class TestProviderRegistry:
    def test_builtin_providers_are_registered(self):
        assert get_provider("openai") is not None
        assert get_provider("anthropic") is not None

    def test_register_provider_normalizes_name(self, providers):
        runner = Mock()
        register_provider("  Custom ", runner)
        assert get_provider("custom") is runner


class TestExtractDataFromAttachments:
    def test_all_agents_succeed_in_order(self, providers):
        ok, _ = providers
        agents = [AgentSpec(provider="ok", model="a"), AgentSpec(provider="ok", model="b")]

        records, failures = extract_data_from_attachments(["/tmp/x.pdf"], agents, "prompt")

        assert failures == []
        assert [r.decision.username for r in records] == ["a", "b"]
        assert records[0].agent == agents[0]
        ok.assert_any_call("prompt", ["/tmp/x.pdf"], "a")

    def test_failures_do_not_stop_later_agents(self, providers):
        agents = [
            AgentSpec(provider="broken", model="x"),
            AgentSpec(provider="missing", model="y"),
            AgentSpec(provider="ok", model="z"),
        ]

        records, failures = extract_data_from_attachments([], agents, "prompt")

        assert [r.decision.username for r in records] == ["z"]
        assert [f.agent.provider for f in failures] == ["broken", "missing"]
        assert isinstance(failures[0].cause, NetworkError)
        assert isinstance(failures[1].cause, UnsupportedProviderError)
        assert str(failures[1].cause) == "unsupported provider missing"

    def test_empty_agent_list_uses_default_agent(self, monkeypatch):
        runner = Mock(return_value=_decision("default"))
        monkeypatch.setattr(extractor, "_PROVIDERS", {"openai": runner})

        records, failures = extract_data_from_attachments([], [], "prompt")

        assert failures == []
        assert records[0].agent == AgentSpec(provider="openai", model="gpt-5-mini")

    def test_system_prompt_resolved_from_environment(self, providers, monkeypatch):
        ok, _ = providers
        monkeypatch.setenv("AI_SYSTEM_PROMPT", "env prompt")

        extract_data_from_attachments([], [AgentSpec(provider="ok", model="a")])

        ok.assert_called_once_with("env prompt", [], "a")
