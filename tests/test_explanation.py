"""
Tests for projection_service/explanation.py - fact bundle and caching.
"""

import asyncio
from dataclasses import replace
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest

import projection_service.explanation as explanation_module
from conftest import make_fragment
from projection_core.decision import Decision, build_context_text
from projection_core.scoring import DecisionResult
from projection_core.values import ValueAxis
from projection_service.errors import DecisionNotFoundError
from projection_service.explanation import (
    SYSTEM_PROMPT,
    ExplanationContext,
    ExplanationService,
    OpenAIExplanationProvider,
    build_explanation_context,
    build_explanation_prompt,
    parse_explanation_response,
)


@pytest.fixture
def explanation_service(decision_store, explanation_port):
    return ExplanationService(decision_store, explanation_port)


class TestBuildContext:

    @pytest.mark.asyncio
    async def test_facts(self, projection_service, evidence_store, embeddings):
        vector = embeddings.vector_for(
            build_context_text("Pick a city", "Berlin", "Lisbon", ValueAxis.GROWTH))
        for i in range(7):
            await evidence_store.add(make_fragment(vector, valence=0.5, fragment_id=f"f{i}"))
        decision = await projection_service.create_decision(
            "user-1", "Pick a city", "Berlin", "Lisbon", priority_axis=ValueAxis.GROWTH)

        context = build_explanation_context(decision)
        assert context.decision_id == decision.id
        assert context.probability_a == decision.result.probability_a
        assert context.priority_axis == "Growth/Learning"
        assert context.data_reliability == "LOW"
        assert len(context.top_fragments) == 5
        assert set(context.value_alignment) == {axis.key for axis in ValueAxis}

        data = context.to_dict()
        assert data['regret_level_a'] == decision.result.regret_level_a.value
        assert set(data['top_fragments'][0]) == {'summary', 'favors'}


class TestExplanationService:

    @pytest.mark.asyncio
    async def test_generated_once_and_cached(self, projection_service, explanation_service,
                                             explanation_port, decision_store):
        decision = await projection_service.create_decision("user-1", "Pick a city",
                                                            "Berlin", "Lisbon")
        first = await explanation_service.explain("user-1", decision.id)
        second = await explanation_service.explain("user-1", decision.id)

        assert first == second
        assert first.summary == "Projection for 'Pick a city'"
        assert len(explanation_port.contexts) == 1
        assert (await decision_store.get(decision.id)).explanation == first

    @pytest.mark.asyncio
    async def test_foreign_user(self, projection_service, explanation_service, explanation_port):
        decision = await projection_service.create_decision("user-1", "Pick a city",
                                                            "Berlin", "Lisbon")
        with pytest.raises(DecisionNotFoundError):
            await explanation_service.explain("user-2", decision.id)
        assert explanation_port.contexts == []


RESPONSE = """[Summary]
Option A fits more closely because most similar past thoughts leaned toward it.

[Evidence]
The fragments describe curiosity about new environments.

[Values]
Growth and autonomy carry the most weight here."""


def stored_decision(probability_a=0.62, evidence=("f1", "f2", "f3")):
    result = DecisionResult(probability_a=probability_a, probability_b=1.0 - probability_a,
                            regret_risk_a=0.2, regret_risk_b=0.4,
                            evidence_fragment_ids=evidence)
    return Decision(id="d1", user_id="user-1", title="Pick a city",
                    option_a="Berlin", option_b="Lisbon", result=result)


def chat_response(content):
    return SimpleNamespace(choices=[SimpleNamespace(message=SimpleNamespace(content=content))])


def llm_provider(create, config=None):
    client = MagicMock()
    client.chat.completions.create = create
    return OpenAIExplanationProvider(client=client, config=config)


class TestExplanationPrompt:

    def test_contains_facts(self):
        context = ExplanationContext(
            decision_id="d1", title="Pick a city", option_a="Berlin", option_b="Lisbon",
            probability_a=0.62, probability_b=0.38, regret_risk_a=0.2, regret_risk_b=0.4,
            regret_level_a="LOW", regret_level_b="MEDIUM",
            value_alignment={"growth": 0.71},
            top_fragments=(("Loved the trip to Berlin", "A"),),
            is_close_call=False,
        )
        prompt = build_explanation_prompt(context)
        assert "Decision: Pick a city" in prompt
        assert "Fit probability A: 62%" in prompt
        assert "Regret risk B: 40% (MEDIUM)" in prompt
        assert '"Loved the trip to Berlin" (leans toward option A)' in prompt
        assert "growth: 0.71" in prompt
        assert "close call" not in prompt
        assert "[Summary]" in prompt

    def test_parse_sections(self):
        explanation = parse_explanation_response(RESPONSE)
        assert explanation.summary.startswith("Option A fits more closely")
        assert explanation.evidence_summary == "The fragments describe curiosity about new environments."
        assert explanation.value_summary == "Growth and autonomy carry the most weight here."

    def test_parse_unstructured(self):
        explanation = parse_explanation_response("x" * 300)
        assert explanation.summary == "x" * 200
        assert explanation.evidence_summary
        assert explanation.value_summary


class TestOpenAIExplanationProvider:

    @pytest.mark.asyncio
    async def test_generates_from_response(self, test_config):
        create = AsyncMock(return_value=chat_response(RESPONSE))
        provider = llm_provider(create, test_config)

        explanation = await provider.generate(build_explanation_context(stored_decision()))
        assert explanation.value_summary == "Growth and autonomy carry the most weight here."

        _, kwargs = create.call_args
        assert kwargs["model"] == test_config.EXPLANATION_MODEL
        assert kwargs["messages"][0] == {"role": "system", "content": SYSTEM_PROMPT}
        assert "Option A: Berlin" in kwargs["messages"][1]["content"]

    @pytest.mark.asyncio
    async def test_api_error_falls_back(self):
        provider = llm_provider(AsyncMock(side_effect=RuntimeError("503 upstream")))
        explanation = await provider.generate(build_explanation_context(stored_decision()))
        assert "3 past thought fragments" in explanation.summary
        assert "62%" in explanation.summary
        assert "38%" in explanation.summary

    @pytest.mark.asyncio
    async def test_timeout_falls_back(self, test_config):
        async def slow(**kwargs):
            await asyncio.sleep(1.0)
            return chat_response(RESPONSE)

        provider = llm_provider(slow, replace(test_config, EXPLANATION_TIMEOUT=0.01))
        explanation = await provider.generate(build_explanation_context(stored_decision()))
        assert "past thought fragments" in explanation.summary

    @pytest.mark.asyncio
    async def test_empty_response_falls_back(self):
        provider = llm_provider(AsyncMock(return_value=chat_response(None)))
        explanation = await provider.generate(build_explanation_context(stored_decision()))
        assert "past thought fragments" in explanation.summary

    @pytest.mark.asyncio
    async def test_advice_rejected(self):
        advice = "[Summary]\nYou should pick Berlin, it is the better option."
        provider = llm_provider(AsyncMock(return_value=chat_response(advice)))
        explanation = await provider.generate(build_explanation_context(stored_decision()))
        assert "Berlin" not in explanation.summary
        assert "past thought fragments" in explanation.summary

    @pytest.mark.asyncio
    async def test_cached_through_service(self, decision_store):
        create = AsyncMock(return_value=chat_response(RESPONSE))
        service = ExplanationService(decision_store, llm_provider(create))
        await decision_store.save(stored_decision())

        first = await service.explain("user-1", "d1")
        second = await service.explain("user-1", "d1")
        assert first == second
        assert create.await_count == 1

    def test_requires_sdk(self, monkeypatch):
        monkeypatch.setattr(explanation_module, "OPENAI_AVAILABLE", False)
        with pytest.raises(ImportError):
            OpenAIExplanationProvider()

    def test_requires_api_key(self, monkeypatch):
        monkeypatch.setattr(explanation_module, "OPENAI_AVAILABLE", True)
        monkeypatch.delenv("OPENAI_API_KEY", raising=False)
        with pytest.raises(ValueError, match="OPENAI_API_KEY"):
            OpenAIExplanationProvider()
