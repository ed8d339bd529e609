"""
Tests for story evaluation (story_evaluator.py)

The evaluator model is a mock session; the store is a MagicMock.
"""

import json

import pytest
from unittest.mock import MagicMock

from model_testbench.bench_config import BenchConfig
from model_testbench.domain.constants import EVALUATION_CATEGORIES
from model_testbench.domain.entities import EvaluatorAgent, ModelRecord, StoryRecord
from model_testbench.domain.errors import ProviderError
from model_testbench.domain.value_objects import ModelResponse
from model_testbench.scoring.story_evaluator import (
    LLMStoryEvaluator,
    StoryEvaluationError,
    build_evaluation_prompt,
    default_evaluation_schema,
    parse_evaluation,
)


def _flat_evaluation(score=7):
    data = {}
    for category in EVALUATION_CATEGORIES:
        data[f"{category}_score"] = score
        data[f"{category}_defects"] = ""
    data["total_score"] = score * len(EVALUATION_CATEGORIES)
    data["overall_evaluation"] = "Solid"
    return data


class TestParseEvaluation:

    def test_flat_keys(self):
        total, categories, overall = parse_evaluation(json.dumps(_flat_evaluation(7)))
        assert total == 70
        assert categories["pacing"] == 7
        assert len(categories) == 10
        assert overall == "Solid"

    def test_nested_categories_and_missing_total(self):
        data = {"structure": {"score": 6}, "style": {"score": 8}}
        total, categories, _ = parse_evaluation(json.dumps(data))
        assert categories == {"structure": 6, "style": 8}
        assert total == 14

    def test_code_fence(self):
        raw = "```json\n" + json.dumps(_flat_evaluation(5)) + "\n```"
        total, _, _ = parse_evaluation(raw)
        assert total == 50

    def test_total_clamped(self):
        total, _, _ = parse_evaluation('{"total_score": 140}')
        assert total == 100

    def test_regex_fallback(self):
        total, categories, _ = parse_evaluation('total_score: 63 and some trailing text {')
        assert total == 63
        assert categories == {}

    def test_unparseable_raises(self):
        with pytest.raises(StoryEvaluationError):
            parse_evaluation("I liked it")


class TestDefaultEvaluationSchema:

    def test_all_properties_required(self):
        schema = default_evaluation_schema()
        assert set(schema["required"]) == set(schema["properties"])
        assert "narrative_coherence_score" in schema["properties"]
        assert schema["additionalProperties"] is False


def test_build_evaluation_prompt_contains_story():
    prompt = build_evaluation_prompt("C'era una volta")
    assert prompt.endswith("C'era una volta")
    assert "emotional_impact" in prompt


class TestLLMStoryEvaluator:

    @pytest.fixture
    def store(self):
        store = MagicMock()
        store.get_story.return_value = StoryRecord(id=1, prompt="p", text="Una storia")
        store.get_agent.return_value = EvaluatorAgent(
            id=2, name="critic", model_name="judge", role="story_evaluator", instructions="Be strict"
        )
        store.get_model.return_value = ModelRecord(name="judge", provider="openai")
        return store

    @pytest.fixture
    def config(self, tmp_path):
        config = BenchConfig()
        config.paths.response_formats_dir = str(tmp_path)
        return config

    def _provider(self, output=None, error=None):
        session = MagicMock()
        session.model_name = "judge"
        if error is not None:
            session.respond.side_effect = error
        else:
            session.respond.return_value = ModelResponse(output=output, latency_ms=5, model_name="judge")
        provider = MagicMock()
        provider.open_session.return_value = session
        return provider, session

    def test_successful_evaluation_is_recorded(self, store, config):
        provider, session = self._provider(json.dumps(_flat_evaluation(8)))
        evaluator = LLMStoryEvaluator(store, provider, config)

        outcome = evaluator.evaluate(1, 2)

        assert outcome.success
        assert outcome.total_score == 80
        store.add_story_evaluation.assert_called_once()
        args, kwargs = store.add_story_evaluation.call_args
        assert args == (1, 80)
        assert kwargs["agent_id"] == 2
        conversation, settings = session.respond.call_args[0]
        assert conversation.system_prompt == "Be strict"
        assert settings.max_tokens == 4000
        assert settings.response_schema == default_evaluation_schema()

    def test_schema_file_overrides_builtin(self, store, config, tmp_path):
        (tmp_path / "full_evaluation.json").write_text('{"type": "object"}', encoding="utf-8")
        provider, session = self._provider(json.dumps(_flat_evaluation(8)))

        LLMStoryEvaluator(store, provider, config).evaluate(1, 2)

        settings = session.respond.call_args[0][1]
        assert settings.response_schema == {"type": "object"}

    def test_missing_story(self, store, config):
        store.get_story.return_value = None
        provider, _ = self._provider("{}")
        outcome = LLMStoryEvaluator(store, provider, config).evaluate(1, 2)
        assert not outcome.success
        assert outcome.error == "Story not found"

    def test_missing_agent(self, store, config):
        store.get_agent.return_value = None
        provider, _ = self._provider("{}")
        outcome = LLMStoryEvaluator(store, provider, config).evaluate(1, 2)
        assert outcome.error == "Agent not found"

    def test_provider_error_is_an_outcome(self, store, config):
        provider, _ = self._provider(error=ProviderError("boom"))
        outcome = LLMStoryEvaluator(store, provider, config).evaluate(1, 2)
        assert not outcome.success
        assert outcome.error == "boom"
        store.add_story_evaluation.assert_not_called()

    def test_empty_response(self, store, config):
        provider, _ = self._provider("  ")
        outcome = LLMStoryEvaluator(store, provider, config).evaluate(1, 2)
        assert outcome.error == "Empty response from evaluator"

    def test_unparseable_response(self, store, config):
        provider, _ = self._provider("great story")
        outcome = LLMStoryEvaluator(store, provider, config).evaluate(1, 2)
        assert not outcome.success
        store.add_story_evaluation.assert_not_called()
