"""
Tests for the test run orchestrator (orchestrator.py)
"""

import json
from pathlib import Path

import pytest

from model_testbench.domain.entities import TestType
from model_testbench.domain.errors import (
    EmptyGroupError,
    ProviderConstructionError,
    ProviderError,
    UnknownModelError,
)
from model_testbench.use_cases.executors import EXECUTORS
from model_testbench.use_cases.orchestrator import TestRunOrchestrator


@pytest.fixture
def orchestrator(store, provider, config, progress):
    return TestRunOrchestrator(store, provider, config, progress=progress)


@pytest.fixture
def capitals_group(store, make_definition):
    for priority, (city, country) in enumerate(
        [("Paris", "France"), ("Rome", "Italy"), ("Madrid", "Spain"), ("Berlin", "Germany")], start=1
    ):
        store.add_test_definition(make_definition(
            name=f"capital_{country.lower()}",
            prompt=f"What is the capital of {country}?",
            expected_value=city,
            priority=priority,
        ))
    return "base"


class TestRunGroup:

    def test_three_of_four_passed(self, orchestrator, provider, store, progress, capitals_group):
        provider.replies = ["Paris", "Rome", "Lisbon", "Berlin"]

        summary = orchestrator.run_group("gpt-4o-mini", capitals_group)

        assert summary.steps == 4
        assert summary.passed == 3
        assert summary.score == 8
        assert summary.run_passed is False
        run = store.get_run(summary.run_id)
        assert run.passed is False
        assert run.duration_ms == summary.duration_ms
        steps = store.get_run_steps(summary.run_id)
        assert [s.name for s in steps] == ["capital_france", "capital_italy", "capital_spain", "capital_germany"]
        assert steps[2].error.startswith("Expected 'Madrid' but got 'Lisbon'")
        model = store.get_model("gpt-4o-mini")
        assert model.function_calling_score == 8
        assert model.test_duration_seconds is not None
        assert progress.is_completed(summary.run_id)
        assert "3/4 passed" in progress.result(summary.run_id)

    def test_all_passed(self, orchestrator, provider, capitals_group):
        provider.replies = ["Paris", "Rome", "Madrid", "Berlin"]
        summary = orchestrator.run_group("gpt-4o-mini", capitals_group)
        assert summary.run_passed is True
        assert summary.score == 10

    def test_step_input_snapshot(self, orchestrator, provider, store, capitals_group):
        provider.replies = ["Paris", "Rome", "Madrid", "Berlin"]
        summary = orchestrator.run_group("gpt-4o-mini", capitals_group)
        snapshot = json.loads(store.get_run_steps(summary.run_id)[0].input_snapshot)
        assert snapshot == {"prompt": "What is the capital of France?", "plan": "(no plan)"}

    def test_unknown_model(self, orchestrator, capitals_group):
        with pytest.raises(UnknownModelError):
            orchestrator.run_group("nope", capitals_group)

    def test_empty_group(self, orchestrator):
        with pytest.raises(EmptyGroupError):
            orchestrator.run_group("gpt-4o-mini", "missing")

    def test_executor_exception_becomes_failed_step(
        self, orchestrator, provider, store, capitals_group, monkeypatch
    ):
        calls = []

        def flaky(ctx):
            calls.append(ctx.step_number)
            if ctx.step_number == 1:
                raise RuntimeError("executor crashed")
            return original(ctx)

        original = EXECUTORS[TestType.QUESTION]
        monkeypatch.setitem(EXECUTORS, TestType.QUESTION, flaky)
        provider.replies = ["Rome", "Madrid", "Berlin"]

        summary = orchestrator.run_group("gpt-4o-mini", capitals_group)

        assert calls == [1, 2, 3, 4]
        assert summary.passed == 3
        assert store.get_run_steps(summary.run_id)[0].error == "executor crashed"

    def test_construction_error_aborts_run(self, orchestrator, provider, store, capitals_group):
        provider.construction_error = ProviderConstructionError("OPENAI_API_KEY is not set")

        with pytest.raises(ProviderConstructionError):
            orchestrator.run_group("gpt-4o-mini", capitals_group)

        run = store.get_run(1)
        assert run.passed is False
        assert run.notes == "Aborted: OPENAI_API_KEY is not set"
        steps = store.get_run_steps(1)
        assert len(steps) == 1
        assert steps[0].error == "OPENAI_API_KEY is not set"

    def test_working_folder_staged_and_prompt_resolved(
        self, orchestrator, provider, store, config, make_definition
    ):
        Path(config.paths.source_files_dir, "notes.txt").write_text("hello", encoding="utf-8")
        store.add_test_definition(make_definition(
            TestType.FUNCTION_CALL,
            name="read_notes",
            group="files",
            prompt="Read [test_folder]/notes.txt",
            allowed_capabilities=["filesystem"],
            files_to_stage=["notes.txt"],
        ))
        provider.replies = ["hello"]

        summary = orchestrator.run_group("gpt-4o-mini", "files")

        run = store.get_run(summary.run_id)
        assert run.working_folder is not None
        assert Path(run.working_folder, "notes.txt").read_text(encoding="utf-8") == "hello"
        user_message = provider.calls[0][0][-1].content
        assert user_message == f"Read {run.working_folder}/notes.txt"


class TestNoToolsFlag:

    @pytest.fixture
    def tools_group(self, store, make_definition):
        store.add_test_definition(make_definition(
            TestType.FUNCTION_CALL,
            name="upper_case",
            group="tools",
            prompt="Convert 'hello' to upper case",
            allowed_capabilities=["text"],
        ))
        return "tools"

    def test_flag_survives_later_successful_run(self, orchestrator, provider, store, tools_group):
        provider.replies = [ProviderError("registry.ollama.ai/gpt-4o-mini does not support tools")]
        first = orchestrator.run_group("gpt-4o-mini", tools_group)
        assert first.run_passed is False
        assert store.get_model("gpt-4o-mini").no_tools is True

        provider.replies = ["HELLO"]
        second = orchestrator.run_group("gpt-4o-mini", tools_group)

        assert second.run_passed is True
        assert store.get_model("gpt-4o-mini").no_tools is True

    def test_flag_reset_only_by_explicit_clear(self, orchestrator, provider, store, tools_group):
        provider.replies = [ProviderError("model does not support tools")]
        orchestrator.run_group("gpt-4o-mini", tools_group)

        assert store.clear_model_no_tools("gpt-4o-mini") is True
        assert store.get_model("gpt-4o-mini").no_tools is False


class TestWarmUp:

    def test_local_model_is_warmed_up(self, orchestrator, provider, capitals_group):
        provider.replies = ["Hi!", "Paris", "Rome", "Madrid", "Berlin"]

        summary = orchestrator.run_group("qwen3:8b", capitals_group)

        messages, settings, _ = provider.calls[0]
        assert [m.content for m in messages] == ["Hello"]
        assert settings.max_tokens == 10
        assert summary.steps == 4
        assert summary.run_passed is True

    def test_warm_up_failure_is_ignored(self, orchestrator, provider, capitals_group):
        provider.replies = [ProviderError("connection refused"), "Paris", "Rome", "Madrid", "Berlin"]
        summary = orchestrator.run_group("qwen3:8b", capitals_group)
        assert summary.run_passed is True

    def test_remote_model_is_not_warmed_up(self, orchestrator, provider, capitals_group):
        provider.replies = ["Paris", "Rome", "Madrid", "Berlin"]
        orchestrator.run_group("gpt-4o-mini", capitals_group)
        assert provider.calls[0][0][-1].content == "What is the capital of France?"


class TestRunAllEnabledModels:

    def test_runs_every_enabled_model(self, orchestrator, provider, store, make_definition):
        store.add_test_definition(make_definition(name="capital", expected_value="Paris"))
        provider.replies = ["Paris", "warm", "Paris"]

        summaries = orchestrator.run_all_enabled_models()

        assert [s.model_name for s in summaries] == ["gpt-4o-mini", "qwen3:8b"]
        assert all(s.run_passed for s in summaries)

    def test_failing_model_is_skipped(self, orchestrator, provider, store, make_definition):
        store.add_test_definition(make_definition(name="capital", expected_value="Paris"))
        provider.construction_error = ProviderConstructionError("no credentials")
        provider.replies = []

        assert orchestrator.run_all_enabled_models("base") == []

    def test_no_groups(self, orchestrator):
        assert orchestrator.run_all_enabled_models() == []
