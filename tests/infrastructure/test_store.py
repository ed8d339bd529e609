"""
Tests for the SQLAlchemy test store (sql_store.py)

Each test works on a fresh SQLite file under tmp_path.
"""

import pytest

from model_testbench.domain.entities import ModelRecord, TestDefinition, TestType
from model_testbench.domain.errors import UnknownModelError
from model_testbench.infrastructure.store import SqlTestStore


def _definition(group, name, test_type=TestType.QUESTION, priority=1, **kwargs):
    return TestDefinition(
        id=0,
        group_name=group,
        function_name=name,
        prompt=f"prompt of {name}",
        test_type=test_type,
        priority=priority,
        **kwargs,
    )


@pytest.fixture
def store(tmp_path):
    store = SqlTestStore(f"sqlite:///{tmp_path / 'testbench.db'}")
    store.upsert_model(ModelRecord(name="gpt-4o-mini", provider="openai"))
    return store


def _run_with_steps(store, model, group, results):
    run_id = store.create_run(model, group)
    for number, passed in enumerate(results, start=1):
        step_id = store.add_step(run_id, number, f"step{number}")
        store.update_step_result(step_id, passed)
    return run_id


class TestModels:

    def test_upsert_keeps_scores_and_flags(self, store):
        store.mark_model_no_tools("gpt-4o-mini")
        store.upsert_model(ModelRecord(name="gpt-4o-mini", provider="openai", endpoint="http://proxy/v1"))
        model = store.get_model("gpt-4o-mini")
        assert model.endpoint == "http://proxy/v1"
        assert model.no_tools is True

    def test_enabled_models(self, store):
        store.upsert_model(ModelRecord(name="off", provider="ollama", enabled=False))
        assert [m.name for m in store.get_enabled_models()] == ["gpt-4o-mini"]

    def test_no_tools_flag_is_one_way(self, store):
        assert store.mark_model_no_tools("gpt-4o-mini") is True
        assert store.mark_model_no_tools("gpt-4o-mini") is False
        assert store.get_model("gpt-4o-mini").no_tools is True

    def test_clear_no_tools(self, store):
        store.mark_model_no_tools("gpt-4o-mini")
        assert store.clear_model_no_tools("gpt-4o-mini") is True
        assert store.clear_model_no_tools("gpt-4o-mini") is False
        assert store.get_model("gpt-4o-mini").no_tools is False

    def test_record_test_duration(self, store):
        store.record_test_duration("gpt-4o-mini", 12.5)
        assert store.get_model("gpt-4o-mini").test_duration_seconds == 12.5

    def test_unknown_model(self, store):
        assert store.get_model("nope") is None


class TestDefinitions:

    def test_ordered_by_priority_then_id(self, store):
        store.add_test_definition(_definition("base", "late", priority=5))
        store.add_test_definition(_definition("base", "first", priority=1))
        store.add_test_definition(_definition("base", "second", priority=1))
        store.add_test_definition(_definition("base", "inactive", priority=0, active=False))
        names = [d.function_name for d in store.get_test_definitions("base")]
        assert names == ["first", "second", "late"]

    def test_lists_round_trip(self, store):
        store.add_test_definition(
            _definition("fs", "read", TestType.FUNCTION_CALL, allowed_capabilities=["filesystem"], files_to_stage=["a.txt"])
        )
        definition = store.get_test_definitions("fs")[0]
        assert definition.test_type is TestType.FUNCTION_CALL
        assert definition.allowed_capabilities == ["filesystem"]
        assert definition.files_to_stage == ["a.txt"]

    def test_list_groups(self, store):
        store.add_test_definition(_definition("b", "x"))
        store.add_test_definition(_definition("a", "y"))
        assert store.list_test_groups() == ["a", "b"]


class TestRuns:

    def test_create_run_requires_known_model(self, store):
        with pytest.raises(UnknownModelError):
            store.create_run("nope", "base")

    def test_steps_and_counts(self, store):
        run_id = _run_with_steps(store, "gpt-4o-mini", "base", [True, True, False, True])
        assert store.get_run_step_counts(run_id) == (3, 4)
        steps = store.get_run_steps(run_id)
        assert [s.step_number for s in steps] == [1, 2, 3, 4]
        assert steps[2].passed is False

    def test_update_run_result(self, store):
        run_id = store.create_run("gpt-4o-mini", "base", "/tmp/folder")
        store.update_run_result(run_id, True, 1500, notes="ok")
        run = store.get_run(run_id)
        assert run.passed is True
        assert run.duration_ms == 1500
        assert run.working_folder == "/tmp/folder"
        assert run.model_name == "gpt-4o-mini"
        assert run.notes == "ok"

    def test_assets(self, store):
        run_id = store.create_run("gpt-4o-mini", "base")
        step_id = store.add_step(run_id, 1, "tts")
        store.add_asset(step_id, "tts_schema", "/tmp/tts_schema.json", size_bytes=10)
        assets = store.get_run_assets(run_id)
        assert len(assets) == 1
        assert assets[0].asset_type == "tts_schema"


class TestScores:

    def test_model_score_uses_latest_run_per_group(self, store):
        store.add_test_definition(_definition("base", "q1"))
        store.add_test_definition(_definition("other", "q2"))
        _run_with_steps(store, "gpt-4o-mini", "base", [False, False])
        _run_with_steps(store, "gpt-4o-mini", "base", [True, True, True, False])
        _run_with_steps(store, "gpt-4o-mini", "other", [True, True])

        # mean of 7.5 and 10
        assert store.recalculate_model_score("gpt-4o-mini") == 9
        assert store.get_model("gpt-4o-mini").function_calling_score == 9

    def test_recalculation_is_idempotent(self, store):
        store.add_test_definition(_definition("base", "q1"))
        _run_with_steps(store, "gpt-4o-mini", "base", [True, False])
        first = store.recalculate_model_score("gpt-4o-mini")
        assert store.recalculate_model_score("gpt-4o-mini") == first == 5

    def test_writer_group_uses_evaluations(self, store):
        store.add_test_definition(_definition("stories", "write", TestType.WRITER))
        run_id = store.create_run("gpt-4o-mini", "stories")
        step_id = store.add_step(run_id, 1, "write")
        store.update_step_result(step_id, False)
        story_id = store.add_story("prompt", "text", model_name="gpt-4o-mini")
        store.add_asset(step_id, "story", f"/stories/{story_id}", story_id=story_id)
        agent_id = store.add_agent("critic", "gpt-4o-mini")
        store.add_story_evaluation(story_id, 60, agent_id=agent_id)
        store.add_story_evaluation(story_id, 80, agent_id=agent_id)

        assert store.recalculate_model_score("gpt-4o-mini") == 7

    def test_writer_score_updated_on_evaluation(self, store):
        story_id = store.add_story("prompt", "text", model_name="gpt-4o-mini")
        store.add_story_evaluation(story_id, 45, category_scores={"style": 5})
        assert store.get_model("gpt-4o-mini").writer_score == pytest.approx(4.5)
        evaluations = store.get_story_evaluations(story_id)
        assert evaluations[0].category_scores == {"style": 5}

    def test_writer_score_without_data(self, store):
        assert store.recalculate_writer_score("gpt-4o-mini") == 0.0

    def test_recalculate_all_writer_scores(self, store):
        store.upsert_model(ModelRecord(name="claude-haiku-4-5", provider="anthropic"))
        story_id = store.add_story("prompt", "text", model_name="claude-haiku-4-5")
        store.add_story_evaluation(story_id, 90)
        store.recalculate_all_writer_scores()
        assert store.get_model("claude-haiku-4-5").writer_score == pytest.approx(9.0)
        assert store.get_model("gpt-4o-mini").writer_score == 0.0


class TestAgentsAndStories:

    def test_only_active_evaluators_listed(self, store):
        store.add_agent("critic", "gpt-4o-mini")
        store.add_agent("retired", "gpt-4o-mini", active=False)
        store.add_agent("helper", "gpt-4o-mini", role="assistant")
        assert [a.name for a in store.list_evaluator_agents()] == ["critic"]

    def test_story_attribution(self, store):
        story_id = store.add_story("prompt", "C'era una volta", model_name="gpt-4o-mini")
        story = store.get_story(story_id)
        assert story.text == "C'era una volta"
        assert story.model_name == "gpt-4o-mini"
