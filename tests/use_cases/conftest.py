"""
Shared fixtures of the use case tests: a SQLite store, a configuration
rooted in tmp_path and a scripted model provider.
"""

from __future__ import annotations

import pytest

from model_testbench.bench_config import BenchConfig
from model_testbench.capabilities import collect_tools
from model_testbench.domain.entities import ModelRecord, TestDefinition, TestType
from model_testbench.domain.value_objects import ModelResponse
from model_testbench.infrastructure.model_clients.base import ModelProvider, ModelSession
from model_testbench.infrastructure.progress import ProgressChannel
from model_testbench.infrastructure.store import SqlTestStore
from model_testbench.use_cases.executors import StepContext


class ScriptedSession(ModelSession):
    """Session answering with the next scripted reply

    A reply is a string, an exception to raise, or a callable receiving
    (tools, conversation, settings) and returning a string.
    """

    def __init__(self, provider: ScriptedProvider, model_name: str, tools: dict):
        self.provider = provider
        self.model_name = model_name
        self.tools = tools

    def respond(self, conversation, settings):
        self.provider.calls.append((list(conversation.messages), settings, self.tools))
        reply = self.provider.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = reply(self.tools, conversation, settings)
        return ModelResponse(output=reply, latency_ms=1, model_name=self.model_name)


class ScriptedProvider(ModelProvider):

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.calls: list[tuple] = []
        self.sessions: list[ScriptedSession] = []
        self.construction_error: Exception | None = None

    def open_session(self, model, capabilities=None, tool_calling=False):
        if self.construction_error is not None:
            raise self.construction_error
        tools = collect_tools(capabilities or []) if tool_calling else {}
        session = ScriptedSession(self, model.name, tools)
        self.sessions.append(session)
        return session


@pytest.fixture
def config(tmp_path):
    config = BenchConfig()
    config.paths.source_files_dir = str(tmp_path / "sources")
    config.paths.run_folders_dir = str(tmp_path / "runs")
    config.paths.execution_plans_dir = str(tmp_path / "plans")
    config.paths.response_formats_dir = str(tmp_path / "formats")
    for directory in ("sources", "runs", "plans", "formats"):
        (tmp_path / directory).mkdir()
    return config


@pytest.fixture
def store(tmp_path):
    store = SqlTestStore(f"sqlite:///{tmp_path / 'testbench.db'}")
    store.upsert_model(ModelRecord(name="gpt-4o-mini", provider="openai"))
    store.upsert_model(ModelRecord(name="qwen3:8b", provider="ollama", max_context=16384))
    return store


@pytest.fixture
def provider():
    return ScriptedProvider()


@pytest.fixture
def progress():
    return ProgressChannel()


@pytest.fixture
def make_definition():
    def _make(test_type=TestType.QUESTION, name="test", group="base", **kwargs) -> TestDefinition:
        kwargs.setdefault("prompt", "What is the capital of France?")
        return TestDefinition(id=0, group_name=group, function_name=name, test_type=test_type, **kwargs)

    return _make


@pytest.fixture
def make_ctx(store, provider, config, progress):
    """Build a StepContext with a real run and step in the store"""

    def _make(definition, model_name="gpt-4o-mini", working_folder=None, story_evaluator=None):
        model = store.get_model(model_name)
        run_id = store.create_run(model.name, definition.group_name, working_folder)
        step_id = store.add_step(run_id, 1, definition.step_name)
        return StepContext(
            definition=definition,
            model=model,
            prompt=definition.prompt,
            run_id=run_id,
            step_id=step_id,
            step_number=1,
            working_folder=working_folder,
            store=store,
            provider=provider,
            config=config,
            progress=progress,
            story_evaluator=story_evaluator,
        )

    return _make
