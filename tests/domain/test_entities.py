"""Tests for domain entities and value objects"""

import pytest

from model_testbench.domain.entities import ModelRecord, TestDefinition, TestType
from model_testbench.domain.errors import UnknownTestTypeError
from model_testbench.domain.value_objects import Conversation, wrap_response_schema


def _definition(**kwargs) -> TestDefinition:
    kwargs.setdefault("test_type", TestType.QUESTION)
    return TestDefinition(id=7, group_name="base", function_name="capital", prompt="p", **kwargs)


class TestTestType:
    def test_parse_is_case_insensitive(self):
        assert TestType.parse("Question") == TestType.QUESTION
        assert TestType.parse(" FunctionCall ") == TestType.FUNCTION_CALL
        assert TestType.parse("tts") == TestType.TTS

    def test_parse_accepts_member(self):
        assert TestType.parse(TestType.WRITER) is TestType.WRITER

    def test_parse_unknown(self):
        with pytest.raises(UnknownTestTypeError, match="Unknown test type: quiz"):
            TestType.parse("quiz")

    def test_unknown_is_value_error(self):
        with pytest.raises(ValueError):
            TestType.parse("")

    def test_default_timeouts(self):
        assert TestType.QUESTION.default_timeout == 30
        assert TestType.FUNCTION_CALL.default_timeout == 30
        assert TestType.WRITER.default_timeout == 120
        assert TestType.TTS.default_timeout == 60


class TestTestDefinition:
    def test_effective_timeout_default(self):
        assert _definition().effective_timeout == 30
        assert _definition(test_type=TestType.WRITER).effective_timeout == 120

    def test_effective_timeout_explicit(self):
        assert _definition(timeout_seconds=5).effective_timeout == 5

    def test_negative_timeout_uses_default(self):
        assert _definition(timeout_seconds=-1).effective_timeout == 30

    def test_step_name(self):
        assert _definition().step_name == "capital"
        definition = TestDefinition(id=7, group_name="base", function_name="", prompt="p", test_type=TestType.QUESTION)
        assert definition.step_name == "test_7"

    def test_list_defaults_are_independent(self):
        first = _definition()
        first.files_to_stage.append("a.txt")
        assert _definition().files_to_stage == []


class TestModelRecord:
    @pytest.mark.parametrize("provider", ["ollama", "LMStudio", " ollama "])
    def test_local_providers(self, provider):
        assert ModelRecord(name="m", provider=provider).is_local is True

    @pytest.mark.parametrize("provider", ["openai", "anthropic", "vertex", ""])
    def test_remote_providers(self, provider):
        assert ModelRecord(name="m", provider=provider).is_local is False


class TestConversation:
    def test_system_prompt_and_turns(self):
        conversation = Conversation()
        conversation.add_system("plan")
        conversation.add_user("hi")
        conversation.add_system("rules")
        conversation.add_assistant("hello")

        assert conversation.system_prompt == "plan\n\nrules"
        assert [m.role for m in conversation.turns()] == ["user", "assistant"]
        assert len(conversation) == 4

    def test_no_system_prompt(self):
        conversation = Conversation()
        conversation.add_user("hi")
        assert conversation.system_prompt is None


class TestWrapResponseSchema:
    def test_object_schema_unchanged(self):
        schema = {"type": "object", "properties": {"city": {"type": "string"}}}
        assert wrap_response_schema(schema) is schema

    def test_schema_without_type_unchanged(self):
        schema = {"properties": {}}
        assert wrap_response_schema(schema) is schema

    def test_array_schema_wrapped(self):
        schema = {"type": "array", "items": {"type": "string"}}
        wrapped = wrap_response_schema(schema)
        assert wrapped["type"] == "object"
        assert wrapped["properties"] == {"result": schema}
        assert wrapped["required"] == ["result"]
