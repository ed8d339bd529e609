"""
Tests for the TTS schema capability (tts_schema.py)
"""

import json

import pytest

from model_testbench.capabilities import CapabilityContext
from model_testbench.capabilities.tts_schema import TtsSchemaCapability

STORY = "C'era una volta un re. Anna disse: Ciao!"


@pytest.fixture
def capability(tmp_path):
    return TtsSchemaCapability(
        CapabilityContext(model_name="test-model", working_folder=str(tmp_path), story_text=STORY)
    )


def _build_complete_schema(capability):
    capability.add_character("Anna", "female")
    capability.add_narration("C'era una volta un re.")
    capability.add_phrase("Anna", "Ciao!", "Happy")
    capability.add_narration("disse")


class TestCharacters:

    def test_duplicate_character_rejected(self, capability):
        assert capability.add_character("Anna", "female") == "OK"
        assert capability.add_character("anna", "female").startswith("ERROR: Character 'anna' already exists")

    def test_default_voice(self, capability):
        capability.add_character("Anna", "female")
        assert capability.schema()["characters"] == [{"name": "Anna", "voice": "default", "gender": "female"}]

    def test_custom_voice(self, capability):
        capability.add_character_with_voice("Anna", "female", "it-IT-Elsa")
        assert capability.schema()["characters"][0]["voice"] == "it-IT-Elsa"

    def test_delete_character(self, capability):
        capability.add_character("Anna", "female")
        capability.delete_character("Anna")
        assert capability.schema()["characters"] == []


class TestTimeline:

    def test_phrase_requires_defined_character(self, capability):
        assert "is not defined" in capability.add_phrase("Marco", "Ciao", "happy")

    def test_phrase_rejects_unknown_emotion(self, capability):
        capability.add_character("Anna", "female")
        assert "is not supported" in capability.add_phrase("Anna", "Ciao", "bored")

    def test_phrase_emotion_lower_cased(self, capability):
        capability.add_character("Anna", "female")
        capability.add_phrase("Anna", "Ciao", "HAPPY")
        assert capability.schema()["timeline"] == [
            {"kind": "phrase", "character": "Anna", "text": "Ciao", "emotion": "happy"}
        ]

    def test_narration_creates_narrator(self, capability):
        capability.add_narration("C'era una volta")
        assert capability.schema()["characters"] == [{"name": "Narratore", "voice": "default", "gender": "neutral"}]
        assert capability.schema()["timeline"][0]["character"] == "Narratore"

    def test_pause_and_delete_last(self, capability):
        capability.add_pause(2)
        assert capability.schema()["timeline"] == [{"kind": "pause", "seconds": 2}]
        assert capability.delete_last() == "OK"
        assert capability.delete_last() == "EMPTY"

    def test_reset(self, capability):
        _build_complete_schema(capability)
        capability.reset_schema()
        assert capability.schema() == {"characters": [], "timeline": []}


class TestCheckAndConfirm:

    def test_empty_schema(self, capability):
        assert capability.check_schema().startswith("ERROR: No characters defined")

    def test_narrator_required(self, capability):
        capability.add_character("Anna", "female")
        capability.add_phrase("Anna", "Ciao!", "happy")
        assert "Narratore character is required" in capability.check_schema()

    def test_unused_character(self, capability):
        _build_complete_schema(capability)
        capability.add_character("Marco", "male")
        assert capability.check_schema().startswith("ERROR: Unused characters: Marco")

    def test_insufficient_coverage(self, capability):
        capability.add_character("Anna", "female")
        capability.add_narration("disse")
        capability.add_phrase("Anna", "Ciao!", "happy")
        assert "Insufficient story coverage" in capability.check_schema()

    def test_complete_schema_is_valid(self, capability):
        _build_complete_schema(capability)
        assert capability.check_schema() == "OK"

    def test_confirm_writes_artifact(self, capability, tmp_path):
        _build_complete_schema(capability)
        assert capability.confirm_schema() == "OK"
        saved = json.loads((tmp_path / "tts_schema.json").read_text(encoding="utf-8"))
        assert saved == capability.schema()
        assert saved["timeline"][1] == {"kind": "phrase", "character": "Anna", "text": "Ciao!", "emotion": "happy"}

    def test_confirm_invalid_schema_writes_nothing(self, capability, tmp_path):
        assert capability.confirm_schema().startswith("ERROR:")
        assert not (tmp_path / "tts_schema.json").exists()

    def test_story_read_from_working_folder(self, tmp_path):
        (tmp_path / "tts_storia.txt").write_text("Una storia", encoding="utf-8")
        capability = TtsSchemaCapability(CapabilityContext(model_name="m", working_folder=str(tmp_path)))
        assert capability.read_story_text() == "Una storia"

    def test_story_file_name_from_context(self, tmp_path):
        (tmp_path / "tts_storia.txt").write_text("Default story", encoding="utf-8")
        (tmp_path / "racconto.txt").write_text("Configured story", encoding="utf-8")
        capability = TtsSchemaCapability(
            CapabilityContext(model_name="m", working_folder=str(tmp_path), story_file_name="racconto.txt")
        )
        assert capability.read_story_text() == "Configured story"
