"""
TTS schema capability

Lets a model build a dialogue track for a story step by step (characters,
phrases, narration, pauses) and confirm it, which writes the track to
tts_schema.json in the run's working folder:

    {"characters": [{"name", "voice", "gender"}],
     "timeline": [{"kind": "phrase", "character", "text", "emotion"}
                  | {"kind": "pause", "seconds"}]}
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path

from model_testbench.capabilities.base import (
    Capability,
    CapabilityContext,
    capability_function,
    register_capability,
)
from model_testbench.domain.constants import (
    MAX_UNCOVERED_STORY_PERCENT,
    NARRATOR_NAME,
    SUPPORTED_EMOTIONS,
    TTS_SCHEMA_CAPABILITY,
    TTS_SCHEMA_FILE_NAME,
)

logger = logging.getLogger(__name__)

DEFAULT_VOICE = "default"

_WHITESPACE_RE = re.compile(r"\s+")
_RESIDUAL_PUNCTUATION_RE = re.compile("[\"':,;!?\\-\u2014\u2013\\[\\]()]+")


def _same_name(a: str, b: str) -> bool:
    return a.lower() == b.lower()


@register_capability
class TtsSchemaCapability(Capability):
    name = TTS_SCHEMA_CAPABILITY
    description = "Builds the TTS dialogue schema of a story and saves it as JSON."

    def __init__(self, context: CapabilityContext) -> None:
        super().__init__(context)
        self._story_text = context.story_text or ""
        self._characters: list[dict] = []
        self._timeline: list[dict] = []

    # ------------------------------------------------------------------
    # Story
    # ------------------------------------------------------------------

    @capability_function("Returns the complete story as plain text.")
    def read_story_text(self) -> str:
        if self._story_text.strip():
            return self._story_text
        if self.context.working_folder:
            story_file = Path(self.context.working_folder) / self.context.story_file_name
            if story_file.is_file():
                self._story_text = story_file.read_text(encoding="utf-8")
        return self._story_text

    # ------------------------------------------------------------------
    # Characters
    # ------------------------------------------------------------------

    @capability_function("Completely resets the TTS schema.")
    def reset_schema(self) -> str:
        self._characters = []
        self._timeline = []
        return "OK"

    @capability_function(
        "Adds a character to the schema with the default voice.",
        name=("string", "Character name."),
        gender=("string", "Character gender (male, female, neutral)."),
    )
    def add_character(self, name: str, gender: str) -> str:
        return self.add_character_with_voice(name, gender, None)

    @capability_function(
        "Adds a character to the schema with an optional voice.",
        name=("string", "Character name."),
        gender=("string", "Character gender (male, female, neutral)."),
        voice=("string", "Voice identifier."),
    )
    def add_character_with_voice(self, name: str, gender: str, voice: str | None = None) -> str:
        if not name or not name.strip():
            return "ERROR: Character name is required."
        if any(_same_name(c["name"], name) for c in self._characters):
            return f"ERROR: Character '{name}' already exists. Cannot add duplicate character."
        self._characters.append({
            "name": name,
            "voice": voice if voice and voice.strip() else DEFAULT_VOICE,
            "gender": gender,
        })
        return "OK"

    @capability_function("Removes a character from the schema.", name=("string", "Character name."))
    def delete_character(self, name: str) -> str:
        self._characters = [c for c in self._characters if c["name"] != name]
        return "OK"

    # ------------------------------------------------------------------
    # Timeline
    # ------------------------------------------------------------------

    @capability_function(
        "Adds a phrase spoken by a character.",
        character=("string", "Name of a character already added to the schema."),
        text=("string", "Phrase text."),
        emotion=("string", "One of: " + ", ".join(SUPPORTED_EMOTIONS) + "."),
    )
    def add_phrase(self, character: str, text: str, emotion: str) -> str:
        if not character or not character.strip():
            return "ERROR: Character name is required."
        if not text or not text.strip():
            return "ERROR: Phrase text is required."
        if not emotion or not emotion.strip():
            return "ERROR: Emotion is mandatory for each phrase."
        if emotion.lower() not in SUPPORTED_EMOTIONS:
            return (
                f"ERROR: Emotion '{emotion}' is not supported. "
                f"Supported emotions are: {', '.join(SUPPORTED_EMOTIONS)}."
            )
        if not any(_same_name(c["name"], character) for c in self._characters):
            return (
                f"ERROR: Character '{character}' is not defined. "
                "Define the character with add_character before adding phrases. Phrase not added."
            )
        self._timeline.append({
            "kind": "phrase",
            "character": character,
            "text": text,
            "emotion": emotion.lower(),
        })
        return "OK"

    @capability_function(
        f"Adds a narration phrase spoken by '{NARRATOR_NAME}' with neutral emotion, "
        "creating the narrator character when missing.",
        text=("string", "Narration text."),
    )
    def add_narration(self, text: str) -> str:
        if not text or not text.strip():
            return "ERROR: Narration text is required."
        if not any(_same_name(c["name"], NARRATOR_NAME) for c in self._characters):
            self._characters.append({"name": NARRATOR_NAME, "voice": DEFAULT_VOICE, "gender": "neutral"})
        self._timeline.append({
            "kind": "phrase",
            "character": NARRATOR_NAME,
            "text": text,
            "emotion": "neutral",
        })
        return "OK"

    @capability_function("Adds a pause lasting a given number of seconds.", seconds=("integer", "Pause length."))
    def add_pause(self, seconds: int) -> str:
        self._timeline.append({"kind": "pause", "seconds": int(seconds)})
        return "OK"

    @capability_function("Deletes the last phrase or pause added.")
    def delete_last(self) -> str:
        if not self._timeline:
            return "EMPTY"
        self._timeline.pop()
        return "OK"

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def schema(self) -> dict:
        return {"characters": list(self._characters), "timeline": list(self._timeline)}

    @capability_function("Returns the current TTS schema as JSON.")
    def read_schema(self) -> str:
        return json.dumps(self.schema(), ensure_ascii=False, indent=2)

    @capability_function("Validates the TTS schema and saves it to a JSON file.")
    def confirm_schema(self) -> str:
        result = self.check_schema()
        if result != "OK":
            return result
        if not self.context.working_folder:
            return "ERROR: No working folder is available to save the schema."
        path = Path(self.context.working_folder) / TTS_SCHEMA_FILE_NAME
        path.write_text(self.read_schema(), encoding="utf-8")
        logger.info("TTS schema saved to %s (model=%s)", path, self.context.model_name)
        return "OK"

    # ------------------------------------------------------------------
    # Validation
    # ------------------------------------------------------------------

    @capability_function("Verifies that the TTS schema is valid and complete.")
    def check_schema(self) -> str:
        if not self._characters:
            return "ERROR: No characters defined. Add at least one character with add_character."
        if not any(_same_name(c["name"], NARRATOR_NAME) for c in self._characters):
            return f"ERROR: {NARRATOR_NAME} character is required. Add a {NARRATOR_NAME} character with add_character."
        if not self._timeline:
            return "ERROR: No timeline entries. Add phrases or pauses with add_phrase or add_pause."
        if not self.read_story_text().strip():
            return "ERROR: Story text is empty."
        return (
            self._check_unused_characters()
            or self._check_character_consistency()
            or self._check_story_coverage()
            or "OK"
        )

    def _phrase_characters(self) -> list[str]:
        return [
            e["character"] for e in self._timeline
            if e["kind"] == "phrase" and e["character"].strip()
        ]

    def _check_unused_characters(self) -> str | None:
        used = {c.lower() for c in self._phrase_characters()}
        unused = [c["name"] for c in self._characters if c["name"].lower() not in used]
        if unused:
            return (
                f"ERROR: Unused characters: {', '.join(unused)}. "
                "All characters must be used in at least one phrase."
            )
        return None

    def _check_character_consistency(self) -> str | None:
        defined = {c["name"].lower() for c in self._characters}
        undefined: list[str] = []
        for name in self._phrase_characters():
            if name.lower() not in defined and name.lower() not in {u.lower() for u in undefined}:
                undefined.append(name)
        if undefined:
            return (
                f"ERROR: Undefined characters in phrases: {', '.join(undefined)}. "
                "All character names in phrases must match defined characters."
            )
        return None

    def _check_story_coverage(self) -> str | None:
        story = self._story_text
        remaining = story
        for entry in self._timeline:
            if entry["kind"] == "phrase" and entry["text"].strip():
                phrase = _WHITESPACE_RE.sub(" ", entry["text"]).strip()
                remaining = re.sub(re.escape(phrase), "", remaining, flags=re.IGNORECASE)
        for character in self._characters:
            if character["name"].strip():
                remaining = re.sub(re.escape(character["name"]), "", remaining, flags=re.IGNORECASE)

        remaining = _RESIDUAL_PUNCTUATION_RE.sub("", remaining)
        remaining = _WHITESPACE_RE.sub(" ", remaining).strip()

        uncovered = len(remaining) / len(story) * 100.0
        if uncovered > MAX_UNCOVERED_STORY_PERCENT:
            return (
                f"ERROR: Insufficient story coverage. {uncovered:.1f}% of the story content was not "
                "included in the schema. Please ensure all significant dialogue and narrative "
                "elements are captured as phrases or pauses."
            )
        return None
