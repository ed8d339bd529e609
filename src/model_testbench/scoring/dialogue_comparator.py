"""
Structural dialogue comparator

Scores how closely a generated dialogue track matches the expected one on a
1-10 scale by accumulating penalties. The comparison is pure and
deterministic.
"""

from __future__ import annotations

import json
import re

from model_testbench.domain.value_objects import DialogueCharacter, DialogueEntry, DialogueTrack

MISSING_CHARACTER_PENALTY = 3
WRONG_GENDER_PENALTY = 3
ENTRY_TYPE_PENALTY = 2
MISSING_WORD_PENALTY = 1
WRONG_SPEAKER_PENALTY = 2
WRONG_EMOTION_PENALTY = 1

# Every 3 penalty points cost one point of the score
PENALTY_PER_POINT = 3

MIN_SCORE = 1
MAX_SCORE = 10

_WORD_SEPARATORS = re.compile(r"[ ,.!?;:\n\r\t]+")


def split_words(text: str | None) -> list[str]:
    """Split dialogue text into lower-cased words, dropping punctuation"""
    if not text or not text.strip():
        return []
    return [w.strip().lower() for w in _WORD_SEPARATORS.split(text) if w.strip()]


def _lower_keys(data: dict) -> dict:
    return {str(k).lower(): v for k, v in data.items()}


def _parse_entry(raw: dict) -> DialogueEntry:
    data = _lower_keys(raw)
    entry_type = str(data.get("type") or data.get("kind") or "")
    if not entry_type:
        # Untagged entries: pauses carry a duration, phrases carry text
        entry_type = "pause" if "seconds" in data else "dialogue"
    if entry_type == "phrase":
        entry_type = "dialogue"
    return DialogueEntry(
        type=entry_type,
        character=str(data.get("character") or ""),
        emotion=str(data.get("emotion") or ""),
        text=str(data.get("text") or ""),
        seconds=int(data.get("seconds") or data.get("duration") or 0),
    )


def parse_dialogue_track(source: str | dict) -> DialogueTrack:
    """
    Parse a dialogue track

    Accepts both the comparator layout ({"characters", "entries"} with
    "type": dialogue|pause) and the on-disk artifact layout
    ({"characters", "timeline"} with "kind": phrase|pause). Keys are
    case-insensitive.

    Args:
        source: JSON text or already decoded dictionary

    Returns:
        DialogueTrack

    Raises:
        ValueError: If the source is not a JSON object
    """
    data = json.loads(source) if isinstance(source, str) else source
    if data is None:
        return DialogueTrack()
    if not isinstance(data, dict):
        raise ValueError("Dialogue track must be a JSON object")
    data = _lower_keys(data)

    characters = tuple(
        DialogueCharacter(
            name=str(_lower_keys(c).get("name") or ""),
            gender=str(_lower_keys(c).get("gender") or ""),
        )
        for c in (data.get("characters") or [])
        if isinstance(c, dict)
    )
    raw_entries = data.get("entries")
    if raw_entries is None:
        raw_entries = data.get("timeline") or []
    entries = tuple(_parse_entry(e) for e in raw_entries if isinstance(e, dict))
    return DialogueTrack(characters=characters, entries=entries)


def dialogue_penalty(expected: DialogueTrack, actual: DialogueTrack) -> int:
    """Total penalty points of actual against expected"""
    penalty = 0

    # Characters and gender
    for exp_char in expected.characters:
        act_char = next((c for c in actual.characters if c.name == exp_char.name), None)
        if act_char is None:
            penalty += MISSING_CHARACTER_PENALTY
            continue
        if act_char.gender != exp_char.gender:
            penalty += WRONG_GENDER_PENALTY

    # Entries, compared by position
    for exp_entry, act_entry in zip(expected.entries, actual.entries):
        if exp_entry.type != act_entry.type:
            penalty += ENTRY_TYPE_PENALTY
            continue
        if exp_entry.type != "dialogue":
            continue

        actual_words = split_words(act_entry.text)
        for word in split_words(exp_entry.text):
            if word not in actual_words:
                penalty += MISSING_WORD_PENALTY
        if act_entry.character != exp_entry.character:
            penalty += WRONG_SPEAKER_PENALTY
        if act_entry.emotion != exp_entry.emotion:
            penalty += WRONG_EMOTION_PENALTY

    return penalty


def compare_dialogue_tracks(expected: DialogueTrack, actual: DialogueTrack) -> int:
    """
    Score actual against expected

    Args:
        expected: Reference track
        actual: Generated track

    Returns:
        Integer score in [1, 10]; 10 means a perfect match
    """
    score = MAX_SCORE - dialogue_penalty(expected, actual) // PENALTY_PER_POINT
    return max(MIN_SCORE, min(MAX_SCORE, score))


def compare_dialogue_json(expected_json: str, actual_json: str) -> int:
    """Parse both tracks and compare them"""
    return compare_dialogue_tracks(parse_dialogue_track(expected_json), parse_dialogue_track(actual_json))
