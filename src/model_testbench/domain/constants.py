"""
Domain Constants

Centrally manages constants shared across the test execution engine.
"""

# Placeholder replaced with the absolute path of the run's working folder
TEST_FOLDER_PLACEHOLDER = "[test_folder]"

# Provider families running on the operator's machine (warm-up, context window)
LOCAL_PROVIDERS = ("ollama", "lmstudio")

# Models that only accept a fixed sampling temperature
FIXED_TEMPERATURE_MODELS = {
    "gpt-5-nano": 1.0,
}

DEFAULT_TEMPERATURE = 0.0
DEFAULT_MAX_TOKENS = 8000

# Warm-up call
WARMUP_PROMPT = "Hello"
WARMUP_MAX_TOKENS = 10

# Run score scale
MAX_SCORE = 10

# Each evaluator agent scores ten categories of 0-10 points
EVALUATION_MAX_TOTAL = 100
EVALUATION_CATEGORIES = [
    "narrative_coherence",
    "structure",
    "characterization",
    "dialogues",
    "pacing",
    "originality",
    "style",
    "worldbuilding",
    "thematic_coherence",
    "emotional_impact",
]

# Agent role allowed to evaluate generated stories
STORY_EVALUATOR_ROLE = "story_evaluator"

# Substring of provider errors raised by models without function calling
TOOLS_UNSUPPORTED_MARKER = "does not support tools"

# Capability family always granted to "tts" tests
TTS_SCHEMA_CAPABILITY = "tts_schema"

# Emotions accepted in dialogue track phrases
SUPPORTED_EMOTIONS = (
    "neutral",
    "happy",
    "sad",
    "angry",
    "fearful",
    "disgusted",
    "surprised",
)

# Character automatically created by narration phrases
NARRATOR_NAME = "Narratore"

# Files ending with this suffix are references, never generated artifacts
EXPECTED_RESULT_SUFFIX = "_expected_result.json"

# Artifact written by the tts_schema capability into the working folder
TTS_SCHEMA_FILE_NAME = "tts_schema.json"

# Reference narrative staged for "tts" tests
REFERENCE_STORY_FILE_NAME = "tts_storia.txt"

# Share of the story (percent) allowed to be missing from a confirmed schema
MAX_UNCOVERED_STORY_PERCENT = 5.0
