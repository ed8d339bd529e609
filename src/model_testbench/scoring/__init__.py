"""
Scoring sub-package

Provides response validation, the structural dialogue comparator, score
aggregation and evaluator-agent story scoring.
"""

from model_testbench.domain.value_objects import EvaluationOutcome, ValidationResult
from model_testbench.scoring.aggregator import (
    clamp_score,
    evaluation_score,
    group_score,
    overall_score,
    run_score,
    writer_score,
)
from model_testbench.scoring.dialogue_comparator import (
    compare_dialogue_json,
    compare_dialogue_tracks,
    dialogue_penalty,
    parse_dialogue_track,
    split_words,
)
from model_testbench.scoring.story_evaluator import (
    LLMStoryEvaluator,
    StoryEvaluationError,
    StoryEvaluator,
    parse_evaluation,
)
from model_testbench.scoring.validation import (
    unwrap_structured_value,
    validate_function_call_response,
    validate_non_empty,
    validate_range,
    validate_response,
    validate_structured_response,
)

__all__ = [
    # value objects (re-exported from domain)
    "EvaluationOutcome",
    "ValidationResult",
    # validation
    "unwrap_structured_value",
    "validate_function_call_response",
    "validate_non_empty",
    "validate_range",
    "validate_response",
    "validate_structured_response",
    # dialogue comparator
    "compare_dialogue_json",
    "compare_dialogue_tracks",
    "dialogue_penalty",
    "parse_dialogue_track",
    "split_words",
    # aggregation
    "clamp_score",
    "evaluation_score",
    "group_score",
    "overall_score",
    "run_score",
    "writer_score",
    # story evaluation
    "LLMStoryEvaluator",
    "StoryEvaluationError",
    "StoryEvaluator",
    "parse_evaluation",
]
