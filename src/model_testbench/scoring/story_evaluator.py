"""
Story evaluation

Implements LLMStoryEvaluator, which has an evaluator agent (a separate
model with its own instructions) score a generated story across ten
categories and records the verdict in the test store.
"""

from __future__ import annotations

import json
import logging
import re
from abc import ABC, abstractmethod
from pathlib import Path
from typing import TYPE_CHECKING

from model_testbench.bench_config import BenchConfig
from model_testbench.domain.constants import EVALUATION_CATEGORIES, EVALUATION_MAX_TOTAL
from model_testbench.domain.errors import TestbenchError
from model_testbench.domain.value_objects import Conversation, EvaluationOutcome
from model_testbench.infrastructure.model_clients.invocation import execution_settings, invoke_model

if TYPE_CHECKING:
    from model_testbench.infrastructure.model_clients.base import ModelProvider
    from model_testbench.infrastructure.progress import ProgressChannel
    from model_testbench.infrastructure.store.base import TestStore

logger = logging.getLogger(__name__)

DEFAULT_EVALUATION_SCHEMA_FILE = "full_evaluation.json"
EVALUATOR_MAX_TOKENS = 4000


class StoryEvaluationError(Exception):
    """Error raised when an evaluator response cannot be parsed"""
    pass


def default_evaluation_schema() -> dict:
    """JSON Schema of an evaluation: <category>_score/_defects, total_score, overall_evaluation"""
    properties: dict[str, dict] = {}
    for category in EVALUATION_CATEGORIES:
        properties[f"{category}_score"] = {"type": "integer", "minimum": 1, "maximum": 10}
        properties[f"{category}_defects"] = {"type": "string"}
    properties["total_score"] = {"type": "number", "minimum": 0, "maximum": EVALUATION_MAX_TOTAL}
    properties["overall_evaluation"] = {"type": "string"}
    return {
        "type": "object",
        "properties": properties,
        "required": list(properties),
        "additionalProperties": False,
    }


def build_evaluation_prompt(story_text: str) -> str:
    parts = [
        "Please evaluate the following story across all 10 categories. For each category, provide:",
        "- A score from 1 to 10",
        "- A description of any defects found",
        "",
        f"Categories: {', '.join(EVALUATION_CATEGORIES)}",
        "",
        "Also provide:",
        f"- total_score: sum of all category scores (0-{EVALUATION_MAX_TOTAL})",
        "- overall_evaluation: a brief summary of the story's strengths and weaknesses",
        "",
        "Story:",
        story_text,
    ]
    return "\n".join(parts)


_TOTAL_RE = re.compile(r"total_score\"?\s*[:=]\s*(\d+(?:\.\d+)?)", re.IGNORECASE)


def _to_int(value) -> int | None:
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_evaluation(raw: str) -> tuple[float, dict[str, int], str]:
    """
    Extract total score, category scores and summary from an evaluator response

    Parse order:
    1. JSON object (flat "<category>_score" keys or nested {"<category>": {"score"}})
    2. Regex fallback on "total_score" (no categories)
    3. StoryEvaluationError

    Returns:
        (total clamped to 0-100, {category: score}, overall evaluation)
    """
    text = raw.strip()

    try:
        match = re.search(r"```(?:json)?\s*([\s\S]*?)\s*```", text)
        data = json.loads((match.group(1) if match else text).strip())
    except json.JSONDecodeError:
        data = None

    if isinstance(data, dict):
        categories: dict[str, int] = {}
        for category in EVALUATION_CATEGORIES:
            value = data.get(f"{category}_score")
            if value is None and isinstance(data.get(category), dict):
                value = data[category].get("score")
            score = _to_int(value)
            if score is not None:
                categories[category] = score

        total = data.get("total_score")
        try:
            total_value = float(total) if total is not None else float(sum(categories.values()))
        except (TypeError, ValueError):
            total_value = float(sum(categories.values()))
        overall = data.get("overall_evaluation") or ""
        return _clamp_total(total_value), categories, str(overall)

    m = _TOTAL_RE.search(text)
    if m:
        return _clamp_total(float(m.group(1))), {}, ""

    raise StoryEvaluationError(f"Failed to parse evaluation response: {text[:200]}")


def _clamp_total(value: float) -> float:
    return max(0.0, min(float(EVALUATION_MAX_TOTAL), value))


class StoryEvaluator(ABC):
    """Scores a stored story with one evaluator agent"""

    @abstractmethod
    def evaluate(self, story_id: int, agent_id: int) -> EvaluationOutcome:
        """
        Evaluate a story

        Returns:
            EvaluationOutcome with the 0-100 total on success; failures are
            reported in the outcome, never raised
        """
        pass


class LLMStoryEvaluator(StoryEvaluator):
    """Story evaluator that asks the agent's model for a structured verdict"""

    def __init__(
        self,
        store: TestStore,
        provider: ModelProvider,
        config: BenchConfig,
        progress: ProgressChannel | None = None,
    ) -> None:
        self._store = store
        self._provider = provider
        self._config = config
        self._progress = progress

    def _response_schema(self, schema_file: str | None) -> dict:
        path = Path(self._config.paths.response_formats_dir) / (schema_file or DEFAULT_EVALUATION_SCHEMA_FILE)
        if path.is_file():
            try:
                return json.loads(path.read_text(encoding="utf-8"))
            except (OSError, json.JSONDecodeError) as e:
                logger.warning("Invalid evaluation schema %s, using the built-in one: %s", path, e)
        return default_evaluation_schema()

    def evaluate(self, story_id: int, agent_id: int) -> EvaluationOutcome:
        story = self._store.get_story(story_id)
        if story is None:
            return EvaluationOutcome(False, error="Story not found")
        agent = self._store.get_agent(agent_id)
        if agent is None:
            return EvaluationOutcome(False, error="Agent not found")
        model = self._store.get_model(agent.model_name)
        if model is None:
            return EvaluationOutcome(False, error=f"Evaluator model not found: {agent.model_name}")

        conversation = Conversation()
        if agent.instructions.strip():
            conversation.add_system(agent.instructions)
        conversation.add_user(build_evaluation_prompt(story.text))
        settings = execution_settings(
            model.name,
            max_tokens=EVALUATOR_MAX_TOKENS,
            response_schema=self._response_schema(agent.response_schema),
        )

        try:
            session = self._provider.open_session(model)
            response = invoke_model(
                session,
                conversation,
                settings,
                self._config.timeouts.evaluator_seconds,
                progress=self._progress,
                activity_name=agent.name,
                activity_status="Evaluating",
                test_type="evaluator",
            )
        except TestbenchError as e:
            logger.warning("Evaluation of story %s by agent %s failed: %s", story_id, agent.name, e)
            return EvaluationOutcome(False, error=str(e))

        if not response.output.strip():
            return EvaluationOutcome(False, error="Empty response from evaluator")
        try:
            total, categories, overall = parse_evaluation(response.output)
        except StoryEvaluationError as e:
            return EvaluationOutcome(False, error=str(e))

        self._store.add_story_evaluation(
            story_id,
            total,
            category_scores=categories,
            overall_evaluation=overall,
            raw_json=response.output,
            agent_id=agent.id,
        )
        logger.info("Story %s evaluated by %s: %.1f/%d", story_id, agent.name, total, EVALUATION_MAX_TOTAL)
        return EvaluationOutcome(True, total_score=total)
