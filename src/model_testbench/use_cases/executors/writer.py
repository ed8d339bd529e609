"""
"writer" executor: long-form narrative scored by evaluator agents
"""

from __future__ import annotations

import json
import logging
import time

from model_testbench.domain.constants import MAX_SCORE
from model_testbench.domain.entities import StepOutcome, TestType
from model_testbench.domain.errors import InvocationTimeout, ProviderError
from model_testbench.domain.value_objects import Conversation
from model_testbench.infrastructure.model_clients.invocation import execution_settings, invoke_model
from model_testbench.scoring.aggregator import evaluation_score
from model_testbench.use_cases.executors.common import (
    StepContext,
    elapsed_ms,
    failed,
    load_execution_plan,
    open_session,
    snapshot,
)

logger = logging.getLogger(__name__)

STORY_ASSET_TYPE = "story"

FALLBACK_INSTRUCTIONS = (
    "You are a professional storyteller. Write detailed, engaging stories of at least 2000 words "
    "IN {language_upper}.\n"
    "Include rich descriptions, well-developed characters, multiple scenes, and a complete narrative arc.\n"
    "DO NOT rush or summarize. Take your time to develop the story fully.\n"
    "IMPORTANT: Write the story in {language} language."
)


def fallback_instructions(language: str) -> str:
    return FALLBACK_INSTRUCTIONS.format(language=language, language_upper=language.upper())


def extract_story_text(raw: str) -> str:
    """Unwrap a {"result": ...} or {"story": ...} envelope, otherwise return raw"""
    if not raw.strip().startswith("{"):
        return raw
    try:
        data = json.loads(raw)
    except json.JSONDecodeError:
        return raw
    if isinstance(data, dict):
        for key in ("result", "story"):
            if isinstance(data.get(key), str):
                return data[key]
    return raw


def evaluate_story(ctx: StepContext, story_id: int) -> float:
    """
    Score a story with every active evaluator agent

    Returns:
        sum(totals) / (successful * 100) * 10, or the maximal score when
        there are no evaluators or no evaluation succeeded
    """
    agents = ctx.store.list_evaluator_agents()
    if not agents or ctx.story_evaluator is None:
        ctx.report("No active story evaluator agents found, skipping evaluation")
        return float(MAX_SCORE)

    ctx.report(f"Evaluating story with {len(agents)} evaluator agent(s)")
    totals: list[float] = []
    for agent in agents:
        ctx.report(f"Running evaluation with agent: {agent.name}")
        try:
            outcome = ctx.story_evaluator.evaluate(story_id, agent.id)
        except Exception as e:
            logger.exception("Evaluator %s raised on story %s", agent.name, story_id)
            ctx.report(f"Error evaluating with {agent.name}: {e}")
            continue
        if outcome.success:
            totals.append(outcome.total_score)
            ctx.report(f"Evaluator {agent.name} scored: {outcome.total_score}/100")
        else:
            ctx.report(f"Evaluator {agent.name} failed: {outcome.error}")

    score = evaluation_score(totals)
    if score is None:
        ctx.report("No successful evaluations, using default score")
        return float(MAX_SCORE)
    ctx.report(f"Final evaluation score: {score:.2f}/10 (total: {sum(totals):g}/{len(totals) * 100})")
    return score


def execute_writer(ctx: StepContext) -> StepOutcome:
    start_time = time.time()
    definition = ctx.definition
    writer = ctx.config.writer
    session = open_session(ctx, tool_calling=False)

    context_window = None
    if ctx.model.is_local:
        context_window = ctx.model.max_context if ctx.model.max_context > 0 else writer.default_context_window
        ctx.report(f"Requesting context window: {context_window} tokens")
    settings = execution_settings(
        ctx.model.name,
        temperature=writer.temperature,
        max_tokens=writer.max_tokens,
        context_window=context_window,
    )

    conversation = Conversation()
    instructions = load_execution_plan(ctx) if definition.execution_plan else fallback_instructions(writer.language)
    if instructions and instructions.strip():
        conversation.add_system(instructions)
    conversation.add_user(ctx.prompt)

    try:
        response = invoke_model(
            session,
            conversation,
            settings,
            ctx.timeout,
            progress=ctx.progress,
            activity_status=f"Writer {ctx.step_number}",
            test_type=TestType.WRITER.value,
        )
    except InvocationTimeout:
        return failed(f"Timeout after {ctx.timeout}s", start_time)
    except ProviderError as e:
        return failed(str(e), start_time)

    generation_ms = elapsed_ms(start_time)
    if not response.output.strip():
        return failed("No story text returned from writer", start_time, output="")

    story_text = extract_story_text(response.output)
    story_id = ctx.store.add_story(definition.prompt, story_text, model_name=ctx.model.name)
    ctx.store.add_asset(
        ctx.step_id,
        STORY_ASSET_TYPE,
        f"/stories/{story_id}",
        description="Generated story",
        duration_seconds=generation_ms / 1000.0,
        size_bytes=len(story_text),
        story_id=story_id,
    )

    score = evaluate_story(ctx, story_id)
    passed = score >= writer.pass_threshold
    return StepOutcome(
        passed=passed,
        output=snapshot(story_id=story_id, length=len(story_text), evaluation_score=score),
        error=None if passed else f"Evaluation score too low: {score:.1f}/10",
        duration_ms=generation_ms,
    )
