"""
"tts" executor: the model builds a dialogue schema through the tts_schema
capability; the artifact it confirms is compared with a reference track.
Failed attempts are retried with an explicit reminder.
"""

from __future__ import annotations

import logging
import time
from pathlib import Path

from model_testbench.domain.constants import EXPECTED_RESULT_SUFFIX, TTS_SCHEMA_CAPABILITY
from model_testbench.domain.entities import StepOutcome, TestType
from model_testbench.domain.errors import InvocationTimeout, ProviderConstructionError
from model_testbench.domain.value_objects import Conversation
from model_testbench.infrastructure.model_clients.invocation import execution_settings, invoke_model
from model_testbench.scoring.dialogue_comparator import compare_dialogue_json
from model_testbench.use_cases.executors.common import (
    StepContext,
    elapsed_ms,
    failed,
    load_execution_plan,
    open_session,
    snapshot,
)

logger = logging.getLogger(__name__)

TTS_ASSET_TYPE = "tts_schema"
CONFIRM_TOOL_NAME = f"{TTS_SCHEMA_CAPABILITY}-confirm_schema"


def retry_message(prompt: str, attempt: int, max_attempts: int) -> str:
    return (
        f"{prompt}\n\n[RETRY {attempt}/{max_attempts}] The schema file was not generated. "
        f"You MUST call {CONFIRM_TOOL_NAME} to save the schema to a JSON file before completing the task."
    )


def snapshot_json_files(folder: Path) -> dict[str, int]:
    """Modification time (ns) of every JSON file currently in the folder"""
    return {str(p): p.stat().st_mtime_ns for p in folder.glob("*.json") if p.is_file()}


def find_new_artifact(folder: Path, before: dict[str, int]) -> Path | None:
    """
    Most recently modified JSON file created or changed since the snapshot

    Files ending in _expected_result.json are never artifacts.
    """
    candidates = []
    for path in folder.glob("*.json"):
        if not path.is_file() or path.name.endswith(EXPECTED_RESULT_SUFFIX):
            continue
        mtime = path.stat().st_mtime_ns
        if before.get(str(path)) != mtime:
            candidates.append((mtime, path))
    if not candidates:
        return None
    return max(candidates)[1]


def _read_story(ctx: StepContext, folder: Path) -> str | None:
    path = folder / ctx.config.paths.reference_story_file
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        ctx.report(f"Reference story not loaded ({path}): {e}")
        return None


def _score_artifact(ctx: StepContext, artifact: Path, attempt: int, start_time: float) -> StepOutcome:
    try:
        actual_json = artifact.read_text(encoding="utf-8")
    except OSError as e:
        return failed(f"Cannot read generated artifact {artifact.name}: {e}", start_time)

    expected_path = Path(ctx.config.paths.source_files_dir) / ctx.config.paths.expected_result_file
    try:
        expected_json = expected_path.read_text(encoding="utf-8")
    except OSError as e:
        return failed(f"Expected result file not available ({expected_path}): {e}", start_time)

    try:
        score = compare_dialogue_json(expected_json, actual_json)
    except ValueError as e:
        return failed(f"Invalid dialogue track in {artifact.name}: {e}", start_time)

    threshold = ctx.config.tts.pass_threshold
    passed = score >= threshold
    ctx.report(f"Artifact {artifact.name} scored {score}/10 (attempt {attempt})")
    ctx.store.add_asset(
        ctx.step_id,
        TTS_ASSET_TYPE,
        str(artifact),
        description="Generated TTS schema",
        size_bytes=len(actual_json.encode("utf-8")),
    )
    return StepOutcome(
        passed=passed,
        output=snapshot(file_path=str(artifact), score=score, passed=passed, attempt=attempt),
        error=None if passed else f"Score too low: {score}/10",
        duration_ms=elapsed_ms(start_time),
    )


def execute_tts(ctx: StepContext) -> StepOutcome:
    """
    Run the schema-building attempts

    Raises:
        ProviderConstructionError: If a session cannot be opened
    """
    start_time = time.time()
    if not ctx.working_folder:
        return failed("No working folder available for the schema artifact", start_time)

    folder = Path(ctx.working_folder)
    max_attempts = max(1, ctx.config.tts.max_attempts)
    story_text = _read_story(ctx, folder)

    conversation = Conversation()
    plan = load_execution_plan(ctx)
    if plan and plan.strip():
        conversation.add_system(plan)
    conversation.add_user(ctx.prompt)

    before = snapshot_json_files(folder)
    settings = execution_settings(ctx.model.name)

    for attempt in range(1, max_attempts + 1):
        last_attempt = attempt == max_attempts
        ctx.report(f"TTS attempt {attempt}/{max_attempts}")
        session = open_session(
            ctx,
            tool_calling=True,
            extra_capabilities=(TTS_SCHEMA_CAPABILITY,),
            story_text=story_text,
        )
        try:
            response = invoke_model(
                session,
                conversation,
                settings,
                ctx.timeout,
                progress=ctx.progress,
                activity_status=f"TTS {ctx.step_number} ({attempt}/{max_attempts})",
                test_type=TestType.TTS.value,
            )
        except InvocationTimeout:
            ctx.report(f"Attempt {attempt} timed out after {ctx.timeout}s")
            if last_attempt:
                return failed(f"Timeout after {ctx.timeout}s on all {max_attempts} attempts", start_time)
            conversation.add_user(retry_message(ctx.prompt, attempt + 1, max_attempts))
            continue
        except ProviderConstructionError:
            raise
        except Exception as e:
            # Any other failure spends one attempt of the budget
            logger.warning("[%s] TTS attempt %s failed: %s", ctx.model.name, attempt, e)
            ctx.report(f"Attempt {attempt} failed: {e}")
            if last_attempt:
                return failed(f"{e} (after {max_attempts} attempts)", start_time)
            conversation.add_user(retry_message(ctx.prompt, attempt + 1, max_attempts))
            continue

        if response.output:
            conversation.add_assistant(response.output)

        artifact = find_new_artifact(folder, before)
        if artifact is not None:
            return _score_artifact(ctx, artifact, attempt, start_time)

        if last_attempt:
            break
        ctx.report(f"No schema file found after attempt {attempt}, retrying")
        conversation.add_user(retry_message(ctx.prompt, attempt + 1, max_attempts))

    return failed(f"No structured artifact generated after {max_attempts} attempts", start_time)
