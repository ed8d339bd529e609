"""
Shared plumbing of the per-type step executors
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from pathlib import Path

from model_testbench.bench_config import BenchConfig
from model_testbench.capabilities import CapabilityContext, build_capabilities
from model_testbench.domain.entities import ModelRecord, StepOutcome, TestDefinition
from model_testbench.infrastructure.model_clients.base import ModelProvider, ModelSession
from model_testbench.infrastructure.progress import ProgressChannel
from model_testbench.infrastructure.store.base import TestStore
from model_testbench.scoring.story_evaluator import StoryEvaluator

logger = logging.getLogger(__name__)


@dataclass
class StepContext:
    """Everything an executor needs to run one test definition"""
    definition: TestDefinition
    model: ModelRecord
    prompt: str  # [test_folder] already resolved
    run_id: int
    step_id: int
    step_number: int
    working_folder: str | None
    store: TestStore
    provider: ModelProvider
    config: BenchConfig
    progress: ProgressChannel | None = None
    story_evaluator: StoryEvaluator | None = None

    @property
    def timeout(self) -> int:
        return self.definition.effective_timeout

    def report(self, message: str) -> None:
        """Append a line to the run's progress, prefixed with the model name"""
        line = f"[{self.model.name}] {message}"
        if self.progress is not None:
            self.progress.append(self.run_id, line)
        else:
            logger.info("[run %s] %s", self.run_id, line)


def elapsed_ms(start_time: float) -> int:
    return int((time.time() - start_time) * 1000)


def snapshot(**fields) -> str:
    """Serialize an input/output snapshot"""
    return json.dumps(fields, ensure_ascii=False)


def failed(error: str, start_time: float, output: str | None = None) -> StepOutcome:
    return StepOutcome(passed=False, output=output, error=error, duration_ms=elapsed_ms(start_time))


def load_execution_plan(ctx: StepContext) -> str | None:
    """Text of the definition's execution plan, None if not declared or unreadable"""
    plan = ctx.definition.execution_plan
    if not plan:
        return None
    path = Path(ctx.config.paths.execution_plans_dir) / plan
    try:
        return path.read_text(encoding="utf-8")
    except OSError as e:
        ctx.report(f"Execution plan not loaded ({path}): {e}")
        return None


def load_response_schema(ctx: StepContext) -> dict | None:
    """JSON Schema referenced by the definition, None if not declared or unreadable"""
    reference = ctx.definition.response_schema
    if not reference:
        return None
    path = Path(ctx.config.paths.response_formats_dir) / reference
    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError) as e:
        ctx.report(f"Response schema not loaded ({path}): {e}")
        return None


def open_session(
    ctx: StepContext,
    tool_calling: bool,
    extra_capabilities: tuple[str, ...] = (),
    story_text: str | None = None,
) -> ModelSession:
    """
    Open a session with fresh capability instances for this invocation

    Raises:
        ProviderConstructionError: If the provider cannot be opened
    """
    names = list(ctx.definition.allowed_capabilities) + list(extra_capabilities)
    capability_context = CapabilityContext(
        model_name=ctx.model.name,
        working_folder=ctx.working_folder,
        story_text=story_text,
        story_file_name=ctx.config.paths.reference_story_file,
    )
    capabilities = build_capabilities(names, capability_context) if tool_calling else []
    return ctx.provider.open_session(ctx.model, capabilities, tool_calling=tool_calling)
