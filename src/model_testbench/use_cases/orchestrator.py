"""
Test Run Orchestrator

Runs a test group against a model: stages the working folder, warms up
local models, dispatches every test definition to its executor and
aggregates the run into the model's scores.
"""

from __future__ import annotations

import logging
import time

from model_testbench.bench_config import BenchConfig, load_config
from model_testbench.domain.constants import WARMUP_MAX_TOKENS, WARMUP_PROMPT
from model_testbench.domain.entities import ModelRecord, RunSummary, StepOutcome, TestDefinition
from model_testbench.domain.errors import (
    EmptyGroupError,
    ProviderConstructionError,
    TestbenchError,
    UnknownModelError,
)
from model_testbench.domain.value_objects import Conversation
from model_testbench.infrastructure.model_clients.base import ModelProvider
from model_testbench.infrastructure.model_clients.invocation import execution_settings, invoke_model
from model_testbench.infrastructure.progress import ProgressChannel
from model_testbench.infrastructure.store.base import TestStore
from model_testbench.scoring.aggregator import run_score
from model_testbench.scoring.story_evaluator import StoryEvaluator
from model_testbench.use_cases.executors import EXECUTORS, StepContext
from model_testbench.use_cases.executors.common import elapsed_ms, snapshot
from model_testbench.use_cases.staging import resolve_prompt, stage_working_folder

logger = logging.getLogger(__name__)


class TestRunOrchestrator:
    """Executes test groups and keeps model scores up to date"""

    __test__ = False

    def __init__(
        self,
        store: TestStore,
        provider: ModelProvider,
        config: BenchConfig | None = None,
        progress: ProgressChannel | None = None,
        story_evaluator: StoryEvaluator | None = None,
    ):
        self.store = store
        self.provider = provider
        self.config = config or load_config()
        self.progress = progress
        self.story_evaluator = story_evaluator

    def run_group(self, model_name: str, group: str) -> RunSummary:
        """
        Run every active test of a group against a model

        Args:
            model_name: Name of a known model
            group: Test group name

        Returns:
            RunSummary

        Raises:
            UnknownModelError: If the model is not in the store
            EmptyGroupError: If the group has no active definitions
            ProviderConstructionError: If a model session cannot be opened;
                the run is recorded as failed before the error propagates
        """
        model = self.store.get_model(model_name)
        if model is None:
            raise UnknownModelError(f"Unknown model: {model_name}")
        definitions = self.store.get_test_definitions(group)
        if not definitions:
            raise EmptyGroupError(f"Test group '{group}' has no active tests")

        working_folder = stage_working_folder(definitions, model.name, group, self.config.paths)
        run_id = self.store.create_run(model.name, group, working_folder)
        if self.progress is not None:
            self.progress.start(run_id)
        self._report(run_id, model, f"Starting test group '{group}' ({len(definitions)} tests)")
        if working_folder:
            self._report(run_id, model, f"Working folder: {working_folder}")

        if model.is_local:
            self._warm_up(run_id, model)

        start_time = time.time()
        try:
            for step_number, definition in enumerate(definitions, start=1):
                self._run_step(run_id, model, definition, step_number, working_folder)
        except ProviderConstructionError as e:
            self.store.update_run_result(run_id, False, elapsed_ms(start_time), notes=f"Aborted: {e}")
            self._report(run_id, model, f"❌ Run aborted: {e}")
            if self.progress is not None:
                self.progress.mark_completed(run_id, f"Aborted: {e}")
            raise

        duration_ms = elapsed_ms(start_time)
        passed, total = self.store.get_run_step_counts(run_id)
        score = run_score(passed, total)
        run_passed = total > 0 and passed == total

        self.store.update_run_result(run_id, run_passed, duration_ms)
        self.store.record_test_duration(model.name, duration_ms / 1000.0)
        self.store.recalculate_model_score(model.name)

        icon = "✅" if run_passed else "❌"
        completion = (
            f"{icon} Test group '{group}' completed: {passed}/{total} passed, "
            f"score {score}/10, duration {duration_ms / 1000.0:.1f}s"
        )
        self._report(run_id, model, completion)
        if self.progress is not None:
            self.progress.mark_completed(run_id, completion)

        return RunSummary(
            run_id=run_id,
            model_name=model.name,
            group_name=group,
            score=score,
            steps=total,
            passed=passed,
            duration_ms=duration_ms,
            run_passed=run_passed,
        )

    def run_all_enabled_models(self, group: str | None = None) -> list[RunSummary]:
        """
        Run a group against every enabled model, one model at a time

        Args:
            group: Test group name (default: the first known group)

        Returns:
            Summaries of the runs that completed
        """
        if group is None:
            groups = self.store.list_test_groups()
            if not groups:
                logger.warning("No test groups defined")
                return []
            group = groups[0]

        summaries = []
        for model in self.store.get_enabled_models():
            try:
                summaries.append(self.run_group(model.name, group))
            except TestbenchError as e:
                logger.error("Run of group '%s' failed for %s: %s", group, model.name, e)
        return summaries

    def _run_step(
        self,
        run_id: int,
        model: ModelRecord,
        definition: TestDefinition,
        step_number: int,
        working_folder: str | None,
    ) -> StepOutcome:
        prompt = resolve_prompt(definition.prompt, working_folder)
        plan = f"plan={definition.execution_plan}" if definition.execution_plan else "(no plan)"
        step_id = self.store.add_step(run_id, step_number, definition.step_name, snapshot(prompt=prompt, plan=plan))
        ctx = StepContext(
            definition=definition,
            model=model,
            prompt=prompt,
            run_id=run_id,
            step_id=step_id,
            step_number=step_number,
            working_folder=working_folder,
            store=self.store,
            provider=self.provider,
            config=self.config,
            progress=self.progress,
            story_evaluator=self.story_evaluator,
        )
        ctx.report(f"Step {step_number}: {definition.step_name} ({definition.test_type.value})")

        start_time = time.time()
        try:
            outcome = EXECUTORS[definition.test_type](ctx)
        except ProviderConstructionError as e:
            self.store.update_step_result(step_id, False, error=str(e), duration_ms=elapsed_ms(start_time))
            raise
        except Exception as e:
            logger.exception("[%s] Step %s (%s) raised", model.name, step_number, definition.step_name)
            outcome = StepOutcome(passed=False, error=str(e), duration_ms=elapsed_ms(start_time))

        self.store.update_step_result(step_id, outcome.passed, outcome.output, outcome.error, outcome.duration_ms)
        if outcome.passed:
            ctx.report(f"✅ Step {step_number} passed ({outcome.duration_ms}ms)")
        else:
            ctx.report(f"❌ Step {step_number} failed: {outcome.error}")
        return outcome

    def _warm_up(self, run_id: int, model: ModelRecord) -> None:
        """Throwaway call keeping cold-start latency out of the measured duration"""
        self._report(run_id, model, "Warming up local model...")
        conversation = Conversation()
        conversation.add_user(WARMUP_PROMPT)
        settings = execution_settings(model.name, max_tokens=WARMUP_MAX_TOKENS)
        try:
            session = self.provider.open_session(model, [], tool_calling=False)
            invoke_model(session, conversation, settings, self.config.timeouts.warmup_seconds)
        except TestbenchError as e:
            logger.warning("[%s] Warm-up failed: %s", model.name, e)
            self._report(run_id, model, f"Warm-up failed: {e}")
            return
        self._report(run_id, model, "Warm-up completed")

    def _report(self, run_id: int, model: ModelRecord, message: str) -> None:
        line = f"[{model.name}] {message}"
        if self.progress is not None:
            self.progress.append(run_id, line)
        else:
            logger.info("[run %s] %s", run_id, line)
