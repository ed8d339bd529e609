"""
SQLAlchemy implementation of the test store
"""

from __future__ import annotations

import json
import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Iterator

from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import StaticPool

from model_testbench.domain.constants import STORY_EVALUATOR_ROLE
from model_testbench.domain.entities import (
    EvaluatorAgent,
    ModelRecord,
    StoryEvaluation,
    StoryRecord,
    TestAsset,
    TestDefinition,
    TestRun,
    TestStep,
    TestType,
)
from model_testbench.domain.errors import UnknownModelError
from model_testbench.infrastructure.store.base import TestStore
from model_testbench.infrastructure.store.tables import (
    AgentRow,
    Base,
    ModelRow,
    StoryEvaluationRow,
    StoryRow,
    TestAssetRow,
    TestDefinitionRow,
    TestRunRow,
    TestStepRow,
)
from model_testbench.scoring.aggregator import evaluation_score, group_score, overall_score, writer_score

logger = logging.getLogger(__name__)


def _is_memory_sqlite(url: str) -> bool:
    return url in ("sqlite://", "sqlite:///:memory:")


def _to_model(row: ModelRow) -> ModelRecord:
    return ModelRecord(
        id=row.id,
        name=row.name,
        provider=row.provider,
        endpoint=row.endpoint,
        enabled=row.enabled,
        no_tools=row.no_tools,
        max_context=row.max_context,
        function_calling_score=row.function_calling_score,
        writer_score=row.writer_score,
        test_duration_seconds=row.test_duration_seconds,
    )


def _to_definition(row: TestDefinitionRow) -> TestDefinition:
    return TestDefinition(
        id=row.id,
        group_name=row.group_name,
        library=row.library,
        function_name=row.function_name,
        prompt=row.prompt,
        test_type=TestType.parse(row.test_type),
        timeout_seconds=row.timeout_seconds,
        priority=row.priority,
        expected_value=row.expected_value,
        valid_range=row.valid_range,
        response_schema=row.response_schema,
        execution_plan=row.execution_plan,
        allowed_capabilities=json.loads(row.allowed_capabilities or "[]"),
        files_to_stage=json.loads(row.files_to_stage or "[]"),
        description=row.description,
        active=row.active,
    )


def _to_agent(row: AgentRow) -> EvaluatorAgent:
    return EvaluatorAgent(
        id=row.id,
        name=row.name,
        model_name=row.model_name,
        role=row.role,
        instructions=row.instructions,
        response_schema=row.response_schema,
        active=row.active,
    )


def _to_step(row: TestStepRow) -> TestStep:
    return TestStep(
        id=row.id,
        run_id=row.run_id,
        step_number=row.step_number,
        name=row.name,
        input_snapshot=row.input_json,
        output_snapshot=row.output_json,
        passed=row.passed,
        error=row.error,
        duration_ms=row.duration_ms,
    )


def _to_asset(row: TestAssetRow) -> TestAsset:
    return TestAsset(
        id=row.id,
        step_id=row.step_id,
        asset_type=row.asset_type,
        path=row.path,
        description=row.description,
        duration_seconds=row.duration_seconds,
        size_bytes=row.size_bytes,
        story_id=row.story_id,
    )


class SqlTestStore(TestStore):
    """
    Test store backed by a SQLAlchemy engine

    Score and flag updates of one model are serialized with a per-model
    lock so that runs of the same model executed in parallel cannot
    interleave their read-modify-write cycles.
    """

    def __init__(self, url: str = "sqlite:///testbench.db", echo: bool = False) -> None:
        """
        Args:
            url: SQLAlchemy database URL
            echo: Log every SQL statement
        """
        kwargs: dict = {"echo": echo}
        if url.startswith("sqlite"):
            kwargs["connect_args"] = {"check_same_thread": False}
            if _is_memory_sqlite(url):
                kwargs["poolclass"] = StaticPool
        self.engine = create_engine(url, **kwargs)
        Base.metadata.create_all(self.engine)
        self._sessionmaker = sessionmaker(bind=self.engine, expire_on_commit=False)
        self._locks: dict[str, threading.Lock] = {}
        self._locks_guard = threading.Lock()

    @contextmanager
    def _session(self) -> Iterator[Session]:
        with self._sessionmaker.begin() as session:
            yield session

    def _model_lock(self, name: str) -> threading.Lock:
        with self._locks_guard:
            return self._locks.setdefault(name, threading.Lock())

    @staticmethod
    def _model_row(session: Session, name: str) -> ModelRow | None:
        return session.scalars(select(ModelRow).where(ModelRow.name == name)).first()

    # --- runs, steps, assets -------------------------------------------

    def create_run(
        self, model_name: str, group_name: str, working_folder: str | None = None, description: str = ""
    ) -> int:
        with self._session() as session:
            model = self._model_row(session, model_name)
            if model is None:
                raise UnknownModelError(f"Model not found: {model_name}")
            run = TestRunRow(
                model_id=model.id,
                group_name=group_name,
                working_folder=working_folder,
                description=description,
            )
            session.add(run)
            session.flush()
            return run.id

    def update_run_result(self, run_id: int, passed: bool, duration_ms: int | None, notes: str | None = None) -> None:
        with self._session() as session:
            run = session.get(TestRunRow, run_id)
            if run is None:
                logger.warning("update_run_result: run %s not found", run_id)
                return
            run.passed = passed
            run.duration_ms = duration_ms
            run.completed_at = datetime.now()
            if notes is not None:
                run.notes = notes

    def add_step(self, run_id: int, step_number: int, name: str, input_snapshot: str | None = None) -> int:
        with self._session() as session:
            step = TestStepRow(run_id=run_id, step_number=step_number, name=name, input_json=input_snapshot)
            session.add(step)
            session.flush()
            return step.id

    def update_step_result(
        self,
        step_id: int,
        passed: bool,
        output_snapshot: str | None = None,
        error: str | None = None,
        duration_ms: int | None = None,
    ) -> None:
        with self._session() as session:
            step = session.get(TestStepRow, step_id)
            if step is None:
                logger.warning("update_step_result: step %s not found", step_id)
                return
            step.passed = passed
            step.output_json = output_snapshot
            step.error = error
            step.duration_ms = duration_ms

    def add_asset(
        self,
        step_id: int,
        asset_type: str,
        path: str,
        description: str = "",
        duration_seconds: float | None = None,
        size_bytes: int | None = None,
        story_id: int | None = None,
    ) -> int:
        with self._session() as session:
            asset = TestAssetRow(
                step_id=step_id,
                asset_type=asset_type,
                path=path,
                description=description,
                duration_seconds=duration_seconds,
                size_bytes=size_bytes,
                story_id=story_id,
            )
            session.add(asset)
            session.flush()
            return asset.id

    def get_run(self, run_id: int) -> TestRun | None:
        with self._session() as session:
            row = session.get(TestRunRow, run_id)
            if row is None:
                return None
            return TestRun(
                id=row.id,
                model_name=row.model.name,
                group_name=row.group_name,
                working_folder=row.working_folder,
                started_at=row.started_at.isoformat(),
                passed=row.passed,
                duration_ms=row.duration_ms,
                description=row.description,
                notes=row.notes,
            )

    def get_run_steps(self, run_id: int) -> list[TestStep]:
        with self._session() as session:
            rows = session.scalars(
                select(TestStepRow).where(TestStepRow.run_id == run_id).order_by(TestStepRow.step_number, TestStepRow.id)
            )
            return [_to_step(r) for r in rows]

    def get_run_assets(self, run_id: int) -> list[TestAsset]:
        with self._session() as session:
            rows = session.scalars(
                select(TestAssetRow)
                .join(TestStepRow, TestStepRow.id == TestAssetRow.step_id)
                .where(TestStepRow.run_id == run_id)
                .order_by(TestAssetRow.id)
            )
            return [_to_asset(r) for r in rows]

    def get_run_step_counts(self, run_id: int) -> tuple[int, int]:
        with self._session() as session:
            return self._step_counts(session, run_id)

    @staticmethod
    def _step_counts(session: Session, run_id: int) -> tuple[int, int]:
        total = session.scalar(select(func.count(TestStepRow.id)).where(TestStepRow.run_id == run_id)) or 0
        passed = session.scalar(
            select(func.count(TestStepRow.id)).where(TestStepRow.run_id == run_id, TestStepRow.passed.is_(True))
        ) or 0
        return passed, total

    # --- test definitions ----------------------------------------------

    def get_test_definitions(self, group_name: str) -> list[TestDefinition]:
        with self._session() as session:
            rows = session.scalars(
                select(TestDefinitionRow)
                .where(TestDefinitionRow.group_name == group_name, TestDefinitionRow.active.is_(True))
                .order_by(TestDefinitionRow.priority, TestDefinitionRow.id)
            )
            return [_to_definition(r) for r in rows]

    def list_test_groups(self) -> list[str]:
        with self._session() as session:
            rows = session.scalars(
                select(TestDefinitionRow.group_name)
                .where(TestDefinitionRow.active.is_(True))
                .distinct()
                .order_by(TestDefinitionRow.group_name)
            )
            return list(rows)

    def add_test_definition(self, definition: TestDefinition) -> int:
        with self._session() as session:
            row = TestDefinitionRow(
                group_name=definition.group_name,
                library=definition.library,
                function_name=definition.function_name,
                prompt=definition.prompt,
                test_type=TestType.parse(definition.test_type).value,
                timeout_seconds=definition.timeout_seconds,
                priority=definition.priority,
                expected_value=definition.expected_value,
                valid_range=definition.valid_range,
                response_schema=definition.response_schema,
                execution_plan=definition.execution_plan,
                allowed_capabilities=json.dumps(definition.allowed_capabilities),
                files_to_stage=json.dumps(definition.files_to_stage),
                description=definition.description,
                active=definition.active,
            )
            if definition.id:
                row.id = definition.id
            session.add(row)
            session.flush()
            return row.id

    # --- models --------------------------------------------------------

    def get_model(self, name: str) -> ModelRecord | None:
        with self._session() as session:
            row = self._model_row(session, name)
            return _to_model(row) if row is not None else None

    def get_enabled_models(self) -> list[ModelRecord]:
        with self._session() as session:
            rows = session.scalars(select(ModelRow).where(ModelRow.enabled.is_(True)).order_by(ModelRow.name))
            return [_to_model(r) for r in rows]

    def upsert_model(self, model: ModelRecord) -> int:
        with self._model_lock(model.name), self._session() as session:
            row = self._model_row(session, model.name)
            if row is None:
                row = ModelRow(name=model.name, no_tools=model.no_tools)
                session.add(row)
            row.provider = model.provider or ""
            row.endpoint = model.endpoint
            row.enabled = model.enabled
            row.max_context = model.max_context
            session.flush()
            return row.id

    def mark_model_no_tools(self, name: str) -> bool:
        with self._model_lock(name), self._session() as session:
            row = self._model_row(session, name)
            if row is None or row.no_tools:
                return False
            row.no_tools = True
            logger.info("Model %s marked as not supporting tools", name)
            return True

    def clear_model_no_tools(self, name: str) -> bool:
        with self._model_lock(name), self._session() as session:
            row = self._model_row(session, name)
            if row is None or not row.no_tools:
                return False
            row.no_tools = False
            logger.info("No-tools flag cleared for model %s", name)
            return True

    def record_test_duration(self, name: str, seconds: float) -> None:
        with self._model_lock(name), self._session() as session:
            row = self._model_row(session, name)
            if row is not None:
                row.test_duration_seconds = seconds

    # --- agents, stories, evaluations ----------------------------------

    def add_agent(
        self,
        name: str,
        model_name: str,
        role: str = STORY_EVALUATOR_ROLE,
        instructions: str = "",
        response_schema: str | None = None,
        active: bool = True,
    ) -> int:
        with self._session() as session:
            row = AgentRow(
                name=name,
                model_name=model_name,
                role=role,
                instructions=instructions,
                response_schema=response_schema,
                active=active,
            )
            session.add(row)
            session.flush()
            return row.id

    def get_agent(self, agent_id: int) -> EvaluatorAgent | None:
        with self._session() as session:
            row = session.get(AgentRow, agent_id)
            return _to_agent(row) if row is not None else None

    def list_evaluator_agents(self) -> list[EvaluatorAgent]:
        with self._session() as session:
            rows = session.scalars(
                select(AgentRow)
                .where(AgentRow.role == STORY_EVALUATOR_ROLE, AgentRow.active.is_(True))
                .order_by(AgentRow.id)
            )
            return [_to_agent(r) for r in rows]

    def add_story(self, prompt: str, text: str, model_name: str | None = None, status: str = "generated") -> int:
        with self._session() as session:
            model = self._model_row(session, model_name) if model_name else None
            row = StoryRow(prompt=prompt, text=text, status=status, model_id=model.id if model else None)
            session.add(row)
            session.flush()
            return row.id

    def get_story(self, story_id: int) -> StoryRecord | None:
        with self._session() as session:
            row = session.get(StoryRow, story_id)
            if row is None:
                return None
            return StoryRecord(
                id=row.id,
                prompt=row.prompt,
                text=row.text,
                model_name=row.model.name if row.model else None,
                status=row.status,
                created_at=row.created_at.isoformat(),
            )

    def add_story_evaluation(
        self,
        story_id: int,
        total_score: float,
        category_scores: dict[str, int] | None = None,
        overall_evaluation: str = "",
        raw_json: str = "",
        agent_id: int | None = None,
    ) -> int:
        with self._session() as session:
            row = StoryEvaluationRow(
                story_id=story_id,
                agent_id=agent_id,
                total_score=total_score,
                category_scores=json.dumps(category_scores or {}),
                overall_evaluation=overall_evaluation,
                raw_json=raw_json,
            )
            session.add(row)
            session.flush()
            evaluation_id = row.id
            story = session.get(StoryRow, story_id)
            model_name = story.model.name if story is not None and story.model else None

        if model_name:
            self.recalculate_writer_score(model_name)
        return evaluation_id

    def get_story_evaluations(self, story_id: int) -> list[StoryEvaluation]:
        with self._session() as session:
            rows = session.scalars(
                select(StoryEvaluationRow)
                .where(StoryEvaluationRow.story_id == story_id)
                .order_by(StoryEvaluationRow.id)
            )
            return [
                StoryEvaluation(
                    id=r.id,
                    story_id=r.story_id,
                    total_score=r.total_score,
                    category_scores=json.loads(r.category_scores or "{}"),
                    overall_evaluation=r.overall_evaluation,
                    raw_json=r.raw_json,
                    agent_id=r.agent_id,
                )
                for r in rows
            ]

    # --- scores --------------------------------------------------------

    def _is_writer_group(self, session: Session, group_name: str) -> bool:
        types = session.scalars(
            select(TestDefinitionRow.test_type).where(TestDefinitionRow.group_name == group_name).distinct()
        )
        return any((t or "").lower() == TestType.WRITER.value for t in types)

    def _run_evaluation_totals(self, session: Session, run_id: int) -> list[float]:
        return list(
            session.scalars(
                select(StoryEvaluationRow.total_score)
                .join(TestAssetRow, TestAssetRow.story_id == StoryEvaluationRow.story_id)
                .join(TestStepRow, TestStepRow.id == TestAssetRow.step_id)
                .where(TestStepRow.run_id == run_id)
            )
        )

    def recalculate_model_score(self, model_name: str) -> int | None:
        with self._model_lock(model_name), self._session() as session:
            model = self._model_row(session, model_name)
            if model is None:
                return None

            groups = session.scalars(
                select(TestRunRow.group_name).where(TestRunRow.model_id == model.id).distinct()
            ).all()
            scores: list[float | None] = []
            for group in groups:
                run_id = session.scalar(
                    select(TestRunRow.id)
                    .where(TestRunRow.model_id == model.id, TestRunRow.group_name == group)
                    .order_by(TestRunRow.id.desc())
                    .limit(1)
                )
                if run_id is None:
                    continue
                if self._is_writer_group(session, group):
                    scores.append(evaluation_score(self._run_evaluation_totals(session, run_id)))
                else:
                    scores.append(group_score(*self._step_counts(session, run_id)))

            model.function_calling_score = overall_score(scores)
            logger.debug("Model %s score recalculated: %s", model_name, model.function_calling_score)
            return model.function_calling_score

    def recalculate_writer_score(self, model_name: str) -> float | None:
        with self._model_lock(model_name), self._session() as session:
            model = self._model_row(session, model_name)
            if model is None:
                return None
            totals = list(
                session.scalars(
                    select(StoryEvaluationRow.total_score)
                    .join(StoryRow, StoryRow.id == StoryEvaluationRow.story_id)
                    .where(StoryRow.model_id == model.id)
                )
            )
            score = writer_score(totals)
            model.writer_score = score if score is not None else 0.0
            return model.writer_score

    def recalculate_all_writer_scores(self) -> None:
        with self._session() as session:
            names = session.scalars(select(ModelRow.name).order_by(ModelRow.name)).all()
        for name in names:
            self.recalculate_writer_score(name)
