"""
Test store interface

The persistent store the engine reads test definitions and models from and
writes runs, steps, assets, stories and scores to.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

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
)


class TestStore(ABC):
    """Abstract persistent store of the test execution engine"""

    __test__ = False

    # --- runs, steps, assets -------------------------------------------

    @abstractmethod
    def create_run(
        self, model_name: str, group_name: str, working_folder: str | None = None, description: str = ""
    ) -> int:
        """Create a run record and return its id"""

    @abstractmethod
    def update_run_result(self, run_id: int, passed: bool, duration_ms: int | None, notes: str | None = None) -> None:
        """Persist the final pass flag and duration of a run"""

    @abstractmethod
    def add_step(self, run_id: int, step_number: int, name: str, input_snapshot: str | None = None) -> int:
        """Create a step record and return its id"""

    @abstractmethod
    def update_step_result(
        self,
        step_id: int,
        passed: bool,
        output_snapshot: str | None = None,
        error: str | None = None,
        duration_ms: int | None = None,
    ) -> None:
        """Persist the outcome of a step"""

    @abstractmethod
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
        """Attach an artifact to a step and return its id"""

    @abstractmethod
    def get_run(self, run_id: int) -> TestRun | None: ...

    @abstractmethod
    def get_run_steps(self, run_id: int) -> list[TestStep]: ...

    @abstractmethod
    def get_run_assets(self, run_id: int) -> list[TestAsset]: ...

    @abstractmethod
    def get_run_step_counts(self, run_id: int) -> tuple[int, int]:
        """(passed, total) step counts of a run"""

    # --- test definitions ----------------------------------------------

    @abstractmethod
    def get_test_definitions(self, group_name: str) -> list[TestDefinition]:
        """Active definitions of a group ordered by priority, then id"""

    @abstractmethod
    def list_test_groups(self) -> list[str]: ...

    @abstractmethod
    def add_test_definition(self, definition: TestDefinition) -> int: ...

    # --- models --------------------------------------------------------

    @abstractmethod
    def get_model(self, name: str) -> ModelRecord | None: ...

    @abstractmethod
    def get_enabled_models(self) -> list[ModelRecord]: ...

    @abstractmethod
    def upsert_model(self, model: ModelRecord) -> int:
        """Insert or update a model by name; scores and the no-tools flag are kept on update"""

    @abstractmethod
    def mark_model_no_tools(self, name: str) -> bool:
        """Set the no-tools flag; returns True if it changed"""

    @abstractmethod
    def clear_model_no_tools(self, name: str) -> bool:
        """Operator action clearing the no-tools flag; returns True if it changed"""

    @abstractmethod
    def record_test_duration(self, name: str, seconds: float) -> None: ...

    # --- agents, stories, evaluations ----------------------------------

    @abstractmethod
    def add_agent(
        self,
        name: str,
        model_name: str,
        role: str = STORY_EVALUATOR_ROLE,
        instructions: str = "",
        response_schema: str | None = None,
        active: bool = True,
    ) -> int: ...

    @abstractmethod
    def get_agent(self, agent_id: int) -> EvaluatorAgent | None: ...

    @abstractmethod
    def list_evaluator_agents(self) -> list[EvaluatorAgent]:
        """Active agents with the story evaluator role"""

    @abstractmethod
    def add_story(self, prompt: str, text: str, model_name: str | None = None, status: str = "generated") -> int: ...

    @abstractmethod
    def get_story(self, story_id: int) -> StoryRecord | None: ...

    @abstractmethod
    def add_story_evaluation(
        self,
        story_id: int,
        total_score: float,
        category_scores: dict[str, int] | None = None,
        overall_evaluation: str = "",
        raw_json: str = "",
        agent_id: int | None = None,
    ) -> int:
        """Record an evaluation and recompute the writer score of the story's model"""

    @abstractmethod
    def get_story_evaluations(self, story_id: int) -> list[StoryEvaluation]: ...

    # --- scores --------------------------------------------------------

    @abstractmethod
    def recalculate_model_score(self, model_name: str) -> int | None:
        """Recompute the function-calling score from each group's latest run"""

    @abstractmethod
    def recalculate_writer_score(self, model_name: str) -> float | None:
        """Recompute the writer score from all evaluations of the model's stories"""

    @abstractmethod
    def recalculate_all_writer_scores(self) -> None: ...
