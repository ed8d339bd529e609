"""
Domain Entities

Defines the records read and written by the test execution engine.
"""

from dataclasses import dataclass, field
from enum import Enum

from model_testbench.domain.constants import LOCAL_PROVIDERS
from model_testbench.domain.errors import UnknownTestTypeError


class TestType(str, Enum):
    """How a test definition is executed and validated"""

    __test__ = False

    QUESTION = "question"
    FUNCTION_CALL = "functioncall"
    WRITER = "writer"
    TTS = "tts"

    @property
    def default_timeout(self) -> int:
        return _DEFAULT_TIMEOUTS[self]

    @classmethod
    def parse(cls, value: "str | TestType") -> "TestType":
        """Parse a test type name (case-insensitive)"""
        if isinstance(value, cls):
            return value
        normalized = (value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        raise UnknownTestTypeError(
            f"Unknown test type: {value} (available: {[m.value for m in cls]})"
        )


_DEFAULT_TIMEOUTS = {
    TestType.QUESTION: 30,
    TestType.FUNCTION_CALL: 30,
    TestType.WRITER: 120,
    TestType.TTS: 60,
}


@dataclass
class TestDefinition:
    """A single declarative test belonging to a group"""

    __test__ = False

    id: int
    group_name: str
    function_name: str
    prompt: str
    test_type: TestType
    library: str = ""
    timeout_seconds: int = 0  # 0 = default of the test type
    priority: int = 1
    expected_value: str | None = None
    valid_range: str | None = None
    response_schema: str | None = None  # file name under response_formats/
    execution_plan: str | None = None  # file name under execution_plans/
    allowed_capabilities: list[str] = field(default_factory=list)
    files_to_stage: list[str] = field(default_factory=list)
    description: str = ""
    active: bool = True

    @property
    def effective_timeout(self) -> int:
        if self.timeout_seconds > 0:
            return max(1, self.timeout_seconds)
        return self.test_type.default_timeout

    @property
    def step_name(self) -> str:
        return self.function_name or f"test_{self.id}"


@dataclass
class ModelRecord:
    """A model that can be benchmarked"""
    name: str
    provider: str
    id: int | None = None
    endpoint: str | None = None
    enabled: bool = True
    no_tools: bool = False
    max_context: int = 0
    function_calling_score: int = 0
    writer_score: float = 0.0
    test_duration_seconds: float | None = None

    @property
    def is_local(self) -> bool:
        return (self.provider or "").strip().lower() in LOCAL_PROVIDERS


@dataclass
class TestRun:
    """One execution of a test group against one model"""

    __test__ = False

    id: int
    model_name: str
    group_name: str
    working_folder: str | None
    started_at: str
    passed: bool = False
    duration_ms: int | None = None
    description: str = ""
    notes: str = ""


@dataclass
class TestStep:
    """Execution of a single test definition within a run"""

    __test__ = False

    id: int
    run_id: int
    step_number: int
    name: str
    input_snapshot: str | None = None
    output_snapshot: str | None = None
    passed: bool = False
    error: str | None = None
    duration_ms: int | None = None


@dataclass
class TestAsset:
    """Side artifact produced by a step"""

    __test__ = False

    id: int
    step_id: int
    asset_type: str
    path: str
    description: str = ""
    duration_seconds: float | None = None
    size_bytes: int | None = None
    story_id: int | None = None


@dataclass
class EvaluatorAgent:
    """An agent configured to score generated narratives"""
    id: int
    name: str
    model_name: str
    role: str
    instructions: str = ""
    response_schema: str | None = None
    active: bool = True


@dataclass
class StoryRecord:
    """A generated narrative"""
    id: int
    prompt: str
    text: str
    model_name: str | None = None
    status: str = "generated"
    created_at: str = ""


@dataclass
class StoryEvaluation:
    """One evaluator agent's verdict on a story"""
    id: int
    story_id: int
    total_score: float
    category_scores: dict[str, int] = field(default_factory=dict)
    overall_evaluation: str = ""
    raw_json: str = ""
    agent_id: int | None = None


@dataclass
class StepOutcome:
    """Final result of a step, as persisted by the orchestrator"""
    passed: bool
    output: str | None = None
    error: str | None = None
    duration_ms: int | None = None


@dataclass
class RunSummary:
    """Result of run_group"""
    run_id: int
    model_name: str
    group_name: str
    score: int
    steps: int
    passed: int
    duration_ms: int
    run_passed: bool
