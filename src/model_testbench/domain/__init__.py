"""
Domain Layer

Defines constants, entities, errors and value objects that form the core of
the test execution engine. Has no dependencies on external libraries.
"""

from model_testbench.domain.entities import (
    EvaluatorAgent,
    ModelRecord,
    RunSummary,
    StepOutcome,
    StoryEvaluation,
    StoryRecord,
    TestAsset,
    TestDefinition,
    TestRun,
    TestStep,
    TestType,
)
from model_testbench.domain.errors import (
    EmptyGroupError,
    ErrorKind,
    InvocationTimeout,
    ProviderConstructionError,
    ProviderError,
    SeedFormatError,
    TestbenchError,
    UnknownModelError,
    UnknownTestTypeError,
)
from model_testbench.domain.value_objects import (
    ChatMessage,
    Conversation,
    DialogueCharacter,
    DialogueEntry,
    DialogueTrack,
    EvaluationOutcome,
    ExecutionSettings,
    ModelResponse,
    ValidationResult,
    wrap_response_schema,
)

__all__ = [
    # entities
    "EvaluatorAgent",
    "ModelRecord",
    "RunSummary",
    "StepOutcome",
    "StoryEvaluation",
    "StoryRecord",
    "TestAsset",
    "TestDefinition",
    "TestRun",
    "TestStep",
    "TestType",
    # errors
    "EmptyGroupError",
    "ErrorKind",
    "InvocationTimeout",
    "ProviderConstructionError",
    "ProviderError",
    "SeedFormatError",
    "TestbenchError",
    "UnknownModelError",
    "UnknownTestTypeError",
    # value objects
    "ChatMessage",
    "Conversation",
    "DialogueCharacter",
    "DialogueEntry",
    "DialogueTrack",
    "EvaluationOutcome",
    "ExecutionSettings",
    "ModelResponse",
    "ValidationResult",
    "wrap_response_schema",
]
