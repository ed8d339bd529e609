"""
Domain Value Objects

Immutable data structures exchanged between the engine and its collaborators.
"""

from dataclasses import dataclass, field


@dataclass(frozen=True)
class ChatMessage:
    """A single conversation turn"""
    role: str  # system / user / assistant
    content: str


@dataclass
class Conversation:
    """Ordered chat history sent to a model session"""
    messages: list[ChatMessage] = field(default_factory=list)

    def add_system(self, content: str) -> None:
        self.messages.append(ChatMessage("system", content))

    def add_user(self, content: str) -> None:
        self.messages.append(ChatMessage("user", content))

    def add_assistant(self, content: str) -> None:
        self.messages.append(ChatMessage("assistant", content))

    @property
    def system_prompt(self) -> str | None:
        """All system messages joined, or None"""
        parts = [m.content for m in self.messages if m.role == "system"]
        return "\n\n".join(parts) if parts else None

    def turns(self) -> list[ChatMessage]:
        """Non-system messages in order"""
        return [m for m in self.messages if m.role != "system"]

    def __len__(self) -> int:
        return len(self.messages)


@dataclass(frozen=True)
class ExecutionSettings:
    """Sampling and output constraints for one invocation"""
    temperature: float = 0.0
    max_tokens: int = 8000
    response_schema: dict | None = None  # JSON Schema document
    context_window: int | None = None  # local providers only


@dataclass
class ModelResponse:
    """Model response"""
    output: str
    latency_ms: int
    model_name: str
    input_tokens: int = 0
    output_tokens: int = 0
    tool_calls: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class ValidationResult:
    """Pass/fail decision with a human-readable reason"""

    passed: bool
    reason: str | None = None


@dataclass(frozen=True)
class EvaluationOutcome:
    """Result of one story evaluation"""
    success: bool
    total_score: float = 0.0
    error: str | None = None


@dataclass(frozen=True)
class DialogueCharacter:
    name: str
    gender: str


@dataclass(frozen=True)
class DialogueEntry:
    type: str  # "dialogue" or "pause"
    character: str = ""
    emotion: str = ""
    text: str = ""
    seconds: int = 0


@dataclass(frozen=True)
class DialogueTrack:
    """Characters and timeline of a synthesized dialogue"""
    characters: tuple[DialogueCharacter, ...] = ()
    entries: tuple[DialogueEntry, ...] = ()


def wrap_response_schema(schema: dict) -> dict:
    """
    Wrap a non-object JSON Schema in {"result": <schema>}

    Structured-output providers only accept object schemas at the root.
    """
    if schema.get("type", "object") == "object":
        return schema
    return {
        "type": "object",
        "properties": {"result": schema},
        "required": ["result"],
        "additionalProperties": False,
    }
