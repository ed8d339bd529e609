"""
Model session base classes and retry mixin

Defines the abstract session inherited by every provider session, the
provider interface that opens sessions, and the RetryMixin that
consolidates shared retry logic.
"""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING

from model_testbench.domain.errors import InvocationTimeout
from model_testbench.domain.value_objects import Conversation, ExecutionSettings, ModelResponse

if TYPE_CHECKING:
    from model_testbench.capabilities.base import Capability
    from model_testbench.domain.entities import ModelRecord

STRUCTURED_RESPONSE_NAME = "structured_response"


class RetryMixin:
    """Exponential backoff retry. Subclasses set self.max_retries."""

    max_retries: int = 3

    def _with_retry(self, fn, retryable_exceptions=(Exception,)):
        """
        Execute with exponential backoff retry.

        Args:
            fn: The function to retry (a callable with no arguments)
            retryable_exceptions: Tuple of exception types eligible for retry

        Returns:
            The return value of fn()

        Raises:
            ValueError: If max_retries is less than 1
            Exception: The last exception if max retries are exceeded
        """
        if self.max_retries < 1:
            raise ValueError("max_retries must be at least 1.")

        last_exception: Exception | None = None
        for attempt in range(self.max_retries):
            try:
                return fn()
            except retryable_exceptions as e:
                last_exception = e
                if attempt < self.max_retries - 1:
                    time.sleep(2 ** attempt)

        assert last_exception is not None
        raise last_exception


class ModelSession(ABC):
    """A model ready to answer conversations, optionally calling tools"""

    model_name: str
    deadline: float | None = None  # time.monotonic() after which the current call is abandoned
    timeout_seconds: float = 0

    def start_deadline(self, timeout_seconds: float) -> None:
        """Bound the next respond() call to timeout_seconds"""
        self.timeout_seconds = timeout_seconds
        self.deadline = time.monotonic() + timeout_seconds

    def remaining_time(self) -> float | None:
        """Seconds left before the deadline, None when no deadline is set"""
        if self.deadline is None:
            return None
        return max(0.0, self.deadline - time.monotonic())

    def check_deadline(self) -> None:
        """
        Stop a call whose caller has already given up

        Raises:
            InvocationTimeout: If the deadline has passed
        """
        remaining = self.remaining_time()
        if remaining is not None and remaining <= 0:
            raise InvocationTimeout(self.timeout_seconds)

    @abstractmethod
    def respond(self, conversation: Conversation, settings: ExecutionSettings) -> ModelResponse:
        """
        Answer a conversation

        Raises:
            InvocationTimeout: If the provider timed out
            ProviderError: If the provider failed the request
        """
        pass


class ModelProvider(ABC):
    """Opens model sessions for ModelRecords"""

    @abstractmethod
    def open_session(
        self,
        model: ModelRecord,
        capabilities: list[Capability] | None = None,
        tool_calling: bool = False,
    ) -> ModelSession:
        """
        Open a session for a model

        Args:
            model: Model to invoke
            capabilities: Capability instances the model may call
            tool_calling: Whether the capabilities are advertised to the model

        Raises:
            ProviderConstructionError: If the session cannot be opened
        """
        pass
