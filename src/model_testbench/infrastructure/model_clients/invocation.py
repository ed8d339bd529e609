"""
Model invocation helper

Runs one session call under a timeout scoped to that call and announces it
on the progress channel while it is in flight.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import TYPE_CHECKING

from model_testbench.domain.constants import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, FIXED_TEMPERATURE_MODELS
from model_testbench.domain.errors import InvocationTimeout
from model_testbench.domain.value_objects import Conversation, ExecutionSettings, ModelResponse

if TYPE_CHECKING:
    from model_testbench.infrastructure.model_clients.base import ModelSession
    from model_testbench.infrastructure.progress import ProgressChannel

logger = logging.getLogger(__name__)


def execution_settings(
    model_name: str,
    temperature: float = DEFAULT_TEMPERATURE,
    max_tokens: int = DEFAULT_MAX_TOKENS,
    response_schema: dict | None = None,
    context_window: int | None = None,
) -> ExecutionSettings:
    """Build settings, honoring models that only accept a fixed temperature"""
    return ExecutionSettings(
        temperature=FIXED_TEMPERATURE_MODELS.get(model_name, temperature),
        max_tokens=max_tokens,
        response_schema=response_schema,
        context_window=context_window,
    )


def invoke_model(
    session: ModelSession,
    conversation: Conversation,
    settings: ExecutionSettings,
    timeout_seconds: float,
    progress: ProgressChannel | None = None,
    activity_name: str | None = None,
    activity_status: str = "",
    test_type: str = "question",
) -> ModelResponse:
    """
    Invoke a session under a timeout

    The call runs on a worker thread; when the timeout expires the caller
    gets InvocationTimeout right away. The session carries the same
    deadline, so an abandoned call stops before its next request or tool
    call and its SDK requests never outlive the budget.

    Args:
        session: Session to call
        conversation: Conversation to answer
        settings: Execution settings
        timeout_seconds: Time allotted to this single call
        progress: Progress channel for activity events (optional)
        activity_name: Display name of the activity (defaults to the model name)
        activity_status: Status text of the activity
        test_type: Test type tag of the activity

    Returns:
        ModelResponse

    Raises:
        InvocationTimeout: If the call did not finish in time
        ProviderError: If the provider failed the request
    """
    activity_id = None
    if progress is not None:
        activity_id = progress.activity_started(
            activity_name or session.model_name, activity_status, test_type=test_type
        )

    session.start_deadline(timeout_seconds)
    executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="model-invoke")
    future = executor.submit(session.respond, conversation, settings)
    try:
        return future.result(timeout=timeout_seconds)
    except FutureTimeoutError as e:
        if not future.done():
            logger.warning("%s timed out after %ss", session.model_name, timeout_seconds)
            raise InvocationTimeout(timeout_seconds) from e
        raise
    finally:
        executor.shutdown(wait=False)
        if progress is not None and activity_id is not None:
            progress.activity_ended(activity_id)
