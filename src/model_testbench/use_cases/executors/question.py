"""
"question" executor: single-turn answer checked against a literal or a range
"""

from __future__ import annotations

import time

from model_testbench.domain.entities import StepOutcome, TestType
from model_testbench.domain.errors import InvocationTimeout, ProviderError
from model_testbench.domain.value_objects import Conversation
from model_testbench.infrastructure.model_clients.invocation import execution_settings, invoke_model
from model_testbench.scoring.validation import validate_response
from model_testbench.use_cases.executors.common import (
    StepContext,
    elapsed_ms,
    failed,
    load_response_schema,
    open_session,
    snapshot,
)


def execute_question(ctx: StepContext) -> StepOutcome:
    start_time = time.time()
    definition = ctx.definition
    session = open_session(ctx, tool_calling=False)
    settings = execution_settings(ctx.model.name, response_schema=load_response_schema(ctx))

    conversation = Conversation()
    conversation.add_user(ctx.prompt)

    try:
        response = invoke_model(
            session,
            conversation,
            settings,
            ctx.timeout,
            progress=ctx.progress,
            activity_status=f"Question {ctx.step_number}",
            test_type=TestType.QUESTION.value,
        )
    except InvocationTimeout:
        return failed(f"Timeout after {ctx.timeout}s", start_time)
    except ProviderError as e:
        return failed(f"Error: {e}", start_time)

    result = validate_response(response.output, definition.expected_value, definition.valid_range)
    return StepOutcome(
        passed=result.passed,
        output=snapshot(response=response.output, expected=definition.expected_value, range=definition.valid_range),
        error=None if result.passed else result.reason,
        duration_ms=elapsed_ms(start_time),
    )
