"""
"functioncall" executor: the model may call the test's capabilities
"""

from __future__ import annotations

import time

from model_testbench.domain.entities import StepOutcome, TestType
from model_testbench.domain.errors import InvocationTimeout, ProviderError
from model_testbench.domain.value_objects import Conversation
from model_testbench.infrastructure.model_clients.invocation import execution_settings, invoke_model
from model_testbench.scoring.validation import validate_function_call_response
from model_testbench.use_cases.executors.common import (
    StepContext,
    elapsed_ms,
    failed,
    load_response_schema,
    open_session,
    snapshot,
)


def execute_function_call(ctx: StepContext) -> StepOutcome:
    """
    Run a tool-calling test

    When the provider reports that the model does not support tools, the
    model's no-tools flag is set (one-way) besides failing the step.
    """
    start_time = time.time()
    definition = ctx.definition
    session = open_session(ctx, tool_calling=True)
    schema = load_response_schema(ctx)
    settings = execution_settings(ctx.model.name, response_schema=schema)

    conversation = Conversation()
    conversation.add_user(ctx.prompt)

    try:
        response = invoke_model(
            session,
            conversation,
            settings,
            ctx.timeout,
            progress=ctx.progress,
            activity_status=f"Function {ctx.step_number}",
            test_type=TestType.FUNCTION_CALL.value,
        )
    except InvocationTimeout:
        return failed(f"Timeout after {ctx.timeout}s", start_time)
    except ProviderError as e:
        if e.tools_unsupported and ctx.store.mark_model_no_tools(ctx.model.name):
            ctx.report("Marked model as NoTools")
        return failed(str(e), start_time)

    result = validate_function_call_response(response.output, schema, structured=bool(definition.response_schema))

    return StepOutcome(
        passed=result.passed,
        output=snapshot(
            response=response.output,
            function_called=definition.function_name,
            tool_calls=response.tool_calls,
        ),
        error=None if result.passed else result.reason,
        duration_ms=elapsed_ms(start_time),
    )
