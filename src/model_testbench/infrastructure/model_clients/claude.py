"""
Anthropic Claude model session
"""

from __future__ import annotations

import json
import logging
import time

import anthropic
from anthropic import Anthropic

from model_testbench.capabilities.base import ToolSpec, call_tool
from model_testbench.domain.errors import InvocationTimeout, ProviderError
from model_testbench.domain.value_objects import (
    Conversation,
    ExecutionSettings,
    ModelResponse,
    wrap_response_schema,
)
from model_testbench.infrastructure.model_clients.base import (
    STRUCTURED_RESPONSE_NAME,
    ModelSession,
    RetryMixin,
)

logger = logging.getLogger(__name__)


class ClaudeSession(RetryMixin, ModelSession):
    """Session using the Anthropic Messages API"""

    def __init__(
        self,
        model_name: str,
        client: Anthropic,
        tools: dict[str, ToolSpec] | None = None,
        max_retries: int = 3,
        max_tool_rounds: int = 25,
    ):
        """
        Args:
            model_name: Model name (e.g. claude-sonnet-4-5-20250514)
            client: Anthropic client
            tools: Tools advertised to the model (empty = no tool calling)
            max_retries: Maximum number of retries (default: 3)
            max_tool_rounds: Maximum number of tool-call round trips
        """
        self.model_name = model_name
        self.client = client
        self.tools = tools or {}
        self.max_retries = max_retries
        self.max_tool_rounds = max_tool_rounds

    def _request_kwargs(self, conversation: Conversation, settings: ExecutionSettings) -> dict:
        kwargs: dict = {
            "model": self.model_name,
            "max_tokens": settings.max_tokens,
            "temperature": settings.temperature,
        }
        if conversation.system_prompt:
            kwargs["system"] = conversation.system_prompt

        tools = [
            {"name": spec.name, "description": spec.description, "input_schema": spec.parameters}
            for spec in self.tools.values()
        ]
        if settings.response_schema is not None:
            # Structured output is a tool the model is forced to finish with
            tools.append({
                "name": STRUCTURED_RESPONSE_NAME,
                "description": "Return the final answer in the required structure.",
                "input_schema": wrap_response_schema(settings.response_schema),
            })
            if self.tools:
                kwargs["tool_choice"] = {"type": "any"}
            else:
                kwargs["tool_choice"] = {"type": "tool", "name": STRUCTURED_RESPONSE_NAME}
        if tools:
            kwargs["tools"] = tools
        return kwargs

    def respond(self, conversation: Conversation, settings: ExecutionSettings) -> ModelResponse:
        """
        Answer a conversation, running the tool-use loop when tools are set

        Args:
            conversation: Conversation to answer
            settings: Sampling settings and optional response schema

        Returns:
            ModelResponse: The model's final answer

        Raises:
            InvocationTimeout: If the API timed out
            ProviderError: If the API failed the request
        """
        messages: list[dict] = [{"role": m.role, "content": m.content} for m in conversation.turns()]
        kwargs = self._request_kwargs(conversation, settings)
        input_tokens = 0
        output_tokens = 0
        tool_calls: list[str] = []
        start_time = time.time()

        def _finish(output: str) -> ModelResponse:
            return ModelResponse(
                output=output.strip(),
                latency_ms=int((time.time() - start_time) * 1000),
                model_name=self.model_name,
                input_tokens=input_tokens,
                output_tokens=output_tokens,
                tool_calls=tool_calls,
            )

        for _ in range(self.max_tool_rounds):
            self.check_deadline()
            response = self._create(messages, kwargs)
            input_tokens += getattr(response.usage, "input_tokens", 0) or 0
            output_tokens += getattr(response.usage, "output_tokens", 0) or 0

            tool_uses = [block for block in response.content if block.type == "tool_use"]
            if response.stop_reason != "tool_use" or not tool_uses:
                return _finish("".join(block.text for block in response.content if block.type == "text"))

            structured = next((b for b in tool_uses if b.name == STRUCTURED_RESPONSE_NAME), None)
            if structured is not None:
                return _finish(json.dumps(structured.input, ensure_ascii=False))

            messages.append({"role": "assistant", "content": response.content})
            results = []
            for block in tool_uses:
                self.check_deadline()
                logger.debug("%s calls %s", self.model_name, block.name)
                tool_calls.append(block.name)
                results.append({
                    "type": "tool_result",
                    "tool_use_id": block.id,
                    "content": call_tool(self.tools, block.name, block.input),
                })
            messages.append({"role": "user", "content": results})

        raise ProviderError(f"Tool call limit of {self.max_tool_rounds} rounds exceeded")

    def _bounded_client(self) -> Anthropic:
        """Client whose request timeout fits in the time left to this call"""
        self.check_deadline()
        remaining = self.remaining_time()
        if remaining is None:
            return self.client
        return self.client.with_options(timeout=remaining)

    def _create(self, messages: list[dict], kwargs: dict):
        try:
            return self._with_retry(
                lambda: self._bounded_client().messages.create(messages=messages, **kwargs),
                retryable_exceptions=(
                    anthropic.APIConnectionError,
                    anthropic.RateLimitError,
                    anthropic.InternalServerError,
                ),
            )
        except anthropic.APITimeoutError as e:
            timeout = getattr(self.client, "timeout", None)
            raise InvocationTimeout(timeout if isinstance(timeout, (int, float)) else 0) from e
        except anthropic.APIStatusError as e:
            raise ProviderError(f"{e.status_code}: {e.message}") from e
        except anthropic.AnthropicError as e:
            raise ProviderError(str(e)) from e
