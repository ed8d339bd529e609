"""
OpenAI-compatible model session (OpenAI, Ollama, LM Studio)
"""

from __future__ import annotations

import json
import logging
import time

import openai
from openai import OpenAI

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


class OpenAICompatibleSession(RetryMixin, ModelSession):
    """Session using the OpenAI chat completions API"""

    def __init__(
        self,
        model_name: str,
        client: OpenAI,
        tools: dict[str, ToolSpec] | None = None,
        local: bool = False,
        max_retries: int = 3,
        max_tool_rounds: int = 25,
    ):
        """
        Args:
            model_name: Model name as known by the endpoint (e.g. gpt-4o-mini, qwen2.5:7b)
            client: OpenAI client bound to the endpoint
            tools: Tools advertised to the model (empty = no tool calling)
            local: Whether the endpoint is a local server (enables num_ctx)
            max_retries: Maximum number of retries (default: 3)
            max_tool_rounds: Maximum number of tool-call round trips
        """
        self.model_name = model_name
        self.client = client
        self.tools = tools or {}
        self.local = local
        self.max_retries = max_retries
        self.max_tool_rounds = max_tool_rounds

    def _request_kwargs(self, settings: ExecutionSettings) -> dict:
        kwargs: dict = {"model": self.model_name, "temperature": settings.temperature}
        if self.local:
            kwargs["max_tokens"] = settings.max_tokens
        else:
            kwargs["max_completion_tokens"] = settings.max_tokens

        if settings.response_schema is not None:
            kwargs["response_format"] = {
                "type": "json_schema",
                "json_schema": {
                    "name": STRUCTURED_RESPONSE_NAME,
                    "schema": wrap_response_schema(settings.response_schema),
                },
            }
        if self.tools:
            kwargs["tools"] = [
                {
                    "type": "function",
                    "function": {
                        "name": spec.name,
                        "description": spec.description,
                        "parameters": spec.parameters,
                    },
                }
                for spec in self.tools.values()
            ]
        if self.local and settings.context_window:
            # Ollama reads options.num_ctx, other servers the top-level key
            kwargs["extra_body"] = {
                "options": {"num_ctx": settings.context_window},
                "num_ctx": settings.context_window,
            }
        return kwargs

    def respond(self, conversation: Conversation, settings: ExecutionSettings) -> ModelResponse:
        """
        Answer a conversation, running the tool-call loop when tools are set

        Args:
            conversation: Conversation to answer
            settings: Sampling settings and optional response schema

        Returns:
            ModelResponse: The model's final answer

        Raises:
            InvocationTimeout: If the endpoint timed out
            ProviderError: If the endpoint failed the request
        """
        messages: list[dict] = [{"role": m.role, "content": m.content} for m in conversation.messages]
        kwargs = self._request_kwargs(settings)
        input_tokens = 0
        output_tokens = 0
        tool_calls: list[str] = []
        start_time = time.time()

        for _ in range(self.max_tool_rounds):
            self.check_deadline()
            completion = self._create(messages, kwargs)
            if completion.usage:
                input_tokens += completion.usage.prompt_tokens or 0
                output_tokens += completion.usage.completion_tokens or 0

            message = completion.choices[0].message
            if not message.tool_calls:
                return ModelResponse(
                    output=(message.content or "").strip(),
                    latency_ms=int((time.time() - start_time) * 1000),
                    model_name=self.model_name,
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    tool_calls=tool_calls,
                )

            messages.append({
                "role": "assistant",
                "content": message.content or "",
                "tool_calls": [
                    {
                        "id": call.id,
                        "type": "function",
                        "function": {"name": call.function.name, "arguments": call.function.arguments},
                    }
                    for call in message.tool_calls
                ],
            })
            for call in message.tool_calls:
                self.check_deadline()
                logger.debug("%s calls %s", self.model_name, call.function.name)
                tool_calls.append(call.function.name)
                messages.append({
                    "role": "tool",
                    "tool_call_id": call.id,
                    "content": call_tool(self.tools, call.function.name, call.function.arguments),
                })

        raise ProviderError(f"Tool call limit of {self.max_tool_rounds} rounds exceeded")

    def _bounded_client(self) -> OpenAI:
        """Client whose request timeout fits in the time left to this call"""
        self.check_deadline()
        remaining = self.remaining_time()
        if remaining is None:
            return self.client
        return self.client.with_options(timeout=remaining)

    def _create(self, messages: list[dict], kwargs: dict):
        try:
            return self._with_retry(
                lambda: self._bounded_client().chat.completions.create(messages=messages, **kwargs),
                retryable_exceptions=(
                    openai.APIConnectionError,
                    openai.RateLimitError,
                    openai.InternalServerError,
                ),
            )
        except openai.APITimeoutError as e:
            timeout = getattr(self.client, "timeout", None)
            raise InvocationTimeout(timeout if isinstance(timeout, (int, float)) else 0) from e
        except openai.APIStatusError as e:
            raise ProviderError(_status_message(e)) from e
        except openai.OpenAIError as e:
            raise ProviderError(str(e)) from e


def _status_message(error: openai.APIStatusError) -> str:
    """Error text of an HTTP error, preferring the server's own message"""
    body = error.body
    if isinstance(body, dict):
        detail = body.get("error", body)
        if isinstance(detail, dict) and detail.get("message"):
            return f"{error.status_code}: {detail['message']}"
        return f"{error.status_code}: {json.dumps(detail, ensure_ascii=False)}"
    return str(error)
