"""
Vertex AI (Google GenAI SDK) model session
"""

from __future__ import annotations

import logging
import time

from google import genai
from google.api_core import exceptions as google_exceptions
from google.genai import errors as genai_errors
from google.genai import types

from model_testbench.capabilities.base import ToolSpec, call_tool
from model_testbench.domain.errors import ProviderError
from model_testbench.domain.value_objects import (
    Conversation,
    ExecutionSettings,
    ModelResponse,
    wrap_response_schema,
)
from model_testbench.infrastructure.model_clients.base import ModelSession, RetryMixin

logger = logging.getLogger(__name__)

# Conversation roles as named by the Gemini API
_ROLES = {"user": "user", "assistant": "model"}


class VertexAISession(RetryMixin, ModelSession):
    """Session using Google GenAI SDK (via Vertex AI)"""

    def __init__(
        self,
        model_name: str,
        client: genai.Client,
        tools: dict[str, ToolSpec] | None = None,
        max_retries: int = 3,
        max_tool_rounds: int = 25,
    ):
        """
        Args:
            model_name: Model name (e.g. gemini-2.5-pro, gemini-2.5-flash)
            client: GenAI client configured for Vertex AI
            tools: Tools advertised to the model (empty = no tool calling)
            max_retries: Maximum number of retries (default: 3)
            max_tool_rounds: Maximum number of tool-call round trips
        """
        self.model_name = model_name
        self.client = client
        self.tools = tools or {}
        self.max_retries = max_retries
        self.max_tool_rounds = max_tool_rounds

    def _generation_config(self, conversation: Conversation, settings: ExecutionSettings) -> types.GenerateContentConfig:
        config = types.GenerateContentConfig(
            temperature=settings.temperature,
            max_output_tokens=settings.max_tokens,
            system_instruction=conversation.system_prompt,
        )
        if settings.response_schema is not None:
            config.response_mime_type = "application/json"
            config.response_json_schema = wrap_response_schema(settings.response_schema)
        if self.tools:
            config.tools = [
                types.Tool(function_declarations=[
                    types.FunctionDeclaration(
                        name=spec.name,
                        description=spec.description,
                        parameters_json_schema=spec.parameters,
                    )
                    for spec in self.tools.values()
                ])
            ]
            # Tool calls are dispatched here so every call is recorded
            config.automatic_function_calling = types.AutomaticFunctionCallingConfig(disable=True)
        return config

    def respond(self, conversation: Conversation, settings: ExecutionSettings) -> ModelResponse:
        """
        Answer a conversation, running the function-call loop when tools are set

        Args:
            conversation: Conversation to answer
            settings: Sampling settings and optional response schema

        Returns:
            ModelResponse: The model's final answer

        Raises:
            InvocationTimeout: If the call ran past its deadline
            ProviderError: If the API failed the request
        """
        contents: list[types.Content] = [
            types.Content(role=_ROLES.get(m.role, "user"), parts=[types.Part.from_text(text=m.content)])
            for m in conversation.turns()
        ]
        config = self._generation_config(conversation, settings)
        input_tokens = 0
        output_tokens = 0
        tool_calls: list[str] = []
        start_time = time.time()

        for _ in range(self.max_tool_rounds):
            self.check_deadline()
            response = self._generate(contents, config)
            if response.usage_metadata:
                input_tokens += getattr(response.usage_metadata, "prompt_token_count", 0) or 0
                output_tokens += getattr(response.usage_metadata, "candidates_token_count", 0) or 0

            function_calls = response.function_calls
            if not function_calls:
                return ModelResponse(
                    output=(response.text or "").strip(),
                    latency_ms=int((time.time() - start_time) * 1000),
                    model_name=self.model_name,
                    input_tokens=input_tokens,
                    output_tokens=output_tokens,
                    tool_calls=tool_calls,
                )

            contents.append(response.candidates[0].content)
            parts = []
            for call in function_calls:
                self.check_deadline()
                logger.debug("%s calls %s", self.model_name, call.name)
                tool_calls.append(call.name)
                result = call_tool(self.tools, call.name, dict(call.args or {}))
                parts.append(types.Part.from_function_response(name=call.name, response={"result": result}))
            contents.append(types.Content(role="user", parts=parts))

        raise ProviderError(f"Tool call limit of {self.max_tool_rounds} rounds exceeded")

    def _bounded_config(self, config: types.GenerateContentConfig) -> types.GenerateContentConfig:
        """Config whose request timeout fits in the time left to this call"""
        self.check_deadline()
        remaining = self.remaining_time()
        if remaining is None:
            return config
        # HttpOptions.timeout is in milliseconds
        return config.model_copy(update={"http_options": types.HttpOptions(timeout=max(1, int(remaining * 1000)))})

    def _generate(self, contents: list[types.Content], config: types.GenerateContentConfig):
        try:
            return self._with_retry(
                lambda: self.client.models.generate_content(
                    model=self.model_name,
                    contents=contents,
                    config=self._bounded_config(config),
                ),
                retryable_exceptions=(
                    google_exceptions.DeadlineExceeded,
                    google_exceptions.ServiceUnavailable,
                    google_exceptions.ResourceExhausted,
                ),
            )
        except (genai_errors.APIError, google_exceptions.GoogleAPIError) as e:
            raise ProviderError(str(e)) from e
