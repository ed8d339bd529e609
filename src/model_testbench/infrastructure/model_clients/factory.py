"""
Model provider factory

Opens the appropriate session for a ModelRecord based on its provider
(or, when the provider is blank, on the model name).
"""

from __future__ import annotations

import logging

from anthropic import Anthropic
from google import genai
from openai import OpenAI

from model_testbench.bench_config import BenchConfig, load_config
from model_testbench.capabilities.base import Capability, collect_tools
from model_testbench.domain.entities import ModelRecord
from model_testbench.domain.errors import ProviderConstructionError
from model_testbench.infrastructure.model_clients.base import ModelProvider, ModelSession
from model_testbench.infrastructure.model_clients.claude import ClaudeSession
from model_testbench.infrastructure.model_clients.openai_compat import OpenAICompatibleSession
from model_testbench.infrastructure.model_clients.vertex_ai import VertexAISession

logger = logging.getLogger(__name__)

OPENAI_COMPATIBLE_PROVIDERS = ("openai", "ollama", "lmstudio")
ANTHROPIC_PROVIDERS = ("anthropic", "claude")
VERTEX_PROVIDERS = ("vertex", "vertexai", "google", "gemini")


def resolve_provider(model: ModelRecord) -> str:
    """
    Normalized provider family of a model

    Args:
        model: Model record

    Returns:
        "openai", "ollama", "lmstudio", "anthropic" or "vertex"

    Raises:
        ProviderConstructionError: If the provider is not supported
    """
    provider = (model.provider or "").strip().lower()
    if not provider:
        if model.name.startswith("lmstudio/"):
            return "lmstudio"
        if model.name.startswith("claude"):
            return "anthropic"
        if model.name.startswith("gemini"):
            return "vertex"
        return "openai"
    if provider in OPENAI_COMPATIBLE_PROVIDERS:
        return provider
    if provider in ANTHROPIC_PROVIDERS:
        return "anthropic"
    if provider in VERTEX_PROVIDERS:
        return "vertex"
    raise ProviderConstructionError(f"Unsupported provider '{model.provider}' for model {model.name}")


class DefaultModelProvider(ModelProvider):
    """Creates sessions for OpenAI-compatible, Anthropic and Vertex AI models"""

    def __init__(self, config: BenchConfig | None = None) -> None:
        self.config = config or load_config()

    def open_session(
        self,
        model: ModelRecord,
        capabilities: list[Capability] | None = None,
        tool_calling: bool = False,
    ) -> ModelSession:
        """
        Open a session for a model

        Args:
            model: Model record (provider, endpoint, name)
            capabilities: Capability instances the model may call
            tool_calling: Whether the capabilities are advertised to the model

        Returns:
            ModelSession: The session

        Raises:
            ProviderConstructionError: On unsupported providers, missing
                credentials or client initialization failures
        """
        tools = collect_tools(capabilities or []) if tool_calling else {}
        provider = resolve_provider(model)
        providers = self.config.providers
        logger.debug("Opening %s session for %s (%d tools)", provider, model.name, len(tools))

        try:
            if provider in OPENAI_COMPATIBLE_PROVIDERS:
                return OpenAICompatibleSession(
                    model.name.removeprefix("lmstudio/"),
                    self._openai_client(model, provider),
                    tools=tools,
                    local=provider != "openai",
                    max_retries=providers.max_retries,
                    max_tool_rounds=providers.max_tool_rounds,
                )
            if provider == "anthropic":
                if not providers.anthropic_api_key:
                    raise ProviderConstructionError("ANTHROPIC_API_KEY is not set")
                return ClaudeSession(
                    model.name,
                    Anthropic(api_key=providers.anthropic_api_key),
                    tools=tools,
                    max_retries=providers.max_retries,
                    max_tool_rounds=providers.max_tool_rounds,
                )
            if not providers.gcp_project_id:
                raise ProviderConstructionError("GCP_PROJECT_ID is not set")
            return VertexAISession(
                model.name,
                genai.Client(vertexai=True, project=providers.gcp_project_id, location=providers.gcp_location),
                tools=tools,
                max_retries=providers.max_retries,
                max_tool_rounds=providers.max_tool_rounds,
            )
        except ProviderConstructionError:
            raise
        except Exception as e:
            raise ProviderConstructionError(f"Failed to create {provider} client for {model.name}: {e}") from e

    def _openai_client(self, model: ModelRecord, provider: str) -> OpenAI:
        providers = self.config.providers
        if provider == "openai":
            if not providers.openai_api_key:
                raise ProviderConstructionError("OPENAI_API_KEY is not set")
            return OpenAI(base_url=model.endpoint or providers.openai_base_url, api_key=providers.openai_api_key)
        if provider == "ollama":
            return OpenAI(base_url=model.endpoint or providers.ollama_base_url, api_key="ollama")
        return OpenAI(base_url=model.endpoint or providers.lmstudio_base_url, api_key=providers.lmstudio_api_key)
