"""
Model client package

Provides a unified session interface to each LLM provider.
"""

from model_testbench.domain.value_objects import ModelResponse
from model_testbench.infrastructure.model_clients.base import ModelProvider, ModelSession, RetryMixin
from model_testbench.infrastructure.model_clients.factory import DefaultModelProvider, resolve_provider

__all__ = [
    "DefaultModelProvider",
    "ModelProvider",
    "ModelResponse",
    "ModelSession",
    "RetryMixin",
    "resolve_provider",
]
