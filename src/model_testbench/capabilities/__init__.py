"""
Capabilities sub-package

Named function families a model may call during a test. Importing the
package registers every built-in family.
"""

from model_testbench.capabilities.base import (
    Capability,
    CapabilityContext,
    ToolSpec,
    available_capabilities,
    build_capabilities,
    call_tool,
    capability_function,
    collect_tools,
    register_capability,
)
from model_testbench.capabilities.builtin import MathCapability, TextCapability, TimeCapability
from model_testbench.capabilities.filesystem import FileSystemCapability
from model_testbench.capabilities.tts_schema import TtsSchemaCapability

__all__ = [
    # base
    "Capability",
    "CapabilityContext",
    "ToolSpec",
    "available_capabilities",
    "build_capabilities",
    "call_tool",
    "capability_function",
    "collect_tools",
    "register_capability",
    # families
    "FileSystemCapability",
    "MathCapability",
    "TextCapability",
    "TimeCapability",
    "TtsSchemaCapability",
]
