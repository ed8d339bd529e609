"""
Capability base classes

A capability is a named family of functions a model may call during a test.
Instances are built per invocation and carry only the attribution context
(model, agent, working folder) of that invocation.
"""

from __future__ import annotations

import inspect
import json
import logging
from abc import ABC
from dataclasses import dataclass, field
from typing import Any, Callable

from model_testbench.domain.constants import REFERENCE_STORY_FILE_NAME

logger = logging.getLogger(__name__)

# JSON Schema parameter declaration: name -> (type, description)
ParamSpec = tuple[str, str]


@dataclass(frozen=True)
class CapabilityContext:
    """Attribution context shared by the capabilities of one invocation"""
    model_name: str
    agent_id: int | None = None
    working_folder: str | None = None
    story_text: str | None = None
    story_file_name: str = REFERENCE_STORY_FILE_NAME  # inside working_folder


@dataclass(frozen=True)
class ToolSpec:
    """A callable function as advertised to the model"""
    name: str  # "<capability>-<function>"
    description: str
    parameters: dict  # JSON Schema object
    handler: Callable[..., Any] = field(compare=False, repr=False)

    def call(self, arguments: dict | str | None) -> str:
        """
        Invoke the handler and render its result as text

        Errors are returned to the model as "ERROR: ..." strings so that it
        can correct itself within the same conversation.
        """
        try:
            if isinstance(arguments, str):
                arguments = json.loads(arguments) if arguments.strip() else {}
            result = self.handler(**(arguments or {}))
        except Exception as e:
            logger.warning("Tool %s failed: %s", self.name, e)
            return f"ERROR: {e}"
        if isinstance(result, str):
            return result
        return json.dumps(result, ensure_ascii=False)


def capability_function(description: str, **params: ParamSpec):
    """
    Mark a Capability method as callable by the model

    Args:
        description: Description shown to the model
        **params: Parameter name -> (JSON Schema type, description). A
            parameter is required unless the method gives it a default.
    """
    def decorator(fn):
        fn._capability_spec = (description, params)
        return fn
    return decorator


def _parameters_schema(fn: Callable, params: dict[str, ParamSpec]) -> dict:
    signature = inspect.signature(fn)
    properties: dict[str, dict] = {}
    required: list[str] = []
    for name, (json_type, desc) in params.items():
        prop: dict[str, Any] = {"type": json_type, "description": desc}
        if json_type == "array":
            prop["items"] = {"type": "string"}
        properties[name] = prop
        param = signature.parameters.get(name)
        if param is not None and param.default is inspect.Parameter.empty:
            required.append(name)
    return {"type": "object", "properties": properties, "required": required}


class Capability(ABC):
    """Base class of all capability families"""

    name: str = ""
    description: str = ""

    def __init__(self, context: CapabilityContext) -> None:
        self.context = context

    def tools(self) -> list[ToolSpec]:
        """All functions of this capability, named "<capability>-<function>" """
        specs: list[ToolSpec] = []
        for attr_name, member in inspect.getmembers(type(self), predicate=inspect.isfunction):
            spec = getattr(member, "_capability_spec", None)
            if spec is None:
                continue
            description, params = spec
            specs.append(
                ToolSpec(
                    name=f"{self.name}-{attr_name}",
                    description=description,
                    parameters=_parameters_schema(member, params),
                    handler=getattr(self, attr_name),
                )
            )
        return specs

    @capability_function("Describes the available functions of this capability.")
    def describe(self) -> str:
        lines = [f"{self.name}: {self.description}"]
        for spec in self.tools():
            if not spec.name.endswith("-describe"):
                lines.append(f"- {spec.name}: {spec.description}")
        return "\n".join(lines)


_REGISTRY: dict[str, type[Capability]] = {}


def register_capability(cls: type[Capability]) -> type[Capability]:
    """Class decorator adding a capability family to the registry"""
    _REGISTRY[cls.name] = cls
    return cls


def available_capabilities() -> list[str]:
    return sorted(_REGISTRY)


def build_capabilities(names: list[str], context: CapabilityContext) -> list[Capability]:
    """
    Instantiate the named capability families for one invocation

    Unknown names are logged and skipped; duplicates are ignored.

    Args:
        names: Capability names (e.g. ["math", "tts_schema"])
        context: Attribution context of the invocation

    Returns:
        Fresh capability instances
    """
    capabilities: list[Capability] = []
    seen: set[str] = set()
    for raw in names:
        name = raw.strip().lower()
        if not name or name in seen:
            continue
        seen.add(name)
        cls = _REGISTRY.get(name)
        if cls is None:
            logger.warning("Unknown capability '%s' skipped", raw)
            continue
        capabilities.append(cls(context))
    return capabilities


def collect_tools(capabilities: list[Capability]) -> dict[str, ToolSpec]:
    """Map tool name -> ToolSpec over all given capabilities"""
    tools: dict[str, ToolSpec] = {}
    for capability in capabilities:
        for spec in capability.tools():
            tools[spec.name] = spec
    return tools


def call_tool(tools: dict[str, ToolSpec], name: str, arguments: dict | str | None) -> str:
    """Dispatch a tool call requested by the model"""
    spec = tools.get(name)
    if spec is None:
        logger.warning("Model requested unknown tool %s", name)
        return f"ERROR: Unknown function '{name}'"
    return spec.call(arguments)
