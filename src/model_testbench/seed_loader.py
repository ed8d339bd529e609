"""
Seed Loader

Loads models, evaluator agents and test definitions from a JSON seed file
into the test store.

Seed format:
    {
      "models": [{"name": ..., "provider": ..., "endpoint": ..., "max_context": ...}],
      "agents": [{"name": ..., "model_name": ..., "instructions": ...}],
      "test_definitions": [{"group_name": ..., "function_name": ..., "prompt": ..., "test_type": ...}]
    }
"""

import json
from dataclasses import dataclass
from pathlib import Path

from model_testbench.domain.constants import STORY_EVALUATOR_ROLE
from model_testbench.domain.entities import ModelRecord, TestDefinition, TestType
from model_testbench.domain.errors import SeedFormatError, UnknownTestTypeError
from model_testbench.infrastructure.store.base import TestStore


@dataclass
class SeedData:
    """Parsed contents of a seed file"""
    models: list[ModelRecord]
    agents: list[dict]
    test_definitions: list[TestDefinition]


@dataclass
class SeedSummary:
    """Number of records written by load_seed"""
    models: int = 0
    agents: int = 0
    test_definitions: int = 0


def _require(data: dict, fields: list[str], where: str) -> None:
    for field in fields:
        if field not in data:
            raise SeedFormatError(f"Required field '{field}' is missing in {where}")


def _string_list(value, field: str, where: str) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(",") if v.strip()]
    if isinstance(value, list) and all(isinstance(v, str) for v in value):
        return value
    raise SeedFormatError(f"Field '{field}' must be a list of strings in {where}")


def _parse_model(data: dict, index: int) -> ModelRecord:
    where = f"models[{index}]"
    _require(data, ["name"], where)
    return ModelRecord(
        name=data["name"],
        provider=data.get("provider", ""),
        endpoint=data.get("endpoint"),
        enabled=data.get("enabled", True),
        max_context=int(data.get("max_context", 0) or 0),
    )


def _parse_agent(data: dict, index: int) -> dict:
    where = f"agents[{index}]"
    _require(data, ["name", "model_name"], where)
    return {
        "name": data["name"],
        "model_name": data["model_name"],
        "role": data.get("role", STORY_EVALUATOR_ROLE),
        "instructions": data.get("instructions", ""),
        "response_schema": data.get("response_schema"),
        "active": data.get("active", True),
    }


def _parse_test_definition(data: dict, index: int) -> TestDefinition:
    where = f"test_definitions[{index}]"
    _require(data, ["group_name", "function_name", "prompt", "test_type"], where)
    try:
        test_type = TestType.parse(data["test_type"])
    except UnknownTestTypeError as e:
        raise SeedFormatError(f"{e} in {where}") from e

    return TestDefinition(
        id=int(data.get("id", 0) or 0),
        group_name=data["group_name"],
        function_name=data["function_name"],
        prompt=data["prompt"],
        test_type=test_type,
        library=data.get("library", ""),
        timeout_seconds=int(data.get("timeout_seconds", 0) or 0),
        priority=int(data.get("priority", 1)),
        expected_value=data.get("expected_value"),
        valid_range=data.get("valid_range"),
        response_schema=data.get("response_schema"),
        execution_plan=data.get("execution_plan"),
        allowed_capabilities=_string_list(data.get("allowed_capabilities"), "allowed_capabilities", where),
        files_to_stage=_string_list(data.get("files_to_stage"), "files_to_stage", where),
        description=data.get("description", ""),
        active=data.get("active", True),
    )


def parse_seed(data: dict) -> SeedData:
    """
    Parse seed data

    Args:
        data: Decoded seed JSON

    Returns:
        SeedData

    Raises:
        SeedFormatError: If the structure or a required field is invalid
    """
    if not isinstance(data, dict):
        raise SeedFormatError("Seed root must be a JSON object")
    for section in ("models", "agents", "test_definitions"):
        if not isinstance(data.get(section, []), list):
            raise SeedFormatError(f"Section '{section}' must be a list")

    return SeedData(
        models=[_parse_model(m, i) for i, m in enumerate(data.get("models", []))],
        agents=[_parse_agent(a, i) for i, a in enumerate(data.get("agents", []))],
        test_definitions=[
            _parse_test_definition(t, i) for i, t in enumerate(data.get("test_definitions", []))
        ],
    )


def load_seed_file(file_path: str) -> SeedData:
    """
    Load and parse a seed JSON file

    Raises:
        FileNotFoundError: If the file does not exist
        SeedFormatError: If the file is not valid seed JSON
    """
    path = Path(file_path)
    with open(path, "r", encoding="utf-8") as f:
        try:
            data = json.load(f)
        except json.JSONDecodeError as e:
            raise SeedFormatError(f"Invalid JSON in {path}: {e}") from e
    return parse_seed(data)


def load_seed(store: TestStore, file_path: str) -> SeedSummary:
    """
    Write the contents of a seed file into the store

    Models are upserted by name; agents and test definitions are added.

    Args:
        store: Target test store
        file_path: Path to the seed JSON file

    Returns:
        SeedSummary: Number of records written per section
    """
    seed = load_seed_file(file_path)
    summary = SeedSummary()
    for model in seed.models:
        store.upsert_model(model)
        summary.models += 1
    for agent in seed.agents:
        store.add_agent(**agent)
        summary.agents += 1
    for definition in seed.test_definitions:
        store.add_test_definition(definition)
        summary.test_definitions += 1
    return summary
