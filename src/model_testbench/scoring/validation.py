"""
Response validation rules

Decides pass/fail for a single model response given a test's declared
expectation: literal value, range expression, JSON-schema conformance or
"non-empty". All functions are pure.
"""

from __future__ import annotations

import json

import jsonschema

from model_testbench.domain.value_objects import ValidationResult, wrap_response_schema

PASSED = ValidationResult(passed=True)


def unwrap_structured_value(response_text: str) -> str:
    """
    Extract the scalar answer from a {"result": value} structured response

    Args:
        response_text: Raw (stripped) response text

    Returns:
        The unwrapped value as text, or the input unchanged when it is not
        a JSON object carrying a "result" property
    """
    if not response_text.startswith("{"):
        return response_text
    try:
        data = json.loads(response_text)
    except json.JSONDecodeError:
        return response_text
    if not isinstance(data, dict) or "result" not in data:
        return response_text

    value = data["result"]
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    return json.dumps(value, ensure_ascii=False)


def _matches_literal(actual: str, expected: str) -> bool:
    return actual == expected or actual.lower() == expected.lower()


def validate_range(value: str | None, valid_range: str) -> ValidationResult:
    """
    Validate a value against a range expression

    Supported forms:
    - "min-max": integer range, inclusive
    - "A,B,C": enumeration, case-insensitive
    - "X": single value, case-insensitive

    Args:
        value: Value extracted from the response
        valid_range: Range expression

    Returns:
        ValidationResult
    """
    range_expr = valid_range.strip()

    # Numeric range: min-max
    if "-" in range_expr and "," not in range_expr:
        parts = [p.strip() for p in range_expr.split("-") if p.strip()]
        bounds = _parse_int_pair(parts)
        if bounds is not None:
            low, high = bounds
            number = _parse_int(value)
            if number is not None and low <= number <= high:
                return PASSED
            return ValidationResult(False, f"Value '{value}' is not in range {low}-{high}")

    # List of values: A,B,C
    if "," in range_expr:
        allowed = [v.strip() for v in range_expr.split(",") if v.strip()]
        if value is not None and any(v.lower() == value.lower() for v in allowed):
            return PASSED
        return ValidationResult(
            False, f"Value '{value}' is not in allowed list [{', '.join(allowed)}]"
        )

    # Single value
    if value is not None and value.lower() == range_expr.lower():
        return PASSED
    return ValidationResult(False, f"Value '{value}' does not match expected '{range_expr}'")


def _parse_int(text: str | None) -> int | None:
    if text is None:
        return None
    try:
        return int(text.strip())
    except ValueError:
        return None


def _parse_int_pair(parts: list[str]) -> tuple[int, int] | None:
    if len(parts) != 2:
        return None
    low, high = _parse_int(parts[0]), _parse_int(parts[1])
    if low is None or high is None:
        return None
    return low, high


def validate_non_empty(response_text: str | None) -> ValidationResult:
    if not response_text or not response_text.strip():
        return ValidationResult(False, "Response is empty")
    return PASSED


def validate_response(
    response_text: str | None,
    expected_value: str | None = None,
    valid_range: str | None = None,
) -> ValidationResult:
    """
    Validate a "question" response

    The literal expectation wins over the range; with neither, any non-empty
    response passes. Structured {"result": ...} responses are unwrapped
    before the second literal check and the range check.

    Args:
        response_text: Raw model response
        expected_value: Literal expected value (case-insensitive)
        valid_range: Range expression (see validate_range)

    Returns:
        ValidationResult
    """
    original = (response_text or "").strip()
    expected = expected_value.strip() if expected_value and expected_value.strip() else None

    if expected is not None and _matches_literal(original, expected):
        return PASSED

    value = unwrap_structured_value(original).strip()

    if expected is not None:
        if _matches_literal(value, expected):
            return PASSED
        return ValidationResult(
            False,
            f"Expected '{expected}' but got '{value}' (original response: '{original}')",
        )

    if valid_range and valid_range.strip():
        return validate_range(value, valid_range)

    return validate_non_empty(value)


def validate_structured_response(response_text: str | None, schema: dict | None = None) -> ValidationResult:
    """
    Validate that a response is well-formed JSON conforming to a schema

    Non-object schemas are checked in their {"result": <schema>} wrapped
    form, which is what providers are asked to produce.

    Args:
        response_text: Raw model response
        schema: JSON Schema document (None = only check well-formedness)

    Returns:
        ValidationResult
    """
    try:
        data = json.loads(response_text or "")
    except json.JSONDecodeError as e:
        return ValidationResult(False, f"Invalid structured response: {e}")

    if schema is None:
        return PASSED

    try:
        jsonschema.validate(instance=data, schema=wrap_response_schema(schema))
    except jsonschema.ValidationError as e:
        return ValidationResult(False, f"Structured response does not match schema: {e.message}")
    except jsonschema.SchemaError as e:
        return ValidationResult(False, f"Invalid response schema: {e.message}")
    return PASSED


def validate_function_call_response(
    response_text: str | None,
    schema: dict | None = None,
    structured: bool = False,
) -> ValidationResult:
    """
    Validate a "functioncall" response

    With a declared schema the response must be structured data conforming to
    it; otherwise the response must simply be non-empty.

    Args:
        response_text: Raw model response
        schema: JSON Schema document
        structured: Require well-formed JSON even when no schema document is available
    """
    if schema is not None or structured:
        return validate_structured_response(response_text, schema)
    return validate_non_empty(response_text)
