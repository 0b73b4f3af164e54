"""testgate JSON Schema definitions and validation utilities.

Schemas:
    - test_output.schema.json: TEST_OUTPUT result reported by a test pipeline
    - config.schema.json: Engine configuration file

Usage:
    from testgate.schemas import validate_test_output

    errors = validate_test_output({"result": "SUCCESS"})  # [] when valid
"""

from __future__ import annotations

import json
from functools import cache
from importlib.resources import files
from typing import Any

import jsonschema


@cache
def _load_schema(name: str) -> dict[str, Any]:
    """Load a JSON schema from the schemas package.

    Args:
        name: Schema filename (e.g., 'config.schema.json')

    Returns:
        Parsed JSON schema as a dictionary
    """
    schema_text = files("testgate.schemas").joinpath(name).read_text()
    result: dict[str, Any] = json.loads(schema_text)
    return result


def get_test_output_schema() -> dict[str, Any]:
    """Get the TEST_OUTPUT schema."""
    return _load_schema("test_output.schema.json")


def get_config_schema() -> dict[str, Any]:
    """Get the engine configuration schema."""
    return _load_schema("config.schema.json")


def _errors(data: Any, schema: dict[str, Any]) -> list[str]:
    validator = jsonschema.Draft202012Validator(schema)
    messages = []
    for error in sorted(validator.iter_errors(data), key=lambda e: e.json_path):
        location = "/".join(str(p) for p in error.path)
        messages.append(f"{location}: {error.message}" if location else error.message)
    return messages


def validate_test_output(data: Any) -> list[str]:
    """Validate a decoded TEST_OUTPUT value.

    Returns:
        Human-readable validation errors, empty if the value is valid
    """
    return _errors(data, get_test_output_schema())


def validate_config(data: Any) -> list[str]:
    """Validate an engine configuration dictionary.

    Returns:
        Human-readable validation errors, empty if the value is valid
    """
    return _errors(data, get_config_schema())


__all__ = [
    "get_test_output_schema",
    "get_config_schema",
    "validate_test_output",
    "validate_config",
]
