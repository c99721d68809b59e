"""Answer validation for question trees."""

from __future__ import annotations

import inspect
import re
from pathlib import Path
from typing import Any

from fxcore.questions.models import AnswerMap, Validation


async def validate(schema: Validation, value: Any, answers: AnswerMap) -> str | None:
    """Check ``value`` against ``schema``.

    Returns:
        An error message, or None when the value passes
    """
    if value is None or value == "" or value == []:
        return "A value is required" if schema.required else None

    if schema.equals is not None and value != schema.equals:
        return f"Value must equal {schema.equals!r}"

    if isinstance(value, list):
        message = _validate_list(schema, value)
    elif isinstance(value, bool):
        message = None
    elif isinstance(value, (int, float)):
        message = _validate_number(schema, value)
    elif isinstance(value, str):
        message = _validate_string(schema, value)
    else:
        message = None
    if message:
        return message

    if schema.func is not None:
        result = schema.func(value, answers)
        if inspect.isawaitable(result):
            result = await result
        return result or None
    return None


def _validate_string(schema: Validation, value: str) -> str | None:
    if schema.enum is not None and value not in schema.enum:
        return f"Value must be one of: {', '.join(map(str, schema.enum))}"
    if schema.min_length is not None and len(value) < schema.min_length:
        return f"Value must be at least {schema.min_length} characters"
    if schema.max_length is not None and len(value) > schema.max_length:
        return f"Value must be at most {schema.max_length} characters"
    if schema.pattern is not None and not re.search(schema.pattern, value):
        return f"Value must match pattern {schema.pattern}"
    if schema.starts_with is not None and not value.startswith(schema.starts_with):
        return f"Value must start with {schema.starts_with!r}"
    if schema.ends_with is not None and not value.endswith(schema.ends_with):
        return f"Value must end with {schema.ends_with!r}"
    if schema.includes is not None and schema.includes not in value:
        return f"Value must include {schema.includes!r}"
    if schema.exists is not None and Path(value).exists() != schema.exists:
        return f"Path {'does not exist' if schema.exists else 'already exists'}: {value}"
    return None


def _validate_list(schema: Validation, value: list[Any]) -> str | None:
    if schema.min_items is not None and len(value) < schema.min_items:
        return f"Select at least {schema.min_items} items"
    if schema.max_items is not None and len(value) > schema.max_items:
        return f"Select at most {schema.max_items} items"
    if schema.unique_items and len(set(map(str, value))) != len(value):
        return "Items must be unique"
    if schema.enum is not None:
        invalid = [item for item in value if item not in schema.enum]
        if invalid:
            return f"Items not allowed: {', '.join(map(str, invalid))}"
    if schema.contains is not None and schema.contains not in value:
        return f"Selection must contain {schema.contains!r}"
    if schema.contains_all is not None:
        missing = [item for item in schema.contains_all if item not in value]
        if missing:
            return f"Selection must contain: {', '.join(missing)}"
    if schema.contains_any is not None and not any(i in value for i in schema.contains_any):
        return f"Selection must contain one of: {', '.join(schema.contains_any)}"
    return None


def _validate_number(schema: Validation, value: float) -> str | None:
    if schema.enum is not None and value not in schema.enum:
        return f"Value must be one of: {', '.join(map(str, schema.enum))}"
    if schema.minimum is not None and value < schema.minimum:
        return f"Value must be >= {schema.minimum}"
    if schema.maximum is not None and value > schema.maximum:
        return f"Value must be <= {schema.maximum}"
    if schema.exclusive_minimum is not None and value <= schema.exclusive_minimum:
        return f"Value must be > {schema.exclusive_minimum}"
    if schema.exclusive_maximum is not None and value >= schema.exclusive_maximum:
        return f"Value must be < {schema.exclusive_maximum}"
    if schema.multiple_of is not None and value % schema.multiple_of != 0:
        return f"Value must be a multiple of {schema.multiple_of}"
    return None
