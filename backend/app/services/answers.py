"""Answer codec — answers are stored as JSON text and decoded by response type."""

import json
import math
from typing import Any

NUMERIC_TYPES = {"number", "scale"}


def encode_answer(value: Any) -> str:
    return json.dumps(value, ensure_ascii=False)


def _reject_constant(name: str) -> Any:
    raise ValueError(f"Non-finite number {name} in stored answer")


def _to_number(value: Any) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return value
    try:
        number = float(value)
    except ValueError:
        return value
    if not math.isfinite(number):
        return value
    return int(number) if number.is_integer() else number


def _to_bool(value: Any) -> Any:
    if isinstance(value, str) and value.lower() in ("true", "false", "yes", "no"):
        return value.lower() in ("true", "yes")
    return value


def decode_answer(raw: str, response_type: str) -> Any:
    """Parse a stored answer.

    Answers written by this service are JSON and come back exactly as they
    were submitted. Text that is not valid JSON (rows written by other tools)
    is coerced to the shape its response type implies, or returned verbatim
    when it does not fit.
    """
    try:
        return json.loads(raw, parse_constant=_reject_constant)
    except (TypeError, ValueError):
        value = raw

    if response_type in NUMERIC_TYPES:
        return _to_number(value)
    if response_type == "boolean":
        return _to_bool(value)
    if response_type == "checkbox":
        return value if isinstance(value, list) else [value]
    return value


def answer_to_text(value: Any) -> str:
    """Render a decoded answer as a single CSV cell."""
    if isinstance(value, str):
        return value
    return json.dumps(value, ensure_ascii=False)
