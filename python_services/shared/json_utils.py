"""
Helpers for treating model output as untrusted JSON.

Responses are cleaned (code fences, surrounding prose), parsed, and then
validated against an explicit pydantic schema. Callers that can re-ask the
model use ``parse_with_retry`` to get exactly one corrective attempt.
"""

from __future__ import annotations

import json
import logging
import re
from typing import Any, Awaitable, Callable, Type, TypeVar

from pydantic import TypeAdapter, ValidationError

from .errors import ModelResponseError

logger = logging.getLogger(__name__)

T = TypeVar("T")

_FENCE_RE = re.compile(r"```(?:json)?\s*", re.IGNORECASE)
_JSON_SPAN_RE = re.compile(r"\{[\s\S]*\}|\[[\s\S]*\]")


def clean_json_text(text: str) -> str:
    """Strip markdown fences and any prose around the outermost JSON value."""
    cleaned = _FENCE_RE.sub("", text.strip()).replace("```", "").strip()
    match = _JSON_SPAN_RE.search(cleaned)
    if match:
        cleaned = match.group(0)
    return cleaned


def parse_json(text: Any) -> Any:
    """Parse a model response into a Python value, raising ``ModelResponseError``."""
    if isinstance(text, (dict, list)):
        return text
    if text is None:
        raise ModelResponseError("Empty response from model")
    cleaned = clean_json_text(str(text))
    try:
        return json.loads(cleaned)
    except json.JSONDecodeError as e:
        start = max(0, e.pos - 80)
        context = cleaned[start:e.pos + 80]
        raise ModelResponseError(f"Invalid JSON: {e.msg} near ...{context}...") from e


def validate_json(data: Any, schema: Type[T] | Any) -> T:
    """Validate parsed data against a pydantic model or typing expression."""
    try:
        return TypeAdapter(schema).validate_python(data)
    except ValidationError as e:
        raise ModelResponseError(f"Response did not match schema: {e.error_count()} error(s): {e}") from e


async def parse_with_retry(
    first_response: str,
    schema: Type[T] | Any,
    retry: Callable[[str], Awaitable[str]],
    transform: Callable[[Any], Any] | None = None,
) -> T:
    """
    Validate ``first_response``; on failure ask the model once more.

    ``retry`` receives the validation error text and returns a new raw
    response. ``transform`` reshapes the parsed JSON before validation.
    A second failure raises ``ModelResponseError``.
    """
    def _parse(raw: Any) -> T:
        data = parse_json(raw)
        if transform is not None:
            data = transform(data)
        return validate_json(data, schema)

    try:
        return _parse(first_response)
    except ModelResponseError as first_error:
        logger.warning("Model response rejected, retrying once: %s", first_error)
        second_response = await retry(str(first_error))
        return _parse(second_response)
