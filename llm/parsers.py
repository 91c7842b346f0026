from __future__ import annotations

import json
from typing import Any, Dict

from pydantic import BaseModel, StrictStr, ValidationError, field_validator

from app.errors import ResponseParseError


class Classification(BaseModel):
    label: StrictStr
    reason: StrictStr

    @field_validator("label", mode="before")
    @classmethod
    def _numeric_label(cls, value: Any) -> Any:
        # prompts asking for a digit get a bare number back
        if isinstance(value, bool):
            return value
        if isinstance(value, float) and value.is_integer():
            return str(int(value))
        if isinstance(value, (int, float)):
            return str(value)
        return value


def extract_content(response: Dict[str, Any]) -> str:
    """Return the assistant message text of a chat completion response."""
    choices = response.get("choices")
    if not isinstance(choices, list) or len(choices) != 1:
        raise ResponseParseError(f"Expected choices to have 1 item ({json.dumps(response)})")
    message = choices[0].get("message") if isinstance(choices[0], dict) else None
    if not isinstance(message, dict) or message.get("role") != "assistant":
        raise ResponseParseError(
            f'Expected choices[0].message.role to equal "assistant" ({json.dumps(response)})'
        )
    content = message.get("content")
    if not isinstance(content, str):
        raise ResponseParseError(
            f"Expected choices[0].message.content to be a string ({json.dumps(response)})"
        )
    return content


def strip_code_fence(text: str) -> str:
    body = text.strip()
    if body.startswith("```json") and body.endswith("```"):
        return body[len("```json") : -3]
    if body.startswith("```") and body.endswith("```") and len(body) >= 6:
        return body[3:-3]
    return body


def parse_classification(text: str) -> Classification:
    try:
        payload = json.loads(strip_code_fence(text))
    except json.JSONDecodeError as exc:
        raise ResponseParseError(
            f'Failed to parse message content: {exc} (raw string: "{text}")'
        ) from exc
    if not isinstance(payload, dict):
        raise ResponseParseError(f'Failed to parse message content: not an object (raw string: "{text}")')
    try:
        return Classification(**payload)
    except ValidationError as exc:
        raise ResponseParseError(
            f'Failed to parse message content: {exc} (raw string: "{text}")'
        ) from exc
