"""Helpers for reading JSON out of model responses."""

from __future__ import annotations

import json
import re
from typing import Any

_FENCE_RE = re.compile(r"^```[\w-]*\s*(.*?)\s*```$", re.DOTALL)


def strip_code_fences(text: str) -> str:
    """Remove a surrounding ``` fence (with optional language tag) if present."""

    stripped = text.strip()
    match = _FENCE_RE.match(stripped)
    if match:
        return match.group(1).strip()
    return stripped


def extract_json(text: str) -> Any:
    """Parse the JSON payload of a model response.

    Accepts bare JSON, fenced JSON, or JSON embedded in surrounding prose
    (first balanced object or array wins).

    Raises:
        ValueError: If no JSON value can be decoded.
    """
    candidate = strip_code_fences(text)
    try:
        return json.loads(candidate)
    except json.JSONDecodeError:
        pass

    decoder = json.JSONDecoder()
    for index, char in enumerate(candidate):
        if char not in "{[":
            continue
        try:
            value, _ = decoder.raw_decode(candidate[index:])
            return value
        except json.JSONDecodeError:
            continue

    raise ValueError(f"No JSON found in response: {text[:200]!r}")


def to_display_text(value: Any) -> str:
    """Render an opaque output (string or structured object) as text."""

    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if hasattr(value, "model_dump"):
        value = value.model_dump(mode="json")
    return json.dumps(value, ensure_ascii=False, indent=2, default=str)
