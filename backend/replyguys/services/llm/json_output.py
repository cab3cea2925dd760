"""Helpers for pulling a JSON document out of a model response."""
import json
from typing import Any


def strip_to_json(response_text: str) -> str:
    """Drop reasoning tags and markdown fences around a JSON payload."""
    text = response_text or ""

    # Reasoning models prepend a <think> block
    if "<think>" in text and "</think>" in text:
        text = text.split("</think>")[-1]

    if "```json" in text:
        text = text.split("```json")[1].split("```")[0]
    elif "```" in text:
        text = text.split("```")[1].split("```")[0]

    return text.strip()


def loads_object(response_text: str) -> dict[str, Any]:
    """Parse a JSON object; raises ValueError for anything else."""
    payload = json.loads(strip_to_json(response_text))
    if not isinstance(payload, dict):
        raise ValueError(f"expected a JSON object, got {type(payload).__name__}")
    return payload
