from __future__ import annotations

import json
import re
from typing import Any, Optional

from exam_import.utils.logging_config import get_logger

logger = get_logger(__name__)

FENCED_BLOCK = re.compile(r"```(?:json)?\s*([\s\S]*?)```")
QUESTIONS_ARRAY = re.compile(r'"questions"\s*:\s*\[')


def strip_json_wrapping(content: str) -> str:
    """Drop code fences and any prose before the first '{' or after the last '}'."""
    json_str = content or ""
    fenced = FENCED_BLOCK.search(json_str)
    if fenced:
        json_str = fenced.group(1)
    start = json_str.find("{")
    end = json_str.rfind("}")
    if start != -1 and end != -1 and end > start:
        json_str = json_str[start : end + 1]
    elif start != -1:
        json_str = json_str[start:]
    return json_str


def last_complete_question_offset(json_str: str) -> int:
    """Offset of the '}' closing the last complete object directly inside "questions", or -1."""
    match = QUESTIONS_ARRAY.search(json_str)
    if not match:
        return -1

    depth = 1
    last_complete = -1
    in_string = False
    escape_next = False

    for idx in range(match.end(), len(json_str)):
        char = json_str[idx]
        if escape_next:
            escape_next = False
            continue
        if char == "\\":
            escape_next = in_string
            continue
        if char == '"':
            in_string = not in_string
            continue
        if in_string:
            continue
        if char in "{[":
            depth += 1
        elif char in "}]":
            depth -= 1
            if depth == 1 and char == "}":
                last_complete = idx
            elif depth == 0:
                break
    return last_complete


def repair_truncated_json(json_str: str) -> Optional[str]:
    """Cut a truncated extraction payload back to its last whole question and close it.

    Returns None when the "questions" array holds no complete object.
    """
    offset = last_complete_question_offset(json_str)
    if offset < 0:
        return None
    logger.info("Repairing truncated JSON at position %s of %s", offset, len(json_str))
    return json_str[: offset + 1] + "]}"


def parse_json_payload(content: str) -> Any:
    """Parse a model response, falling back to truncation repair; returns {} when nothing is recoverable."""
    json_str = strip_json_wrapping(content)
    try:
        return json.loads(json_str)
    except json.JSONDecodeError:
        logger.info("Initial parse failed, attempting to repair truncated JSON")

    repaired = repair_truncated_json(json_str)
    if repaired is not None:
        try:
            data = json.loads(repaired)
        except json.JSONDecodeError:
            logger.warning("Repaired JSON still failed to parse")
        else:
            logger.info("Repaired JSON successfully, found %s questions", len(data.get("questions") or []))
            return data

    logger.warning("Failed to parse JSON content: %s", (content or "")[:500])
    return {}
