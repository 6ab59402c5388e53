from __future__ import annotations

import re
from typing import Iterable, List

from exam_import.utils.types import CandidateQuestion

_WHITESPACE = re.compile(r"\s+")
_PUNCTUATION = re.compile(r"[^\w\s]")


def normalize_for_comparison(text: str) -> str:
    text = _WHITESPACE.sub(" ", (text or "").lower())
    return _PUNCTUATION.sub("", text).strip()


def duplicate_key(content: str, answer: str) -> str:
    return normalize_for_comparison(f"{content or ''}{answer or ''}")


def deduplicate_questions(questions: Iterable[CandidateQuestion]) -> List[CandidateQuestion]:
    """Keep the first occurrence of each exact normalized content+answer; order is preserved."""
    seen: set[str] = set()
    unique: List[CandidateQuestion] = []
    for question in questions:
        key = duplicate_key(question.content, question.answer)
        if key in seen:
            continue
        seen.add(key)
        unique.append(question)
    return unique
