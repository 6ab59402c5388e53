from __future__ import annotations

from typing import Iterable, List, Optional

from exam_import.db.store import StagingStore
from exam_import.utils.logging_config import get_logger
from exam_import.utils.types import CandidateQuestion, StagedStatus

logger = get_logger(__name__)


def initial_status(question: CandidateQuestion) -> StagedStatus:
    return StagedStatus.NEEDS_EDIT if question.needs_review else StagedStatus.PENDING


def to_staged_record(question: CandidateQuestion, source_file: str, import_id: Optional[str] = None) -> dict:
    return {
        "import_id": import_id,
        "source_file": source_file,
        "source_page": None,
        "source_question_num": str(question.source_question) if question.source_question is not None else None,
        "title": question.title or None,
        "content": question.content,
        "answer": question.answer or None,
        "answer_type": question.answer_type.value,
        "accepted_answers": list(question.accepted_answers) if question.accepted_answers else None,
        "hints": list(question.hints) if question.hints else None,
        "solution": question.solution or None,
        "heuristic": question.heuristic or None,
        "suggested_topic": question.topic.value,
        "suggested_tier": question.tier,
        "ai_confidence": question.confidence,
        "ai_reasoning": question.reasoning or None,
        "status": initial_status(question).value,
    }


class StagingWriter:
    """Persists candidate questions as reviewable staged records."""

    def __init__(self, store: StagingStore) -> None:
        self.store = store

    def write(self, questions: Iterable[CandidateQuestion], source_file: str, import_id: Optional[str] = None) -> int:
        records: List[dict] = [to_staged_record(q, source_file, import_id) for q in questions]
        if not records:
            return 0
        inserted = self.store.save_staged_questions(records)
        needs_edit = sum(1 for r in records if r["status"] == StagedStatus.NEEDS_EDIT.value)
        logger.info("Staged questions | file=%s inserted=%s skipped=%s needs_edit=%s", source_file, inserted, len(records) - inserted, needs_edit)
        return inserted
