from __future__ import annotations

import datetime as dt
import uuid
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from sqlalchemy import func, select

from exam_import.db.models import Base, ImportedPdf, StagedQuestion
from exam_import.db.session import create_engine_and_session
from exam_import.utils.logging_config import get_logger
from exam_import.utils.types import ImportStatus
from exam_import.workflow.dedup import duplicate_key

logger = get_logger(__name__)

STAGED_COLUMNS = {column.name for column in StagedQuestion.__table__.columns} - {"id", "extracted_at"}


class StagingStore:
    """SQLAlchemy-backed persistence for import records and staged questions."""

    def __init__(self, db_url: Union[str, Path]):
        self.engine, self.SessionLocal = create_engine_and_session(str(db_url))
        Base.metadata.create_all(self.engine)

    def close(self) -> None:
        self.engine.dispose()

    def __enter__(self) -> "StagingStore":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    # Import records
    def create_import(
        self,
        filename: str,
        *,
        source: Optional[str] = None,
        year: Optional[int] = None,
        default_tier: Optional[int] = None,
        import_id: Optional[str] = None,
    ) -> str:
        record_id = import_id or str(uuid.uuid4())
        with self.SessionLocal() as session:
            session.add(
                ImportedPdf(
                    id=record_id,
                    filename=filename,
                    source=source,
                    year=year,
                    default_tier=default_tier,
                    status=ImportStatus.PROCESSING.value,
                    questions_count=0,
                )
            )
            session.commit()
        logger.info("Created import | id=%s file=%s", record_id, filename)
        return record_id

    def load_import(self, import_id: str) -> Optional[ImportedPdf]:
        with self.SessionLocal() as session:
            return session.get(ImportedPdf, import_id)

    def mark_import_ready(self, import_id: str, questions_count: int, **details) -> None:
        self._update_import(
            import_id,
            status=ImportStatus.READY_FOR_REVIEW.value,
            questions_count=questions_count,
            error_message=None,
            completed_at=dt.datetime.now(dt.timezone.utc),
            **details,
        )

    def mark_import_failed(self, import_id: str, error: str, **details) -> None:
        self._update_import(
            import_id,
            status=ImportStatus.FAILED.value,
            error_message=error,
            completed_at=dt.datetime.now(dt.timezone.utc),
            **details,
        )

    def _update_import(self, import_id: str, **values) -> None:
        with self.SessionLocal() as session:
            record = session.get(ImportedPdf, import_id)
            if record is None:
                raise ValueError(f"Import {import_id} not found")
            for key, value in values.items():
                setattr(record, key, value)
            session.commit()
        logger.info("Updated import | id=%s status=%s", import_id, values.get("status"))

    # Staged questions
    def _already_staged(self, session, record: dict) -> bool:
        number = record.get("source_question_num")
        if number is None:
            return False
        stmt = select(StagedQuestion.content, StagedQuestion.answer).where(
            StagedQuestion.source_file == record["source_file"],
            StagedQuestion.source_question_num == number,
        )
        key = duplicate_key(record.get("content") or "", record.get("answer") or "")
        return any(duplicate_key(content or "", answer or "") == key for content, answer in session.execute(stmt))

    def save_staged_questions(self, records: Sequence[dict]) -> int:
        """Insert staged rows, skipping any already staged for the same file, number and content."""
        inserted = 0
        with self.SessionLocal() as session:
            for record in records:
                if self._already_staged(session, record):
                    logger.info(
                        "Skipping already staged question | file=%s num=%s",
                        record.get("source_file"),
                        record.get("source_question_num"),
                    )
                    continue
                session.add(StagedQuestion(**{k: v for k, v in record.items() if k in STAGED_COLUMNS}))
                session.flush()
                inserted += 1
            session.commit()
        return inserted

    def list_staged_for_import(self, import_id: str) -> List[StagedQuestion]:
        with self.SessionLocal() as session:
            stmt = select(StagedQuestion).where(StagedQuestion.import_id == import_id).order_by(StagedQuestion.id)
            return list(session.execute(stmt).scalars())

    def list_staged_for_file(self, source_file: str) -> List[StagedQuestion]:
        with self.SessionLocal() as session:
            stmt = select(StagedQuestion).where(StagedQuestion.source_file == source_file).order_by(StagedQuestion.id)
            return list(session.execute(stmt).scalars())

    def count_by_status(self) -> Dict[str, int]:
        with self.SessionLocal() as session:
            stmt = select(StagedQuestion.status, func.count()).group_by(StagedQuestion.status)
            return {status: int(count) for status, count in session.execute(stmt)}
