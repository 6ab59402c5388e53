from __future__ import annotations

from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict, Optional

from celery_app import celery_app  # type: ignore
from exam_import.db.store import StagingStore
from exam_import.utils.logging_config import get_logger
from exam_import.utils.types import RawDocument
from exam_import.workflow.core import WorkflowCore
from exam_import.workflow.staging import StagingWriter
from exam_import.workflow.utils.progress import emit_progress
from exam_import.workflow.utils.settings import default_settings

logger = get_logger(__name__)

# Share of the overall progress bar given to each stage.
_STAGE_BANDS = {"ocr": (10.0, 50.0), "ai": (50.0, 90.0)}


class ImportTaskService:
    """Runs a service-mode import for one uploaded PDF and records the outcome on its import row."""

    def __init__(self, settings: Optional[SimpleNamespace] = None, workflow: Optional[WorkflowCore] = None) -> None:
        self.settings = settings or default_settings()
        self.workflow = workflow or WorkflowCore.from_settings(self.settings)

    def run(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        import_id = payload["import_id"]
        path = Path(payload["file_path"])
        filename = payload.get("filename") or path.name
        logger.info("Import start | import=%s file=%s", import_id, filename)

        def on_progress(stage: str, done: int, total: int) -> None:
            low, high = _STAGE_BANDS.get(stage, (0.0, 100.0))
            overall = round(low + (high - low) * (done / total), 2) if total else low
            emit_progress(import_id, "processing", stage, overall, extra={"done": done, "total": total})

        with StagingStore(payload.get("db_url") or self.settings.db_url) as store:
            try:
                emit_progress(import_id, "processing", "extract", 5)
                document = RawDocument(
                    data=path.read_bytes(),
                    filename=filename,
                    source=payload.get("source"),
                    year=payload.get("year"),
                    default_tier=payload.get("default_tier"),
                )
                result = self.workflow.run(document, on_progress=on_progress)
                details = {
                    "page_count": result.extraction.page_count,
                    "used_ocr": result.extraction.used_ocr,
                    "ocr_confidence": result.extraction.ocr_confidence,
                    "paper_type": result.metadata.paper_type,
                    "estimated_grade_level": result.metadata.estimated_grade_level,
                }
                if not result.questions:
                    store.mark_import_failed(import_id, "No questions found in PDF", **details)
                    emit_progress(import_id, "failed", "done", 100)
                    return {"import_id": import_id, "status": "failed", "questions": 0}

                inserted = StagingWriter(store).write(result.questions, source_file=filename, import_id=import_id)
                if inserted == 0:
                    store.mark_import_failed(import_id, f"All {len(result.questions)} questions from {filename} are already staged", **details)
                    emit_progress(import_id, "failed", "done", 100)
                    return {"import_id": import_id, "status": "failed", "questions": 0}

                store.mark_import_ready(import_id, inserted, **details)
                emit_progress(import_id, "ready_for_review", "done", 100, extra={"questions": inserted})
                logger.info("Import done | import=%s questions=%s", import_id, inserted)
                return {"import_id": import_id, "status": "ready_for_review", "questions": inserted}
            except Exception as exc:
                message = str(exc) or exc.__class__.__name__
                logger.warning("Import failed | import=%s error=%s", import_id, message, exc_info=True)
                store.mark_import_failed(import_id, message)
                emit_progress(import_id, "failed", "done", 100, extra={"error": message})
                return {"import_id": import_id, "status": "failed", "error": message}
            finally:
                path.unlink(missing_ok=True)


@celery_app.task(name="exam_import.extract.document")
def extract_document_task(payload: Dict[str, Any]) -> Dict[str, Any]:
    """Extract and stage the questions of one uploaded PDF."""
    return ImportTaskService().run(payload)
