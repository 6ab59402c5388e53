from __future__ import annotations

import json
import uuid
from pathlib import Path

from fastapi import Body, FastAPI, File, Form, UploadFile, WebSocket, WebSocketDisconnect
from fastapi.responses import JSONResponse

from exam_import.db.models import StagedQuestion
from exam_import.db.store import StagingStore
from exam_import.task.extract import extract_document_task
from exam_import.utils.logging_config import get_logger
from exam_import.utils.types import ImportStatus
from exam_import.workflow.utils.progress import emit_progress, get_progress_client, progress_key, read_progress
from exam_import.workflow.utils.request_models import (
    ErrorResponse,
    QuestionsResponse,
    StagedQuestionOut,
    StatusAction,
    StatusResponse,
    UploadResponse,
    parse_tier,
    parse_year,
)
from exam_import.workflow.utils.settings import default_settings
from exam_import.workflow.text_extraction import ExtractionError, TextExtractor
from exam_import.workflow.validation import PdfValidator

logger = get_logger("exam_import.service")

PROCESSING_FALLBACK_PROGRESS = 50
TERMINAL_STATUSES = {ImportStatus.READY_FOR_REVIEW.value, ImportStatus.FAILED.value}

app = FastAPI(title="Exam Question Import Service")


def error_response(message: str, status_code: int = 400, import_id: str | None = None) -> JSONResponse:
    body = ErrorResponse(error=message, importId=import_id).model_dump(exclude_none=True)
    return JSONResponse(body, status_code=status_code)


def open_store() -> StagingStore:
    return StagingStore(default_settings().db_url)


def dispatch_import(payload: dict) -> str:
    """Queue the extraction task for an uploaded file and return the Celery task id."""
    task = extract_document_task.apply_async(args=[payload], task_id=payload["import_id"])
    return task.id


def staged_to_out(row: StagedQuestion) -> StagedQuestionOut:
    return StagedQuestionOut(
        id=row.id,
        sourceFile=row.source_file,
        sourceQuestionNum=row.source_question_num,
        title=row.title,
        content=row.content,
        answer=row.answer,
        answerType=row.answer_type,
        acceptedAnswers=row.accepted_answers,
        hints=row.hints,
        solution=row.solution,
        heuristic=row.heuristic,
        suggestedTopic=row.suggested_topic,
        suggestedTier=row.suggested_tier,
        aiConfidence=row.ai_confidence,
        aiReasoning=row.ai_reasoning,
        status=row.status,
    )


@app.get("/health")
async def health() -> JSONResponse:
    return JSONResponse({"status": "ok"})


@app.post("/import/upload")
async def upload_pdf(
    file: UploadFile | None = File(None),
    source: str | None = Form(None),
    year: str | None = Form(None),
    defaultTier: str | None = Form(None),
) -> JSONResponse:
    """Accept one PDF, record the import and queue it for extraction."""
    if file is None or not file.filename:
        return error_response("No file provided")
    if not file.filename.lower().endswith(".pdf") or (file.content_type and file.content_type != "application/pdf"):
        return error_response("File must be a PDF")

    settings = default_settings()
    validator = PdfValidator(settings.max_file_size_mb, settings.max_pages)
    data = await file.read()
    limits = validator.check_limits(len(data))
    if not limits.valid:
        return error_response(limits.error)
    if not validator.is_valid_pdf(data):
        return error_response("Invalid PDF format")
    try:
        page_count = TextExtractor.count_pages(data)
    except ExtractionError as exc:
        return error_response(str(exc))
    limits = validator.check_limits(len(data), page_count)
    if not limits.valid:
        return error_response(limits.error)

    import_id = str(uuid.uuid4())
    parsed_year = parse_year(year)
    tier = parse_tier(defaultTier)
    with StagingStore(settings.db_url) as store:
        store.create_import(file.filename, source=source or None, year=parsed_year, default_tier=tier, import_id=import_id)

        upload_dir = Path(settings.upload_dir)
        upload_dir.mkdir(parents=True, exist_ok=True)
        spool_path = upload_dir / f"{import_id}.pdf"
        spool_path.write_bytes(data)

        payload = {
            "import_id": import_id,
            "file_path": str(spool_path),
            "filename": file.filename,
            "source": source or None,
            "year": parsed_year,
            "default_tier": tier,
            "db_url": str(settings.db_url),
        }
        try:
            task_id = dispatch_import(payload)
        except Exception as exc:
            logger.error("Failed to queue import | import=%s", import_id, exc_info=True)
            store.mark_import_failed(import_id, f"Failed to queue extraction: {exc}")
            spool_path.unlink(missing_ok=True)
            return error_response("Failed to queue extraction", status_code=500, import_id=import_id)

    emit_progress(import_id, ImportStatus.PROCESSING.value, "queued", 0, extra={"task_id": task_id})
    logger.info("Queued import | import=%s file=%s task=%s", import_id, file.filename, task_id)
    body = UploadResponse(importId=import_id, message=f"Processing {file.filename}")
    return JSONResponse(body.model_dump(mode="json"))


@app.get("/import/status/{import_id}")
async def import_status(import_id: str) -> JSONResponse:
    with open_store() as store:
        record = store.load_import(import_id)
    if record is None:
        return error_response("Import not found", status_code=404)

    progress = None
    if record.status == ImportStatus.READY_FOR_REVIEW.value:
        progress = 100
    elif record.status == ImportStatus.PROCESSING.value:
        snapshot = await read_progress(import_id)
        try:
            progress = float(snapshot["progress"])
        except (KeyError, TypeError, ValueError):
            progress = PROCESSING_FALLBACK_PROGRESS

    body = StatusResponse(
        id=record.id,
        status=ImportStatus(record.status),
        progress=progress,
        questionsFound=record.questions_count,
        errorMessage=record.error_message,
    )
    return JSONResponse(body.model_dump(mode="json"))


@app.post("/import/status/{import_id}")
async def import_action(import_id: str, payload: StatusAction = Body(...)) -> JSONResponse:
    if payload.action != "get_questions":
        return error_response(f"Unsupported action {payload.action}")

    with open_store() as store:
        record = store.load_import(import_id)
        if record is None:
            return error_response("Import not found", status_code=404)
        if record.status != ImportStatus.READY_FOR_REVIEW.value:
            return error_response(f"Import is not ready for review (status: {record.status})")
        rows = store.list_staged_for_import(import_id)

    body = QuestionsResponse(
        importId=import_id,
        questions=[staged_to_out(row) for row in rows],
        metadata={
            "filename": record.filename,
            "source": record.source,
            "year": record.year,
            "defaultTier": record.default_tier,
            "status": record.status,
            "pageCount": record.page_count,
            "usedOcr": record.used_ocr,
            "ocrConfidence": record.ocr_confidence,
            "paperType": record.paper_type,
            "estimatedGradeLevel": record.estimated_grade_level,
        },
    )
    return JSONResponse(body.model_dump(mode="json"))


@app.websocket("/ws/progress/{import_id}")
async def progress_ws(websocket: WebSocket, import_id: str):
    """Stream progress snapshots for one import until it reaches a terminal status."""
    await websocket.accept()
    client = await get_progress_client()
    channel = f"progress:{import_id}"
    pubsub = client.pubsub()
    await pubsub.subscribe(channel)
    try:
        snapshot = await client.hgetall(progress_key(import_id))
        if snapshot:
            await websocket.send_json({"type": "snapshot", "import_id": import_id, **snapshot})
            if snapshot.get("status") in TERMINAL_STATUSES:
                return
        while True:
            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=10.0)
            if message and message.get("data"):
                try:
                    payload = json.loads(message["data"])
                except (TypeError, json.JSONDecodeError):
                    payload = {"raw": message["data"]}
                payload.setdefault("type", "progress")
            else:
                payload = {"type": "heartbeat", **(await client.hgetall(progress_key(import_id)))}
            payload.setdefault("import_id", import_id)
            await websocket.send_json(payload)
            if payload.get("status") in TERMINAL_STATUSES:
                break
    except WebSocketDisconnect:
        logger.info("Websocket disconnected for import_id=%s", import_id)
    finally:
        await pubsub.unsubscribe(channel)
        await pubsub.close()
