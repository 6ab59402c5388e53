from __future__ import annotations

import os
from pathlib import Path
from types import SimpleNamespace
from typing import Any, Dict


def load_env(env_path: Path | str = ".env", *, override: bool = False) -> None:
    """Lightweight .env loader; existing variables win unless override is set."""
    path = Path(env_path)
    if not path.exists():
        return
    for line in path.read_text().splitlines():
        stripped = line.strip()
        if not stripped or stripped.startswith("#") or "=" not in stripped:
            continue
        key, value = stripped.split("=", 1)
        key = key.strip()
        value = value.strip().strip('"').strip("'")
        if override or key not in os.environ:
            os.environ[key] = value


def ocr_workers() -> int:
    """OCR_MAX_WORKERS capped at the CPU count."""
    requested = int(os.getenv("OCR_MAX_WORKERS", "4"))
    return max(1, min(requested, os.cpu_count() or 1))


def default_settings(*, override: Dict[str, Any] | None = None) -> SimpleNamespace:
    settings = SimpleNamespace(
        openai_api_key=os.getenv("OPENAI_API_KEY", ""),
        openai_model=os.getenv("OPENAI_MODEL", "gpt-4o-mini"),
        openai_max_tokens=int(os.getenv("OPENAI_MAX_TOKENS", 8192)),
        openai_temperature=float(os.getenv("OPENAI_TEMPERATURE", 0.1)),
        chunk_max_chars=int(os.getenv("CHUNK_MAX_CHARS", 15000)),
        chunk_workers=int(os.getenv("CHUNK_WORKERS", 1)),
        ocr_scale=float(os.getenv("OCR_SCALE", 2.0)),
        ocr_lang=os.getenv("OCR_LANG", "eng"),
        ocr_workers=ocr_workers(),
        meaningful_min_chars=int(os.getenv("MEANINGFUL_MIN_CHARS", 100)),
        review_threshold=float(os.getenv("REVIEW_CONFIDENCE_THRESHOLD", 0.7)),
        max_file_size_mb=float(os.getenv("MAX_FILE_SIZE_MB", 10)),
        max_pages=int(os.getenv("MAX_PAGES", 50)),
        db_url=os.getenv("DB_URL", "data/question_bank.db"),
        upload_dir=Path(os.getenv("UPLOAD_DIR", "/tmp/exam_import_uploads")),
        batch_concurrency=int(os.getenv("BATCH_CONCURRENCY", 3)),
    )
    if override:
        for key, val in override.items():
            setattr(settings, key, val)
    return settings


__all__ = ["default_settings", "load_env"]
