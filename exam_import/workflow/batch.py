from __future__ import annotations

import datetime as dt
import json
import os
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional

from exam_import.utils.logging_config import get_logger
from exam_import.utils.types import RawDocument
from exam_import.workflow.core import WorkflowCore
from exam_import.workflow.staging import StagingWriter

logger = get_logger(__name__)

PROGRESS_FILENAME = ".import-progress.json"
DEFAULT_CONCURRENCY = 3


def utc_timestamp() -> str:
    return dt.datetime.now(dt.timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


@dataclass
class FailedFile:
    file: str
    error: str


@dataclass
class FileResult:
    file: str
    count: int = 0
    error: Optional[str] = None


@dataclass
class BatchProgress:
    """Durable checkpoint of a batch run, stored as JSON next to the PDFs."""

    processed_files: List[str] = field(default_factory=list)
    failed_files: List[FailedFile] = field(default_factory=list)
    total_questions: int = 0
    started_at: str = field(default_factory=utc_timestamp)
    last_updated: str = field(default_factory=utc_timestamp)

    def to_dict(self) -> dict:
        return {
            "processedFiles": list(self.processed_files),
            "failedFiles": [{"file": f.file, "error": f.error} for f in self.failed_files],
            "totalQuestions": self.total_questions,
            "startedAt": self.started_at,
            "lastUpdated": self.last_updated,
        }

    @classmethod
    def from_dict(cls, data: dict) -> "BatchProgress":
        now = utc_timestamp()
        return cls(
            processed_files=[str(name) for name in data.get("processedFiles") or []],
            failed_files=[FailedFile(str(item.get("file", "")), str(item.get("error", ""))) for item in data.get("failedFiles") or [] if isinstance(item, dict)],
            total_questions=int(data.get("totalQuestions") or 0),
            started_at=str(data.get("startedAt") or now),
            last_updated=str(data.get("lastUpdated") or now),
        )

    @classmethod
    def load(cls, path: Path) -> "BatchProgress":
        """Read the checkpoint; an unreadable one is logged and replaced by a fresh run."""
        if not path.exists():
            return cls()
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
            if not isinstance(data, dict):
                raise ValueError(f"expected a JSON object, got {type(data).__name__}")
            return cls.from_dict(data)
        except (OSError, ValueError, TypeError):
            logger.warning("Ignoring unreadable checkpoint %s; starting fresh", path, exc_info=True)
            return cls()

    def save(self, path: Path) -> None:
        """Rewrite the checkpoint wholesale via a temp file so a crash never leaves half a file."""
        self.last_updated = utc_timestamp()
        tmp_path = path.with_name(path.name + ".tmp")
        tmp_path.write_text(json.dumps(self.to_dict(), indent=2), encoding="utf-8")
        os.replace(tmp_path, path)

    def record(self, result: FileResult) -> None:
        self.processed_files.append(result.file)
        self.total_questions += result.count
        if result.error is not None:
            self.failed_files.append(FailedFile(result.file, result.error))


def discover_pdfs(folder: Path) -> List[str]:
    return sorted(entry.name for entry in folder.iterdir() if entry.is_file() and entry.name.lower().endswith(".pdf"))


class BatchDriver:
    """Imports every PDF in a folder, a fixed-size group at a time, resuming from a checkpoint.

    Files in a group run in parallel and the whole group finishes before the next
    starts. Workers only return results; the checkpoint is updated and written
    from the calling thread after each group.
    """

    def __init__(
        self,
        folder: Path | str,
        workflow: WorkflowCore,
        writer: Optional[StagingWriter] = None,
        *,
        concurrency: int = DEFAULT_CONCURRENCY,
        dry_run: bool = False,
        progress_path: Path | None = None,
        echo: Callable[[str], None] = print,
    ) -> None:
        self.folder = Path(folder)
        self.workflow = workflow
        self.writer = writer
        self.concurrency = max(1, int(concurrency))
        self.dry_run = dry_run
        self.progress_path = progress_path or self.folder / PROGRESS_FILENAME
        self.echo = echo
        if writer is None and not dry_run:
            raise ValueError("A StagingWriter is required unless dry_run is set")

    def process_file(self, filename: str) -> FileResult:
        """Run one PDF end to end; any failure is returned, never raised."""
        path = self.folder / filename
        self.echo(f"\nProcessing: {filename}")
        try:
            document = RawDocument(data=path.read_bytes(), filename=filename)
            result = self.workflow.run(document)
            found = len(result.questions)
            mode = "OCR" if result.extraction.used_ocr else "text"
            self.echo(f"   Extracted {result.extraction.page_count} pages ({mode}); AI found {found} questions")
            if self.dry_run:
                self.echo(f"   DRY RUN - would insert {found} staged questions")
                return FileResult(filename, found)
            inserted = self.writer.write(result.questions, source_file=filename)
            self.echo(f"   Inserted {inserted} questions")
            return FileResult(filename, inserted)
        except Exception as exc:
            message = str(exc) or exc.__class__.__name__
            logger.warning("File failed | file=%s error=%s", filename, message, exc_info=True)
            self.echo(f"   Error: {message}")
            return FileResult(filename, 0, message)

    def run(self) -> BatchProgress:
        if not self.folder.is_dir():
            raise FileNotFoundError(f"Folder not found: {self.folder}")

        files = discover_pdfs(self.folder)
        self.echo(f"Found {len(files)} PDF files")
        progress = BatchProgress.load(self.progress_path)
        done = set(progress.processed_files)
        pending = [name for name in files if name not in done]
        self.echo(f"Pending: {len(pending)} files ({len(progress.processed_files)} already processed)")

        processed = 0
        for start in range(0, len(pending), self.concurrency):
            group = pending[start : start + self.concurrency]
            with ThreadPoolExecutor(max_workers=len(group)) as executor:
                results = list(executor.map(self.process_file, group))
            for result in results:
                progress.record(result)
            processed += len(results)
            if self.dry_run:
                progress.last_updated = utc_timestamp()
            else:
                progress.save(self.progress_path)
            self.echo(f"\nProgress: {processed}/{len(pending)} files")
        return progress


def format_summary(progress: BatchProgress) -> str:
    lines = [
        "=" * 50,
        "IMPORT SUMMARY",
        "=" * 50,
        f"Total PDFs processed: {len(progress.processed_files)}",
        f"Total questions extracted: {progress.total_questions}",
        f"Failed PDFs: {len(progress.failed_files)}",
    ]
    if progress.failed_files:
        lines.append("")
        lines.append("Failed files:")
        lines.extend(f"   - {failed.file}: {failed.error}" for failed in progress.failed_files)
    return "\n".join(lines)
