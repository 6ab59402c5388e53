from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from exam_import.utils.logging_config import get_logger

logger = get_logger(__name__)

PDF_SIGNATURE = b"%PDF-"
MAX_FILE_SIZE_MB = 10
MAX_PAGES = 50


class PdfValidationError(ValueError):
    """Input is not something the pipeline will process; the caller must resubmit."""


@dataclass
class LimitCheck:
    valid: bool
    error: Optional[str] = None


class PdfValidator:
    """Cheap checks that run before any extraction work."""

    def __init__(self, max_file_size_mb: float = MAX_FILE_SIZE_MB, max_pages: int = MAX_PAGES) -> None:
        self.max_file_size_mb = max_file_size_mb
        self.max_pages = max_pages

    @staticmethod
    def is_valid_pdf(data: bytes) -> bool:
        return data[: len(PDF_SIGNATURE)] == PDF_SIGNATURE

    def check_limits(self, size_bytes: int, page_count: Optional[int] = None) -> LimitCheck:
        size_mb = size_bytes / (1024 * 1024)
        if size_mb > self.max_file_size_mb:
            return LimitCheck(
                valid=False,
                error=f"PDF is too large ({size_mb:.1f}MB). Maximum size is {self.max_file_size_mb:g}MB.",
            )
        if page_count and page_count > self.max_pages:
            return LimitCheck(
                valid=False,
                error=f"PDF has too many pages ({page_count}). Maximum is {self.max_pages} pages.",
            )
        return LimitCheck(valid=True)

    def ensure_valid(self, data: bytes, filename: str = "", page_count: Optional[int] = None) -> None:
        """Raise PdfValidationError for a bad signature or a limit violation."""
        if not self.is_valid_pdf(data):
            raise PdfValidationError("Invalid PDF format")
        check = self.check_limits(len(data), page_count)
        if not check.valid:
            raise PdfValidationError(check.error)
        logger.info("Validated PDF %s (%.1f MB, pages=%s)", filename or "<buffer>", len(data) / (1024 * 1024), page_count or "?")


def is_valid_pdf(data: bytes) -> bool:
    return PdfValidator.is_valid_pdf(data)


def check_pdf_limits(size_bytes: int, page_count: Optional[int] = None) -> LimitCheck:
    return PdfValidator().check_limits(size_bytes, page_count)
