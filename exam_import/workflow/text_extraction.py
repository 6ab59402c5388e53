from __future__ import annotations

import datetime as dt
import math
import re
from typing import Iterable, List, Optional, Sequence

import fitz

from exam_import.utils.logging_config import get_logger
from exam_import.utils.types import ExtractionResult, PdfMetadata

logger = get_logger(__name__)

MEANINGFUL_MIN_CHARS = 100
WATERMARK_TOKENS: Sequence[str] = ("KiasuExamPaper",)

URL_PATTERN = re.compile(r"www\.\w+\.(?:com|org|net)", re.IGNORECASE)
DIGITS_PATTERN = re.compile(r"\d+")
WHITESPACE_PATTERN = re.compile(r"\s+")
PAGE_GAP_PATTERN = re.compile(r"\n{4,}")
PDF_DATE_PATTERN = re.compile(r"D:(\d{4})(\d{2})(\d{2})(\d{2})?(\d{2})?(\d{2})?")

NEWLINE_LOOKAHEAD = 200
SENTENCE_LOOKAHEAD = 100


class ExtractionError(RuntimeError):
    """Raised when a document's text cannot be extracted at all."""


def has_meaningful_content(text: str, min_chars: int = MEANINGFUL_MIN_CHARS, watermarks: Iterable[str] = WATERMARK_TOKENS) -> bool:
    """True when the text layer holds real prose rather than watermarks and page numbers."""
    if not text:
        return False
    cleaned = URL_PATTERN.sub("", text)
    for token in watermarks:
        cleaned = re.sub(re.escape(token), "", cleaned, flags=re.IGNORECASE)
    cleaned = DIGITS_PATTERN.sub("", cleaned)
    cleaned = WHITESPACE_PATTERN.sub(" ", cleaned).strip()
    return len(cleaned) > min_chars


def parse_pdf_date(value: Optional[str]) -> Optional[dt.datetime]:
    """Parse the D:YYYYMMDDHHmmss form used in PDF info dictionaries."""
    if not value:
        return None
    match = PDF_DATE_PATTERN.search(value)
    if not match:
        return None
    year, month, day, hour, minute, second = (int(part) if part else 0 for part in match.groups())
    try:
        return dt.datetime(year, month, day, hour, minute, second)
    except ValueError:
        return None


def split_into_pages(text: str, page_count: int) -> List[str]:
    """Recover approximate page boundaries from text that lost them.

    Runs of three or more blank lines are treated as page gaps first. When there
    are too few gaps the text is cut into equal character spans, nudging each cut
    forward to the next newline (within 200 chars) or sentence end (within 100).
    """
    if page_count <= 1:
        return [text]

    segments = PAGE_GAP_PATTERN.split(text)
    pages: List[str] = []
    if len(segments) >= page_count:
        per_page = math.ceil(len(segments) / page_count)
        for index in range(page_count):
            group = segments[index * per_page : (index + 1) * per_page]
            pages.append("\n\n".join(group))
    else:
        chars_per_page = math.ceil(len(text) / page_count)
        start = 0
        for index in range(page_count):
            if start >= len(text):
                break
            end = min((index + 1) * chars_per_page, len(text))
            break_point = max(end, start)
            if break_point < len(text):
                next_newline = text.find("\n", break_point)
                next_period = text.find(". ", break_point)
                if next_newline != -1 and next_newline < break_point + NEWLINE_LOOKAHEAD:
                    break_point = next_newline + 1
                elif next_period != -1 and next_period < break_point + SENTENCE_LOOKAHEAD:
                    break_point = next_period + 2
            if index == page_count - 1:
                break_point = len(text)
            pages.append(text[start:break_point])
            start = break_point

    return [page for page in pages if page.strip()]


class TextExtractor:
    """Native text-layer extraction using PyMuPDF, page by page."""

    def __init__(self, min_meaningful_chars: int = MEANINGFUL_MIN_CHARS, watermarks: Iterable[str] = WATERMARK_TOKENS) -> None:
        self.min_meaningful_chars = min_meaningful_chars
        self.watermarks = tuple(watermarks)

    @staticmethod
    def count_pages(data: bytes) -> int:
        try:
            with fitz.open(stream=data, filetype="pdf") as doc:
                return int(doc.page_count)
        except Exception as exc:
            raise ExtractionError(f"Failed to extract PDF text: {exc}") from exc

    def extract(self, data: bytes) -> ExtractionResult:
        """Return raw per-page text; normalization happens downstream."""
        try:
            with fitz.open(stream=data, filetype="pdf") as doc:
                pages = [page.get_text("text") for page in doc]
                info = doc.metadata or {}
        except Exception as exc:
            raise ExtractionError(f"Failed to extract PDF text: {exc}") from exc

        metadata = PdfMetadata(
            title=info.get("title") or None,
            author=info.get("author") or None,
            creation_date=parse_pdf_date(info.get("creationDate")),
        )
        text = "\n\n".join(pages)
        logger.info("Native text extracted | pages=%s chars=%s", len(pages), len(text))
        return ExtractionResult(text=text, page_count=len(pages), pages=pages, used_ocr=False, metadata=metadata)

    def is_meaningful(self, text: str) -> bool:
        return has_meaningful_content(text, self.min_meaningful_chars, self.watermarks)
