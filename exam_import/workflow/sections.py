from __future__ import annotations

from typing import Callable, Optional

from exam_import.utils.logging_config import get_logger
from exam_import.utils.types import ExtractionResult
from exam_import.workflow.normalization import TextNormalizer
from exam_import.workflow.pdf_ocr import Ocr
from exam_import.workflow.text_extraction import TextExtractor, split_into_pages

logger = get_logger(__name__)


class SectionReader:
    """Reads a document into normalized per-page text, OCR-ing it when the text layer is empty."""

    def __init__(
        self,
        text_extractor: Optional[TextExtractor] = None,
        ocr: Optional[Ocr] = None,
        normalizer: Optional[TextNormalizer] = None,
    ) -> None:
        self.text_extractor = text_extractor or TextExtractor()
        self.ocr = ocr or Ocr()
        self.normalizer = normalizer or TextNormalizer()

    def _normalize(self, result: ExtractionResult) -> ExtractionResult:
        pages = [self.normalizer.normalize(page) for page in result.pages]
        return ExtractionResult(
            text=self.normalizer.normalize(result.text),
            page_count=result.page_count,
            pages=pages,
            used_ocr=result.used_ocr,
            ocr_confidence=result.ocr_confidence,
            metadata=result.metadata,
        )

    def read(self, data: bytes, on_progress: Optional[Callable[[int, int], None]] = None) -> ExtractionResult:
        native = self.text_extractor.extract(data)
        if self.text_extractor.is_meaningful(native.text):
            return self._normalize(native)

        logger.info("Text layer has no meaningful content | pages=%s; falling back to OCR", native.page_count)
        scanned = self.ocr.extract(data, on_progress=on_progress, total_pages=native.page_count or None)
        scanned.metadata = native.metadata
        return self._normalize(scanned)

    def read_text(self, text: str, page_count: int = 1) -> ExtractionResult:
        """Wrap text that was extracted elsewhere and has lost its page breaks."""
        pages = split_into_pages(text, page_count)
        return self._normalize(ExtractionResult(text=text, page_count=page_count, pages=pages, used_ocr=False))
