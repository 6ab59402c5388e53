from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from typing import Callable, Dict, List, Optional

import pytesseract
from PIL.Image import Image
from pytesseract import Output

from exam_import.utils.logging_config import get_logger
from exam_import.utils.types import ExtractionResult, OCRPageResult
from exam_import.workflow.ingestion import PdfIngestion
from exam_import.workflow.text_extraction import ExtractionError
from exam_import.workflow.utils.settings import ocr_workers

logger = get_logger(__name__)


def _basic_cleanup(text: str) -> str:
    return text.replace("\x0c", "").strip()


def _extract_confidence(image: Image, lang: str) -> float:
    data = pytesseract.image_to_data(image, lang=lang, output_type=Output.DICT)
    confidences = []
    for value in data.get("conf", []):
        try:
            score = float(value)
        except (TypeError, ValueError):
            continue
        if score >= 0:
            confidences.append(score)
    if not confidences:
        return 0.0
    return round(sum(confidences) / len(confidences), 2)


def recognize_image(image: Image, lang: str) -> OCRPageResult:
    """Run tesseract over one rendered page; page number is filled in by the caller."""
    raw_text = pytesseract.image_to_string(image, lang=lang)
    confidence = _extract_confidence(image, lang)
    return OCRPageResult(page=0, raw_text=raw_text, cleaned_text=_basic_cleanup(raw_text), confidence=confidence)


class Ocr:
    """OCR fallback for scanned PDFs: rasterize each page, then run tesseract on it.

    A page that fails to render or recognize contributes empty text and is left
    out of the confidence average; the rest of the document still goes through.
    """

    def __init__(
        self,
        lang: str = "eng",
        scale: float = 2.0,
        max_workers: Optional[int] = None,
        recognizer: Callable[[Image, str], OCRPageResult] = recognize_image,
    ) -> None:
        self.lang = lang
        self.scale = scale
        self.max_workers = max(1, int(max_workers if max_workers is not None else ocr_workers()))
        self.recognizer = recognizer

    def _ocr_page(self, data: bytes, page: int) -> Optional[OCRPageResult]:
        try:
            image = PdfIngestion.render_page(data, page, scale=self.scale)
            section = self.recognizer(image, self.lang)
        except Exception:
            logger.warning("OCR failed for page %s; continuing with remaining pages", page, exc_info=True)
            return None
        section.page = page
        return section

    def extract_sections(self, data: bytes, on_progress: Optional[Callable[[int, int], None]] = None, total_pages: int | None = None) -> List[OCRPageResult]:
        """Return one OCRPageResult per page in page order; failed pages have empty text and confidence -1."""
        try:
            total = total_pages or PdfIngestion.count_pages(data)
        except Exception as exc:
            raise ExtractionError(f"Failed to extract PDF text: {exc}") from exc

        results: Dict[int, Optional[OCRPageResult]] = {}
        done = 0
        with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
            futures = {executor.submit(self._ocr_page, data, page): page for page in range(1, total + 1)}
            for future in as_completed(futures):
                page = futures[future]
                results[page] = future.result()
                done += 1
                if on_progress:
                    on_progress(done, total)

        sections: List[OCRPageResult] = []
        for page in range(1, total + 1):
            section = results.get(page)
            if section is None:
                section = OCRPageResult(page=page, raw_text="", cleaned_text="", confidence=-1.0)
            sections.append(section)
        return sections

    def extract(self, data: bytes, on_progress: Optional[Callable[[int, int], None]] = None, total_pages: int | None = None) -> ExtractionResult:
        sections = self.extract_sections(data, on_progress=on_progress, total_pages=total_pages)
        recognized = [s.confidence for s in sections if s.confidence >= 0]
        confidence = round(sum(recognized) / len(recognized), 2) if recognized else 0.0
        pages = [s.cleaned_text for s in sections]
        logger.info("OCR done | pages=%s recognized=%s conf=%.1f", len(sections), len(recognized), confidence)
        return ExtractionResult(
            text="\n\n".join(pages),
            page_count=len(sections),
            pages=pages,
            used_ocr=True,
            ocr_confidence=confidence,
        )
