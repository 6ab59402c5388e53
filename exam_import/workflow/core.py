from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from types import SimpleNamespace
from typing import Callable, List, Optional, Sequence

from exam_import.utils.logging_config import get_logger
from exam_import.utils.types import Chunk, ChunkExtraction, DocumentExtraction, ImportMetadata, RawDocument
from exam_import.workflow.chunking import Chunker
from exam_import.workflow.dedup import deduplicate_questions
from exam_import.workflow.llm import LLMQuestionExtractor
from exam_import.workflow.pdf_ocr import Ocr
from exam_import.workflow.sections import SectionReader
from exam_import.workflow.text_extraction import TextExtractor
from exam_import.workflow.validation import PdfValidationError, PdfValidator

logger = get_logger(__name__)

ProgressCallback = Callable[[str, int, int], None]


class WorkflowCore:
    """Runs one document through validation, extraction, chunking, AI extraction and dedup.

    Stages run in order; only the per-chunk model calls may overlap, and their
    results are rejoined in chunk order before deduplication.
    """

    def __init__(
        self,
        extractor: LLMQuestionExtractor,
        reader: Optional[SectionReader] = None,
        chunker: Optional[Chunker] = None,
        validator: Optional[PdfValidator] = None,
        chunk_workers: int = 1,
    ) -> None:
        self.extractor = extractor
        self.reader = reader or SectionReader()
        self.chunker = chunker or Chunker()
        self.validator = validator or PdfValidator()
        self.chunk_workers = max(1, int(chunk_workers))

    @classmethod
    def from_settings(cls, settings: SimpleNamespace, extractor: Optional[LLMQuestionExtractor] = None) -> "WorkflowCore":
        extractor = extractor or LLMQuestionExtractor(
            api_key=settings.openai_api_key or None,
            model=settings.openai_model,
            max_tokens=settings.openai_max_tokens,
            temperature=settings.openai_temperature,
            review_threshold=settings.review_threshold,
        )
        reader = SectionReader(
            text_extractor=TextExtractor(min_meaningful_chars=settings.meaningful_min_chars),
            ocr=Ocr(lang=settings.ocr_lang, scale=settings.ocr_scale, max_workers=settings.ocr_workers),
        )
        return cls(
            extractor,
            reader=reader,
            chunker=Chunker(settings.chunk_max_chars),
            validator=PdfValidator(settings.max_file_size_mb, settings.max_pages),
            chunk_workers=settings.chunk_workers,
        )

    def _extract_chunk(self, chunk: Chunk, total: int, metadata: ImportMetadata) -> Optional[ChunkExtraction]:
        try:
            return self.extractor.extract(chunk, total_chunks=total, metadata=metadata)
        except Exception:
            logger.warning("Chunk extraction failed | file=%s chunk=%s/%s", metadata.filename, chunk.index + 1, total, exc_info=True)
            return None

    def _extract_chunks(self, chunks: Sequence[Chunk], metadata: ImportMetadata, on_progress: Optional[ProgressCallback]) -> List[Optional[ChunkExtraction]]:
        total = len(chunks)
        if self.chunk_workers == 1 or total <= 1:
            results: List[Optional[ChunkExtraction]] = []
            for chunk in chunks:
                results.append(self._extract_chunk(chunk, total, metadata))
                if on_progress:
                    on_progress("ai", len(results), total)
            return results

        with ThreadPoolExecutor(max_workers=min(self.chunk_workers, total)) as executor:
            results = list(executor.map(lambda c: self._extract_chunk(c, total, metadata), chunks))
        if on_progress:
            on_progress("ai", total, total)
        return results

    def run(self, document: RawDocument, on_progress: Optional[ProgressCallback] = None) -> DocumentExtraction:
        """Extract candidate questions from one PDF.

        Raises PdfValidationError for input errors and ExtractionError when the text
        cannot be read; a failing chunk only costs that chunk's questions.
        """
        self.validator.ensure_valid(document.data, document.filename)
        page_count = self.reader.text_extractor.count_pages(document.data)
        limits = self.validator.check_limits(document.size_bytes, page_count)
        if not limits.valid:
            raise PdfValidationError(limits.error)
        if not self.extractor.is_active:
            raise RuntimeError("OPENAI_API_KEY environment variable is not set")

        def ocr_progress(page: int, total: int) -> None:
            if on_progress:
                on_progress("ocr", page, total)

        extraction = self.reader.read(document.data, on_progress=ocr_progress)
        logger.info(
            "Extracted text | file=%s pages=%s chars=%s ocr=%s conf=%s",
            document.filename,
            extraction.page_count,
            len(extraction.text),
            extraction.used_ocr,
            extraction.ocr_confidence,
        )

        metadata = ImportMetadata(
            filename=document.filename,
            source=document.source,
            year=document.year,
            default_tier=document.default_tier,
            total_pages=extraction.page_count,
        )
        chunks = self.chunker.split(extraction.text)
        logger.info("Chunked | file=%s chunks=%s", document.filename, len(chunks))

        results = self._extract_chunks(chunks, metadata, on_progress)
        candidates = []
        for result in results:
            if result is None:
                continue
            candidates.extend(result.questions)
            if metadata.paper_type is None and result.paper_type:
                metadata.paper_type = result.paper_type
            if metadata.estimated_grade_level is None and result.estimated_grade_level:
                metadata.estimated_grade_level = result.estimated_grade_level

        unique = deduplicate_questions(candidates)
        failed = sum(1 for result in results if result is None)
        logger.info(
            "Document done | file=%s candidates=%s unique=%s failed_chunks=%s",
            document.filename,
            len(candidates),
            len(unique),
            failed,
        )
        return DocumentExtraction(questions=unique, metadata=metadata, extraction=extraction, chunk_count=len(chunks), failed_chunks=failed)
