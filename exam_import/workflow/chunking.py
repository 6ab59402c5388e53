from __future__ import annotations

import re
from typing import Iterable, List

from exam_import.utils.types import Chunk

DEFAULT_MAX_CHARS = 15000

PARAGRAPH_SPLIT = re.compile(r"\n\s*\n")
SENTENCE_SPLIT = re.compile(r"(?<=[.!?])\s+")


class Chunker:
    """Splits normalized text into chunks that fit the extraction model's context.

    Whole paragraphs are packed greedily; a paragraph larger than the budget is
    packed sentence by sentence instead. A single sentence longer than the budget
    becomes its own oversized chunk rather than being cut mid-word.
    """

    def __init__(self, max_chars: int = DEFAULT_MAX_CHARS) -> None:
        if max_chars <= 0:
            raise ValueError("max_chars must be positive")
        self.max_chars = max_chars

    def _pack(self, pieces: Iterable[str], separator: str) -> List[str]:
        packed: List[str] = []
        current = ""
        for piece in pieces:
            candidate = f"{current}{separator}{piece}" if current else piece
            if current and len(candidate) > self.max_chars:
                packed.append(current)
                current = piece
            else:
                current = candidate
        if current:
            packed.append(current)
        return packed

    def _split_paragraph(self, paragraph: str) -> List[str]:
        sentences = [s.strip() for s in SENTENCE_SPLIT.split(paragraph) if s.strip()]
        return self._pack(sentences, " ")

    def split(self, text: str) -> List[Chunk]:
        text = (text or "").strip()
        if not text:
            return []
        if len(text) <= self.max_chars:
            return [Chunk(index=0, text=text)]

        pieces: List[str] = []
        for paragraph in PARAGRAPH_SPLIT.split(text):
            paragraph = paragraph.strip()
            if not paragraph:
                continue
            if len(paragraph) > self.max_chars:
                pieces.extend(self._split_paragraph(paragraph))
            else:
                pieces.append(paragraph)

        # Sentence groups from an oversized paragraph are already within budget,
        # so packing them alongside ordinary paragraphs keeps every chunk bounded.
        packed = self._pack(pieces, "\n\n")
        return [Chunk(index=idx, text=chunk_text) for idx, chunk_text in enumerate(packed)]


def split_into_chunks(text: str, max_chars: int = DEFAULT_MAX_CHARS) -> List[Chunk]:
    return Chunker(max_chars).split(text)
