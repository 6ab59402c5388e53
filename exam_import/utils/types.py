from __future__ import annotations

import datetime as dt
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

DEFAULT_TIER = 2
MIN_TIER = 1
MAX_TIER = 5
MAX_HINTS = 3
REVIEW_CONFIDENCE_THRESHOLD = 0.7

TIER_NAMES = {
    1: "Iron",
    2: "Bronze",
    3: "Silver",
    4: "Gold",
    5: "Platinum",
}


class Topic(str, Enum):
    GEOMETRY = "geometry"
    FRACTIONS = "fractions"
    NUMBER_PATTERNS = "number-patterns"
    WHOLE_NUMBERS = "whole-numbers"
    DECIMALS = "decimals"
    WORD_PROBLEMS = "word-problems"

    @classmethod
    def from_value(cls, value: Any) -> "Topic":
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.WORD_PROBLEMS


class AnswerType(str, Enum):
    EXACT = "exact"
    NUMERIC = "numeric"
    MULTIPLE_CHOICE = "multiple-choice"

    @classmethod
    def from_value(cls, value: Any) -> "AnswerType":
        if isinstance(value, cls):
            return value
        normalized = str(value or "").strip().lower()
        for member in cls:
            if member.value == normalized:
                return member
        return cls.EXACT


class StagedStatus(str, Enum):
    PENDING = "pending"
    NEEDS_EDIT = "needs_edit"
    APPROVED = "approved"
    REJECTED = "rejected"


class ImportStatus(str, Enum):
    PROCESSING = "processing"
    READY_FOR_REVIEW = "ready_for_review"
    FAILED = "failed"


PAPER_TYPES = ("exam", "worksheet", "practice")
GRADE_LEVELS = ("P3", "P4", "P5", "P6")


def tier_name(tier: int) -> str:
    return TIER_NAMES.get(tier, TIER_NAMES[MIN_TIER])


@dataclass(frozen=True)
class RawDocument:
    """Uploaded PDF bytes plus the metadata declared alongside them."""

    data: bytes
    filename: str
    source: Optional[str] = None
    year: Optional[int] = None
    default_tier: Optional[int] = None

    @property
    def size_bytes(self) -> int:
        return len(self.data)


@dataclass
class OCRPageResult:
    """Raw OCR output for a single PDF page."""

    page: int
    raw_text: str
    cleaned_text: str
    confidence: float


@dataclass
class PdfMetadata:
    title: Optional[str] = None
    author: Optional[str] = None
    creation_date: Optional[dt.datetime] = None


@dataclass
class ExtractionResult:
    """Per-document text regardless of whether it came from the text layer or OCR."""

    text: str
    page_count: int
    pages: List[str]
    used_ocr: bool = False
    ocr_confidence: Optional[float] = None
    metadata: PdfMetadata = field(default_factory=PdfMetadata)


@dataclass
class Chunk:
    """Bounded slice of a document's text sent in one extraction request."""

    index: int
    text: str

    def __len__(self) -> int:
        return len(self.text)


@dataclass
class CandidateQuestion:
    temp_id: str
    topic: Topic
    tier: int
    title: str
    content: str
    answer: str
    answer_type: AnswerType
    confidence: float
    accepted_answers: Optional[List[str]] = None
    hints: Optional[List[str]] = None
    solution: Optional[str] = None
    heuristic: Optional[str] = None
    source_question: Optional[int] = None
    reasoning: str = ""
    review_threshold: float = field(default=REVIEW_CONFIDENCE_THRESHOLD, repr=False)

    @property
    def needs_review(self) -> bool:
        return self.confidence < self.review_threshold

    def to_dict(self) -> Dict[str, Any]:
        return {
            "tempId": self.temp_id,
            "topicSlug": self.topic.value,
            "tier": self.tier,
            "title": self.title,
            "content": self.content,
            "answer": self.answer,
            "answerType": self.answer_type.value,
            "acceptedAnswers": self.accepted_answers,
            "hints": self.hints,
            "solution": self.solution,
            "heuristic": self.heuristic,
            "sourceQuestion": self.source_question,
            "confidence": self.confidence,
            "needsReview": self.needs_review,
            "reasoning": self.reasoning,
        }


@dataclass
class ChunkExtraction:
    """Questions recovered from one chunk plus what the model said about the paper."""

    questions: List[CandidateQuestion] = field(default_factory=list)
    paper_type: Optional[str] = None
    estimated_grade_level: Optional[str] = None
    total_questions_found: int = 0


@dataclass
class ImportMetadata:
    filename: str
    source: Optional[str] = None
    year: Optional[int] = None
    default_tier: Optional[int] = None
    total_pages: Optional[int] = None
    estimated_grade_level: Optional[str] = None
    paper_type: Optional[str] = None


@dataclass
class DocumentExtraction:
    questions: List[CandidateQuestion]
    metadata: ImportMetadata
    extraction: ExtractionResult
    chunk_count: int = 0
    failed_chunks: int = 0
