from __future__ import annotations

import os
import time
from typing import Any, List, Optional

from openai import OpenAI

from exam_import.utils.logging_config import get_logger
from exam_import.utils.types import (
    DEFAULT_TIER,
    GRADE_LEVELS,
    MAX_HINTS,
    MAX_TIER,
    MIN_TIER,
    PAPER_TYPES,
    REVIEW_CONFIDENCE_THRESHOLD,
    AnswerType,
    CandidateQuestion,
    Chunk,
    ChunkExtraction,
    ImportMetadata,
    Topic,
)
from exam_import.workflow.utils.json_repair import parse_json_payload

logger = get_logger(__name__)

DEFAULT_CONFIDENCE = 0.5

EXTRACTION_SYSTEM_PROMPT = """You are an expert at extracting math questions from Singapore Primary School exam papers. Your task is to parse the provided text and identify individual math questions.

For each question found, extract:
1. **Question text** - The complete question, converting mathematical expressions to LaTeX notation
2. **Answer** - The expected correct answer
3. **Topic** - One of: geometry, fractions, number-patterns, whole-numbers, decimals, word-problems
4. **Tier** - Difficulty level 1-5 based on Singapore math curriculum

## Topic Classification Guide:
- **geometry**: Area, perimeter, angles, shapes, symmetry, spatial reasoning
- **fractions**: Fraction operations, mixed numbers, equivalent fractions, fraction word problems
- **number-patterns**: Sequences, patterns, algebraic thinking, finding rules
- **whole-numbers**: Basic operations, place value, factors, multiples, prime numbers
- **decimals**: Decimal operations, conversion, rounding, decimal word problems
- **word-problems**: Multi-step problems, speed-distance-time, ratio, percentage (if not fitting above)

## Tier Assignment Guide (Singapore Primary Math):
IMPORTANT: Be strict with tier assignment. Most school exam questions are Tier 1-2.

- **Tier 1 (Iron)**: Basic computation, direct application, standard word problems (1-2 steps)
- **Tier 2 (Bronze)**: Singapore heuristics required (model method, work backwards, gap & difference, before-after)
- **Tier 3 (Silver)**: Multi-step heuristics, non-routine problems, challenging school paper questions
- **Tier 4 (Gold)**: Competition-level questions (NMOS, SASMO finals level)
- **Tier 5 (Platinum)**: Olympiad level only (SMO Junior, RIPMWC); rarely found in school papers

## LaTeX Formatting:
- Fractions: \\frac{numerator}{denominator}
- Multiplication: \\times
- Division: \\div
- Inline math: $expression$
- Block math: $$expression$$

## Output Format:
Return valid JSON with this structure:
{
  "questions": [
    {
      "questionNumber": <number or null>,
      "title": "<short descriptive title, 3-8 words>",
      "content": "<full question text with $LaTeX$ formatting>",
      "answer": "<the answer>",
      "answerType": "exact" | "numeric" | "multiple-choice",
      "acceptedAnswers": ["<alternative>", "<answers>"],
      "topic": "<topic-slug>",
      "tier": <1-5>,
      "hints": ["<hint 1>", "<hint 2>", "<hint 3>"],
      "solution": "<step by step solution>",
      "heuristic": "<problem-solving approach if applicable>",
      "confidence": <0.0-1.0>,
      "reasoning": "<why you chose this topic and tier>"
    }
  ],
  "metadata": {
    "totalQuestionsFound": <number>,
    "paperType": "exam" | "worksheet" | "practice",
    "estimatedGradeLevel": "P3" | "P4" | "P5" | "P6" | null
  }
}

Be thorough but precise. Only extract actual math questions, not instructions or headers.
If a question is unclear or incomplete, set confidence to a lower value and note in reasoning."""


def _as_text(value: Any) -> str:
    if value is None:
        return ""
    return str(value)


def _optional_text(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _coerce_tier(value: Any) -> int:
    if _is_number(value) and float(value).is_integer() and MIN_TIER <= value <= MAX_TIER:
        return int(value)
    return DEFAULT_TIER


def validate_question(
    item: Any,
    *,
    temp_id: str,
    review_threshold: float = REVIEW_CONFIDENCE_THRESHOLD,
) -> CandidateQuestion:
    """Coerce one model-produced question object into a CandidateQuestion.

    The model is not schema-constrained, so every field is checked here and
    replaced by a safe default instead of rejecting the whole record.
    """
    q = item if isinstance(item, dict) else {}

    accepted = q.get("acceptedAnswers")
    hints = q.get("hints")
    confidence = q.get("confidence")
    number = q.get("questionNumber")

    return CandidateQuestion(
        temp_id=temp_id,
        topic=Topic.from_value(q.get("topic")),
        tier=_coerce_tier(q.get("tier")),
        title=_as_text(q.get("title")),
        content=_as_text(q.get("content")),
        answer=_as_text(q.get("answer")),
        answer_type=AnswerType.from_value(q.get("answerType")),
        accepted_answers=[str(a) for a in accepted] if isinstance(accepted, list) else None,
        hints=[str(h) for h in hints][:MAX_HINTS] if isinstance(hints, list) else None,
        solution=_optional_text(q.get("solution")),
        heuristic=_optional_text(q.get("heuristic")),
        source_question=int(number) if _is_number(number) and float(number).is_integer() else None,
        confidence=max(0.0, min(1.0, float(confidence))) if _is_number(confidence) else DEFAULT_CONFIDENCE,
        reasoning=_as_text(q.get("reasoning")),
        review_threshold=review_threshold,
    )


def parse_extraction_response(
    content: str,
    *,
    chunk_index: int = 0,
    review_threshold: float = REVIEW_CONFIDENCE_THRESHOLD,
) -> ChunkExtraction:
    """Turn raw model output into validated candidates; unrecoverable output yields no questions."""
    data = parse_json_payload(content)
    if not isinstance(data, dict):
        return ChunkExtraction()
    questions = data.get("questions")
    if not isinstance(questions, list):
        logger.warning("Response has no questions array | chunk=%s", chunk_index)
        return ChunkExtraction()

    stamp = int(time.time() * 1000)
    candidates = [
        validate_question(item, temp_id=f"q-{stamp}-{chunk_index}-{idx}", review_threshold=review_threshold)
        for idx, item in enumerate(questions)
        if isinstance(item, dict)
    ]

    meta = data.get("metadata") if isinstance(data.get("metadata"), dict) else {}
    paper_type = meta.get("paperType") if meta.get("paperType") in PAPER_TYPES else None
    grade_level = meta.get("estimatedGradeLevel") if meta.get("estimatedGradeLevel") in GRADE_LEVELS else None
    total_found = meta.get("totalQuestionsFound")
    return ChunkExtraction(
        questions=candidates,
        paper_type=paper_type,
        estimated_grade_level=grade_level,
        total_questions_found=int(total_found) if _is_number(total_found) else len(candidates),
    )


def build_user_prompt(chunk: Chunk, total_chunks: int, metadata: Optional[ImportMetadata] = None) -> str:
    hints: List[str] = []
    if metadata is not None:
        hints.append(f"File: {metadata.filename}")
        if metadata.source:
            hints.append(f"Source: {metadata.source}")
        if metadata.year:
            hints.append(f"Year: {metadata.year}")
        if metadata.default_tier:
            hints.append(f"Suggested default tier: {metadata.default_tier}")
    hint_text = ("\n" + "\n".join(hints)) if hints else ""
    chunk_context = f"\n\n[Processing section {chunk.index + 1} of {total_chunks}]" if total_chunks > 1 else ""
    return f"Extract all math questions from this exam paper text:{hint_text}{chunk_context}\n\n---\n\n{chunk.text}"


class LLMQuestionExtractor:
    """Sends one chunk at a time to an OpenAI chat model and validates what comes back.

    If no API key is provided, it falls back to a dummy key and remains inactive.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        model: str = "gpt-4o-mini",
        max_tokens: int = 8192,
        temperature: float = 0.1,
        review_threshold: float = REVIEW_CONFIDENCE_THRESHOLD,
        dummy_key: str = "sk-dummy",
        client: Any = None,
    ) -> None:
        self.api_key = api_key or os.getenv("OPENAI_API_KEY", dummy_key)
        self.model = model
        self.max_tokens = max_tokens
        self.temperature = temperature
        self.review_threshold = review_threshold
        self.dummy_key = dummy_key
        self._client = client
        if self._client is None and self.api_key and self.api_key != self.dummy_key:
            self._client = OpenAI(api_key=self.api_key)

    @property
    def is_active(self) -> bool:
        return self._client is not None

    def extract(self, chunk: Chunk, total_chunks: int = 1, metadata: Optional[ImportMetadata] = None) -> ChunkExtraction:
        if not self.is_active:
            raise RuntimeError("OPENAI_API_KEY environment variable is not set")

        try:
            response = self._client.chat.completions.create(
                model=self.model,
                temperature=self.temperature,
                max_tokens=self.max_tokens,
                messages=[
                    {"role": "system", "content": EXTRACTION_SYSTEM_PROMPT},
                    {"role": "user", "content": build_user_prompt(chunk, total_chunks, metadata)},
                ],
            )
        except Exception as exc:
            raise RuntimeError(f"OpenAI question extraction failed: {exc}") from exc

        choice = response.choices[0]
        if getattr(choice, "finish_reason", None) == "length":
            logger.warning("Response hit max_tokens | chunk=%s/%s; output is truncated", chunk.index + 1, total_chunks)
        content = choice.message.content or ""
        result = parse_extraction_response(content, chunk_index=chunk.index, review_threshold=self.review_threshold)
        logger.info("Chunk extracted | chunk=%s/%s questions=%s", chunk.index + 1, total_chunks, len(result.questions))
        return result
