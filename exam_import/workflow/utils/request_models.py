from __future__ import annotations

from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from exam_import.utils.types import ImportStatus


class UploadResponse(BaseModel):
    success: bool = True
    importId: str
    status: ImportStatus = ImportStatus.PROCESSING
    message: str


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    importId: Optional[str] = None


class StatusResponse(BaseModel):
    id: str
    status: ImportStatus
    progress: Optional[float] = Field(None, description="0-100 percentage")
    questionsFound: Optional[int] = None
    errorMessage: Optional[str] = None


class StatusAction(BaseModel):
    action: str = Field(..., description="Only 'get_questions' is supported")


class StagedQuestionOut(BaseModel):
    id: int
    sourceFile: str
    sourceQuestionNum: Optional[str] = None
    title: Optional[str] = None
    content: str
    answer: Optional[str] = None
    answerType: str
    acceptedAnswers: Optional[List[str]] = None
    hints: Optional[List[str]] = None
    solution: Optional[str] = None
    heuristic: Optional[str] = None
    suggestedTopic: str
    suggestedTier: int
    aiConfidence: Optional[float] = None
    aiReasoning: Optional[str] = None
    status: str


class QuestionsResponse(BaseModel):
    importId: str
    questions: List[StagedQuestionOut]
    metadata: Dict[str, Any] = Field(default_factory=dict)


def parse_year(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    value = value.strip()
    if len(value) != 4 or not value.isdigit():
        return None
    return int(value)


def parse_tier(value: Optional[str]) -> Optional[int]:
    if not value:
        return None
    try:
        tier = int(value.strip())
    except ValueError:
        return None
    return tier if 1 <= tier <= 5 else None
