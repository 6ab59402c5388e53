from __future__ import annotations

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class ImportedPdf(Base):
    __tablename__ = "imported_pdfs"

    id = Column(String, primary_key=True)
    filename = Column(String, nullable=False)
    source = Column(String, nullable=True)
    year = Column(Integer, nullable=True)
    default_tier = Column(Integer, nullable=True)
    status = Column(String, nullable=False, default="processing")
    questions_count = Column(Integer, nullable=False, default=0)
    error_message = Column(Text, nullable=True)
    page_count = Column(Integer, nullable=True)
    used_ocr = Column(Boolean, nullable=True)
    ocr_confidence = Column(Float, nullable=True)
    paper_type = Column(String, nullable=True)
    estimated_grade_level = Column(String, nullable=True)
    created_at = Column(DateTime, server_default=func.now())
    completed_at = Column(DateTime, nullable=True)


class StagedQuestion(Base):
    __tablename__ = "staged_questions"
    # Soft uniqueness only; the model's question numbering is not reliable enough for a constraint.
    __table_args__ = (Index("ix_staged_source", "source_file", "source_question_num"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    import_id = Column(String, ForeignKey("imported_pdfs.id", ondelete="CASCADE"), nullable=True)
    source_file = Column(String, nullable=False)
    source_page = Column(Integer, nullable=True)
    source_question_num = Column(String, nullable=True)
    title = Column(Text, nullable=True)
    content = Column(Text, nullable=False)
    answer = Column(Text, nullable=True)
    answer_type = Column(String, nullable=False, default="exact")
    accepted_answers = Column(JSON, nullable=True)
    hints = Column(JSON, nullable=True)
    solution = Column(Text, nullable=True)
    heuristic = Column(String, nullable=True)
    suggested_topic = Column(String, nullable=False)
    suggested_tier = Column(Integer, nullable=False)
    ai_confidence = Column(Float, nullable=True)
    ai_reasoning = Column(Text, nullable=True)
    status = Column(String, nullable=False, default="pending")
    final_topic = Column(String, nullable=True)
    final_tier = Column(Integer, nullable=True)
    question_id = Column(String, nullable=True)
    reviewed_at = Column(DateTime, nullable=True)
    extracted_at = Column(DateTime, server_default=func.now())
