from exam_import.db.models import Base, ImportedPdf, StagedQuestion
from exam_import.db.session import create_engine_and_session
from exam_import.db.store import StagingStore

__all__ = [
    "Base",
    "ImportedPdf",
    "StagedQuestion",
    "StagingStore",
    "create_engine_and_session",
]
