import pathlib
import sys

import pytest

# Ensure the repository root is on the path for direct test runs.
REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.append(str(REPO_ROOT))

from exam_import.utils.types import Chunk, ChunkExtraction, RawDocument
from exam_import.workflow.core import WorkflowCore
from exam_import.workflow.dedup import deduplicate_questions, duplicate_key
from exam_import.workflow.llm import validate_question
from exam_import.workflow.validation import PdfValidationError, PdfValidator


def question(content, answer="", confidence=0.9, temp_id="t"):
    return validate_question({"content": content, "answer": answer, "confidence": confidence}, temp_id=temp_id)


class FixedChunker:
    def __init__(self, count):
        self.count = count

    def split(self, text):
        return [Chunk(index=i, text=f"section {i}") for i in range(self.count)]


class FakeExtractor:
    is_active = True

    def __init__(self, replies):
        self.replies = replies
        self.seen = []

    def extract(self, chunk, total_chunks=1, metadata=None):
        self.seen.append((chunk.index, total_chunks, metadata.total_pages))
        reply = self.replies[chunk.index]
        if isinstance(reply, Exception):
            raise reply
        return reply


class ExplodingReader:
    text_extractor = None

    def read(self, data, on_progress=None):
        raise AssertionError("reader must not run")


@pytest.mark.parametrize(
    "a, b, same",
    [
        (("What is 2 + 2?", "4"), ("what is 2+2", "4"), False),
        (("What is 2 + 2?", "4"), ("WHAT  is 2 + 2", "4"), True),
        (("Find the area.", "20 cm²"), ("Find the area", "20 cm²!"), True),
        (("Find the area.", "20"), ("Find the area.", "21"), False),
    ],
)
def test_duplicate_key(a, b, same):
    assert (duplicate_key(*a) == duplicate_key(*b)) is same


def test_dedup_keeps_first_occurrence_in_order():
    first = question("What is 2 + 2?", "4", temp_id="first")
    other = question("What is 3 + 3?", "6", temp_id="other")
    repeat = question("what is 2 + 2", "4", temp_id="repeat")

    assert [q.temp_id for q in deduplicate_questions([first, other, repeat])] == ["first", "other"]


@pytest.mark.parametrize("workers", [1, 3])
def test_run_merges_chunks_and_skips_failures(digital_pdf, workers):
    replies = [
        ChunkExtraction(questions=[question("Q1", "1"), question("Q2", "2")], paper_type=None),
        RuntimeError("model timed out"),
        ChunkExtraction(
            questions=[question("q1", "1"), question("Q3", "3", confidence=0.4)],
            paper_type="exam",
            estimated_grade_level="P5",
        ),
    ]
    extractor = FakeExtractor(replies)
    events = []
    core = WorkflowCore(extractor, chunker=FixedChunker(3), chunk_workers=workers)

    result = core.run(RawDocument(data=digital_pdf, filename="p5.pdf"), on_progress=lambda *e: events.append(e))

    assert [q.content for q in result.questions] == ["Q1", "Q2", "Q3"]
    assert result.questions[-1].needs_review
    assert result.chunk_count == 3
    assert result.failed_chunks == 1
    assert result.metadata.paper_type == "exam"
    assert result.metadata.estimated_grade_level == "P5"
    assert result.metadata.total_pages == 2
    assert sorted(extractor.seen) == [(0, 3, 2), (1, 3, 2), (2, 3, 2)]
    assert events[-1] == ("ai", 3, 3)


def test_every_chunk_failing_yields_empty_result(digital_pdf):
    core = WorkflowCore(FakeExtractor([RuntimeError("a"), RuntimeError("b")]), chunker=FixedChunker(2))

    result = core.run(RawDocument(data=digital_pdf, filename="p5.pdf"))

    assert result.questions == []
    assert result.failed_chunks == 2


def test_invalid_signature_fails_before_extraction():
    core = WorkflowCore(FakeExtractor([]), reader=ExplodingReader())

    with pytest.raises(PdfValidationError, match="Invalid PDF format"):
        core.run(RawDocument(data=b"GIF89a", filename="x.pdf"))


def test_page_limit_is_enforced(digital_pdf):
    core = WorkflowCore(FakeExtractor([]), chunker=FixedChunker(1), validator=PdfValidator(max_pages=1))

    with pytest.raises(PdfValidationError, match="too many pages"):
        core.run(RawDocument(data=digital_pdf, filename="p5.pdf"))


def test_inactive_extractor_fails_before_reading(digital_pdf):
    extractor = FakeExtractor([])
    extractor.is_active = False
    core = WorkflowCore(extractor, chunker=FixedChunker(1))
    core.reader.read = ExplodingReader().read

    with pytest.raises(RuntimeError, match="OPENAI_API_KEY"):
        core.run(RawDocument(data=digital_pdf, filename="p5.pdf"))
