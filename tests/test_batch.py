import json
import pathlib
import sys
import threading

import pytest

# Ensure the repository root is on the path for direct test runs.
REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.append(str(REPO_ROOT))

from exam_import import cli
from exam_import.utils.types import DocumentExtraction, ExtractionResult, ImportMetadata
from exam_import.workflow.batch import PROGRESS_FILENAME, BatchDriver, BatchProgress, FailedFile, discover_pdfs, format_summary
from exam_import.workflow.llm import validate_question


class FakeWorkflow:
    """Returns one question per file, or raises for names listed in `failing`."""

    def __init__(self, failing=(), per_file=1):
        self.failing = set(failing)
        self.per_file = per_file
        self.seen = []
        self.lock = threading.Lock()

    def run(self, document, on_progress=None):
        with self.lock:
            self.seen.append(document.filename)
        if document.filename in self.failing:
            raise RuntimeError(f"cannot read {document.filename}")
        questions = [
            validate_question({"content": f"{document.filename} question {i}", "answer": str(i)}, temp_id=f"t{i}")
            for i in range(self.per_file)
        ]
        extraction = ExtractionResult(text="text", page_count=1, pages=["text"])
        return DocumentExtraction(questions=questions, metadata=ImportMetadata(filename=document.filename), extraction=extraction)


class FakeWriter:
    def __init__(self):
        self.written = []

    def write(self, questions, source_file, import_id=None):
        self.written.append((source_file, len(questions)))
        return len(questions)


def make_folder(tmp_path, names):
    folder = tmp_path / "pdfs"
    folder.mkdir()
    for name in names:
        (folder / name).write_bytes(b"%PDF-1.4 placeholder")
    return folder


def quiet(_message):
    pass


def test_discover_pdfs_is_sorted_and_case_insensitive(tmp_path):
    folder = make_folder(tmp_path, ["b.pdf", "A.PDF", "notes.txt", "c.Pdf"])
    (folder / "dir.pdf").mkdir()

    assert discover_pdfs(folder) == ["A.PDF", "b.pdf", "c.Pdf"]


def test_resume_processes_only_new_files(tmp_path):
    folder = make_folder(tmp_path, ["A.pdf", "B.pdf", "C.pdf"])
    BatchProgress(processed_files=["A.pdf", "B.pdf"], total_questions=7).save(folder / PROGRESS_FILENAME)
    workflow = FakeWorkflow(per_file=2)
    writer = FakeWriter()

    progress = BatchDriver(folder, workflow, writer, concurrency=3, echo=quiet).run()

    assert workflow.seen == ["C.pdf"]
    assert writer.written == [("C.pdf", 2)]
    assert progress.processed_files == ["A.pdf", "B.pdf", "C.pdf"]
    assert progress.total_questions == 9

    saved = json.loads((folder / PROGRESS_FILENAME).read_text())
    assert saved["processedFiles"] == ["A.pdf", "B.pdf", "C.pdf"]
    assert saved["totalQuestions"] == 9
    assert saved["lastUpdated"].endswith("Z")
    assert not (folder / (PROGRESS_FILENAME + ".tmp")).exists()


def test_failures_are_recorded_and_not_retried(tmp_path):
    folder = make_folder(tmp_path, ["a.pdf", "b.pdf", "c.pdf", "d.pdf"])
    workflow = FakeWorkflow(failing={"b.pdf"})

    progress = BatchDriver(folder, workflow, FakeWriter(), concurrency=2, echo=quiet).run()

    assert sorted(workflow.seen) == ["a.pdf", "b.pdf", "c.pdf", "d.pdf"]
    assert progress.processed_files == ["a.pdf", "b.pdf", "c.pdf", "d.pdf"]
    assert [(f.file, f.error) for f in progress.failed_files] == [("b.pdf", "cannot read b.pdf")]
    assert progress.total_questions == 3

    rerun = FakeWorkflow()
    BatchDriver(folder, rerun, FakeWriter(), echo=quiet).run()
    assert rerun.seen == []


def test_dry_run_writes_nothing(tmp_path):
    folder = make_folder(tmp_path, ["a.pdf", "b.pdf"])
    workflow = FakeWorkflow(per_file=3)

    progress = BatchDriver(folder, workflow, None, dry_run=True, echo=quiet).run()

    assert progress.total_questions == 6
    assert not (folder / PROGRESS_FILENAME).exists()


def test_writer_required_unless_dry_run(tmp_path):
    with pytest.raises(ValueError):
        BatchDriver(tmp_path, FakeWorkflow(), None)


def test_missing_folder_raises(tmp_path):
    with pytest.raises(FileNotFoundError):
        BatchDriver(tmp_path / "nope", FakeWorkflow(), FakeWriter(), echo=quiet).run()


def test_checkpoint_roundtrip_tolerates_missing_fields():
    progress = BatchProgress.from_dict({"processedFiles": ["x.pdf"], "failedFiles": [{"file": "x.pdf", "error": "bad"}, "junk"]})

    assert progress.processed_files == ["x.pdf"]
    assert progress.failed_files[0].error == "bad"
    assert progress.total_questions == 0
    assert BatchProgress.from_dict(progress.to_dict()).to_dict() == progress.to_dict()


def test_summary_lists_failures():
    progress = BatchProgress(processed_files=["a.pdf", "b.pdf"], total_questions=12)
    progress.failed_files.append(FailedFile("b.pdf", "Invalid PDF format"))

    summary = format_summary(progress)

    assert "Total PDFs processed: 2" in summary
    assert "Total questions extracted: 12" in summary
    assert "   - b.pdf: Invalid PDF format" in summary


def test_cli_missing_folder_exits_one(tmp_path, capsys):
    assert cli.main(["--folder", str(tmp_path / "missing")]) == 1
    assert "Folder not found" in capsys.readouterr().err


def test_cli_dry_run(tmp_path, monkeypatch, capsys):
    folder = make_folder(tmp_path, ["a.pdf"])
    monkeypatch.setattr(cli.WorkflowCore, "from_settings", classmethod(lambda cls, settings: FakeWorkflow(per_file=2)))

    assert cli.main(["--folder", str(folder), "--dry-run", "--concurrency", "1"]) == 0

    out = capsys.readouterr().out
    assert "DRY RUN - would insert 2 staged questions" in out
    assert "Total questions extracted: 2" in out


@pytest.mark.parametrize("content", ['{"processedFiles": ["a.pdf" "b.pdf"]', "[1, 2, 3]", ""])
def test_unreadable_checkpoint_starts_fresh(tmp_path, content):
    folder = make_folder(tmp_path, ["a.pdf", "b.pdf"])
    (folder / PROGRESS_FILENAME).write_text(content)
    workflow = FakeWorkflow()

    progress = BatchDriver(folder, workflow, FakeWriter(), echo=quiet).run()

    assert sorted(workflow.seen) == ["a.pdf", "b.pdf"]
    assert json.loads((folder / PROGRESS_FILENAME).read_text())["processedFiles"] == ["a.pdf", "b.pdf"]
    assert progress.total_questions == 2


def test_cli_survives_corrupt_checkpoint(tmp_path, monkeypatch):
    folder = make_folder(tmp_path, ["a.pdf"])
    (folder / PROGRESS_FILENAME).write_text('{"processedFiles": ["a.pdf",')
    monkeypatch.setattr(cli.WorkflowCore, "from_settings", classmethod(lambda cls, settings: FakeWorkflow()))

    assert cli.main(["--folder", str(folder), "--dry-run"]) == 0
