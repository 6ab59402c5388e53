import pathlib
import sys

import pytest

# Ensure the repository root is on the path for direct test runs.
REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.append(str(REPO_ROOT))

from exam_import.workflow.validation import PdfValidationError, PdfValidator, check_pdf_limits, is_valid_pdf

MB = 1024 * 1024


@pytest.mark.parametrize(
    "data, expected",
    [
        (b"%PDF-1.7\n...", True),
        (b"%PDF-", True),
        (b"%PDF", False),
        (b"", False),
        (b"PK\x03\x04 not a pdf", False),
        (b" %PDF-1.4", False),
    ],
)
def test_signature_check(data, expected):
    assert is_valid_pdf(data) is expected


def test_limits_accept_file_at_exact_maximum():
    assert check_pdf_limits(10 * MB, 50).valid


def test_size_limit_reports_megabytes():
    result = check_pdf_limits(int(12.34 * MB))

    assert not result.valid
    assert result.error == "PDF is too large (12.3MB). Maximum size is 10MB."


def test_page_limit_reports_page_count():
    result = check_pdf_limits(1 * MB, 51)

    assert not result.valid
    assert result.error == "PDF has too many pages (51). Maximum is 50 pages."


def test_size_is_checked_before_pages():
    result = check_pdf_limits(11 * MB, 80)

    assert result.error.startswith("PDF is too large")


def test_unknown_page_count_only_checks_size():
    assert check_pdf_limits(1024).valid


def test_custom_limits():
    validator = PdfValidator(max_file_size_mb=1, max_pages=2)

    assert not validator.check_limits(2 * MB).valid
    assert validator.check_limits(MB, 3).error == "PDF has too many pages (3). Maximum is 2 pages."


def test_ensure_valid_raises_value_error_subclass():
    validator = PdfValidator()

    with pytest.raises(PdfValidationError, match="Invalid PDF format"):
        validator.ensure_valid(b"hello")
    with pytest.raises(ValueError):
        validator.ensure_valid(b"%PDF-1.4", page_count=99)

    validator.ensure_valid(b"%PDF-1.4", "ok.pdf", page_count=3)
