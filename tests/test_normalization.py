import pathlib
import sys

import pytest

# Ensure the repository root is on the path for direct test runs.
REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.append(str(REPO_ROOT))

from exam_import.workflow.normalization import TextNormalizer, normalize_text


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("line one\r\nline two\rline three", "line one\nline two\nline three"),
        ("“quoted” and ‘single’", "\"quoted\" and 'single'"),
        ("5 – 3 — 1", "5 - 3 - 1"),
        ("wait…", "wait..."),
        ("fill in the blanks .....", "fill in the blanks ..."),
        ("ﬁnd the ﬂoor", "find the floor"),
        ("a\x00b\x07c", "abc"),
        ("too    many\t\tspaces", "too many spaces"),
        ("  trailing  \n  leading", "trailing\nleading"),
        ("para one\n\n\n\n\npara two", "para one\n\npara two"),
        ("\ufeffWhat is 2 + 2?", "What is 2 + 2?"),
        ("", ""),
    ],
)
def test_normalize_cases(raw, expected):
    assert normalize_text(raw) == expected


@pytest.mark.parametrize(
    "raw",
    [
        "Q1. “How many?” \r\n\r\n\r\n  Ans: 4 … . . ....",
        "\t\x0cPage 1\x0c\n\n\n\nKiasuExamPaper\u00ad  — 12",
        "  |  \n \n \n  x  ",
        "a .. b ... c ...... d",
    ],
)
def test_normalize_is_idempotent(raw):
    normalizer = TextNormalizer()
    once = normalizer.normalize(raw)

    assert normalizer.normalize(once) == once


def test_paragraph_breaks_survive():
    text = normalize_text("Question 1\nWhat is 3 x 4?\n\nQuestion 2\nWhat is 6 x 7?")

    assert text.split("\n\n") == ["Question 1\nWhat is 3 x 4?", "Question 2\nWhat is 6 x 7?"]
