import pathlib
import sys

import pytest

# Ensure the repository root is on the path for direct test runs.
REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.append(str(REPO_ROOT))

from exam_import.workflow.chunking import Chunker, split_into_chunks


def paragraphs(count: int, size: int) -> str:
    return "\n\n".join(f"Q{i}. " + "x" * (size - 4 - len(str(i))) for i in range(count))


def test_empty_text_has_no_chunks():
    assert split_into_chunks("") == []
    assert split_into_chunks("   \n\n  ") == []


def test_short_text_is_single_chunk():
    chunks = split_into_chunks("Question 1. What is 2 + 3?", max_chars=100)

    assert len(chunks) == 1
    assert chunks[0].index == 0
    assert chunks[0].text == "Question 1. What is 2 + 3?"


@pytest.mark.parametrize("max_chars", [120, 250, 1000])
def test_chunks_respect_budget_and_order(max_chars):
    text = paragraphs(40, 100)

    chunks = split_into_chunks(text, max_chars=max_chars)

    assert [c.index for c in chunks] == list(range(len(chunks)))
    assert all(len(c) <= max_chars for c in chunks)
    rejoined = "\n\n".join(c.text for c in chunks)
    assert rejoined == text


def test_oversized_paragraph_splits_on_sentences():
    sentence = "The baker sold 24 cakes in the morning."
    paragraph = " ".join([sentence] * 10)
    chunks = Chunker(max_chars=100).split(paragraph)

    assert len(chunks) > 1
    assert all(len(c) <= 100 for c in chunks)
    assert all(c.text.endswith(".") for c in chunks)


def test_single_oversized_sentence_is_kept_whole():
    long_sentence = "word " * 60
    text = "Short intro.\n\n" + long_sentence.strip()
    chunks = Chunker(max_chars=50).split(text)

    assert chunks[0].text == "Short intro."
    assert chunks[-1].text == long_sentence.strip()


def test_invalid_budget_rejected():
    with pytest.raises(ValueError):
        Chunker(0)
