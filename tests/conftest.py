import pathlib
import sys

import fitz
import pytest

# Ensure the repository root is on the path for direct test runs.
REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.append(str(REPO_ROOT))

DIGITAL_PAGES = [
    "Section A\nQuestion 1. A baker sold 125 cupcakes on Monday.\nHe sold twice as many on Tuesday.\nHow many cupcakes did he sell altogether?",
    "Question 2. Find the area of a rectangle\nthat measures 8 cm by 5 cm.\nQuestion 3. Express 3/4 as a decimal.",
]


def build_pdf(pages, title=None, author=None) -> bytes:
    doc = fitz.open()
    for text in pages:
        page = doc.new_page()
        if text:
            page.insert_text((72, 72), text, fontsize=11)
    if title or author:
        doc.set_metadata({"title": title or "", "author": author or ""})
    data = doc.tobytes()
    doc.close()
    return data


@pytest.fixture
def make_pdf():
    return build_pdf


@pytest.fixture
def digital_pdf() -> bytes:
    return build_pdf(DIGITAL_PAGES, title="P5 Maths SA2", author="Exam Dept")


@pytest.fixture
def blank_pdf() -> bytes:
    return build_pdf(["", ""])
