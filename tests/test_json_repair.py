import json
import pathlib
import sys

import pytest

# Ensure the repository root is on the path for direct test runs.
REPO_ROOT = pathlib.Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.append(str(REPO_ROOT))

from exam_import.workflow.utils.json_repair import (
    last_complete_question_offset,
    parse_json_payload,
    repair_truncated_json,
    strip_json_wrapping,
)

FULL_PAYLOAD = {
    "questions": [
        {"content": "Find $\\frac{1}{2} + \\frac{1}{4}$", "answer": "3/4", "hints": ["Use {common} denominators"]},
        {"content": 'He said "stop" at {3}', "answer": "3", "acceptedAnswers": ["three", "[3]"]},
        {"content": "Area of a 4 by 5 rectangle", "answer": "20", "hints": []},
    ],
    "metadata": {"paperType": "exam", "estimatedGradeLevel": "P5"},
}


def test_fenced_block_is_unwrapped():
    content = 'Here you go:\n```json\n{"questions": []}\n```\nThanks'

    assert strip_json_wrapping(content) == '{"questions": []}'
    assert parse_json_payload(content) == {"questions": []}


def test_prose_around_object_is_dropped():
    assert parse_json_payload('Sure! {"questions": [{"content": "a"}]} Hope it helps.') == {"questions": [{"content": "a"}]}


def test_truncated_mid_question_keeps_complete_ones():
    content = '{"questions": [{"content": "Q1", "answer": "1"}, {"content": "Q2", "answer": "2"}, {"content": "Cut o'

    data = parse_json_payload(content)

    assert [q["content"] for q in data["questions"]] == ["Q1", "Q2"]


def test_truncated_before_any_complete_question_is_unrecoverable():
    assert repair_truncated_json('{"questions": [{"content": "half') is None
    assert parse_json_payload('{"questions": [{"content": "half') == {}


def test_garbage_yields_empty_payload():
    assert parse_json_payload("I could not find any questions.") == {}
    assert parse_json_payload("") == {}


def test_braces_inside_strings_do_not_count():
    text = '{"questions": [{"content": "a } b { c", "answer": "x"}, {"content": "y'

    offset = last_complete_question_offset(text)

    assert text[offset] == "}"
    assert json.loads(text[: offset + 1] + "]}") == {"questions": [{"content": "a } b { c", "answer": "x"}]}


def test_repair_accepts_question_ending_at_last_character():
    text = '{"questions": [{"content": "a"}'

    assert repair_truncated_json(text) == '{"questions": [{"content": "a"}]}'


def test_every_truncation_recovers_a_prefix_of_the_questions():
    full = json.dumps(FULL_PAYLOAD)
    expected = FULL_PAYLOAD["questions"]

    for cut in range(1, len(full) + 1):
        data = parse_json_payload(full[:cut])
        assert isinstance(data, dict)
        questions = data.get("questions", [])
        assert questions == expected[: len(questions)], f"cut at {cut}"

    assert parse_json_payload(full) == FULL_PAYLOAD


@pytest.mark.parametrize("text", ['{"items": [{"a": 1}', '{"questions": []', "no json here"])
def test_no_questions_array_offset(text):
    assert last_complete_question_offset(text) == -1
