from __future__ import annotations

import pytest

pytest.importorskip("pydantic")

from app.errors import ResponseParseError
from llm.parsers import Classification, extract_content, parse_classification


def test_parse_clean_json():
    result = parse_classification('{"label": "yes", "reason": "a person is visible"}')
    assert isinstance(result, Classification)
    assert result.label == "yes"
    assert result.reason == "a person is visible"


def test_parse_fenced_json():
    fenced = '```json\n{"label": "no", "reason": "empty room"}\n```'
    assert parse_classification(fenced).label == "no"


def test_numeric_label_becomes_string():
    assert parse_classification('{"label": 3, "reason": "three cars"}').label == "3"
    assert parse_classification('{"label": 3.0, "reason": "three cars"}').label == "3"


@pytest.mark.parametrize(
    "text",
    [
        "no json here",
        '["yes"]',
        '{"label": "yes"}',
        '{"label": true, "reason": "r"}',
        '{"label": "yes", "reason": 5}',
        '{"label": null, "reason": "r"}',
    ],
)
def test_parse_failure(text):
    with pytest.raises(ResponseParseError):
        parse_classification(text)


def test_extract_content():
    response = {"choices": [{"message": {"role": "assistant", "content": "hi"}}]}
    assert extract_content(response) == "hi"


@pytest.mark.parametrize(
    "response",
    [
        {"choices": []},
        {"choices": [{"message": {"role": "assistant", "content": "a"}}] * 2},
        {"choices": [{"message": {"role": "user", "content": "a"}}]},
        {"choices": [{"message": {"role": "assistant", "content": None}}]},
        {},
    ],
)
def test_extract_content_rejects_unexpected_shapes(response):
    with pytest.raises(ResponseParseError):
        extract_content(response)
