import json

import pytest

from onboarding.llm_parsing import clean_json_response, lenient_decode, normalize, strip_fences


def test_fenced_object_with_trailing_comma():
    raw = '```json\n{"name": "Taco", "description": "Spicy",}\n```'
    assert normalize(raw) == {"name": "Taco", "description": "Spicy"}


@pytest.mark.parametrize(
    "text",
    [
        '{"a": 1, "b": [1, 2, {"c": null}]}',
        "[]",
        '"just a string"',
        "3.5",
        '{"unicode": "ma\\u00f1ana", "nested": {"x": true}}',
    ],
)
def test_valid_json_is_returned_unchanged(text):
    assert normalize(text) == json.loads(text)
    assert lenient_decode(text).strategy == "strict"


def test_prose_around_payload_is_ignored():
    raw = 'Sure! Here are your services:\n[{"name": "Cut", "description": "Hair cut"}]\nLet me know if you need more.'
    assert normalize(raw) == [{"name": "Cut", "description": "Hair cut"}]


def test_quotes_in_leading_prose_do_not_hide_the_payload():
    raw = 'The "best" answer is {"tagline": "Fresh daily"}'
    assert normalize(raw) == {"tagline": "Fresh daily"}


def test_literal_newlines_inside_strings_become_spaces():
    raw = '{"description": "Line one\nline two"}'
    assert normalize(raw) == {"description": "Line one line two"}


def test_invalid_escape_is_repaired():
    raw = '{"quote": "It\\\'s great"}'
    assert normalize(raw) == {"quote": "It's great"}


def test_truncated_payload_is_closed():
    raw = '{"faq": [{"question": "Open late?", "answer": "Until mid'
    result = lenient_decode(raw)
    assert result.ok
    assert result.value["faq"][0]["question"] == "Open late?"


def test_field_extraction_pairs_names_with_descriptions():
    raw = '[{"name": "Tacos", "description": "Street style"} {"name": "Salsa", "description": "Hot"'
    value = normalize(raw)
    assert {"name": "Tacos", "description": "Street style"} in value
    assert {"name": "Salsa", "description": "Hot"} in value


@pytest.mark.parametrize("text", ["", "   ", "no json here at all", "{{{{", None, 42, "```json\n```"])
def test_unparsable_input_returns_fallback(text):
    assert normalize(text, fallback={"x": 1}) == {"x": 1}


def test_lenient_decode_reports_fallback_strategy():
    result = lenient_decode("definitely prose")
    assert result.ok is False
    assert result.value is None
    assert result.strategy == "fallback"


def test_strip_fences_and_clean():
    assert strip_fences("```json\n[1]\n```") == "[1]"
    assert clean_json_response("") == "{}"
    assert clean_json_response('x {"a": [1, 2,],} y') == '{"a": [1, 2]}'
