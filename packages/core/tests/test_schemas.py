"""Tests for response validation at the provider boundary."""

import json

import pytest

from prsage_core.errors import ValidationError
from prsage_core.schemas import ReviewResult, Validated, extract_json, parse_explanation, parse_review

REVIEW = {
    "summary": "Adds a cache layer.",
    "severity": "warning",
    "strengths": ["Clear naming"],
    "risks": [{"description": "Unbounded growth", "severity": "high", "category": "performance"}],
    "suggestions": ["Add an eviction policy"],
    "inlineComments": [{"path": "src/cache.py", "line": 12, "body": "Consider a max size."}],
}


class TestExtractJson:
    def test_plain_object(self):
        assert extract_json('{"a": 1}') == '{"a": 1}'

    def test_strips_markdown_fence(self):
        assert extract_json('```json\n{"a": 1}\n```') == '{"a": 1}'

    def test_preserves_code_blocks_inside_values(self):
        payload = json.dumps({"body": "Use this instead:\n```python\nfoo()\n```"})
        assert json.loads(extract_json(f"```json\n{payload}\n```"))["body"].endswith("```")

    def test_finds_object_inside_prose(self):
        assert extract_json('Here you go: {"a": 1} Hope it helps.') == '{"a": 1}'


class TestParseReview:
    def test_valid_review(self):
        result = parse_review(json.dumps(REVIEW))
        assert result.ok
        review = result.value
        assert review.severity == "warning"
        assert review.risks[0].category == "performance"
        assert review.inline_comments[0].file == "src/cache.py"

    def test_snake_case_keys_accepted(self):
        data = {**REVIEW, "inline_comments": REVIEW["inlineComments"]}
        del data["inlineComments"]
        assert parse_review(json.dumps(data)).ok

    @pytest.mark.parametrize("missing", ["summary", "severity", "strengths", "risks", "suggestions", "inlineComments"])
    def test_every_field_is_required(self, missing):
        data = {k: v for k, v in REVIEW.items() if k != missing}
        result = parse_review(json.dumps(data))
        assert not result.ok
        assert isinstance(result.error, ValidationError)

    def test_empty_lists_allowed(self):
        data = {**REVIEW, "strengths": [], "risks": [], "suggestions": [], "inlineComments": []}
        assert parse_review(json.dumps(data)).ok

    def test_unknown_severity_rejected(self):
        result = parse_review(json.dumps({**REVIEW, "severity": "catastrophic"}))
        assert not result.ok
        assert any(e.startswith("severity") for e in result.error.errors)

    def test_non_positive_line_rejected(self):
        data = {**REVIEW, "inlineComments": [{"path": "a.py", "line": 0, "body": "x"}]}
        assert not parse_review(json.dumps(data)).ok

    def test_string_line_not_coerced(self):
        data = {**REVIEW, "inlineComments": [{"path": "a.py", "line": "12", "body": "x"}]}
        result = parse_review(json.dumps(data))
        assert not result.ok
        assert any(e.startswith("inlineComments.0.line") for e in result.error.errors)

    def test_empty_summary_rejected(self):
        assert not parse_review(json.dumps({**REVIEW, "summary": ""})).ok

    def test_invalid_json(self):
        result = parse_review("not json at all")
        assert not result.ok
        assert "not valid JSON" in result.error.message

    def test_array_rejected(self):
        result = parse_review("[]")
        assert not result.ok
        assert "JSON object" in result.error.message

    def test_review_result_carries_provenance(self):
        payload = parse_review(json.dumps(REVIEW)).unwrap()
        review = ReviewResult.from_payload(payload, provider="openai", model="gpt-4o", duration_ms=42)
        assert review.provider == "openai"
        assert review.duration_ms == 42
        assert review.inline_comments == payload.inline_comments


class TestParseExplanation:
    def test_optional_sections_may_be_absent(self):
        raw = json.dumps({"summary": "s", "explanation": "e", "keyConcepts": [{"term": "t", "definition": "d"}]})
        explanation = parse_explanation(raw).unwrap()
        assert explanation.key_concepts[0].term == "t"
        assert explanation.potential_issues is None

    def test_missing_key_concepts_rejected(self):
        with pytest.raises(ValidationError):
            parse_explanation(json.dumps({"summary": "s", "explanation": "e"})).unwrap()


def test_validated_unwrap_returns_value():
    assert Validated(value=3).unwrap() == 3
