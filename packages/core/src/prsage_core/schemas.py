"""Strict models for model-produced JSON and the tagged validation result.

Provider output is untrusted text. It is parsed and validated here, at the
boundary, into a ``Validated`` value that carries either the model or a
ValidationError. Nothing past this module touches raw dicts from a provider.
"""

from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Generic, Literal, Optional, TypeVar

import pydantic
from pydantic import AliasChoices, BaseModel, ConfigDict, Field, StrictInt, StrictStr

from prsage_core.errors import ValidationError

Severity = Literal["info", "warning", "critical"]
RiskSeverity = Literal["low", "medium", "high"]
RiskCategory = Literal["bug", "security", "performance", "style", "maintainability"]

T = TypeVar("T")


class _Strict(BaseModel):
    # Model-produced scalars use StrictStr/StrictInt: "12" is not a line number.
    model_config = ConfigDict(frozen=True, populate_by_name=True, extra="ignore")


class Risk(_Strict):
    description: StrictStr = Field(min_length=1)
    severity: RiskSeverity
    category: Optional[RiskCategory] = None


class InlineComment(_Strict):
    file: StrictStr = Field(min_length=1, validation_alias=AliasChoices("file", "path"))
    line: StrictInt = Field(gt=0)
    body: StrictStr = Field(min_length=1)


class ReviewPayload(_Strict):
    """The review exactly as the model must return it. No field has a default."""

    summary: StrictStr = Field(min_length=1)
    severity: Severity
    strengths: list[StrictStr]
    risks: list[Risk]
    suggestions: list[StrictStr]
    inline_comments: list[InlineComment] = Field(
        validation_alias=AliasChoices("inlineComments", "inline_comments"),
    )


class ReviewResult(ReviewPayload):
    """A validated review plus where it came from."""

    provider: str
    model: str
    duration_ms: int = Field(ge=0)

    @classmethod
    def from_payload(cls, payload: ReviewPayload, provider: str, model: str, duration_ms: int) -> ReviewResult:
        return cls(**dict(payload), provider=provider, model=model, duration_ms=duration_ms)


class KeyConcept(_Strict):
    term: StrictStr
    definition: StrictStr


class ExplanationResponse(_Strict):
    summary: StrictStr = Field(min_length=1)
    explanation: StrictStr = Field(min_length=1)
    key_concepts: list[KeyConcept] = Field(validation_alias=AliasChoices("keyConcepts", "key_concepts"))
    potential_issues: Optional[list[StrictStr]] = Field(
        default=None, validation_alias=AliasChoices("potentialIssues", "potential_issues")
    )
    suggestions: Optional[list[StrictStr]] = None


@dataclass(frozen=True)
class Validated(Generic[T]):
    """Either a validated value or the ValidationError explaining why not."""

    value: Optional[T] = None
    error: Optional[ValidationError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> T:
        if self.error is not None:
            raise self.error
        return self.value


def extract_json(raw: str) -> str:
    """Strip the outer ```json fence a model may wrap its answer in.

    Only the outermost fence is removed, so fenced code inside string values
    survives. Falls back to the first ``{...}`` span when prose surrounds it.
    """
    text = raw.strip()
    if text.startswith("{") and text.endswith("}"):
        return text
    cleaned = re.sub(r"^```(?:json)?\s*", "", text)
    cleaned = re.sub(r"\s*```$", "", cleaned)
    if cleaned.startswith("{") and cleaned.endswith("}"):
        return cleaned
    match = re.search(r"\{.*\}", text, re.DOTALL)
    return match.group(0) if match else text


def _validate(raw: str, model: type[T], what: str) -> Validated[T]:
    try:
        data = json.loads(extract_json(raw))
    except json.JSONDecodeError as e:
        return Validated(error=ValidationError(f"{what} is not valid JSON: {e.msg}", [str(e)]))
    if not isinstance(data, dict):
        return Validated(error=ValidationError(f"{what} must be a JSON object", [f"got {type(data).__name__}"]))
    try:
        return Validated(value=model.model_validate(data))
    except pydantic.ValidationError as e:
        errors = [f"{'.'.join(str(p) for p in err['loc']) or '<root>'}: {err['msg']}" for err in e.errors()]
        return Validated(error=ValidationError(f"{what} failed schema validation: " + "; ".join(errors), errors))


def parse_review(raw: str) -> Validated[ReviewPayload]:
    return _validate(raw, ReviewPayload, "Review response")


def parse_explanation(raw: str) -> Validated[ExplanationResponse]:
    return _validate(raw, ExplanationResponse, "Explanation response")
