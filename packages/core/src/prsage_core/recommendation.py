"""Deterministic merge recommendation from a review and CI status.

Pure functions only: the same review, CI status and risk counts always give
the same recommendation, confidence and reasons. Reasons are fixed strings
chosen by the rules that fired; nothing is copied from model text.

Rules, first match wins:
  1. severity critical, or CI failing  → BLOCK
  2. any high risk, or severity warning → CAUTION
  3. otherwise                          → MERGE

Confidence:
  max(floor, base[outcome]
             - high_penalty   * high_risk_count
             - medium_penalty * medium_risk_count
             - low_penalty    * low_risk_count
             - pending_penalty if CI is pending or unknown)
rounded to 4 places. The coefficients live in ConfidenceParams and are
tuning knobs, not a contract.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Literal, Optional

from prsage_core.schemas import ReviewResult

CIStatus = Literal["success", "failure", "pending"]
Recommendation = Literal["MERGE", "BLOCK", "CAUTION"]


@dataclass(frozen=True)
class RiskCounts:
    high: int = 0
    medium: int = 0
    low: int = 0

    @classmethod
    def from_review(cls, review: ReviewResult) -> RiskCounts:
        severities = [r.severity for r in review.risks]
        return cls(high=severities.count("high"), medium=severities.count("medium"), low=severities.count("low"))


@dataclass(frozen=True)
class ConfidenceParams:
    base: dict = field(default_factory=lambda: {"BLOCK": 0.95, "CAUTION": 0.85, "MERGE": 0.95})
    high_penalty: float = 0.10
    medium_penalty: float = 0.05
    low_penalty: float = 0.02
    pending_penalty: float = 0.10
    floor: float = 0.50


DEFAULT_CONFIDENCE = ConfidenceParams()


@dataclass(frozen=True)
class RecommendationResult:
    recommendation: Recommendation
    confidence: float
    high_risk_count: int
    medium_risk_count: int
    low_risk_count: int
    reasons: tuple[str, ...]
    review_severity: Optional[str] = None
    ci_status: Optional[str] = None

    def to_dict(self) -> dict:
        """The JSON contract read by the CLI and dashboard."""
        data = {
            "recommendation": self.recommendation,
            "confidence": self.confidence,
            "highRiskCount": self.high_risk_count,
            "mediumRiskCount": self.medium_risk_count,
            "lowRiskCount": self.low_risk_count,
            "reasons": list(self.reasons),
        }
        if self.review_severity is not None:
            data["reviewSeverity"] = self.review_severity
        if self.ci_status is not None:
            data["ciStatus"] = self.ci_status
        return data


def synthesize_recommendation(
    review: ReviewResult,
    ci_status: CIStatus | None = None,
    risk_counts: RiskCounts | None = None,
    params: ConfidenceParams = DEFAULT_CONFIDENCE,
) -> RecommendationResult:
    counts = risk_counts if risk_counts is not None else RiskCounts.from_review(review)
    severity = review.severity

    if severity == "critical" or ci_status == "failure":
        outcome = "BLOCK"
    elif counts.high > 0 or severity == "warning":
        outcome = "CAUTION"
    else:
        outcome = "MERGE"

    return RecommendationResult(
        recommendation=outcome,
        confidence=_confidence(outcome, counts, ci_status, params),
        high_risk_count=counts.high,
        medium_risk_count=counts.medium,
        low_risk_count=counts.low,
        reasons=tuple(_reasons(outcome, severity, counts, ci_status)),
        review_severity=severity,
        ci_status=ci_status,
    )


def _confidence(outcome: str, counts: RiskCounts, ci_status: str | None, params: ConfidenceParams) -> float:
    value = params.base[outcome]
    value -= params.high_penalty * counts.high
    value -= params.medium_penalty * counts.medium
    value -= params.low_penalty * counts.low
    if ci_status != "success" and ci_status != "failure":
        value -= params.pending_penalty
    return round(min(1.0, max(params.floor, value)), 4)


def _reasons(outcome: str, severity: str, counts: RiskCounts, ci_status: str | None) -> list[str]:
    reasons = []
    if ci_status == "failure":
        reasons.append("CI checks are failing. Must fix before merge.")
    if severity == "critical":
        reasons.append("Review found critical issues.")
    if counts.high:
        reasons.append(f"{counts.high} high-severity risk(s) should be addressed.")
    if severity == "warning":
        reasons.append("Review flagged some concerns.")
    if counts.medium:
        reasons.append(f"{counts.medium} medium-severity issue(s) found.")
    if counts.low:
        reasons.append(f"{counts.low} minor suggestion(s) to consider.")
    if ci_status == "pending":
        reasons.append("Waiting for CI checks to complete.")
    elif ci_status is None:
        reasons.append("CI status unknown.")
    elif ci_status == "success":
        reasons.append("All CI checks passing.")
    if outcome == "MERGE":
        reasons.append("No blocking issues found.")
    return reasons
