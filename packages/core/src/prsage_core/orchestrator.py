"""Turns a PRContext into a validated ReviewResult.

Fallback is modelled as an ordered list of attempts. Each attempt records
either a ReviewResult or the typed error that ended it. Two pure functions
decide what happens next:

    next_fallback(attempts, ...)  → provider name for one more attempt, or None
    resolve_attempts(attempts)    → first success, else the primary's error

Only a TransportError (including RateLimitError) on the first attempt opens
the door to a second one. A response that does not parse or does not match
the schema is an answer, not an outage, and substituting another model's
opinion for it would hide the problem.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass, field

from prsage_core.errors import PrsageError, TransportError
from prsage_core.prompts import build_review_prompt, build_reviewer_system_prompt
from prsage_core.providers.base import BaseProvider
from prsage_core.providers.registry import available_providers, select_provider
from prsage_core.schemas import ReviewResult, parse_review

logger = logging.getLogger(__name__)

_LEGACY_RISK_LEVEL = {"info": "low", "warning": "medium", "critical": "high"}


@dataclass(frozen=True)
class Attempt:
    provider: str
    model: str
    duration_ms: int
    review: ReviewResult | None = None
    error: PrsageError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass(frozen=True)
class OrchestrationResult:
    review: ReviewResult
    provider: str
    model: str
    duration_ms: int
    attempts: tuple[Attempt, ...] = field(default=())

    @property
    def used_fallback(self) -> bool:
        return len(self.attempts) > 1


def next_fallback(attempts: list[Attempt], candidates: list[str], use_fallback: bool) -> str | None:
    """Return the provider for the single permitted fallback attempt, if any."""
    if not use_fallback or len(attempts) != 1:
        return None
    primary = attempts[0]
    if primary.ok or not isinstance(primary.error, TransportError):
        return None
    for name in candidates:
        if name != primary.provider:
            return name
    return None


def resolve_attempts(attempts: list[Attempt]) -> Attempt:
    """Return the first successful attempt, else raise the primary attempt's error."""
    if not attempts:
        raise ValueError("resolve_attempts needs at least one attempt")
    for attempt in attempts:
        if attempt.ok:
            return attempt
    raise attempts[0].error


class ReviewOrchestrator:
    def __init__(self, providers: dict[str, BaseProvider], config: dict | None = None, guidelines: str = ""):
        config = config or {}
        self.providers = providers
        self.temperature = config.get("temperature")
        self.max_tokens = config.get("max_tokens", 4096)
        self.use_fallback = config.get("use_fallback", True)
        self.default_provider = config.get("provider")
        self.guidelines = guidelines

    def review(
        self,
        context,
        provider: str | None = None,
        model: str | None = None,
        temperature: float | None = None,
        use_fallback: bool | None = None,
    ) -> OrchestrationResult:
        """Review a PRContext, falling back once on a transport failure when allowed.

        Raises ConfigurationError when no provider can be used, ValidationError
        when the response is malformed, and the primary provider's
        TransportError when every attempt failed to reach its provider.
        """
        use_fallback = self.use_fallback if use_fallback is None else use_fallback
        primary = select_provider(self.providers, provider or self.default_provider)
        system_prompt = build_reviewer_system_prompt(self.guidelines)
        user_prompt = build_review_prompt(context)

        start = time.monotonic()
        attempts = [self._attempt(primary, system_prompt, user_prompt, model, temperature)]

        fallback = next_fallback(attempts, available_providers(self.providers), use_fallback)
        if fallback is not None:
            logger.warning(
                "Provider %s failed (%s); falling back to %s", primary, attempts[0].error.message, fallback
            )
            # The requested model name belongs to the primary's family; let the fallback use its own.
            attempts.append(self._attempt(fallback, system_prompt, user_prompt, None, temperature))

        winner = resolve_attempts(attempts)
        duration_ms = int((time.monotonic() - start) * 1000)
        logger.info(
            "Review for %s/%s#%d produced by %s (%s) in %dms, severity=%s",
            context.owner,
            context.repo,
            context.pull_number,
            winner.provider,
            winner.model,
            duration_ms,
            winner.review.severity,
        )
        return OrchestrationResult(
            review=winner.review,
            provider=winner.provider,
            model=winner.model,
            duration_ms=duration_ms,
            attempts=tuple(attempts),
        )

    def _attempt(
        self,
        name: str,
        system_prompt: str,
        user_prompt: str,
        model: str | None,
        temperature: float | None,
    ) -> Attempt:
        provider = self.providers[name]
        model = model or provider.model
        start = time.monotonic()
        try:
            raw = provider.call(
                system_prompt,
                user_prompt,
                model=model,
                temperature=self.temperature if temperature is None else temperature,
                max_tokens=self.max_tokens,
                json_response=True,
            )
        except PrsageError as e:
            return Attempt(provider=name, model=model, duration_ms=_elapsed_ms(start), error=e)

        duration_ms = _elapsed_ms(start)
        validated = parse_review(raw)
        if not validated.ok:
            logger.warning("%s returned an invalid review: %s", name, validated.error.message)
            return Attempt(provider=name, model=model, duration_ms=duration_ms, error=validated.error)
        review = ReviewResult.from_payload(validated.value, provider=name, model=model, duration_ms=duration_ms)
        return Attempt(provider=name, model=model, duration_ms=duration_ms, review=review)


def _elapsed_ms(start: float) -> int:
    return int((time.monotonic() - start) * 1000)


def to_legacy_review(review: ReviewResult) -> dict:
    """Render a review in the older riskLevel-based shape some consumers still read."""
    justification = "; ".join(r.description for r in review.risks if r.severity == "high") or review.summary
    return {
        "summary": review.summary,
        "riskLevel": _LEGACY_RISK_LEVEL[review.severity],
        "riskJustification": justification,
        "inlineComments": [{"file": c.file, "line": c.line, "comment": c.body} for c in review.inline_comments],
        "generalComments": list(review.suggestions),
    }
