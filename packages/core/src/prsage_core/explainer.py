"""Code explanations and follow-up answers on top of the provider primitive."""

from __future__ import annotations

import logging
import time

from prsage_core.prompts import (
    EXPLAINER_SYSTEM_PROMPT,
    FOLLOW_UP_SYSTEM_PROMPT,
    build_explain_prompt,
    build_follow_up_prompt,
)
from prsage_core.providers.base import BaseProvider
from prsage_core.providers.registry import select_provider
from prsage_core.schemas import ExplanationResponse, parse_explanation

logger = logging.getLogger(__name__)

_EXPLAIN_MAX_TOKENS = 2000
_FOLLOW_UP_MAX_TOKENS = 1500


class Explainer:
    def __init__(self, providers: dict[str, BaseProvider], config: dict | None = None):
        config = config or {}
        self.providers = providers
        self.default_provider = config.get("provider")
        self.temperature = config.get("temperature", 0.3)

    def explain_code(
        self,
        code: str,
        filename: str | None = None,
        language: str | None = None,
        question: str | None = None,
        surrounding_code: str | None = None,
    ) -> ExplanationResponse:
        name = select_provider(self.providers, self.default_provider)
        prompt = build_explain_prompt(code, filename, language, question, surrounding_code)
        logger.info("Explaining %d chars of code via %s (file=%s)", len(code), name, filename)

        start = time.monotonic()
        raw = self.providers[name].call(
            EXPLAINER_SYSTEM_PROMPT,
            prompt,
            temperature=self.temperature,
            max_tokens=_EXPLAIN_MAX_TOKENS,
            json_response=True,
        )
        explanation = parse_explanation(raw).unwrap()
        logger.info(
            "Explanation generated by %s in %dms with %d concept(s)",
            name,
            int((time.monotonic() - start) * 1000),
            len(explanation.key_concepts),
        )
        return explanation

    def answer_follow_up(
        self,
        original_code: str,
        original_explanation: ExplanationResponse,
        question: str,
        filename: str | None = None,
        history: list | None = None,
    ) -> str:
        name = select_provider(self.providers, self.default_provider)
        prompt = build_follow_up_prompt(original_code, original_explanation, question, filename, history)
        logger.info("Answering follow-up via %s: %s", name, question[:100])
        answer = self.providers[name].call(
            FOLLOW_UP_SYSTEM_PROMPT,
            prompt,
            temperature=self.temperature,
            max_tokens=_FOLLOW_UP_MAX_TOKENS,
        )
        return answer.strip()


def format_explanation_comment(explanation: ExplanationResponse, question: str | None = None) -> str:
    lines = ["## 🤖 AI Code Explanation\n"]
    if question:
        lines.append(f"> **Question:** {question}\n")
    lines.append(f"### Summary\n\n{explanation.summary}\n")
    lines.append(f"### Detailed Explanation\n\n{explanation.explanation}\n")
    if explanation.key_concepts:
        lines.append("### Key Concepts\n")
        lines.extend(f"- **{c.term}:** {c.definition}" for c in explanation.key_concepts)
        lines.append("")
    if explanation.potential_issues:
        lines.append("### ⚠️ Potential Issues\n")
        lines.extend(f"- {issue}" for issue in explanation.potential_issues)
        lines.append("")
    if explanation.suggestions:
        lines.append("### 💡 Suggestions\n")
        lines.extend(f"- {s}" for s in explanation.suggestions)
        lines.append("")
    lines.append("---")
    lines.append("*Generated by AI • Ask follow-up questions by replying to this comment*")
    return "\n".join(lines)


def format_answer_comment(question: str, answer: str) -> str:
    return f"## 🤖 AI Response\n\n> {question}\n\n{answer}\n\n---\n*Ask more questions by replying to this comment*"
