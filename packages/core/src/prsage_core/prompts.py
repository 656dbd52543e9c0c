"""Prompt text for reviews and explanations.

Kept in one module so the review orchestrator and the explainer share a
consistent persona and output contract regardless of which provider runs.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from prsage_core.context import PRContext
    from prsage_core.schemas import ExplanationResponse

# Follow-up prompts include only this many prior messages, however long the thread is.
HISTORY_WINDOW = 4

REVIEWER_SYSTEM_PROMPT = """You are an expert code reviewer with deep knowledge of software engineering \
best practices, security vulnerabilities, and performance optimization. Your role is to:

1. Identify bugs, security issues, performance problems, and maintainability concerns
2. Provide constructive, actionable feedback
3. Acknowledge good practices and strengths in the code
4. Suggest specific improvements

Guidelines:
- Be concise but thorough
- Focus on substantive issues, not style preferences
- Avoid assumptions when context is unclear

You must respond ONLY with valid JSON matching this exact schema. Every key is required; use an empty \
list when there is nothing to report:
{
  "summary": "Brief overview of the PR and main findings (2-4 sentences)",
  "severity": "info" | "warning" | "critical",
  "strengths": ["Positive aspects of the change"],
  "risks": [
    {
      "category": "bug|security|performance|style|maintainability",
      "description": "Detailed description of the issue",
      "severity": "low|medium|high"
    }
  ],
  "suggestions": ["Specific actionable improvements"],
  "inlineComments": [
    {"path": "relative/file/path.py", "line": 10, "body": "Comment about this line"}
  ]
}

Severity guide:
- critical: security vulnerability, data loss risk, crash; must not merge as is
- warning: logic bug, missing error handling, significant performance issue
- info: nothing beyond minor suggestions

Important:
- "path" must match a file path from the diff exactly
- "line" must be a new-file line number that appears in the diff
- Keep inline comments to at most 20"""


def build_reviewer_system_prompt(guidelines: str = "") -> str:
    if not guidelines.strip():
        return REVIEWER_SYSTEM_PROMPT
    return f"{REVIEWER_SYSTEM_PROMPT}\n\nTeam guidelines to apply:\n\n{guidelines.strip()}"


def build_review_prompt(context: PRContext) -> str:
    file_list = "\n".join(f"- {f.filename} (+{f.additions} -{f.deletions})" for f in context.reviewed)
    notes = ""
    if context.warnings:
        notes = "**Review Notes:**\n" + "\n".join(f"- {w}" for w in context.warnings) + "\n\n"

    return f"""Review this pull request:

**PR Title:** {context.title}
**Description:** {context.description or "No description provided"}
**Author:** {context.author}
**Base Branch:** {context.base_branch} ← {context.head_branch}

**Changed Files ({context.reviewed_files} of {context.total_files} files reviewed):**
{file_list}

**Total Changes:** +{context.total_additions} -{context.total_deletions}

**Code Changes:**

{context.formatted_diff}

{notes}Provide the review as a single JSON object."""


EXPLAINER_SYSTEM_PROMPT = """You are an expert software engineer who excels at explaining code clearly \
and concisely. Explain what the code does in plain language, identify key patterns and design \
decisions, point out potential issues, and suggest improvements when appropriate.

Assume the reader is a developer who may not know this codebase. Briefly explain technical terms.

You must respond with valid JSON matching this schema:
{
  "summary": "One-sentence summary of what the code does",
  "explanation": "Detailed explanation of the code logic and flow",
  "keyConcepts": [{"term": "concept/pattern name", "definition": "brief explanation"}],
  "potentialIssues": ["Any issues or concerns (optional)"],
  "suggestions": ["Improvement suggestions (optional)"]
}"""

FOLLOW_UP_SYSTEM_PROMPT = (
    "You are a helpful code expert answering follow-up questions about code. Be concise but thorough."
)


def build_explain_prompt(
    code: str,
    filename: str | None = None,
    language: str | None = None,
    question: str | None = None,
    surrounding_code: str | None = None,
) -> str:
    parts = ["Explain the following code:\n"]
    if filename:
        parts.append(f"**File:** `{filename}`")
    if language:
        parts.append(f"**Language:** {language}")
    parts.append(f"\n```\n{code}\n```\n")
    if surrounding_code:
        parts.append(f"**Surrounding Context:**\n```\n{surrounding_code}\n```\n")
    if question:
        parts.append(f"**Specific Question:** {question}\n")
    parts.append("Provide a clear explanation in JSON format.")
    return "\n".join(parts)


def build_follow_up_prompt(
    original_code: str,
    original_explanation: ExplanationResponse,
    question: str,
    filename: str | None = None,
    history: list | None = None,
) -> str:
    parts = ["You previously explained this code:\n"]
    if filename:
        parts.append(f"**File:** `{filename}`\n")
    parts.append(f"```\n{original_code}\n```\n")
    parts.append(f"**Your previous explanation:**\n{original_explanation.explanation}\n")
    recent = (history or [])[-HISTORY_WINDOW:]
    if recent:
        parts.append("**Previous Q&A:**")
        for message in recent:
            prefix = "Q" if message.role == "user" else "A"
            parts.append(f"{prefix}: {message.content}\n")
    parts.append(f"**New question:** {question}\n")
    parts.append("Please answer this follow-up question concisely but thoroughly. Respond in plain text (not JSON).")
    return "\n".join(parts)
