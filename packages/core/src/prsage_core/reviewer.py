"""End-to-end PR review: assemble, orchestrate, recommend, post."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone

from rich.console import Console

from prsage_core.config import load_guidelines
from prsage_core.context import ContextAssembler, PRContext
from prsage_core.errors import PrsageError, format_error_for_user
from prsage_core.gh.pull_request import split_repo
from prsage_core.orchestrator import OrchestrationResult, ReviewOrchestrator
from prsage_core.providers.registry import build_providers
from prsage_core.recommendation import RecommendationResult, synthesize_recommendation
from prsage_core.utils.diff import get_diff_positions, get_patch_line_content
from prsage_core.utils.effects import NonFatal, best_effort

console = Console()
logger = logging.getLogger(__name__)

_SEVERITY_EMOJI = {"info": "🟢", "warning": "🟡", "critical": "🔴"}
_RISK_ORDER = {"high": 0, "medium": 1, "low": 2}
_RISK_BADGE = {"high": "🔴", "medium": "🟡", "low": "🟢"}
_CATEGORY_EMOJI = {"bug": "🐛", "security": "🔒", "performance": "⚡", "style": "🎨", "maintainability": "🔧"}
_RECOMMENDATION_EMOJI = {"MERGE": "✅", "CAUTION": "⚠️", "BLOCK": "⛔"}

NO_REVIEWABLE_FILES_MESSAGE = (
    "✅ No reviewable code changes detected in this PR (files may be binary, ignored, or empty)."
)
REVIEW_FAILED_MESSAGE = "❌ Failed to generate AI review: {error}\n\n*You can retry by commenting `/ai-review`*"
REVIEWED_LABEL = "ai-reviewed"


@dataclass
class ReviewSummary:
    """What run_review produced, for the CLI to print or serialise."""

    repo: str
    pr_number: int
    head_sha: str
    provider: str
    model: str
    recommendation: RecommendationResult
    used_fallback: bool = False
    posted: bool = False
    reviewed_files: list[str] = field(default_factory=list)
    skipped_files: list[str] = field(default_factory=list)
    comments: list[dict] = field(default_factory=list)
    body: str = ""
    side_effects: list[NonFatal] = field(default_factory=list)
    reviewed_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


def is_pr_too_large(context: PRContext, max_files: int) -> bool:
    return context.total_files > max_files * 2


def build_large_pr_notice(context: PRContext) -> str:
    return (
        "## ⚠️ PR Too Large for Detailed Review\n\n"
        f"This pull request contains **{context.total_files} files** with "
        f"**+{context.total_additions}/-{context.total_deletions}** changes, "
        "which exceeds the recommended limit for AI review.\n\n"
        "### Summary\n"
        f"- **Title:** {context.title}\n"
        f"- **Author:** @{context.author}\n"
        f"- **Branch:** `{context.head_branch}` → `{context.base_branch}`\n\n"
        "### Recommendation\n"
        "Consider breaking this PR into smaller, focused pull requests for more effective review.\n\n"
        "---\n"
        "*AI review skipped due to PR size.*"
    )


def build_inline_comments(context: PRContext, result: OrchestrationResult) -> list[dict]:
    """Keep comments on reviewed files whose line is visible in the diff the model saw."""
    diffs = {f.filename: f.diff_text for f in context.reviewed}
    positions = {name: get_diff_positions(diff) for name, diff in diffs.items()}

    comments = []
    for comment in result.review.inline_comments:
        file_positions = positions.get(comment.file)
        if file_positions is None:
            logger.debug("Dropping comment on %s: file was not reviewed", comment.file)
            continue
        if comment.line not in file_positions:
            logger.debug("Dropping comment on %s:%d: line not in diff", comment.file, comment.line)
            continue
        comments.append(
            {
                "path": comment.file,
                "position": file_positions[comment.line],
                "body": f"💡 **AI Suggestion:**\n\n{comment.body}",
                "line": comment.line,
                "code": get_patch_line_content(diffs[comment.file], comment.line),
            }
        )
    return comments


def build_review_body(
    context: PRContext,
    result: OrchestrationResult,
    recommendation: RecommendationResult,
    inline_count: int,
) -> str:
    review = result.review
    lines = [
        "## 🤖 AI Code Review\n",
        f"**Summary:** {review.summary}\n",
        f"**Overall Assessment:** {_SEVERITY_EMOJI[review.severity]} {review.severity.upper()}\n",
    ]

    if review.strengths:
        lines.append("### ✅ Strengths\n")
        lines.extend(f"- {s}" for s in review.strengths)
        lines.append("")

    if review.risks:
        lines.append("### ⚠️ Risks & Issues\n")
        for risk in sorted(review.risks, key=lambda r: _RISK_ORDER[r.severity]):
            category = risk.category or "general"
            emoji = _CATEGORY_EMOJI.get(category, "📌")
            lines.append(f"- {emoji} **[{category.upper()}]** {_RISK_BADGE[risk.severity]} {risk.description}")
        lines.append("")

    if review.suggestions:
        lines.append("### 💡 Suggestions\n")
        lines.extend(f"- {s}" for s in review.suggestions)
        lines.append("")

    if context.warnings:
        lines.append("### 📋 Review Notes\n")
        lines.extend(f"- {w}" for w in context.warnings)
        lines.append("")

    lines.append("### 📊 Stats\n")
    lines.append("| Metric | Value |")
    lines.append("|--------|-------|")
    lines.append(f"| Files Reviewed | {context.reviewed_files}/{context.total_files} |")
    lines.append(f"| Lines Changed | +{context.total_additions}/-{context.total_deletions} |")
    if context.skipped_files:
        lines.append(f"| Files Skipped | {context.skipped_files} |")
    if inline_count:
        lines.append(f"| Inline Comments | {inline_count} |")
    lines.append("")

    emoji = _RECOMMENDATION_EMOJI[recommendation.recommendation]
    lines.append("### 🧭 Merge Recommendation\n")
    lines.append(f"**{emoji} {recommendation.recommendation}** (confidence {recommendation.confidence:.0%})\n")
    lines.extend(f"- {r}" for r in recommendation.reasons)
    lines.append("")

    fallback_note = " after fallback" if result.used_fallback else ""
    lines.append("---")
    lines.append(
        f"*Generated by AI ({result.provider}/{result.model}{fallback_note}) "
        "• Review suggestions carefully before applying*"
    )
    return "\n".join(lines)


def print_shadow_comments(body: str, comments: list[dict]) -> None:
    """Print the review to the terminal without posting to GitHub."""
    console.print("\n[bold]Shadow review (not posted)[/bold]\n")
    console.print(body)
    if not comments:
        console.print("\n[yellow]Shadow mode: no inline comments generated.[/yellow]")
        return
    console.print(f"\n[bold]{len(comments)} inline comment(s)[/bold]\n")
    for c in comments:
        console.print(f"[bold cyan]{c['path']}[/bold cyan]  line [bold]{c['line']}[/bold]")
        code = c.get("code", "").strip()
        if code:
            console.print(f"  [dim]{code}[/dim]")
        console.print(f"  {c['body']}")
        console.print()


def review_context(
    context: PRContext,
    config: dict,
    source,
    providers: dict | None = None,
    ci_status: str | None = None,
    use_fallback: bool | None = None,
    provider: str | None = None,
    model: str | None = None,
) -> tuple[OrchestrationResult, RecommendationResult]:
    """Orchestrate a review of an assembled context and derive the merge recommendation.

    CI status is read from the head commit when not supplied. A failed lookup
    leaves it unknown rather than discarding the review.
    """
    providers = providers if providers is not None else build_providers(config)
    orchestrator = ReviewOrchestrator(providers, config, guidelines=load_guidelines(config))
    result = orchestrator.review(context, provider=provider, model=model, use_fallback=use_fallback)

    if ci_status is None:
        ci_status = _lookup_ci_status(source, context)
    return result, synthesize_recommendation(result.review, ci_status=ci_status)


def _lookup_ci_status(source, context: PRContext) -> str | None:
    try:
        return source.get_ci_status(context.owner, context.repo, context.commit_sha)
    except PrsageError as e:
        logger.warning(
            "Could not read CI status for %s/%s@%s, treating it as unknown: %s",
            context.owner,
            context.repo,
            context.commit_sha,
            e.message,
        )
        return None


def recommend_pull_request(
    repo: str,
    pr_number: int,
    config: dict,
    source,
    cache,
    providers: dict | None = None,
    ci_status: str | None = None,
) -> RecommendationResult | None:
    """Review without posting anything and return only the recommendation.

    Returns None when the PR has no reviewable files.
    """
    owner, name = split_repo(repo)
    context = ContextAssembler(source, cache, config).assemble(owner, name, pr_number)
    if context.reviewed_files == 0:
        return None
    _, recommendation = review_context(context, config, source, providers, ci_status)
    return recommendation


def run_review(
    repo: str,
    pr_number: int,
    config: dict,
    source,
    cache,
    providers: dict | None = None,
    shadow: bool = False,
    ci_status: str | None = None,
    use_fallback: bool | None = None,
    provider: str | None = None,
    model: str | None = None,
) -> ReviewSummary | None:
    """Run the full PR review pipeline.

    Returns None when nothing was reviewed (no reviewable files, or the PR is
    too large); a notice is posted instead, or printed in shadow mode.
    Any PrsageError is reported on the PR with a generic comment and re-raised.
    """
    owner, name = split_repo(repo)
    try:
        context = ContextAssembler(source, cache, config).assemble(owner, name, pr_number)

        notice = None
        if is_pr_too_large(context, config.get("max_files", 50)):
            logger.warning("%s#%d is too large for detailed review (%d files)", repo, pr_number, context.total_files)
            notice = build_large_pr_notice(context)
        elif context.reviewed_files == 0:
            logger.info("No reviewable files in %s#%d", repo, pr_number)
            notice = NO_REVIEWABLE_FILES_MESSAGE
        if notice is not None:
            if shadow:
                console.print(notice)
            else:
                source.post_comment(owner, name, pr_number, notice)
            return None

        console.print(
            f"Reviewing [bold]{repo}#{pr_number}[/bold]: {context.reviewed_files}/{context.total_files} file(s)"
            + (" [dim](cached context)[/dim]" if context.from_cache else "")
        )

        result, recommendation = review_context(
            context, config, source, providers, ci_status, use_fallback=use_fallback, provider=provider, model=model
        )

        comments = build_inline_comments(context, result)
        body = build_review_body(context, result, recommendation, len(comments))

        summary = ReviewSummary(
            repo=repo,
            pr_number=pr_number,
            head_sha=context.commit_sha,
            provider=result.provider,
            model=result.model,
            recommendation=recommendation,
            used_fallback=result.used_fallback,
            reviewed_files=[f.filename for f in context.reviewed],
            skipped_files=[f.filename for f in context.files if f.skipped],
            comments=comments,
            body=body,
        )

        if shadow:
            print_shadow_comments(body, comments)
            return summary

        api_comments = [{"path": c["path"], "position": c["position"], "body": c["body"]} for c in comments]
        source.post_review(owner, name, pr_number, body, api_comments, event="COMMENT")
    except PrsageError as e:
        logger.error("Review of %s#%d failed: %s", repo, pr_number, e.message)
        if not shadow:
            _post_failure_comment(source, owner, name, pr_number, e)
        raise

    summary.posted = True
    summary.side_effects.append(
        best_effort(f"label:{REVIEWED_LABEL}", source.add_labels, owner, name, pr_number, [REVIEWED_LABEL])
    )
    console.print(
        f"\n[green]Review posted: {recommendation.recommendation}. "
        f"{len(comments)} inline comment(s) across {context.reviewed_files} file(s).[/green]"
    )
    return summary


def _post_failure_comment(source, owner: str, name: str, pr_number: int, error: PrsageError) -> None:
    try:
        source.post_comment(owner, name, pr_number, REVIEW_FAILED_MESSAGE.format(error=format_error_for_user(error)))
    except PrsageError as comment_error:
        logger.error("Could not post failure comment on %s/%s#%d: %s", owner, name, pr_number, comment_error)
