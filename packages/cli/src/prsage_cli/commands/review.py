"""review command — review a pull request and post the result."""

from __future__ import annotations

import click
from rich.console import Console

from prsage_cli.auth import build_source
from prsage_core.errors import PrsageError, format_error_for_user
from prsage_core.reviewer import run_review

console = Console()

CI_STATUS_CHOICE = click.Choice(["success", "failure", "pending"])


@click.command("review")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option(
    "--provider",
    type=click.Choice(["anthropic", "openai"]),
    default=None,
    help="AI provider to try first. Defaults to the first available one.",
)
@click.option("--model", default=None, help="Model name for the chosen provider.")
@click.option("--no-fallback", is_flag=True, help="Do not retry on another provider when the first one is unreachable.")
@click.option(
    "--shadow",
    "-s",
    is_flag=True,
    help="Dry-run mode: print the review without posting to GitHub.",
)
@click.option(
    "--ci-status",
    type=CI_STATUS_CHOICE,
    default=None,
    help="CI status to use instead of reading check runs from GitHub.",
)
@click.pass_context
def review_cmd(
    ctx,
    repo: str,
    pr_number: int,
    provider: str | None,
    model: str | None,
    no_fallback: bool,
    shadow: bool,
    ci_status: str | None,
):
    """Review a pull request with Claude or GPT-4o.

    Builds a size-bounded view of the PR diff, asks the AI provider for a
    structured review, derives a merge recommendation and posts everything
    as a single review comment.

    \b
    Required environment variables:
      GITHUB_TOKEN         GitHub personal access token (or use gh CLI)
      ANTHROPIC_API_KEY    and/or
      OPENAI_API_KEY       at least one AI provider key
    """
    config = ctx.obj["config"]
    source = build_source(config)

    try:
        summary = run_review(
            repo=repo,
            pr_number=pr_number,
            config=config,
            source=source,
            cache=ctx.obj["cache"],
            shadow=shadow,
            ci_status=ci_status,
            use_fallback=False if no_fallback else None,
            provider=provider,
            model=model,
        )
    except (PrsageError, ValueError) as e:
        raise click.ClickException(format_error_for_user(e)) from e

    if summary is None:
        console.print("[yellow]Nothing was reviewed.[/yellow]")
        return

    rec = summary.recommendation
    console.print(
        f"[bold]{rec.recommendation}[/bold] (confidence {rec.confidence:.0%}) "
        f"via {summary.provider}/{summary.model}" + (" [dim](fallback)[/dim]" if summary.used_fallback else "")
    )
