"""recommend command — print a merge recommendation without posting anything."""

from __future__ import annotations

import json

import click
from rich.console import Console

from prsage_cli.auth import build_source
from prsage_cli.commands.review import CI_STATUS_CHOICE
from prsage_core.errors import PrsageError, format_error_for_user
from prsage_core.reviewer import recommend_pull_request

console = Console()

_STYLE = {"MERGE": "green", "CAUTION": "yellow", "BLOCK": "red"}


@click.command("recommend")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option(
    "--ci-status",
    type=CI_STATUS_CHOICE,
    default=None,
    help="CI status to use instead of reading check runs from GitHub.",
)
@click.option("--json", "as_json", is_flag=True, help="Print the recommendation as JSON.")
@click.pass_context
def recommend_cmd(ctx, repo: str, pr_number: int, ci_status: str | None, as_json: bool):
    """Review a pull request and print MERGE, CAUTION or BLOCK."""
    config = ctx.obj["config"]
    source = build_source(config)

    try:
        result = recommend_pull_request(
            repo=repo,
            pr_number=pr_number,
            config=config,
            source=source,
            cache=ctx.obj["cache"],
            ci_status=ci_status,
        )
    except (PrsageError, ValueError) as e:
        raise click.ClickException(format_error_for_user(e)) from e

    if result is None:
        if as_json:
            click.echo(json.dumps({"recommendation": None, "reasons": ["No reviewable files."]}))
        else:
            console.print("[yellow]No reviewable code changes in this PR.[/yellow]")
        return

    if as_json:
        click.echo(json.dumps(result.to_dict(), indent=2))
        return

    style = _STYLE[result.recommendation]
    console.print(f"[bold {style}]{result.recommendation}[/bold {style}]  confidence {result.confidence:.0%}")
    console.print(
        f"Risks: {result.high_risk_count} high, {result.medium_risk_count} medium, {result.low_risk_count} low"
    )
    for reason in result.reasons:
        console.print(f"  - {reason}")
