"""explain command — explain a line range of a file in a pull request."""

from __future__ import annotations

from datetime import timedelta

import click
from rich.console import Console
from rich.markdown import Markdown

from prsage_cli.auth import build_source
from prsage_core.conversation import ConversationService, ConversationStore, read_snippet
from prsage_core.errors import PrsageError, format_error_for_user
from prsage_core.explainer import Explainer, format_explanation_comment
from prsage_core.gh.pull_request import split_repo
from prsage_core.providers.registry import build_providers

console = Console()


@click.command("explain")
@click.option("--repo", required=True, help="GitHub repository in owner/name format.")
@click.option("--pr", "pr_number", type=int, required=True, help="Pull request number.")
@click.option("--file", "filename", required=True, help="Path of the file at the PR head.")
@click.option("--start", "start_line", type=click.IntRange(min=1), required=True, help="First line (1-based).")
@click.option("--end", "end_line", type=click.IntRange(min=1), required=True, help="Last line (inclusive).")
@click.option("--question", default=None, help="Specific question about the code.")
@click.option("--post", is_flag=True, help="Post the explanation as a PR comment instead of printing it.")
@click.pass_context
def explain_cmd(
    ctx,
    repo: str,
    pr_number: int,
    filename: str,
    start_line: int,
    end_line: int,
    question: str | None,
    post: bool,
):
    """Explain lines START..END of FILE in a pull request."""
    if end_line < start_line:
        raise click.BadParameter("--end must not be before --start", param_hint="--end")

    config = ctx.obj["config"]
    source = build_source(config)
    explainer = Explainer(build_providers(config), config)

    try:
        owner, name = split_repo(repo)
        if post:
            store = ConversationStore(ttl=timedelta(seconds=config.get("conversation_ttl_seconds", 7200)))
            service = ConversationService(source, explainer, store)
            result = service.explain(
                owner,
                name,
                pr_number,
                None,
                filename=filename,
                start_line=start_line,
                end_line=end_line,
                question=question,
            )
            if not result.success:
                raise click.ClickException(result.message)
            console.print(f"[green]{result.message} on {repo}#{pr_number}.[/green]")
            return

        snippet = read_snippet(source, owner, name, pr_number, filename, start_line, end_line)
        if not snippet:
            raise click.ClickException(f"No code found in {filename} lines {start_line}-{end_line}.")
        explanation = explainer.explain_code(snippet, filename=filename, question=question)
    except (PrsageError, ValueError) as e:
        raise click.ClickException(format_error_for_user(e)) from e

    console.print(Markdown(format_explanation_comment(explanation, question)))
