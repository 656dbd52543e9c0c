"""CLI entry point for prsage.

Commands:
  review     — review a pull request and post the result
  recommend  — review without posting and print the merge recommendation
  explain    — explain a line range of a file in a pull request
"""

from __future__ import annotations

import importlib.metadata
import logging

import click
from rich.console import Console
from rich.logging import RichHandler

from prsage_cli.commands.explain import explain_cmd
from prsage_cli.commands.recommend import recommend_cmd
from prsage_cli.commands.review import review_cmd

console = Console()


def _build_cache(config: dict):
    """Instantiate the configured PR-context cache from .prsage.yml settings.

    Cache selection:
      cache: memory → MemoryCache (default, lives for one process)
      cache: sqlite → SQLiteCache at cache_path (default .prsage.db)
      cache: none   → NoOpCache
    """
    from prsage_store.noop import NoOpCache

    cache_type = config.get("cache", "memory")
    ttl = config.get("cache_ttl_seconds", 86400)

    if cache_type == "sqlite":
        from prsage_store.sqlite import SQLiteCache

        return SQLiteCache(ttl_seconds=ttl, db_path=config.get("cache_path", ".prsage.db"))

    if cache_type == "memory":
        from prsage_store.memory import MemoryCache

        return MemoryCache(ttl_seconds=ttl)

    return NoOpCache()


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=Console(stderr=True), rich_tracebacks=verbose, show_path=verbose)],
        force=True,
    )


@click.group()
@click.version_option(
    version=importlib.metadata.version("prsage"),
    prog_name="prsage",
)
@click.option(
    "--config",
    "config_path",
    default=".prsage.yml",
    show_default=True,
    help="Path to the configuration file.",
    envvar="PRSAGE_CONFIG",
)
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging.")
@click.pass_context
def main(ctx: click.Context, config_path: str, verbose: bool):
    """AI pull request reviews, merge recommendations and code explanations."""
    from prsage_cli.auth import resolve_github_token
    from prsage_core.config import load_config
    from prsage_core.errors import PrsageError, format_error_for_user

    _configure_logging(verbose)
    ctx.ensure_object(dict)

    try:
        config = load_config(config_path)
    except PrsageError as e:
        raise click.ClickException(format_error_for_user(e)) from e

    # Resolve token early so all subcommands share the same resolution.
    token = resolve_github_token()
    if token:
        config["github_token"] = token

    cache = _build_cache(config)
    ctx.obj["cache"] = cache
    ctx.obj["config"] = config
    ctx.call_on_close(cache.close)


main.add_command(review_cmd)
main.add_command(recommend_cmd)
main.add_command(explain_cmd)
