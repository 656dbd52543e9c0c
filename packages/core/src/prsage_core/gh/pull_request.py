"""Thin PyGithub adapter used as the source-control collaborator.

Every GitHub failure leaves this module as a prsage error: a missing object
is NotFoundError, an exhausted rate limit is RateLimitError, everything else
that went wrong on the wire is TransportError. Rate-limit retries are
delegated to PyGithub's GithubRetry policy.
"""

from __future__ import annotations

import functools
import logging

import requests
from github import Auth, Github, GithubException, GithubRetry, RateLimitExceededException, UnknownObjectException

from prsage_core.errors import NotFoundError, RateLimitError, TransportError

logger = logging.getLogger(__name__)

# Check runs whose conclusion means the PR must not merge.
_FAILING_CONCLUSIONS = {"failure", "timed_out", "action_required", "cancelled", "startup_failure"}


def _translate_github_errors(func):
    @functools.wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except UnknownObjectException as e:
            raise NotFoundError(f"GitHub resource not found ({func.__name__})", status_code=e.status) from e
        except RateLimitExceededException as e:
            raise RateLimitError("GitHub API rate limit exceeded. Please try again later.") from e
        except GithubException as e:
            raise TransportError(f"GitHub API error ({e.status}) in {func.__name__}", status_code=e.status) from e
        except (requests.ConnectionError, requests.Timeout) as e:
            raise TransportError(f"GitHub request failed in {func.__name__}: {e}") from e

    return wrapper


class GitHubSource:
    """Source-control operations needed by the review and conversation flows."""

    def __init__(self, token: str | None = None, timeout: int = 30, retries: int = 3, github: Github | None = None):
        if github is None:
            auth = Auth.Token(token) if token else None
            github = Github(auth=auth, timeout=timeout, retry=GithubRetry(total=retries))
        self._github = github

    def _repo(self, owner: str, repo: str):
        return self._github.get_repo(f"{owner}/{repo}")

    @_translate_github_errors
    def get_pull_request(self, owner: str, repo: str, number: int):
        return self._repo(owner, repo).get_pull(number)

    @_translate_github_errors
    def list_pull_request_files(self, owner: str, repo: str, number: int) -> list:
        # PaginatedList fetches every page (100 files each) as it is iterated.
        return list(self._repo(owner, repo).get_pull(number).get_files())

    @_translate_github_errors
    def get_file_content(self, owner: str, repo: str, path: str, ref: str) -> str:
        contents = self._repo(owner, repo).get_contents(path, ref=ref)
        if isinstance(contents, list):
            raise NotFoundError(f"{path} is a directory, not a file")
        return contents.decoded_content.decode("utf-8", errors="replace")

    @_translate_github_errors
    def post_review(self, owner: str, repo: str, number: int, body: str, comments: list[dict], event: str = "COMMENT"):
        pr = self._repo(owner, repo).get_pull(number)
        return pr.create_review(body=body, event=event, comments=comments)

    @_translate_github_errors
    def post_comment(self, owner: str, repo: str, number: int, body: str):
        return self._repo(owner, repo).get_issue(number).create_comment(body)

    @_translate_github_errors
    def add_labels(self, owner: str, repo: str, number: int, labels: list[str]):
        return self._repo(owner, repo).get_issue(number).add_to_labels(*labels)

    @_translate_github_errors
    def add_reaction(self, owner: str, repo: str, comment_id: int, reaction: str):
        return self._repo(owner, repo).get_issue_comment(comment_id).create_reaction(reaction)

    @_translate_github_errors
    def get_ci_status(self, owner: str, repo: str, sha: str) -> str:
        """Collapse the head commit's check runs into success, failure or pending."""
        runs = list(self._repo(owner, repo).get_commit(sha).get_check_runs())
        return summarize_check_runs(runs)


def summarize_check_runs(runs) -> str:
    """Any failing run fails the commit; success needs every run completed and green."""
    if any(r.status == "completed" and r.conclusion in _FAILING_CONCLUSIONS for r in runs):
        return "failure"
    if runs and all(r.status == "completed" and r.conclusion in ("success", "neutral", "skipped") for r in runs):
        return "success"
    return "pending"


def split_repo(full_name: str) -> tuple[str, str]:
    """Split "owner/name" into its two parts."""
    owner, sep, name = full_name.partition("/")
    if not sep or not owner or not name or "/" in name:
        raise ValueError(f"Repository must be in owner/name format, got {full_name!r}")
    return owner, name
