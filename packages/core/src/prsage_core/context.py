"""Size-bounded PR context assembly.

A pull request can change thousands of lines; a prompt cannot. The
assembler walks the changed files in listing order and spends three budgets
as it goes:

- per file: ``max_diff_lines_per_file`` lines and ``max_diff_chars_per_file``
  characters; larger diffs are clipped and marked ``truncated``;
- per PR: ``max_total_diff_lines`` included lines; once spent, every later
  file is marked ``skipped`` under one aggregate warning;
- per PR: ``max_files`` reviewed files, handled the same way.

Files that match an ignore pattern, have no textual patch (binary), or whose
patch is larger than ``max_file_size_bytes`` are skipped individually, each
with its own warning.

The result is an immutable PRContext. A successful assembly is cached per
(owner, repo, pull number, head commit) so repeated triggers on the same
commit reuse it.
"""

from __future__ import annotations

import dataclasses
import logging
import time
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

from prsage_core.utils.code import DEFAULT_IGNORE_PATTERNS, is_code_file, is_excluded
from prsage_core.utils.diff import count_lines, format_diff_for_prompt, truncate_diff
from prsage_store.base import BaseCache, context_cache_key

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FileChange:
    filename: str
    status: str
    additions: int
    deletions: int
    changes: int
    diff_text: str = ""
    truncated: bool = False
    skipped: bool = False
    skip_reason: str | None = None
    previous_filename: str | None = None


@dataclass(frozen=True)
class PRContext:
    owner: str
    repo: str
    pull_number: int
    title: str
    description: str
    author: str
    base_branch: str
    head_branch: str
    commit_sha: str
    files: tuple[FileChange, ...] = ()
    total_files: int = 0
    reviewed_files: int = 0
    skipped_files: int = 0
    truncated_files: int = 0
    total_additions: int = 0
    total_deletions: int = 0
    warnings: tuple[str, ...] = ()
    from_cache: bool = False
    fetched_at: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())

    @property
    def reviewed(self) -> list[FileChange]:
        return [f for f in self.files if not f.skipped]

    @property
    def included_diff_lines(self) -> int:
        return sum(count_lines(f.diff_text) for f in self.reviewed)

    @property
    def formatted_diff(self) -> str:
        return "\n\n---\n\n".join(
            format_diff_for_prompt(f.filename, f.diff_text, f.additions, f.deletions) for f in self.reviewed
        )

    def to_dict(self) -> dict:
        return dataclasses.asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> PRContext:
        data = dict(data)
        data["files"] = tuple(FileChange(**f) for f in data.get("files", ()))
        data["warnings"] = tuple(data.get("warnings", ()))
        return cls(**data)


class ContextAssembler:
    """Builds PRContext objects from a source-control collaborator.

    ``source`` needs ``get_pull_request`` and ``list_pull_request_files``
    (see prsage_core.gh.pull_request.GitHubSource). Its NotFoundError and
    TransportError propagate unchanged.
    """

    def __init__(
        self,
        source,
        cache: BaseCache,
        config: dict,
        clock: Callable[[], datetime] = lambda: datetime.now(timezone.utc),
    ):
        self.source = source
        self.cache = cache
        self.max_files = config.get("max_files", 50)
        self.max_lines_per_file = config.get("max_diff_lines_per_file", 500)
        self.max_total_lines = config.get("max_total_diff_lines", 5000)
        self.max_chars_per_file = config.get("max_diff_chars_per_file", 15000)
        self.max_file_size_bytes = config.get("max_file_size_bytes", 100_000)
        self.ignore_patterns = DEFAULT_IGNORE_PATTERNS + list(config.get("exclude") or [])
        self._clock = clock

    def assemble(self, owner: str, repo: str, pull_number: int, use_cache: bool = True) -> PRContext:
        pr = self.source.get_pull_request(owner, repo, pull_number)
        commit_sha = pr.head.sha
        key = context_cache_key(owner, repo, pull_number, commit_sha)

        if use_cache:
            cached = self.cache.get(key)
            if cached is not None:
                logger.info("Using cached PR context for %s", key)
                return dataclasses.replace(PRContext.from_dict(cached), from_cache=True)

        start = time.monotonic()
        raw_files = self.source.list_pull_request_files(owner, repo, pull_number)
        files, warnings = self._process_files(raw_files)

        context = PRContext(
            owner=owner,
            repo=repo,
            pull_number=pull_number,
            title=pr.title or "",
            description=pr.body or "",
            author=pr.user.login if pr.user else "unknown",
            base_branch=pr.base.ref,
            head_branch=pr.head.ref,
            commit_sha=commit_sha,
            files=tuple(files),
            total_files=len(files),
            reviewed_files=sum(1 for f in files if not f.skipped),
            skipped_files=sum(1 for f in files if f.skipped),
            truncated_files=sum(1 for f in files if f.truncated and not f.skipped),
            total_additions=sum(f.additions for f in files),
            total_deletions=sum(f.deletions for f in files),
            warnings=tuple(warnings),
            from_cache=False,
            fetched_at=self._clock().isoformat(),
        )

        if use_cache:
            self.cache.put(key, context.to_dict())

        logger.info(
            "Assembled context for %s: %d/%d file(s) reviewed, %d skipped, %d truncated in %dms",
            key,
            context.reviewed_files,
            context.total_files,
            context.skipped_files,
            context.truncated_files,
            int((time.monotonic() - start) * 1000),
        )
        return context

    def _process_files(self, raw_files) -> tuple[list[FileChange], list[str]]:
        files: list[FileChange] = []
        warnings: list[str] = []
        total_lines = 0
        reviewed = 0
        over_file_cap = 0
        over_line_budget = 0

        for raw in raw_files:
            base = FileChange(
                filename=raw.filename,
                status=raw.status,
                additions=raw.additions,
                deletions=raw.deletions,
                changes=raw.changes,
                previous_filename=getattr(raw, "previous_filename", None),
            )

            if reviewed >= self.max_files:
                files.append(dataclasses.replace(base, skipped=True, skip_reason="File limit reached"))
                over_file_cap += 1
                continue
            if total_lines >= self.max_total_lines:
                files.append(dataclasses.replace(base, skipped=True, skip_reason="Total diff limit reached"))
                over_line_budget += 1
                continue

            reason = self._skip_reason(raw)
            if reason is not None:
                files.append(dataclasses.replace(base, skipped=True, skip_reason=reason))
                warnings.append(f"Skipped `{raw.filename}`: {reason.lower()}")
                continue

            remaining = self.max_total_lines - total_lines
            diff, truncated = truncate_diff(raw.patch, min(self.max_lines_per_file, remaining), self.max_chars_per_file)
            files.append(dataclasses.replace(base, diff_text=diff, truncated=truncated))
            total_lines += count_lines(diff)
            reviewed += 1

        if over_file_cap:
            warnings.append(
                f"{over_file_cap} file(s) skipped: only the first {self.max_files} reviewable files are included"
            )
        if over_line_budget:
            warnings.append(
                f"{over_line_budget} file(s) skipped: total diff limit of {self.max_total_lines} lines reached"
            )
        truncated_count = sum(1 for f in files if f.truncated and not f.skipped)
        if truncated_count:
            warnings.append(f"{truncated_count} file(s) had their diffs truncated due to size")

        return files, warnings

    def _skip_reason(self, raw) -> str | None:
        if is_excluded(raw.filename, self.ignore_patterns):
            return "Matches ignore pattern"
        if not raw.patch or not is_code_file(raw.filename):
            return "Binary or empty file"
        if len(raw.patch.encode("utf-8")) > self.max_file_size_bytes:
            return f"Diff larger than {self.max_file_size_bytes} bytes"
        return None
