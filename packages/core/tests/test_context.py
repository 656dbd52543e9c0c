"""Tests for PR context assembly: budgets, skips and caching."""

from types import SimpleNamespace
from unittest.mock import MagicMock

import pytest

from prsage_core.context import ContextAssembler, FileChange, PRContext
from prsage_core.errors import NotFoundError, TransportError
from prsage_core.utils.diff import count_lines
from prsage_store.memory import MemoryCache
from prsage_store.noop import NoOpCache

SHA = "c" * 40

CONFIG = {
    "max_files": 50,
    "max_diff_lines_per_file": 500,
    "max_total_diff_lines": 5000,
    "max_diff_chars_per_file": 15000,
    "max_file_size_bytes": 100_000,
    "exclude": [],
}


def _pr(sha=SHA):
    return SimpleNamespace(
        title="Add caching",
        body="Speeds up lookups",
        user=SimpleNamespace(login="octocat"),
        base=SimpleNamespace(ref="main"),
        head=SimpleNamespace(ref="feature/cache", sha=sha),
    )


def _file(name, lines=3, status="modified", patch=None):
    if patch is None:
        patch = "@@ -1,1 +1,%d @@\n" % lines + "\n".join(f"+line {i}" for i in range(1, lines))
    return SimpleNamespace(
        filename=name,
        status=status,
        additions=lines,
        deletions=0,
        changes=lines,
        patch=patch,
        previous_filename=None,
    )


def _source(files, pr=None):
    source = MagicMock()
    source.get_pull_request.return_value = pr or _pr()
    source.list_pull_request_files.return_value = files
    return source


def _assemble(files, cache=None, **overrides):
    source = _source(files)
    assembler = ContextAssembler(source, cache or NoOpCache(), {**CONFIG, **overrides})
    return assembler.assemble("acme", "widgets", 7), source


class TestAssembly:
    def test_metadata_copied(self):
        context, _ = _assemble([_file("a.py")])
        assert context.title == "Add caching"
        assert context.author == "octocat"
        assert context.base_branch == "main"
        assert context.head_branch == "feature/cache"
        assert context.commit_sha == SHA
        assert context.from_cache is False

    def test_small_files_all_reviewed(self):
        context, _ = _assemble([_file("a.py"), _file("b.py"), _file("c.py")])
        assert context.total_files == 3
        assert context.reviewed_files == 3
        assert context.skipped_files == 0
        assert context.warnings == ()

    def test_files_keep_listing_order(self):
        context, _ = _assemble([_file("z.py"), _file("a.py"), _file("m.py")])
        assert [f.filename for f in context.files] == ["z.py", "a.py", "m.py"]

    def test_ignored_file_skipped_with_own_warning(self):
        context, _ = _assemble([_file("a.py"), _file("package-lock.json")])
        skipped = context.files[1]
        assert skipped.skipped is True
        assert skipped.skip_reason == "Matches ignore pattern"
        assert context.warnings == ("Skipped `package-lock.json`: matches ignore pattern",)

    def test_configured_exclude_patterns_apply(self):
        context, _ = _assemble([_file("app/migrations/0001.py")], exclude=["migrations/"])
        assert context.files[0].skipped is True

    def test_binary_file_skipped(self):
        context, _ = _assemble([_file("logo.png", patch=None), _file("data.bin", patch="")])
        assert all(f.skipped for f in context.files)
        assert context.files[0].skip_reason == "Binary or empty file"

    def test_oversized_file_skipped(self):
        context, _ = _assemble([_file("big.py", lines=200)], max_file_size_bytes=100)
        assert context.files[0].skipped is True
        assert "100 bytes" in context.warnings[0]

    def test_long_diff_truncated(self):
        context, _ = _assemble([_file("a.py", lines=50)], max_diff_lines_per_file=10)
        changed = context.files[0]
        assert changed.truncated is True
        assert changed.skipped is False
        assert count_lines(changed.diff_text) == 10
        assert context.truncated_files == 1
        assert "1 file(s) had their diffs truncated due to size" in context.warnings

    def test_wide_diff_truncated_by_characters(self):
        patch = "@@ -1,1 +1,1 @@\n+" + "x" * 1000
        context, _ = _assemble([_file("a.py", patch=patch)], max_diff_chars_per_file=200)
        assert len(context.files[0].diff_text) <= 200
        assert context.files[0].truncated is True

    def test_file_cap_skips_later_files(self):
        context, _ = _assemble([_file(f"f{i}.py") for i in range(5)], max_files=2)
        assert context.reviewed_files == 2
        assert context.skipped_files == 3
        assert any("only the first 2 reviewable files" in w for w in context.warnings)

    def test_pr_not_found_propagates(self):
        source = MagicMock()
        source.get_pull_request.side_effect = NotFoundError("missing")
        with pytest.raises(NotFoundError):
            ContextAssembler(source, NoOpCache(), CONFIG).assemble("acme", "widgets", 404)

    def test_transport_failure_propagates(self):
        source = _source([])
        source.list_pull_request_files.side_effect = TransportError("reset")
        with pytest.raises(TransportError):
            ContextAssembler(source, NoOpCache(), CONFIG).assemble("acme", "widgets", 7)


class TestTotalLineBudget:
    def test_overflow_marks_later_files_skipped_with_one_warning(self):
        files = [_file(f"f{i}.py", lines=40) for i in range(6)]
        context, _ = _assemble(files, max_total_diff_lines=100)

        assert context.reviewed_files + context.skipped_files == context.total_files
        assert context.included_diff_lines <= 100
        budget_warnings = [w for w in context.warnings if "total diff limit" in w]
        assert len(budget_warnings) == 1
        # Everything after the first budget skip is skipped too.
        first_skip = next(i for i, f in enumerate(context.files) if f.skipped)
        assert all(f.skipped for f in context.files[first_skip:])

    def test_last_included_file_clipped_to_remaining_budget(self):
        files = [_file("a.py", lines=60), _file("b.py", lines=60)]
        context, _ = _assemble(files, max_total_diff_lines=100)
        assert context.files[1].truncated is True
        assert context.included_diff_lines == 100

    @pytest.mark.parametrize("budget", [1, 7, 50, 123])
    def test_invariants_hold_for_any_budget(self, budget):
        files = [_file(f"f{i}.py", lines=n) for i, n in enumerate([5, 30, 2, 80, 11, 40])]
        context, _ = _assemble(files, max_total_diff_lines=budget, max_diff_lines_per_file=25)
        assert context.reviewed_files + context.skipped_files == context.total_files
        assert context.included_diff_lines <= budget
        assert all(count_lines(f.diff_text) <= 25 for f in context.files)


class TestCaching:
    def test_second_assembly_within_ttl_is_served_from_cache(self):
        now = [1000.0]
        cache = MemoryCache(ttl_seconds=60, clock=lambda: now[0])
        source = _source([_file("a.py"), _file("b.py"), _file("c.py")])
        assembler = ContextAssembler(source, cache, CONFIG)

        first = assembler.assemble("acme", "widgets", 7)
        now[0] += 30
        second = assembler.assemble("acme", "widgets", 7)

        assert first.from_cache is False
        assert second.from_cache is True
        assert second.files == first.files
        assert source.list_pull_request_files.call_count == 1

    def test_expired_entry_reassembled(self):
        now = [1000.0]
        cache = MemoryCache(ttl_seconds=60, clock=lambda: now[0])
        source = _source([_file("a.py")])
        assembler = ContextAssembler(source, cache, CONFIG)

        assembler.assemble("acme", "widgets", 7)
        now[0] += 61
        again = assembler.assemble("acme", "widgets", 7)

        assert again.from_cache is False
        assert source.list_pull_request_files.call_count == 2

    def test_new_commit_misses_cache(self):
        cache = MemoryCache(ttl_seconds=60)
        source = _source([_file("a.py")])
        assembler = ContextAssembler(source, cache, CONFIG)
        assembler.assemble("acme", "widgets", 7)

        source.get_pull_request.return_value = _pr(sha="d" * 40)
        assert assembler.assemble("acme", "widgets", 7).from_cache is False

    def test_use_cache_false_bypasses_cache(self):
        cache = MagicMock()
        source = _source([_file("a.py")])
        ContextAssembler(source, cache, CONFIG).assemble("acme", "widgets", 7, use_cache=False)
        cache.get.assert_not_called()
        cache.put.assert_not_called()


def test_context_round_trips_through_dict():
    context = PRContext(
        owner="acme",
        repo="widgets",
        pull_number=1,
        title="t",
        description="",
        author="a",
        base_branch="main",
        head_branch="f",
        commit_sha=SHA,
        files=(FileChange("a.py", "added", 1, 0, 1, diff_text="+x"),),
        total_files=1,
        reviewed_files=1,
        warnings=("w",),
    )
    assert PRContext.from_dict(context.to_dict()) == context


def test_formatted_diff_only_includes_reviewed_files():
    context, _ = _assemble([_file("a.py"), _file("yarn.lock")])
    assert "### File: a.py" in context.formatted_diff
    assert "yarn.lock" not in context.formatted_diff
