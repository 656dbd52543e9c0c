"""Unified-diff helpers: size budgets, prompt formatting and GitHub positions."""

from __future__ import annotations

_CHAR_MARKER = " ... [diff truncated due to size] ..."


def count_lines(text: str) -> int:
    return len(text.splitlines())


def truncate_diff(diff: str, max_lines: int, max_chars: int) -> tuple[str, bool]:
    """Clip a diff to at most ``max_lines`` lines and ``max_chars`` characters.

    Line clipping keeps the head and tail of the patch around a one-line
    omission marker, so hunks at both ends stay visible. The marker counts
    against the line budget. Character clipping appends its marker to the
    last kept line so it never adds a line of its own.
    """
    lines = diff.splitlines()
    truncated = False

    if len(lines) > max_lines:
        keep = max(max_lines - 1, 0)
        tail_count = keep // 2
        head = lines[: keep - tail_count]
        tail = lines[len(lines) - tail_count :] if tail_count else []
        omitted = len(lines) - keep
        lines = head + [f"... [{omitted} lines omitted for brevity] ..."] + tail
        truncated = True

    text = "\n".join(lines)
    if len(text) > max_chars:
        text = text[: max(max_chars - len(_CHAR_MARKER), 0)] + _CHAR_MARKER
        text = text[:max_chars]
        truncated = True

    return text, truncated


def format_diff_for_prompt(filename: str, diff: str, additions: int, deletions: int) -> str:
    return f"### File: {filename}\n**Changes:** +{additions} -{deletions}\n\n```diff\n{diff}\n```"


def get_diff_positions(patch_text: str) -> dict[int, int]:
    """
    Maps new-file line numbers to their cumulative GitHub diff positions.

    GitHub's review comment API requires positions that are cumulative across
    the entire patch, not reset per hunk. The @@ header line is NOT counted;
    position 1 is the first content line immediately below the @@ header.
    """
    positions: dict[int, int] = {}
    diff_position = 0
    file_line: int | None = None

    for line in patch_text.splitlines():
        if line.startswith("@@"):
            file_line = _hunk_start(line)
            continue

        diff_position += 1

        if line.startswith("+") and not line.startswith("+++"):
            if file_line is not None:
                positions[file_line] = diff_position
                file_line += 1
        elif line.startswith("-") and not line.startswith("---"):
            pass
        elif line.startswith("... ["):
            # Omission marker inserted by truncate_diff; line numbers past it are unknown.
            file_line = None
        elif file_line is not None:
            positions[file_line] = diff_position
            file_line += 1

    return positions


def get_patch_line_content(patch_text: str, target_line: int) -> str:
    """Return the source content of a specific new-file line number from a patch."""
    file_line: int | None = None
    for line in patch_text.splitlines():
        if line.startswith("@@"):
            file_line = _hunk_start(line)
            continue
        if line.startswith("-") and not line.startswith("---"):
            continue
        if file_line is not None:
            if file_line == target_line:
                return line[1:] if line and line[0] in ("+", " ") else line
            file_line += 1
    return ""


def _hunk_start(header: str) -> int | None:
    try:
        new_file_range = header.split("+")[1].split(" ")[0]
        return int(new_file_range.split(",")[0])
    except (IndexError, ValueError):
        return None
