"""Regular-expression search over one chunk of lines."""

from __future__ import annotations

import re
from collections.abc import Sequence

from .models import GrepOptions, Match, Result, Task

_META_CHARACTERS = frozenset("\\.+*?()|[]{}^$")


def _quote_meta(pattern: str) -> str:
    return "".join("\\" + ch if ch in _META_CHARACTERS else ch for ch in pattern)


def make_pattern(options: GrepOptions) -> re.Pattern[str]:
    """Compile the search expression described by ``options``.

    Raises ValueError if the pattern is not a valid regular expression.
    """
    pattern = options.pattern
    if options.fixed:
        pattern = _quote_meta(pattern)
    if options.ignore_case:
        pattern = "(?i)" + pattern
    try:
        return re.compile(pattern)
    except re.error as exc:
        raise ValueError(f"invalid pattern {pattern!r}: {exc}") from exc


def match_line(pattern: re.Pattern[str], line: bytes, options: GrepOptions) -> bool:
    """Tell whether ``line`` is selected, honouring inverted matching."""
    found = pattern.search(line.decode("utf-8", "surrogateescape")) is not None
    return found != options.invert


def context_range(pivot: int, lines_len: int, options: GrepOptions) -> tuple[int, int]:
    """Return the inclusive range of line indexes to print around ``pivot``."""
    before, after = options.before, options.after
    if options.around > 0:
        before = after = options.around
    return max(pivot - before, 0), min(pivot + after, lines_len - 1)


def find_matches(lines: Sequence[bytes], pattern: re.Pattern[str], task: Task) -> list[Match]:
    """Collect selected lines with their context, each line at most once."""
    matches: list[Match] = []
    collected: set[int] = set()

    for pivot, line in enumerate(lines):
        if not match_line(pattern, line, task.options):
            continue
        start, end = context_range(pivot, len(lines), task.options)
        for index in range(start, end + 1):
            if index in collected:
                continue
            collected.add(index)
            matches.append(Match(lines[index], task.line_numbers[index]))

    return matches


class RegexGrepService:
    """Searches chunks of input with regular expressions."""

    def process_chunk(self, task: Task) -> Result:
        """Search the lines of ``task`` and return what should be printed."""
        lines = task.data.split(b"\n")
        if lines and not lines[-1]:
            lines.pop()

        pattern = make_pattern(task.options)
        matches = find_matches(lines, pattern, task)
        return Result(matches=matches, match_count=len(matches))