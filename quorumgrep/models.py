"""Data carried between the grep client, the handlers and the search service."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Protocol, runtime_checkable


@dataclass(frozen=True)
class GrepOptions:
    """Search options understood by every node."""

    pattern: str = ""
    after: int = 0
    before: int = 0
    around: int = 0
    count: bool = False
    ignore_case: bool = False
    invert: bool = False
    fixed: bool = False
    line_num: bool = False

    def context_overlap(self) -> int:
        """Number of lines that neighbouring chunks must share to keep context intact."""
        return max(self.after, self.before, self.around)


@dataclass
class GrepConfig:
    """Options and input files requested on the command line."""

    options: GrepOptions
    files: list[str] = field(default_factory=list)


@dataclass
class Task:
    """A chunk of input together with the input line numbers it covers."""

    data: bytes = b""
    index: int = 0
    line_numbers: list[int] = field(default_factory=list)
    options: GrepOptions = field(default_factory=GrepOptions)


@dataclass(frozen=True)
class Match:
    """One output line and its line number in the whole input."""

    content: bytes
    line_number: int


@dataclass
class Result:
    """Outcome of searching one chunk."""

    matches: list[Match] = field(default_factory=list)
    match_count: int = 0
    error: str = ""
    task_index: int = 0


@runtime_checkable
class GrepService(Protocol):
    """Anything able to search a chunk of input."""

    def process_chunk(self, task: Task) -> Result:
        """Search ``task`` and return the lines to print for it."""