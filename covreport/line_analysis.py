"""Per-file line analysis: which lines to ignore, force-cover or fold together."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Iterable, Mapping, MutableMapping

_SINGLE_LINE_COMMENT = re.compile(r"\s*//")
_IGNORABLE = re.compile(r"^((\s*///)|([\[\]\{\}\(\)\s;\?,/]*$))")
_MULTI_START = "/*"
_MULTI_END = "*/"


def _source_lines(text: str) -> list[str]:
    """Split text into lines the way the analysed sources are numbered."""
    parts = text.split("\n")
    if parts and parts[-1] == "":
        parts.pop()
    return [part[:-1] if part.endswith("\r") else part for part in parts]


class SubResult(Enum):
    """Reachability of an analysed expression or statement list."""

    OK = "ok"
    DEFINITE = "definite"
    UNREACHABLE = "unreachable"

    def __add__(self, other: "SubResult") -> "SubResult":
        if not isinstance(other, SubResult):
            return NotImplemented
        if SubResult.DEFINITE in (self, other):
            return SubResult.DEFINITE
        if SubResult.UNREACHABLE in (self, other):
            return SubResult.UNREACHABLE
        return SubResult.OK

    def is_reachable(self) -> bool:
        return self is not SubResult.UNREACHABLE

    def is_unreachable(self) -> bool:
        return not self.is_reachable()


@dataclass
class LineAnalysis:
    """Analysis results for a single source file.

    `ignore` holds lines excluded from coverage, `cover` lines that must be
    counted, and `logical_lines` maps physical lines onto the logical line
    they belong to. `all_ignored` excludes the whole file.
    """

    ignore: set[int] = field(default_factory=set)
    cover: set[int] = field(default_factory=set)
    logical_lines: dict[int, int] = field(default_factory=dict)
    all_ignored: bool = False
    max_line: int = 0

    @classmethod
    def from_file(cls, path) -> "LineAnalysis":
        """An empty analysis that knows how many lines the file has."""
        data = Path(path).read_bytes()
        count = data.count(b"\n")
        if data and not data.endswith(b"\n"):
            count += 1
        return cls(max_line=count)

    def ignore_all(self) -> None:
        """Ignore every line in the file."""
        self.ignore.clear()
        self.cover.clear()
        self.all_ignored = True

    def ignore_span(self, start: int, end: int) -> None:
        """Ignore the lines from start to end inclusive."""
        self.add_to_ignore(range(start, end + 1))

    def cover_span(self, start: int, end: int, contents: str | None = None) -> None:
        """Force coverage of the code lines in the span, skipping comments."""
        useful: set[int] = set()
        if contents is not None:
            in_comment = False
            lines = _source_lines(contents)
            first = max(start - 1, 0)
            for number, line in enumerate(lines[first : first + (end - start)], first + 1):
                if _MULTI_START in line:
                    if _MULTI_END not in line:
                        in_comment = True
                    is_code = False
                elif in_comment:
                    if _MULTI_END in line:
                        in_comment = False
                    is_code = False
                else:
                    is_code = True
                if is_code and not _SINGLE_LINE_COMMENT.search(line):
                    useful.add(number)
        self.cover.update(
            line
            for line in range(start, end + 1)
            if line not in self.ignore and line in useful
        )

    def should_ignore(self, line: int) -> bool:
        return (
            line in self.ignore
            or self.all_ignored
            or 0 < self.max_line < line
        )

    def add_to_ignore(self, lines: Iterable[int]) -> None:
        """Ignore the given lines, unless the whole file is already ignored."""
        if self.all_ignored:
            return
        for line in lines:
            self.ignore.add(line)
            self.cover.discard(line)


def should_ignore(analyses: Mapping[Path, LineAnalysis], path, line: int) -> bool:
    """True if the line of the file is ignored by its analysis."""
    analysis = analyses.get(Path(path))
    return analysis is not None and analysis.should_ignore(line)


def normalise(analyses: Mapping[Path, LineAnalysis], path, line: int) -> tuple[Path, int]:
    """Map a physical line onto the logical line that stands for it."""
    path = Path(path)
    analysis = analyses.get(path)
    if analysis is None:
        return path, line
    return path, analysis.logical_lines.get(line, line)


def find_ignorable_lines(contents: str) -> list[int]:
    """Line numbers holding only punctuation, doc comments or `} else {`."""
    found: set[int] = set()
    for number, line in enumerate(_source_lines(contents), 1):
        if _IGNORABLE.match(line) or "".join(line.split()) == "}else{":
            found.add(number)
    return sorted(found)


def maybe_ignore_first_line(path, analyses: MutableMapping[Path, LineAnalysis]) -> None:
    """Ignore line 1 of the file unless it starts a public item or function."""
    path = Path(path)
    try:
        with path.open("rb") as handle:
            raw = handle.readline()
    except OSError:
        return
    if not raw:
        return
    try:
        first = raw.decode("utf-8")
    except UnicodeDecodeError:
        return
    if first.endswith("\n"):
        first = first[:-1]
        if first.endswith("\r"):
            first = first[:-1]
    if not (first.startswith("pub") or first.startswith("fn")):
        analyses.setdefault(path, LineAnalysis()).add_to_ignore([1])