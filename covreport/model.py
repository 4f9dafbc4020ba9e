"""Coverage data model: traces, trace maps and report configuration."""

from __future__ import annotations

from bisect import insort
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path, PurePath
from typing import Iterable, Iterator


class ReportError(Exception):
    """Raised when a coverage report cannot be produced."""


class StatKind(Enum):
    """The kind of statistic a trace records."""

    LINE = "Line"
    BRANCH = "Branch"
    CONDITION = "Condition"


@dataclass(frozen=True)
class CoverageStat:
    """A hit count of a given kind; line statistics are the common case."""

    hits: int = 0
    kind: StatKind = StatKind.LINE

    @property
    def is_line(self) -> bool:
        return self.kind is StatKind.LINE

    def to_dict(self) -> dict:
        return {self.kind.value: self.hits}

    @classmethod
    def from_dict(cls, data) -> "CoverageStat":
        if not isinstance(data, dict) or len(data) != 1:
            raise ReportError(f"Malformed coverage statistic: {data!r}")
        ((key, hits),) = data.items()
        try:
            return cls(int(hits), StatKind(key))
        except (TypeError, ValueError) as exc:
            raise ReportError(f"Malformed coverage statistic: {data!r}") from exc


@dataclass
class Trace:
    """Coverage information for one source line."""

    line: int
    address: set[int] = field(default_factory=set)
    length: int = 0
    stats: CoverageStat = field(default_factory=CoverageStat)
    fn_name: str | None = None

    @classmethod
    def stub(cls, line: int) -> "Trace":
        """A trace for a coverable line with no known address."""
        return cls(line=line)

    @property
    def covered(self) -> bool:
        return self.stats.hits > 0

    def to_dict(self) -> dict:
        return {
            "line": self.line,
            "address": sorted(self.address),
            "length": self.length,
            "stats": self.stats.to_dict(),
            "fn_name": self.fn_name,
        }

    @classmethod
    def from_dict(cls, data) -> "Trace":
        try:
            return cls(
                line=int(data["line"]),
                address=set(data.get("address", ())),
                length=int(data.get("length", 0)),
                stats=CoverageStat.from_dict(data["stats"]),
                fn_name=data.get("fn_name"),
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise ReportError(f"Malformed trace: {data!r}") from exc


def coverage_percentage(traces: Iterable[Trace]) -> float:
    """Fraction of the given traces that were hit, 0.0 when there are none."""
    total = 0
    covered = 0
    for trace in traces:
        total += 1
        covered += trace.covered
    return covered / total if total else 0.0


def _is_under(child: PurePath, root: PurePath) -> bool:
    return child.parts[: len(root.parts)] == root.parts


class TraceMap:
    """Traces grouped by source file, iterated in path order."""

    def __init__(self) -> None:
        self._traces: dict[Path, list[Trace]] = {}

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, TraceMap):
            return NotImplemented
        return self._traces == other._traces

    def __repr__(self) -> str:
        return f"TraceMap({self._traces!r})"

    def add_file(self, path) -> None:
        self._traces.setdefault(Path(path), [])

    def add_trace(self, path, trace: Trace) -> None:
        insort(self._traces.setdefault(Path(path), []), trace, key=lambda t: t.line)

    def increment_hit(self, address: int) -> None:
        """Count one hit for every line trace covering the address."""
        for traces in self._traces.values():
            for trace in traces:
                if address in trace.address and trace.stats.is_line:
                    trace.stats = replace(trace.stats, hits=trace.stats.hits + 1)

    def files(self) -> list[Path]:
        return sorted(self._traces)

    def items(self) -> list[tuple[Path, list[Trace]]]:
        return [(path, self._traces[path]) for path in self.files()]

    def get_child_traces(self, path) -> Iterator[Trace]:
        """Traces of the file at path, or of every file below that directory."""
        root = Path(path)
        for file, traces in self.items():
            if _is_under(file, root):
                yield from traces

    def contains_file(self, path) -> bool:
        return Path(path) in self._traces

    def is_empty(self) -> bool:
        return not self._traces

    def covered_in_path(self, path) -> int:
        return sum(1 for trace in self.get_child_traces(path) if trace.covered)

    def coverable_in_path(self, path) -> int:
        return sum(1 for _ in self.get_child_traces(path))

    def _all_traces(self) -> Iterator[Trace]:
        for _, traces in self.items():
            yield from traces

    def total_covered(self) -> int:
        return sum(1 for trace in self._all_traces() if trace.covered)

    def total_coverable(self) -> int:
        return sum(1 for _ in self._all_traces())

    def coverage_percentage(self) -> float:
        return coverage_percentage(self._all_traces())

    def to_dict(self) -> dict:
        return {
            "traces": {
                str(path): [trace.to_dict() for trace in traces]
                for path, traces in self.items()
            }
        }

    @classmethod
    def from_dict(cls, data) -> "TraceMap":
        try:
            files = data["traces"]
            entries = files.items()
        except (KeyError, TypeError, AttributeError) as exc:
            raise ReportError("Malformed trace map") from exc
        result = cls()
        for path, traces in entries:
            result.add_file(path)
            for trace in traces:
                result.add_trace(path, Trace.from_dict(trace))
        return result


class OutputFile(Enum):
    """Report formats that can be generated."""

    JSON = "Json"
    STDOUT = "Stdout"
    XML = "Xml"
    HTML = "Html"
    LCOV = "Lcov"


@dataclass
class ReportConfig:
    """Settings that decide which reports are produced and where."""

    manifest: Path = Path("Cargo.toml")
    output_directory: Path | None = None
    target_directory: Path | None = None
    generate: list[OutputFile] = field(default_factory=list)
    verbose: bool = False
    debug: bool = False
    no_run: bool = False
    coveralls: str | None = None
    ci_tool: str | None = None
    report_uri: str | None = None
    project_name: str | None = None

    def __post_init__(self) -> None:
        self.manifest = Path(self.manifest)
        if self.output_directory is not None:
            self.output_directory = Path(self.output_directory)
        if self.target_directory is not None:
            self.target_directory = Path(self.target_directory)

    @property
    def root(self) -> Path:
        return self.manifest.parent

    @property
    def base_dir(self) -> Path:
        return self.root

    @property
    def output_dir(self) -> Path:
        return self.output_directory if self.output_directory is not None else Path.cwd()

    @property
    def target_dir(self) -> Path:
        if self.target_directory is not None:
            return self.target_directory
        return self.root / "target"

    @property
    def is_coveralls(self) -> bool:
        return self.coveralls is not None

    def strip_base_dir(self, path) -> Path:
        """Path relative to the project base, or unchanged if outside it."""
        path = Path(path)
        try:
            return path.relative_to(self.base_dir)
        except ValueError:
            return path

    def report_name(self) -> str:
        if self.project_name:
            return f"{self.project_name}-coverage.json"
        return "coverage.json"

    def is_default_output_dir(self) -> bool:
        return self.output_directory is None