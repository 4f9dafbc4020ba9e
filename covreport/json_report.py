"""JSON coverage report holding every traced source file and its traces."""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path

from covreport.model import ReportConfig, ReportError, Trace, TraceMap

JSON_FILE_NAME = "tarpaulin-report.json"


def _read_source(path: Path) -> str:
    with open(path, encoding="utf-8", newline="") as handle:
        return handle.read()


@dataclass
class SourceFile:
    """A traced source file together with its contents and coverage counts."""

    path: list[str]
    content: str
    traces: list[Trace]
    covered: int
    coverable: int

    @classmethod
    def read(cls, path, coverage_data: TraceMap) -> "SourceFile":
        """Read the file at path; raises OSError or UnicodeDecodeError."""
        path = Path(path)
        return cls(
            path=list(path.parts),
            content=_read_source(path),
            traces=list(coverage_data.get_child_traces(path)),
            covered=coverage_data.covered_in_path(path),
            coverable=coverage_data.coverable_in_path(path),
        )

    def to_dict(self) -> dict:
        return {
            "path": list(self.path),
            "content": self.content,
            "traces": [trace.to_dict() for trace in self.traces],
            "covered": self.covered,
            "coverable": self.coverable,
        }


@dataclass
class CoverageReport:
    """All readable source files of a trace map."""

    files: list[SourceFile] = field(default_factory=list)

    @classmethod
    def from_trace_map(cls, coverage_data: TraceMap) -> "CoverageReport":
        """Build the report, leaving out files that cannot be read."""
        files = []
        for path, _ in coverage_data.items():
            try:
                files.append(SourceFile.read(path, coverage_data))
            except (OSError, UnicodeDecodeError):
                continue
        return cls(files)

    def __iter__(self):
        return iter(self.files)

    def covered(self) -> list[int]:
        return [source.covered for source in self.files]

    def coverable(self) -> list[int]:
        return [source.coverable for source in self.files]

    def to_dict(self) -> dict:
        return {"files": [source.to_dict() for source in self.files]}

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))


def export(coverage_data: TraceMap, config: ReportConfig) -> None:
    """Write tarpaulin-report.json into the configured output directory."""
    file_path = config.output_dir / JSON_FILE_NAME
    text = CoverageReport.from_trace_map(coverage_data).to_json()
    try:
        with open(file_path, "w", encoding="utf-8", newline="") as handle:
            handle.write(text)
    except OSError as exc:
        raise ReportError(str(exc)) from exc