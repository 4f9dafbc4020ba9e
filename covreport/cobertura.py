"""Cobertura XML report generation."""

from __future__ import annotations

import time
from dataclasses import dataclass, field
from decimal import Decimal
from pathlib import Path
from xml.sax.saxutils import escape

from covreport.model import ReportConfig, ReportError, Trace, TraceMap

COBERTURA_FILE_NAME = "cobertura.xml"
_ENTITIES = {'"': "&quot;", "'": "&apos;"}


def _escape(text: str) -> str:
    return escape(text, _ENTITIES)


def _format_number(value) -> str:
    """Format numbers with the shortest round-trip digits and no exponent."""
    if isinstance(value, int):
        return str(value)
    if value == int(value):
        return str(int(value))
    return format(Decimal(repr(value)), "f")


def _start(tag: str, attrs: list[tuple[str, str]], empty: bool = False) -> str:
    rendered = "".join(f' {key}="{_escape(value)}"' for key, value in attrs)
    return f"<{tag}{rendered}{'/' if empty else ''}>"


@dataclass
class Line:
    """A line entry of a class with its hit count."""

    number: int
    hits: int


@dataclass
class CoberturaClass:
    """A source file of a package."""

    name: str
    file_name: str
    line_rate: float
    branch_rate: float = 0.0
    complexity: float = 0.0
    lines: list[Line] = field(default_factory=list)


@dataclass
class Package:
    """A directory holding source files."""

    name: str
    line_rate: float
    branch_rate: float = 0.0
    complexity: float = 0.0
    classes: list[CoberturaClass] = field(default_factory=list)


def _render_line(trace: Trace) -> Line:
    if not trace.stats.is_line:
        raise ReportError("Not currently supported")
    return Line(number=trace.line, hits=trace.stats.hits)


def _render_class(config: ReportConfig, traces: TraceMap, file: Path) -> CoberturaClass | None:
    coverable = traces.coverable_in_path(file)
    if coverable == 0:
        return None
    covered = traces.covered_in_path(file)
    return CoberturaClass(
        name=file.stem,
        file_name=str(config.strip_base_dir(file)),
        line_rate=covered / coverable,
        lines=[_render_line(trace) for trace in traces.get_child_traces(file)],
    )


def _render_classes(config: ReportConfig, traces: TraceMap, pkg: Path) -> list[CoberturaClass]:
    rendered = (
        _render_class(config, traces, file) for file in traces.files() if file.parent == pkg
    )
    return [cls for cls in rendered if cls is not None]


def _render_package(config: ReportConfig, traces: TraceMap, pkg: Path) -> Package:
    coverable = traces.coverable_in_path(pkg)
    covered = traces.covered_in_path(pkg)
    return Package(
        name=str(config.strip_base_dir(pkg)),
        line_rate=covered / coverable if coverable > 0 else 0.0,
        classes=_render_classes(config, traces, pkg),
    )


def _render_packages(config: ReportConfig, traces: TraceMap) -> list[Package]:
    dirs = sorted({file.parent for file in traces.files()})
    return [_render_package(config, traces, pkg) for pkg in dirs]


@dataclass
class Report:
    """The whole Cobertura report."""

    timestamp: int
    lines_covered: int
    lines_valid: int
    line_rate: float
    branches_covered: int
    branches_valid: int
    branch_rate: float
    sources: list[Path]
    packages: list[Package]

    @classmethod
    def render(cls, config: ReportConfig, traces: TraceMap) -> "Report":
        packages = _render_packages(config, traces)
        line_rate = traces.coverage_percentage() if packages else 0.0
        return cls(
            timestamp=int(time.time()),
            lines_covered=traces.total_covered(),
            lines_valid=traces.total_coverable(),
            line_rate=line_rate,
            branches_covered=0,
            branches_valid=0,
            branch_rate=0.0,
            sources=[config.base_dir],
            packages=packages,
        )

    def to_xml(self) -> str:
        """The report as an XML document."""
        parts = ['<?xml version="1.0"?>']
        parts.append(
            _start(
                "coverage",
                [
                    ("lines-covered", _format_number(self.lines_covered)),
                    ("lines-valid", _format_number(self.lines_valid)),
                    ("line-rate", _format_number(self.line_rate)),
                    ("branches-covered", _format_number(self.branches_covered)),
                    ("branches-valid", _format_number(self.branches_valid)),
                    ("branch-rate", _format_number(self.branch_rate)),
                    ("complexity", "0"),
                    ("version", "1.9"),
                    ("timestamp", str(self.timestamp)),
                ],
            )
        )
        parts.append("<sources>")
        for source in self.sources:
            parts.append(f"<source>{_escape(str(source))}</source>")
        parts.append("</sources>")
        parts.append("<packages>")
        for package in self.packages:
            parts.append(
                _start(
                    "package",
                    [
                        ("name", package.name),
                        ("line-rate", _format_number(package.line_rate)),
                        ("branch-rate", _format_number(package.branch_rate)),
                        ("complexity", _format_number(package.complexity)),
                    ],
                )
            )
            parts.append("<classes>")
            for cls in package.classes:
                parts.append(
                    _start(
                        "class",
                        [
                            ("name", cls.name),
                            ("filename", cls.file_name),
                            ("line-rate", _format_number(cls.line_rate)),
                            ("branch-rate", _format_number(cls.branch_rate)),
                            ("complexity", _format_number(cls.complexity)),
                        ],
                    )
                )
                parts.append("<methods/>")
                parts.append("<lines>")
                for line in cls.lines:
                    parts.append(
                        _start(
                            "line",
                            [("number", str(line.number)), ("hits", str(line.hits))],
                            empty=True,
                        )
                    )
                parts.append("</lines>")
                parts.append("</class>")
            parts.append("</classes>")
            parts.append("</package>")
        parts.append("</packages>")
        parts.append("</coverage>")
        return "".join(parts)

    def export(self, config: ReportConfig) -> None:
        """Write cobertura.xml into the configured output directory."""
        file_path = config.output_dir / COBERTURA_FILE_NAME
        try:
            file_path.write_bytes(self.to_xml().encode("utf-8"))
        except OSError as exc:
            raise ReportError(f"Export Error {exc}") from exc


def report(traces: TraceMap, config: ReportConfig) -> None:
    """Render the Cobertura report and write it out."""
    Report.render(config, traces).export(config)