"""Producing the requested coverage reports and the console summary."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import Iterable, TextIO

from covreport import cobertura, coveralls, html, json_report, lcov
from covreport.model import (
    OutputFile,
    ReportConfig,
    ReportError,
    TraceMap,
    coverage_percentage,
)

logger = logging.getLogger(__name__)


def _format_group(group: list[int]) -> str:
    first, last = group[0], group[-1]
    return f"{first}" if first == last else f"{first}-{last}"


def accumulate_lines(lines: Iterable[int]) -> list[str]:
    """Collapse sorted line numbers into runs such as '3-5' and '8'."""
    groups: list[str] = []
    current: list[int] = []
    for line in lines:
        if current and line != current[-1] + 1:
            groups.append(_format_group(current))
            current = []
        current.append(line)
    if current:
        groups.append(_format_group(current))
    return groups


def _report_dir(config: ReportConfig) -> Path:
    return config.target_dir / "tarpaulin"


def get_previous_result(config: ReportConfig) -> TraceMap | None:
    """The trace map saved by the last run, if there is a readable one."""
    report_dir = _report_dir(config)
    if report_dir.exists():
        try:
            with open(report_dir / config.report_name(), encoding="utf-8") as handle:
                data = json.load(handle)
        except (OSError, ValueError):
            return None
        try:
            return TraceMap.from_dict(data)
        except ReportError:
            return None
    try:
        report_dir.mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.error("Failed to create report directory: %s", exc)
    return None


def print_missing_lines(config: ReportConfig, result: TraceMap, out: TextIO | None = None) -> None:
    """Print the uncovered lines of each file, grouped into runs."""
    out = out if out is not None else sys.stdout
    print("|| Uncovered Lines:", file=out)
    for file, traces in result.items():
        path = config.strip_base_dir(file)
        uncovered = sorted(
            trace.line for trace in traces if trace.stats.is_line and trace.stats.hits == 0
        )
        groups = accumulate_lines(uncovered)
        if groups:
            print(f"|| {path}: {', '.join(groups)}", file=out)


def print_summary(config: ReportConfig, result: TraceMap, out: TextIO | None = None) -> None:
    """Print per-file and total coverage, with the change since the last run."""
    out = out if out is not None else sys.stdout
    last = get_previous_result(config)
    if last is None:
        last = TraceMap()
    print("|| Tested/Total Lines:", file=out)
    for file in result.files():
        coverable = result.coverable_in_path(file)
        if coverable == 0:
            continue
        path = config.strip_base_dir(file)
        covered = result.covered_in_path(file)
        if last.contains_file(file) and last.coverable_in_path(file) > 0:
            last_percent = coverage_percentage(last.get_child_traces(file))
            current_percent = coverage_percentage(result.get_child_traces(file))
            delta = 100.0 * (current_percent - last_percent)
            print(f"|| {path}: {covered}/{coverable} {delta:+.2f}%", file=out)
        else:
            print(f"|| {path}: {covered}/{coverable}", file=out)
    percent = result.coverage_percentage() * 100.0
    totals = f"{percent:.2f}% coverage, {result.total_covered()}/{result.total_coverable()} lines covered"
    if last.is_empty():
        print(f"|| \n{totals}", file=out)
    else:
        delta = percent - 100.0 * last.coverage_percentage()
        print(f"|| \n{totals}, {delta:+.2f}% change in coverage", file=out)


def generate_requested_reports(config: ReportConfig, result: TraceMap) -> None:
    """Send to coveralls if asked, write every requested format and print a summary."""
    if config.is_coveralls:
        coveralls.export(result, config)
        logger.info("Coverage data sent")
    logger.info("Coverage Results:")

    if not config.is_default_output_dir():
        try:
            config.output_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise ReportError(
                "Failed to create or locate custom output directory: "
                f'"{config.output_directory}"'
            ) from exc

    if config.verbose or not config.generate:
        print_missing_lines(config, result)
    for output in config.generate:
        if output is OutputFile.XML:
            cobertura.report(result, config)
        elif output is OutputFile.HTML:
            html.export(result, config, get_previous_result(config))
        elif output is OutputFile.LCOV:
            lcov.export(result, config)
        elif output is OutputFile.JSON:
            json_report.export(result, config)
        elif output is OutputFile.STDOUT:
            if not config.verbose:
                print_missing_lines(config, result)
        else:
            raise ReportError("Output format is currently not supported!")
    print_summary(config, result)


def report_coverage(config: ReportConfig, result: TraceMap) -> None:
    """Produce the requested reports and save the run for later comparison."""
    if not result.is_empty():
        generate_requested_reports(config, result)
        report_dir = _report_dir(config)
        try:
            report_dir.mkdir(parents=True, exist_ok=True)
        except OSError:
            pass
        try:
            handle = open(report_dir / config.report_name(), "w", encoding="utf-8")
        except OSError as exc:
            raise ReportError("Failed to create run report") from exc
        with handle:
            try:
                json.dump(result.to_dict(), handle)
            except (OSError, TypeError, ValueError) as exc:
                raise ReportError("Failed to save run report") from exc
    elif not config.no_run:
        raise ReportError("No coverage results collected.")