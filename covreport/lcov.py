"""LCOV tracefile output."""

from __future__ import annotations

from typing import TextIO

from covreport.model import ReportConfig, ReportError, TraceMap

LCOV_FILE_NAME = "lcov.info"


def write_lcov(stream: TextIO, coverage_data: TraceMap) -> None:
    """Write the coverage data as LCOV records, one record per non-empty file."""
    for path, traces in coverage_data.items():
        if not traces:
            continue
        stream.write("TN:\n")
        stream.write(f"SF:{path}\n")

        functions: list[str] = []
        function_hits: list[str] = []
        line_data: list[tuple[int, int]] = []

        for trace in traces:
            if trace.fn_name is not None:
                if not trace.stats.is_line:
                    raise ReportError("Function doesn't have hits number")
                functions.append(f"FN:{trace.line},{trace.fn_name}")
                function_hits.append(f"FNDA:{trace.stats.hits},{trace.fn_name}")
            if trace.stats.is_line:
                line_data.append((trace.line, trace.stats.hits))

        for entry in functions:
            stream.write(f"{entry}\n")
        stream.write(f"FNF:{len(functions)}\n")
        for entry in function_hits:
            stream.write(f"{entry}\n")
        for line, hits in line_data:
            stream.write(f"DA:{line},{hits}\n")
        stream.write(f"LF:{len(line_data)}\n")
        stream.write(f"LH:{sum(1 for _, hits in line_data if hits != 0)}\n")
        stream.write("end_of_record\n")


def export(coverage_data: TraceMap, config: ReportConfig) -> None:
    """Write lcov.info into the configured output directory."""
    file_path = config.output_dir / LCOV_FILE_NAME
    try:
        stream = open(file_path, "w", encoding="utf-8", newline="\n")
    except OSError as exc:
        raise ReportError(f"File is not writeable: {exc}") from exc
    with stream:
        try:
            write_lcov(stream, coverage_data)
        except OSError as exc:
            raise ReportError(f"Failed to write lcov report: {exc}") from exc