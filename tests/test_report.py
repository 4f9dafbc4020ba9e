import io
import json

import pytest

from covreport.model import CoverageStat, OutputFile, ReportConfig, ReportError, Trace, TraceMap
from covreport.report import (
    accumulate_lines,
    generate_requested_reports,
    get_previous_result,
    print_missing_lines,
    print_summary,
    report_coverage,
)


def _trace(line, hits):
    return Trace(line=line, stats=CoverageStat(hits))


@pytest.fixture
def project(tmp_path):
    src = tmp_path / "src"
    src.mkdir()
    lib = src / "lib.rs"
    lib.write_text("fn a() {}\nfn b() {}\nfn c() {}\n", encoding="utf-8")
    done = src / "done.rs"
    done.write_text("fn d() {}\n", encoding="utf-8")
    traces = TraceMap()
    traces.add_trace(lib, _trace(1, 1))
    traces.add_trace(lib, _trace(2, 0))
    traces.add_trace(lib, _trace(3, 0))
    traces.add_trace(done, _trace(1, 4))
    config = ReportConfig(
        manifest=tmp_path / "Cargo.toml",
        output_directory=tmp_path / "out",
        target_directory=tmp_path / "target",
    )
    return traces, config


def test_accumulate_lines():
    assert accumulate_lines([]) == []
    assert accumulate_lines([4]) == ["4"]
    assert accumulate_lines([1, 2, 3, 5, 7, 8]) == ["1-3", "5", "7-8"]


def test_accumulate_lines_covers_every_line():
    lines = [2, 3, 4, 9, 11, 12]
    expanded = []
    for group in accumulate_lines(lines):
        first, _, last = group.partition("-")
        expanded.extend(range(int(first), int(last or first) + 1))
    assert expanded == lines


def test_print_missing_lines(project):
    traces, config = project
    out = io.StringIO()
    print_missing_lines(config, traces, out)
    lines = out.getvalue().splitlines()
    assert lines[0] == "|| Uncovered Lines:"
    assert len(lines) == 2
    assert lines[1].startswith("|| src/lib.rs: ")


def test_previous_result_absent_creates_directory(project):
    _, config = project
    assert get_previous_result(config) is None
    assert (config.target_dir / "tarpaulin").is_dir()


def test_report_coverage_saves_run(project, capsys):
    traces, config = project
    report_coverage(config, traces)
    saved = config.target_dir / "tarpaulin" / "coverage.json"
    assert json.loads(saved.read_text(encoding="utf-8")) == traces.to_dict()
    assert get_previous_result(config) == traces
    assert "|| Tested/Total Lines:" in capsys.readouterr().out


def test_report_coverage_empty(project):
    _, config = project
    with pytest.raises(ReportError, match="No coverage results collected."):
        report_coverage(config, TraceMap())
    config.no_run = True
    report_coverage(config, TraceMap())
    assert not (config.target_dir / "tarpaulin").exists()


def test_summary_without_previous(project):
    traces, config = project
    out = io.StringIO()
    print_summary(config, traces, out)
    text = out.getvalue()
    assert text.startswith("|| Tested/Total Lines:\n")
    assert "% coverage" in text
    assert "change in coverage" not in text


def test_summary_with_previous(project, capsys):
    traces, config = project
    report_coverage(config, traces)
    out = io.StringIO()
    print_summary(config, traces, out)
    text = out.getvalue()
    assert "change in coverage" in text
    assert any(line.endswith(" +0.00%") for line in text.splitlines())


def test_generate_requested_reports(project, capsys):
    traces, config = project
    config.generate = [OutputFile.LCOV, OutputFile.JSON, OutputFile.XML]
    generate_requested_reports(config, traces)
    assert (config.output_dir / "lcov.info").read_text(encoding="utf-8").count("end_of_record") == 2
    report = json.loads((config.output_dir / "tarpaulin-report.json").read_text(encoding="utf-8"))
    assert len(report["files"]) == len(traces.files())
    assert (config.output_dir / "cobertura.xml").exists()
    assert "|| Uncovered Lines:" not in capsys.readouterr().out