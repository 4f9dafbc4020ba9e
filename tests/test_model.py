import json
from pathlib import Path

import pytest

from covreport.model import (
    CoverageStat,
    OutputFile,
    ReportConfig,
    ReportError,
    StatKind,
    Trace,
    TraceMap,
    coverage_percentage,
)


def _sample_map():
    traces = TraceMap()
    traces.add_file("fake/examples/foo.rs")
    traces.add_trace("fake/src/lib.rs", Trace.stub(2))
    traces.add_trace("fake/src/lib.rs", Trace(line=3, address={2}, length=1))
    return traces


def test_totals_before_and_after_hit():
    traces = _sample_map()
    assert traces.total_covered() == 0
    assert traces.total_coverable() == 2
    assert traces.coverage_percentage() == 0.0

    traces.increment_hit(2)
    assert traces.total_covered() == 1
    assert traces.total_coverable() == 2
    assert traces.coverage_percentage() == 0.5


def test_files_are_sorted():
    traces = TraceMap()
    traces.add_trace("foo.rs", Trace(line=4, stats=CoverageStat(1)))
    traces.add_trace("bar.rs", Trace(line=14, stats=CoverageStat(9)))
    assert traces.files() == [Path("bar.rs"), Path("foo.rs")]
    assert [p for p, _ in traces.items()] == traces.files()


def test_traces_kept_in_line_order():
    traces = TraceMap()
    traces.add_trace("foo.rs", Trace(line=5))
    traces.add_trace("foo.rs", Trace(line=4))
    lines = [t.line for t in traces.get_child_traces("foo.rs")]
    assert lines == sorted(lines)


def test_directory_aggregates_children():
    traces = _sample_map()
    traces.increment_hit(2)
    assert traces.coverable_in_path("fake") == traces.total_coverable()
    assert traces.covered_in_path("fake/src") == traces.covered_in_path("fake/src/lib.rs")
    assert traces.coverable_in_path("fake/examples") == 0


def test_contains_and_empty():
    traces = TraceMap()
    assert traces.is_empty()
    traces.add_file("a.rs")
    assert not traces.is_empty()
    assert traces.contains_file(Path("a.rs"))
    assert not traces.contains_file("b.rs")


def test_increment_ignores_non_line_stats():
    traces = TraceMap()
    traces.add_trace(
        "a.rs", Trace(line=1, address={7}, stats=CoverageStat(0, StatKind.BRANCH))
    )
    traces.increment_hit(7)
    assert traces.total_covered() == 0


def test_trace_map_round_trip():
    traces = _sample_map()
    traces.increment_hit(2)
    restored = TraceMap.from_dict(json.loads(json.dumps(traces.to_dict())))
    assert restored == traces
    assert restored.total_covered() == traces.total_covered()


def test_trace_round_trip_and_stat_format():
    trace = Trace(line=14, address={1, 3}, length=2, stats=CoverageStat(9), fn_name="baz")
    data = trace.to_dict()
    assert data["stats"] == {"Line": 9}
    assert Trace.from_dict(data) == trace


@pytest.mark.parametrize("bad", [{}, {"traces": 5}, {"traces": {"a.rs": [{"line": 1}]}}])
def test_from_dict_rejects_malformed(bad):
    with pytest.raises(ReportError):
        TraceMap.from_dict(bad)


def test_coverage_percentage_of_nothing():
    assert coverage_percentage([]) == 0.0


def test_coverage_percentage_matches_map():
    traces = _sample_map()
    traces.increment_hit(2)
    assert coverage_percentage(traces.get_child_traces("fake")) == traces.coverage_percentage()


def test_strip_base_dir():
    config = ReportConfig(manifest=Path("fake/Cargo.toml"))
    assert config.strip_base_dir(Path("fake/src/lib.rs")) == Path("src/lib.rs")
    assert config.strip_base_dir("other/x.rs") == Path("other/x.rs")


def test_report_name():
    assert ReportConfig().report_name() == "coverage.json"
    assert ReportConfig(project_name="demo").report_name() == "demo-coverage.json"


def test_output_dir_settings(tmp_path):
    config = ReportConfig()
    assert config.is_default_output_dir()
    config = ReportConfig(output_directory=tmp_path, generate=[OutputFile.LCOV])
    assert not config.is_default_output_dir()
    assert config.output_dir == tmp_path