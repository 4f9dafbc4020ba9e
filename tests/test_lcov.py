import io

import pytest

from covreport import lcov
from covreport.model import CoverageStat, ReportConfig, ReportError, StatKind, Trace, TraceMap


def _sample_traces() -> TraceMap:
    traces = TraceMap()
    traces.add_trace("foo.rs", Trace(line=4, stats=CoverageStat(1)))
    traces.add_trace("foo.rs", Trace(line=5, stats=CoverageStat(0)))
    traces.add_trace("bar.rs", Trace(line=14, stats=CoverageStat(9), fn_name="baz"))
    return traces


def _parse(text: str) -> list[dict]:
    records = []
    current: dict = {}
    for line in text.splitlines():
        key, _, value = line.partition(":")
        if key == "end_of_record":
            records.append(current)
            current = {}
        elif key == "SF":
            current["SF"] = value
        elif key in ("FN", "DA", "FNDA"):
            current.setdefault(key, []).append(value)
        elif key in ("LF", "LH", "FNF"):
            current[key] = int(value)
    return records


def test_generate_valid_lcov():
    out = io.StringIO()
    lcov.write_lcov(out, _sample_traces())
    records = _parse(out.getvalue())
    assert [r["SF"] for r in records] == ["bar.rs", "foo.rs"]
    bar, foo = records
    assert bar["FN"] == ["14,baz"]
    assert bar["DA"] == ["14,9"]
    assert bar["LF"] == 1
    assert bar["LH"] == 1
    assert sorted(foo["DA"]) == ["4,1", "5,0"]
    assert foo["LF"] == 2
    assert foo["LH"] == 1
    assert "FN" not in foo


def test_exact_output():
    out = io.StringIO()
    lcov.write_lcov(out, _sample_traces())
    assert out.getvalue() == (
        "TN:\nSF:bar.rs\nFN:14,baz\nFNF:1\nFNDA:9,baz\nDA:14,9\nLF:1\nLH:1\nend_of_record\n"
        "TN:\nSF:foo.rs\nFNF:0\nDA:4,1\nDA:5,0\nLF:2\nLH:1\nend_of_record\n"
    )


def test_empty_files_are_skipped():
    traces = TraceMap()
    traces.add_file("empty.rs")
    out = io.StringIO()
    lcov.write_lcov(out, traces)
    assert out.getvalue() == ""


def test_function_without_line_stat_raises():
    traces = TraceMap()
    traces.add_trace(
        "x.rs", Trace(line=1, stats=CoverageStat(2, StatKind.BRANCH), fn_name="f")
    )
    with pytest.raises(ReportError, match="Function doesn't have hits number"):
        lcov.write_lcov(io.StringIO(), traces)


def test_export_writes_file(tmp_path):
    config = ReportConfig(output_directory=tmp_path)
    lcov.export(_sample_traces(), config)
    text = (tmp_path / "lcov.info").read_text()
    assert text.count("end_of_record") == 2
    assert text.startswith("TN:\nSF:bar.rs\n")


def test_export_unwritable_raises(tmp_path):
    config = ReportConfig(output_directory=tmp_path / "missing" / "dir")
    with pytest.raises(ReportError, match="File is not writeable"):
        lcov.export(_sample_traces(), config)