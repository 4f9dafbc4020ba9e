import xml.etree.ElementTree as ET

import pytest

from covreport import cobertura
from covreport.cobertura import Report
from covreport.model import CoverageStat, ReportConfig, ReportError, StatKind, Trace, TraceMap


def _fake_map() -> TraceMap:
    traces = TraceMap()
    traces.add_file("fake/examples/foo.rs")
    traces.add_trace("fake/src/lib.rs", Trace.stub(2))
    traces.add_trace("fake/src/lib.rs", Trace(line=3, address={2}, length=1))
    return traces


def test_package_coverage():
    config = ReportConfig(manifest="fake/Cargo.toml")
    traces = _fake_map()

    report = Report.render(config, traces)
    assert report.lines_covered == 0
    assert report.lines_valid == 2
    assert report.line_rate == 0.0
    assert len(report.packages) == 2
    assert len(report.sources) == 1

    traces.increment_hit(2)

    report = Report.render(config, traces)
    assert report.lines_covered == 1
    assert report.lines_valid == 2
    assert report.line_rate == 0.5
    assert len(report.packages) == 2
    assert len(report.sources) == 1


def test_package_names_and_classes():
    config = ReportConfig(manifest="fake/Cargo.toml")
    traces = _fake_map()
    traces.increment_hit(2)
    report = Report.render(config, traces)
    by_name = {p.name: p for p in report.packages}
    assert sorted(by_name) == ["examples", "src"]
    assert by_name["examples"].classes == []
    (cls,) = by_name["src"].classes
    assert cls.name == "lib"
    assert cls.file_name == "src/lib.rs"
    assert cls.line_rate == 0.5
    assert [(l.number, l.hits) for l in cls.lines] == [(2, 0), (3, 1)]


def test_empty_map_has_zero_rate():
    report = Report.render(ReportConfig(manifest="fake/Cargo.toml"), TraceMap())
    assert report.packages == []
    assert report.line_rate == 0.0


def test_to_xml_structure():
    config = ReportConfig(manifest="fake/Cargo.toml")
    traces = _fake_map()
    traces.increment_hit(2)
    report = Report.render(config, traces)
    report.timestamp = 1234
    text = report.to_xml()
    assert text.startswith('<?xml version="1.0"?><coverage lines-covered="1"')
    root = ET.fromstring(text.split("?>", 1)[1])
    assert root.tag == "coverage"
    assert root.get("line-rate") == "0.5"
    assert root.get("branch-rate") == "0"
    assert root.get("version") == "1.9"
    assert root.get("timestamp") == "1234"
    assert [s.text for s in root.iter("source")] == ["fake"]
    lines = [(l.get("number"), l.get("hits")) for l in root.iter("line")]
    assert lines == [("2", "0"), ("3", "1")]
    assert len(list(root.iter("methods"))) == 1


def test_branch_stats_not_supported():
    traces = TraceMap()
    traces.add_trace("pkg/a.rs", Trace(line=1, stats=CoverageStat(1, StatKind.BRANCH)))
    with pytest.raises(ReportError, match="Not currently supported"):
        Report.render(ReportConfig(manifest="pkg/Cargo.toml"), traces)


def test_report_writes_file(tmp_path):
    config = ReportConfig(manifest="fake/Cargo.toml", output_directory=tmp_path)
    cobertura.report(_fake_map(), config)
    text = (tmp_path / "cobertura.xml").read_text()
    root = ET.fromstring(text.split("?>", 1)[1])
    assert root.get("lines-valid") == "2"
    assert root.get("lines-covered") == "0"


def test_export_unwritable_raises(tmp_path):
    config = ReportConfig(manifest="fake/Cargo.toml", output_directory=tmp_path / "no" / "dir")
    report = Report.render(config, _fake_map())
    with pytest.raises(ReportError, match="Export Error"):
        report.export(config)