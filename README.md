# covreport

`covreport` holds line coverage results for a set of source files and
turns them into the usual report formats: LCOV, Cobertura XML, JSON, a
self-contained HTML page and a Coveralls upload. It also carries the
pieces of source analysis that decide which lines of a file count as
coverable.

## Coverage model: `covreport.model`

- `Trace` records one source line: its `line`, the `address` set, a
  `length`, its `stats` (a `CoverageStat` holding `hits` and a kind) and
  an optional `fn_name`. `Trace.stub(line)` makes a trace with no hits.
- `TraceMap` groups traces by file, keeps each file's traces in line
  order and iterates files in path order. It offers `add_file`,
  `add_trace`, `increment_hit(address)`, `files`, `items`,
  `get_child_traces` (a file, or every file below a directory),
  `contains_file`, `is_empty`, `covered_in_path`, `coverable_in_path`,
  `total_covered`, `total_coverable` and `coverage_percentage`.
- `Trace` and `TraceMap` round-trip through plain dictionaries with
  `to_dict` / `from_dict`; malformed data raises `ReportError`.
- `coverage_percentage(traces)` gives the hit fraction of any iterable of
  traces (0.0 when empty).
- `ReportConfig` says where reports go and what to write: `manifest`
  (its parent is the project base), `output_directory` (defaults to the
  current directory), `target_directory` (defaults to `<base>/target`),
  `generate` (a list of `OutputFile`: `JSON`, `STDOUT`, `XML`, `HTML`,
  `LCOV`), `verbose`, `debug`, `no_run`, `coveralls` (the repository
  key), `ci_tool`, `report_uri` and `project_name`.
  `strip_base_dir(path)` makes paths relative to the project base.

All failures while producing a report are raised as `ReportError`.

## Report writers

- `covreport.lcov`: `write_lcov(stream, traces)` writes
  `TN:`/`SF:`/`FN:`/`FNF:`/`FNDA:`/`DA:`/`LF:`/`LH:`/`end_of_record`
  records for every file that has traces; `export` writes `lcov.info`.
- `covreport.cobertura`: `Report.render(config, traces)` builds the
  report (one package per directory, one class per file),
  `Report.to_xml()` serialises it and `report(traces, config)` writes
  `cobertura.xml`. Only line statistics are supported.
- `covreport.json_report`: `CoverageReport.from_trace_map` bundles each
  readable file's path parts, contents, traces and counts (unreadable
  files are left out); `to_json`, `covered`, `coverable`; `export` writes
  `tarpaulin-report.json`.
- `covreport.html`: `get_json` serialises the data with HTML-safe JSON,
  `render_page` assembles the page, and `export(traces, config, previous)`
  writes `tarpaulin-report.html` with the current and (optionally)
  previous results embedded.
- `covreport.coveralls`: `build_payload` builds the job description
  (identity from `get_identity`, per-file MD5 digest and per-line
  coverage); `get_git_info` reads the head commit and branch by running
  `git`, which must be on the `PATH`; `export` posts the payload to
  `report_uri`, or to the Coveralls jobs endpoint when none is set, and
  with `debug` also writes `coveralls.json`.
- `covreport.safe_json`: `to_string_safe(value)` writes compact JSON with
  `<`, `>` and `&` escaped as `\u003c`, `\u003e` and `\u0026`, so it can
  sit inside a `<script>` element.

## Driver: `covreport.report`

`report_coverage(config, traces)` sends to Coveralls if a key is set,
writes every format in `config.generate`, prints uncovered line ranges
(when verbose, when nothing is requested, or for `OutputFile.STDOUT`)
and a per-file summary with the change since the last run, then saves
the run as JSON under `<target>/tarpaulin/` (named by
`ReportConfig.report_name()`) for the next comparison. An empty trace
map raises `ReportError` unless `no_run` is set.
`print_missing_lines`, `print_summary`, `get_previous_result` and
`accumulate_lines` are available on their own.

## Source analysis helpers

- `covreport.attributes`: `parse_attribute` parses an attribute such as
  `#[cfg(not(tarpaulin_include))]` into a `Meta`; `check_cfg_attr` tells
  whether it excludes code (test markers, `cfg(not(tarpaulin))`,
  `cfg(not(tarpaulin_include))`, `cfg_attr(tarpaulin, no_coverage)`,
  `no_coverage`, `tarpaulin::skip`); `check_attr_list(attrs,
  ignore_tests)` checks a whole list, also treating `cfg(test)` as
  excluding when `ignore_tests` is true.
- `covreport.line_analysis`: `LineAnalysis` tracks ignored, force-covered
  and logical lines for one file (`ignore_span`, `cover_span`,
  `add_to_ignore`, `ignore_all`, `should_ignore`, `from_file`);
  `SubResult` combines reachability results; `find_ignorable_lines`
  finds lines holding only punctuation, doc comments or `} else {`;
  `maybe_ignore_first_line`, `should_ignore` and `normalise` work on a
  mapping of paths to analyses.

## Examples

```python
import io

from covreport.model import Trace, TraceMap
from covreport.lcov import write_lcov
from covreport.safe_json import to_string_safe

traces = TraceMap()
traces.add_trace("src/lib.rs", Trace.stub(3))
traces.add_trace("src/lib.rs", Trace.stub(4))

print(traces.total_coverable())      # 2
print(traces.coverage_percentage())  # 0.0

out = io.StringIO()
write_lcov(out, traces)
print(out.getvalue())

print(to_string_safe({"h": "<b>"}))  # {"h":"\u003cb\u003e"}
```

```python
from covreport.report import accumulate_lines
from covreport.attributes import check_attr_list
from covreport.line_analysis import find_ignorable_lines

print(accumulate_lines([1, 2, 3, 7, 9, 10]))               # ['1-3', '7', '9-10']
print(check_attr_list(["#[cfg(test)]"], ignore_tests=True))  # False
print(check_attr_list(["#[tarpaulin::skip]"], ignore_tests=False))  # False
print(find_ignorable_lines("fn a() {\n    x();\n}\n"))        # [3]
```

## What it does not do

- It does not collect coverage: there is no test runner or tracer, and
  trace maps must be built by the caller or loaded with
  `TraceMap.from_dict`.
- There is no command-line program; everything is called from Python.
- It does not parse whole source files. The attribute rules and
  `LineAnalysis` are building blocks; walking a file's items and
  expressions to fill in a `LineAnalysis` is left to the caller.
- The HTML page takes its style sheet and viewer scripts from an
  `assets` directory next to `covreport/html.py`. The package does not
  ship those files, so without them the page has empty `<style>` and
  `<script>` elements around the embedded data.