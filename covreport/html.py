"""Self-contained HTML coverage report."""

from __future__ import annotations

from pathlib import Path
from typing import Sequence

from covreport.json_report import SourceFile
from covreport.model import ReportConfig, ReportError, TraceMap
from covreport.safe_json import to_string_safe

HTML_FILE_NAME = "tarpaulin-report.html"
_ASSET_DIR = Path(__file__).with_name("assets")
_STYLE_ASSET = "report_viewer.css"
_SCRIPT_ASSETS = (
    "react.production.min.js",
    "react-dom.production.min.js",
    "report_viewer.js",
)

_TEMPLATE = """<!doctype html>
<html>
<head>
    <meta charset="utf-8">
    <style>{style}</style>
</head>
<body>
    <div id="root"></div>
    <script>
        var data = {data};
        var previousData = {previous};
    </script>
    <script crossorigin>{react}</script>
    <script crossorigin>{react_dom}</script>
    <script>{viewer}</script>
</body>
</html>"""


def get_json(coverage_data: TraceMap, previous: bool = False) -> str:
    """Serialise the coverage data for embedding in the page.

    For previous results, files that no longer exist are skipped.
    """
    files = []
    for path, _ in coverage_data.items():
        try:
            files.append(SourceFile.read(path, coverage_data))
        except FileNotFoundError as exc:
            if previous:
                continue
            raise ReportError(f"Unable to read source file to string: {exc}") from exc
        except (OSError, UnicodeDecodeError) as exc:
            raise ReportError(f"Unable to read source file to string: {exc}") from exc
    try:
        return to_string_safe({"files": [source.to_dict() for source in files]})
    except ValueError as exc:
        raise ReportError(f"Report isn't serializable: {exc}") from exc


def render_page(
    report_json: str,
    previous_json: str = "null",
    style: str = "",
    scripts: Sequence[str] = ("", "", ""),
) -> str:
    """Assemble the page; scripts are the react, react-dom and viewer sources."""
    if len(scripts) != 3:
        raise ValueError("expected three scripts: react, react-dom and the viewer")
    react, react_dom, viewer = scripts
    return _TEMPLATE.format(
        style=style,
        data=report_json,
        previous=previous_json,
        react=react,
        react_dom=react_dom,
        viewer=viewer,
    )


def _load_asset(name: str) -> str:
    try:
        return (_ASSET_DIR / name).read_text(encoding="utf-8")
    except OSError:
        return ""


def export(
    coverage_data: TraceMap, config: ReportConfig, previous: TraceMap | None = None
) -> None:
    """Write tarpaulin-report.html into the configured output directory."""
    file_path = config.output_dir / HTML_FILE_NAME
    report_json = get_json(coverage_data)
    previous_json = get_json(previous, previous=True) if previous is not None else "null"
    page = render_page(
        report_json,
        previous_json,
        _load_asset(_STYLE_ASSET),
        tuple(_load_asset(name) for name in _SCRIPT_ASSETS),
    )
    try:
        with open(file_path, "w", encoding="utf-8", newline="") as handle:
            handle.write(page)
    except OSError as exc:
        raise ReportError(f"File is not writeable: {exc}") from exc