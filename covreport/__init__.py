"""Coverage data model, source line analysis helpers and coverage report writers."""

__version__ = "0.1.0"

__all__ = [
    "attributes",
    "cobertura",
    "coveralls",
    "html",
    "json_report",
    "lcov",
    "line_analysis",
    "model",
    "report",
    "safe_json",
]