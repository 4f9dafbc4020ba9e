"""Compact JSON that is safe to embed inside an HTML script element."""

from __future__ import annotations

import json

_HTML_ESCAPES = str.maketrans({"<": "\\u003c", ">": "\\u003e", "&": "\\u0026"})


def _encode(value):
    to_dict = getattr(value, "to_dict", None)
    if callable(to_dict):
        return to_dict()
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_string_safe(value) -> str:
    """Serialise value compactly, escaping '<', '>' and '&' as unicode escapes."""
    try:
        text = json.dumps(
            value,
            ensure_ascii=False,
            separators=(",", ":"),
            allow_nan=False,
            default=_encode,
        )
    except (TypeError, ValueError) as exc:
        raise ValueError(str(exc)) from exc
    # These characters only ever occur inside string literals of the output.
    return text.translate(_HTML_ESCAPES)