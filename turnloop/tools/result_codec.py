from __future__ import annotations

import json
from typing import Any

MAX_RENDERED_CHARS = 2000


def _is_json_primitive(obj: Any) -> bool:
    return obj is None or isinstance(obj, (str, int, float, bool))


def _is_json_friendly(obj: Any) -> bool:
    if _is_json_primitive(obj):
        return True
    if isinstance(obj, (list, tuple)):
        return all(_is_json_friendly(v) for v in obj)
    if isinstance(obj, dict):
        return all(isinstance(k, str) and _is_json_friendly(v) for k, v in obj.items())
    return False


def render_output(output: Any) -> str:
    """Render a tool return value as model-readable text.

    Strings pass through unchanged. JSON-friendly values become compact JSON,
    anything else its repr; both are cut at MAX_RENDERED_CHARS.
    """

    if isinstance(output, str):
        return output

    if _is_json_friendly(output):
        text = json.dumps(output, ensure_ascii=False)
    else:
        text = repr(output)

    if len(text) > MAX_RENDERED_CHARS:
        text = text[:MAX_RENDERED_CHARS] + "..."
    return text
