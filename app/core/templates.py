from __future__ import annotations

import html
from pathlib import Path
from string import Template
from typing import Any, Iterable


TEMPLATE_DIR = Path(__file__).resolve().parent.parent / "templates"


def render_template(filename: str, context: dict[str, Any], *, raw: Iterable[str] = ()) -> str:
    """Render ``filename`` with ``$placeholders`` filled from ``context``.

    Values are HTML-escaped unless their key is listed in ``raw`` (used for
    fragments the caller already built and escaped).
    """
    path = TEMPLATE_DIR / filename
    if not path.is_file():
        return "<h1>Template missing</h1>"
    template = Template(path.read_text(encoding="utf-8"))
    raw_keys = set(raw)
    normalized = {}
    for key, value in context.items():
        text = "" if value is None else str(value)
        normalized[key] = text if key in raw_keys else html.escape(text)
    return template.safe_substitute(normalized)
