"""JSON outline of a document tree.

Emits one array per section and one ``{"type", "text"}`` object per body
element.  ``text`` concatenates the text of the element's direct runs and
is empty for elements without text (tables, images, breaks).
"""

from __future__ import annotations

import json
from typing import Any, Optional, Sequence

from docx2html.models import Link, ListItem, PlainText, Section, TextRun
from docx2html.style_map import StyleMap, TransformationRules


def element_text(element: Any) -> str:
    """Return the text directly carried by *element*."""
    runs = getattr(element, "runs", None)
    if runs is not None:
        parts = []
        for run in runs:
            if isinstance(run, TextRun):
                parts.append(run.text)
            elif isinstance(run, Link):
                parts.append(run.text if run.text is not None else run.source)
        return "".join(parts)
    if isinstance(element, ListItem):
        return element.text.text
    if isinstance(element, PlainText):
        return element.text
    if isinstance(element, Link):
        return element.text if element.text is not None else element.source
    return ""


class JsonRenderer:
    """Render sections as a JSON array of element summaries.

    The style map and rules are accepted for interface parity with
    :class:`~docx2html.renderer.HtmlRenderer` and are not consulted.
    """

    def __init__(
        self,
        style_map: Optional[StyleMap] = None,
        rules: Optional[TransformationRules] = None,
    ) -> None:
        self.style_map = style_map if style_map is not None else StyleMap()
        self.rules = rules if rules is not None else TransformationRules()

    def to_data(self, sections: Sequence[Section]) -> list[list[dict[str, str]]]:
        return [
            [
                {"type": type(element).__name__, "text": element_text(element)}
                for element in section.elements
            ]
            for section in sections
        ]

    def transform(self, sections: Sequence[Section]) -> str:
        return json.dumps(self.to_data(sections), indent=4, ensure_ascii=False)
