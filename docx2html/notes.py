"""Footnote and endnote collection.

Notes are cited inline while the document is walked but rendered once, at
the end of the output, as numbered lists with links back to each citation.
All collected state lives in a :class:`RenderContext` created per
transform, so a renderer instance never carries notes from one document
into the next.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field

# Leading/trailing periods and whitespace left over from Word's note
# separator runs.
_LEADING_NOISE_RE = re.compile(r"^[.\s]+")
_TRAILING_NOISE_RE = re.compile(r"[.\s]+$")


def clean_note_content(content: str) -> str:
    content = content.strip()
    content = _LEADING_NOISE_RE.sub("", content)
    content = _TRAILING_NOISE_RE.sub("", content)
    return content.strip()


@dataclass
class _NoteKind:
    section_class: str
    title: str
    id_prefix: str  # "fn" -> ids fn1 / fnref1


FOOTNOTES = _NoteKind(section_class="footnotes", title="Footnotes", id_prefix="fn")
ENDNOTES = _NoteKind(section_class="endnotes", title="Endnotes", id_prefix="en")


class FootnoteEndnoteCollector:
    """Accumulates rendered note bodies in first-seen order."""

    def __init__(self) -> None:
        self.footnotes: list[str] = []
        self.endnotes: list[str] = []

    def add_footnote(self, content: str) -> str:
        """Store a footnote body and return its inline citation markup."""
        self.footnotes.append(clean_note_content(content))
        return self._citation(FOOTNOTES, len(self.footnotes))

    def add_endnote(self, content: str) -> str:
        """Store an endnote body and return its inline citation markup."""
        self.endnotes.append(clean_note_content(content))
        return self._citation(ENDNOTES, len(self.endnotes))

    def render(self) -> str:
        """Render footnotes then endnotes, skipping empty collections."""
        html = ""
        if self.footnotes:
            html += self._render_section(FOOTNOTES, self.footnotes)
        if self.endnotes:
            html += self._render_section(ENDNOTES, self.endnotes)
        return html

    @staticmethod
    def _citation(kind: _NoteKind, note_id: int) -> str:
        prefix = kind.id_prefix
        return (
            f'<sup class="{kind.section_class[:-1]}-ref">'
            f'<a href="#{prefix}{note_id}" id="{prefix}ref{note_id}">[{note_id}]</a>'
            f"</sup>"
        )

    @staticmethod
    def _render_section(kind: _NoteKind, notes: list[str]) -> str:
        prefix = kind.id_prefix
        html = "\n<hr />\n"
        html += f'<section class="{kind.section_class}">\n'
        html += f"  <h2>{kind.title}</h2>\n"
        html += "  <ol>\n"
        for note_id, content in enumerate(notes, start=1):
            html += (
                f'    <li id="{prefix}{note_id}">{content} '
                f'<a href="#{prefix}ref{note_id}">↩</a></li>\n'
            )
        html += "  </ol>\n"
        html += "</section>\n"
        return html


@dataclass
class RenderContext:
    """Mutable state for a single transform call."""
    notes: FootnoteEndnoteCollector = field(default_factory=FootnoteEndnoteCollector)
