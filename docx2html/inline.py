"""Inline run formatting.

Turns text runs into nested inline HTML.  Formatting wrappers are applied
in a fixed order, innermost first, so that the same :class:`FontStyle`
always yields the same markup.  Adjacent runs with identical formatting are
merged before wrapping; Word splits runs at arbitrary points (spell-check
boundaries, revision ids) and rendering each fragment separately would
produce ``<strong>3</strong><strong>5</strong>`` for the number 35.
"""

from __future__ import annotations

import html
import re
from typing import Callable, Iterable, Optional

from docx2html.models import FontStyle, InlineElement, Link, TextRun

# ── Constants ──────────────────────────────────────────────────────────

_HEX_COLOR_RE = re.compile(r"^(?:[0-9a-fA-F]{3}|[0-9a-fA-F]{6})$")

_DEFAULT_TEXT_COLORS = ("000", "000000")


# ── Helpers ────────────────────────────────────────────────────────────


def escape(text: Optional[str]) -> str:
    """Escape ``& < > " '`` for use in HTML text and attribute values."""
    return html.escape(text or "", quote=True)


def class_attr(*classes: Optional[str]) -> str:
    """Build a `` class="..."`` attribute from the non-empty *classes*."""
    names = [c for c in classes if c]
    if not names:
        return ""
    return f' class="{escape(" ".join(names))}"'


def is_valid_hex_color(color: Optional[str]) -> bool:
    """Return ``True`` for a 3- or 6-digit hex colour, with or without ``#``."""
    if not color:
        return False
    color = str(color)
    if color.lower() == "auto":
        return False
    return bool(_HEX_COLOR_RE.match(color.lstrip("#")))


def should_apply_text_color(color: Optional[str]) -> bool:
    """Return ``True`` if *color* is worth a colour wrapper.

    ``auto`` and default black are the implicit text colour and are skipped.
    """
    if not color:
        return False
    hex_value = str(color).lstrip("#").lower()
    if hex_value == "auto" or hex_value in _DEFAULT_TEXT_COLORS:
        return False
    return is_valid_hex_color(hex_value)


def render_link(link: Link) -> str:
    """Render a hyperlink as an ``<a>`` element."""
    source = link.source or ""
    attrs = f' href="{escape(source)}"'
    if source.startswith(("http://", "https://")):
        attrs += ' rel="noopener noreferrer"'
    text = link.text if link.text is not None else source
    return f"<a{attrs}>{escape(text)}</a>"


# ── Formatter ──────────────────────────────────────────────────────────


class InlineRunFormatter:
    """Formats text runs into inline HTML.

    Usage::

        formatter = InlineRunFormatter()
        formatter.format_text("35", FontStyle(bold=True))   # '<strong>35</strong>'
    """

    def format_text(self, text: str, style: Optional[FontStyle]) -> str:
        """Escape *text* and wrap it according to *style*."""
        content = escape(text)
        if style is None:
            return content

        if style.superscript:
            content = f"<sup>{content}</sup>"
        elif style.subscript:
            content = f"<sub>{content}</sub>"

        if style.strikethrough:
            content = f"<s>{content}</s>"
        elif style.double_strikethrough:
            content = f'<s class="double-strike">{content}</s>'

        if style.bold:
            content = f"<strong>{content}</strong>"
        if style.italic:
            content = f"<em>{content}</em>"
        if style.underline is not None and style.underline != "none":
            content = f"<u>{content}</u>"

        if style.small_caps:
            content = f'<span class="small-caps">{content}</span>'
        elif style.all_caps:
            content = f'<span class="all-caps">{content}</span>'

        if should_apply_text_color(style.color):
            hex_value = str(style.color).lstrip("#").lower()
            content = f'<span style="color: #{hex_value};">{content}</span>'

        if is_valid_hex_color(style.bg_color):
            hex_bg = str(style.bg_color).lstrip("#").lower()
            content = f'<mark style="background-color: #{hex_bg};">{content}</mark>'

        if style.highlight:
            content = f'<mark class="highlight-{escape(style.highlight)}">{content}</mark>'

        return content

    def format_run(self, run: TextRun) -> str:
        return self.format_text(run.text, run.style)

    def format_runs(
        self,
        runs: Iterable[InlineElement],
        render_other: Callable[[InlineElement], str],
    ) -> str:
        """Format a run sequence, merging adjacent identically styled text.

        Non-text runs (links, images, notes) close the current merge group
        and are rendered by *render_other*.
        """
        parts: list[str] = []
        texts: list[str] = []
        current_style: Optional[FontStyle] = None

        def flush() -> None:
            if texts:
                parts.append(self.format_text("".join(texts), current_style))
                texts.clear()

        for run in runs:
            if not isinstance(run, TextRun):
                flush()
                parts.append(render_other(run))
                continue

            if texts and run.style != current_style:
                flush()
            current_style = run.style
            texts.append(run.text)

        flush()
        return "".join(parts)
