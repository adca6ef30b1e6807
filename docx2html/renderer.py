"""HTML renderer for the docx2html document tree.

Walks the sections produced by :class:`~docx2html.parser.DocxParser` (or
built by hand) and emits semantic HTML driven by a :class:`StyleMap`.
List paragraphs are regrouped into nested lists, adjacent identically
formatted runs are merged, table annotation rows move into ``<tfoot>``,
images are extracted into an asset directory and footnotes/endnotes are
collected and appended at the end of the document.
"""

from __future__ import annotations

import logging
import os
from typing import Any, Iterable, Optional, Sequence

from docx2html.images import ImageAssetExtractor
from docx2html.inline import InlineRunFormatter, class_attr, escape, render_link
from docx2html.lists import ListReconstructionEngine
from docx2html.models import (
    DEFAULT_PAGE,
    EVEN_PAGE,
    FIRST_PAGE,
    Endnote,
    Footnote,
    HeaderFooter,
    Heading,
    Image,
    InlineElement,
    LineBreak,
    Link,
    ListItem,
    Paragraph,
    PlainText,
    Section,
    Table,
    TextRun,
    resolve_style_id,
)
from docx2html.notes import RenderContext
from docx2html.style_map import StyleMap, TransformationRules, normalize_style_id
from docx2html.tables import TableRenderer

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────

_PAGE_TYPE_CLASSES: dict[int, str] = {
    FIRST_PAGE: "first-page",
    DEFAULT_PAGE: "default",
    EVEN_PAGE: "even-page",
}

_DOCUMENT_HEAD = (
    "<!DOCTYPE html>\n"
    '<html lang="en">\n'
    "<head>\n"
    '  <meta charset="UTF-8">\n'
    '  <meta name="viewport" content="width=device-width, initial-scale=1.0">\n'
    "  <title>Document</title>\n"
    "</head>\n"
    "<body>\n\n"
)

_DOCUMENT_TAIL = "\n</body>\n</html>\n"

_DEFAULT_HEADING_LEVEL = 2


def _clamp_level(level: Any, default: int = 1) -> int:
    try:
        level = int(level)
    except (TypeError, ValueError):
        level = default
    return max(1, min(6, level))


def has_content(sections: Iterable[Section]) -> bool:
    """Return ``True`` if any section, header or footer holds an element."""
    return any(
        isinstance(section, Section) and section.has_content()
        for section in sections
    )


# ── Renderer ──────────────────────────────────────────────────────────


class HtmlRenderer:
    """Render document sections into an HTML document.

    Parameters
    ----------
    style_map : StyleMap or None, optional
        Style id -> output configuration.  An empty map renders every
        paragraph as ``<p>``.
    rules : TransformationRules or None, optional
        Custom render overrides.
    image_extractor : ImageAssetExtractor or None, optional
        Copies images into an asset directory.  Without it, image sources
        are emitted as-is.
    debug : bool, optional
        Log the style id and mapping of every paragraph at DEBUG level.

    Usage::

        renderer = HtmlRenderer(StyleMap.from_file())
        html = renderer.transform(DocxParser().parse("report.docx"))
    """

    def __init__(
        self,
        style_map: Optional[StyleMap] = None,
        rules: Optional[TransformationRules] = None,
        image_extractor: Optional[ImageAssetExtractor] = None,
        debug: bool = False,
    ) -> None:
        self.style_map = style_map if style_map is not None else StyleMap()
        self.rules = rules if rules is not None else TransformationRules()
        self.image_extractor = image_extractor
        self.debug = debug

        self._formatter = InlineRunFormatter()
        self._lists = ListReconstructionEngine(self.style_map)
        self._tables = TableRenderer(self.style_map)

    # ── Public API ─────────────────────────────────────────────────

    def transform(self, sections: Sequence[Section], fragment: bool = False) -> str:
        """Render *sections* to HTML.

        Parameters
        ----------
        sections : sequence of Section
            Document content in reading order.
        fragment : bool, optional
            Omit the ``<!DOCTYPE>``/``<html>``/``<body>`` scaffolding.
            Collected notes are still appended.

        Returns
        -------
        str
            The HTML, or ``""`` when no section has any content.
        """
        if not has_content(sections):
            return ""

        ctx = RenderContext()
        body = ""
        for section in sections:
            if isinstance(section, Section):
                body += self._render_section(section, ctx)
        body += ctx.notes.render()

        logger.info(
            "Rendered %d section(s), %d footnote(s), %d endnote(s)",
            len(sections),
            len(ctx.notes.footnotes),
            len(ctx.notes.endnotes),
        )

        if fragment:
            return body
        return _DOCUMENT_HEAD + body + _DOCUMENT_TAIL

    # ── Sections ───────────────────────────────────────────────────

    def _render_section(self, section: Section, ctx: RenderContext) -> str:
        html = ""
        for header in section.headers:
            html += self._render_header_footer("header", header, ctx)

        html += self._render_elements(section.elements, ctx)

        for footer in section.footers:
            html += self._render_header_footer("footer", footer, ctx)
        return html

    def _render_header_footer(self, tag: str, container: HeaderFooter, ctx: RenderContext) -> str:
        kind = _PAGE_TYPE_CLASSES.get(container.page_type, "unknown")
        html = f'<{tag} class="{tag}-{kind}">\n'
        for element in container.elements:
            html += self._render_element(element, ctx)
        html += f"</{tag}>\n"
        return html

    def _render_elements(self, elements: Sequence[Any], ctx: RenderContext) -> str:
        """Render a body element sequence, regrouping list paragraphs."""
        html = ""
        index = 0
        while index < len(elements):
            if self._lists.is_list_item(elements[index]):
                entries, index = self._lists.gather(elements, index)
                html += self._lists.build_nested_list(
                    entries, lambda p: self._render_runs(p.runs, ctx)
                )
            else:
                html += self._render_element(elements[index], ctx)
                index += 1
        return html

    # ── Element dispatch ───────────────────────────────────────────

    def _render_element(self, element: Any, ctx: RenderContext) -> str:
        match element:
            case Paragraph():
                return self._render_paragraph(element, ctx)
            case PlainText():
                return f"<p>{self._formatter.format_text(element.text, element.style)}</p>\n"
            case Heading():
                return self._render_heading(element, ctx)
            case Table():
                return self._render_table(element, ctx)
            case ListItem():
                return f"<li>{self._formatter.format_run(element.text)}</li>\n"
            case Footnote():
                return ctx.notes.add_footnote(self._render_note_body(element, ctx))
            case Endnote():
                return ctx.notes.add_endnote(self._render_note_body(element, ctx))
            case Link():
                return render_link(element)
            case Image():
                return self._render_image(element)
            case LineBreak():
                return "<br />\n"
            case _:
                logger.debug("Skipping unsupported element: %s", type(element).__name__)
                return ""

    # ── Inline content ─────────────────────────────────────────────

    def _render_runs(self, runs: Iterable[InlineElement], ctx: RenderContext) -> str:
        return self._formatter.format_runs(
            runs, lambda run: self._render_inline(run, ctx)
        )

    def _render_inline(self, run: Any, ctx: RenderContext) -> str:
        match run:
            case TextRun():
                return self._formatter.format_run(run)
            case Link():
                return render_link(run)
            case Image():
                return self._render_image(run)
            case Footnote():
                return ctx.notes.add_footnote(self._render_note_body(run, ctx))
            case Endnote():
                return ctx.notes.add_endnote(self._render_note_body(run, ctx))
            case _:
                return ""

    def _render_note_body(self, note: Footnote | Endnote, ctx: RenderContext) -> str:
        """Render note content; paragraphs of a multi-paragraph note are joined by a space."""
        runs: list[Any] = []
        for element in note.elements:
            match element:
                case Paragraph():
                    if runs:
                        runs.append(TextRun(" "))
                    runs.extend(element.runs)
                case PlainText():
                    runs.append(TextRun(element.text, element.style))
                case _:
                    runs.append(element)
        return self._render_runs(runs, ctx)

    # ── Paragraphs ─────────────────────────────────────────────────

    def _render_paragraph(self, paragraph: Paragraph, ctx: RenderContext) -> str:
        style_id = resolve_style_id(paragraph.style_id)
        config = self.style_map.get_output_config(style_id)

        if self.debug:
            logger.debug(
                "Paragraph style id %r (%s) -> %s",
                style_id,
                type(paragraph.style_id).__name__,
                config if config else "(none)",
            )

        rule = self.rules.get_rule_for("paragraphs", style_id)
        if rule is not None:
            return rule(paragraph, {"style_id": style_id})

        if config and config.get("convertTo") and config["convertTo"] != "list":
            return self._convert_element(paragraph, config, ctx)

        classes = class_attr(
            self.style_map.get_class_names(style_id),
            normalize_style_id(style_id),
        )
        return f"<p{classes}>{self._render_runs(paragraph.runs, ctx)}</p>\n"

    def _convert_element(self, paragraph: Paragraph, config: dict[str, Any], ctx: RenderContext) -> str:
        """Render a paragraph whose style maps to another HTML construct.

        Only the mapped ``className`` is used as class; the raw style id is
        not added for converted elements.
        """
        classes = class_attr(config.get("className"))
        content = self._render_runs(paragraph.runs, ctx)

        match config["convertTo"]:
            case "blockquote":
                return f"<blockquote{classes}>{content}</blockquote>\n"
            case "div":
                return f"<div{classes}>{content}</div>\n"
            case "heading":
                level = _clamp_level(config.get("level"), _DEFAULT_HEADING_LEVEL)
                return f"<h{level}{classes}>{content}</h{level}>\n"
            case _:
                return f"<p{classes}>{content}</p>\n"

    def _render_heading(self, heading: Heading, ctx: RenderContext) -> str:
        """Render a heading as plain text; cited notes keep their citation."""
        level = _clamp_level(heading.depth)
        style_id = resolve_style_id(heading.style_id)
        classes = ""
        if style_id:
            classes = class_attr(
                self.style_map.get_class_names(style_id),
                normalize_style_id(style_id),
            )

        content = ""
        for run in heading.runs:
            match run:
                case TextRun():
                    content += escape(run.text)
                case Footnote():
                    content += ctx.notes.add_footnote(self._render_note_body(run, ctx))
                case Endnote():
                    content += ctx.notes.add_endnote(self._render_note_body(run, ctx))
        return f"<h{level}{classes}>{content}</h{level}>\n"

    # ── Tables ─────────────────────────────────────────────────────

    def _render_table(self, table: Table, ctx: RenderContext) -> str:
        style_id = resolve_style_id(table.style_id)
        rule = self.rules.get_rule_for("tables", style_id)
        if rule is not None:
            return rule(table, {"style_id": style_id})

        return self._tables.render(
            table,
            lambda runs: self._render_runs(runs, ctx),
            lambda element: self._render_element(element, ctx),
        )

    # ── Images ─────────────────────────────────────────────────────

    def _render_image(self, image: Image) -> str:
        source = image.source or ""
        local_src: Optional[str] = None

        if self.image_extractor is not None and source:
            local_src = self.image_extractor.extract(source)

        if local_src is None and source and os.path.exists(source):
            local_src = source

        html = f'<img src="{escape(local_src or source)}"'
        html += f' alt="{escape(image.name)}"'
        if image.width:
            html += f' width="{escape(str(image.width))}"'
        if image.height:
            html += f' height="{escape(str(image.height))}"'
        html += " />"
        return html
