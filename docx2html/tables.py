"""Table rendering with data/annotation row separation.

Word tables frequently end with one or more full-width rows holding notes
("Source: ...") or footnotes styled ``TableNote`` / ``TableFootnote``.
Those rows are moved out of ``<tbody>`` into a ``<tfoot>`` spanning the
whole table.
"""

from __future__ import annotations

from typing import Any, Callable

from docx2html.inline import class_attr, escape
from docx2html.models import (
    Paragraph,
    PlainText,
    Table,
    TableCell,
    TableRow,
    TextRun,
    resolve_style_id,
)
from docx2html.style_map import StyleMap, normalize_style_id

# ── Constants ──────────────────────────────────────────────────────────

TABLE_NOTE_STYLE = "TableNote"
TABLE_FOOTNOTE_STYLE = "TableFootnote"
_ANNOTATION_STYLES = (TABLE_NOTE_STYLE, TABLE_FOOTNOTE_STYLE)


def _has_content(paragraph: Paragraph) -> bool:
    for run in paragraph.runs:
        if not isinstance(run, TextRun) or run.text.strip():
            return True
    return False


def table_width(table: Table) -> int:
    """Return the number of grid columns spanned by the widest row."""
    widths = [
        sum(max(1, cell.grid_span or 1) for cell in row.cells)
        for row in table.rows
    ]
    return max(widths, default=0) or 1


def classify_annotation_row(row: TableRow) -> str | None:
    """Return ``"note"``, ``"footnote"`` or ``None`` for a data row.

    A row is an annotation row when it has exactly one cell whose content
    consists solely of paragraphs styled ``TableNote`` or ``TableFootnote``,
    at least one of them non-empty.  A row mixing both styles counts as a
    footnote row.
    """
    if len(row.cells) != 1:
        return None
    elements = row.cells[0].elements
    if not elements:
        return None

    style_ids = []
    for element in elements:
        if not isinstance(element, Paragraph):
            return None
        style_id = resolve_style_id(element.style_id)
        if style_id not in _ANNOTATION_STYLES:
            return None
        style_ids.append(style_id)

    if not any(_has_content(p) for p in elements):
        return None
    if all(s == TABLE_NOTE_STYLE for s in style_ids):
        return "note"
    return "footnote"


class TableRenderer:
    """Renders :class:`Table` elements to HTML.

    Parameters
    ----------
    style_map : StyleMap
        Supplies mapped class names for table, cell and paragraph styles.
    """

    def __init__(self, style_map: StyleMap) -> None:
        self._style_map = style_map

    def _classes_for(self, style_id: str) -> str:
        if not style_id:
            return ""
        return class_attr(
            self._style_map.get_class_names(style_id),
            normalize_style_id(style_id),
        )

    def render(
        self,
        table: Table,
        render_runs: Callable[[list], str],
        render_block: Callable[[Any], str],
    ) -> str:
        """Render *table*.

        Parameters
        ----------
        table : Table
            The table to render.
        render_runs : callable
            Formats a run sequence (merging, notes, links, images).
        render_block : callable
            Renders any other block element found inside a cell.
        """
        html = f"<table{self._classes_for(resolve_style_id(table.style_id))}>\n"

        data_rows: list[TableRow] = []
        notes: list[TableRow] = []
        footnotes: list[TableRow] = []
        for row in table.rows:
            kind = classify_annotation_row(row)
            if kind == "note":
                notes.append(row)
            elif kind == "footnote":
                footnotes.append(row)
            else:
                data_rows.append(row)

        html += "  <tbody>\n"
        for row in data_rows:
            html += "    <tr>\n"
            for cell in row.cells:
                html += self._render_cell(cell, render_runs, render_block)
            html += "    </tr>\n"
        html += "  </tbody>\n"

        if notes or footnotes:
            width = table_width(table)
            html += "  <tfoot>\n"
            for row in notes:
                html += self._render_annotation(row, "table-note", width, render_runs)
            for row in footnotes:
                html += self._render_annotation(row, "table-footnote", width, render_runs)
            html += "  </tfoot>\n"

        html += "</table>\n"
        return html

    def _render_cell(
        self,
        cell: TableCell,
        render_runs: Callable[[list], str],
        render_block: Callable[[Any], str],
    ) -> str:
        attrs = ""
        if cell.grid_span and cell.grid_span > 1:
            attrs += f' colspan="{cell.grid_span}"'
        attrs += self._classes_for(resolve_style_id(cell.style_id))

        content = ""
        for element in cell.elements:
            match element:
                case PlainText():
                    content += escape(element.text)
                case Paragraph():
                    style_id = resolve_style_id(element.style_id)
                    runs = render_runs(element.runs)
                    if style_id:
                        content += f"<span{self._classes_for(style_id)}>{runs}</span>"
                    else:
                        content += runs
                case _:
                    content += render_block(element)

        return f"    <td{attrs}>{content}</td>\n"

    def _render_annotation(
        self,
        row: TableRow,
        css_class: str,
        width: int,
        render_runs: Callable[[list], str],
    ) -> str:
        html = "    <tr>\n"
        html += f'      <td colspan="{width}" class="{css_class}">'
        for paragraph in row.cells[0].elements:
            if not _has_content(paragraph):
                continue
            style_id = resolve_style_id(paragraph.style_id)
            html += f"<p{self._classes_for(style_id)}>{render_runs(paragraph.runs)}</p>"
        html += "</td>\n"
        html += "    </tr>\n"
        return html
