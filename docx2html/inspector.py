"""Style inspection for building style maps.

Walks a parsed document and reports which element types and style ids it
uses, so that a style map can be written for it.  The report can be
exported as a YAML style-map template with suggested mappings.
"""

from __future__ import annotations

import logging
import re
from collections import Counter
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Optional, Sequence

import yaml

from docx2html.json_renderer import element_text
from docx2html.models import Section, Table, resolve_style_id
from docx2html.style_map import normalize_style_id

logger = logging.getLogger(__name__)

_LIST_RE = re.compile(r"list|bullet|number", re.IGNORECASE)
_BULLET_RE = re.compile(r"bullet", re.IGNORECASE)
_NUMBER_RE = re.compile(r"number", re.IGNORECASE)
_QUOTE_RE = re.compile(r"quote", re.IGNORECASE)
_HEADING_RE = re.compile(r"heading|title", re.IGNORECASE)

PREVIEW_LENGTH = 100

_TEMPLATE_HEADER = (
    "# Style Mapping Configuration\n"
    "# Generated from inspection\n"
    "# Customize the settings below for your conversion needs\n\n"
)


@dataclass
class StyleUsage:
    """How often a style id is used and by which element types."""
    count: int = 0
    types: list[str] = field(default_factory=list)


@dataclass
class StyleOccurrence:
    """First place a style id was seen."""
    section: int
    element: int
    type: str
    preview: str


@dataclass
class InspectionReport:
    """Summary of the element types and style ids used in a document."""
    total_elements: int = 0
    total_sections: int = 0
    element_types: Counter = field(default_factory=Counter)
    styles: dict[str, StyleUsage] = field(default_factory=dict)
    first_occurrences: dict[str, StyleOccurrence] = field(default_factory=dict)

    def styles_by_count(self) -> list[tuple[str, StyleUsage]]:
        return sorted(self.styles.items(), key=lambda item: -item[1].count)


def _collect_style_ids(element: Any) -> list[str]:
    """Return the unique style ids used by *element*, including table cells."""
    style_ids: list[str] = []

    def add(style_id: str) -> None:
        if style_id and style_id not in style_ids:
            style_ids.append(style_id)

    add(resolve_style_id(getattr(element, "style_id", None)))
    if isinstance(element, Table):
        for row in element.rows:
            for cell in row.cells:
                add(resolve_style_id(cell.style_id))
                for cell_element in cell.elements:
                    for style_id in _collect_style_ids(cell_element):
                        add(style_id)
    return style_ids


def suggest_mapping(style_id: str) -> dict[str, Optional[str]]:
    """Suggest a style-map entry for *style_id* from its name.

    ``list``/``bullet``/``number`` styles become lists (``ol`` for
    numbered, ``ul`` otherwise), ``quote`` styles become blockquotes and
    heading/title styles keep their default rendering.
    """
    suggestion: dict[str, Optional[str]] = {
        "convertTo": None,
        "className": normalize_style_id(style_id),
        "listType": None,
    }

    if _LIST_RE.search(style_id):
        suggestion["convertTo"] = "list"
        suggestion["listType"] = "ol" if (
            _NUMBER_RE.search(style_id) and not _BULLET_RE.search(style_id)
        ) else "ul"

    if _QUOTE_RE.search(style_id):
        suggestion["convertTo"] = "blockquote"

    if _HEADING_RE.search(style_id):
        suggestion["convertTo"] = None

    return suggestion


class StyleInspector:
    """Collect element-type and style-id statistics from sections."""

    def inspect(self, sections: Sequence[Section], detailed: bool = False) -> InspectionReport:
        """Return an :class:`InspectionReport` for *sections*.

        Parameters
        ----------
        sections : sequence of Section
            Parsed document.
        detailed : bool, optional
            Also record the first occurrence of each style id with a short
            text preview.
        """
        report = InspectionReport(total_sections=len(sections))

        for section_index, section in enumerate(sections):
            for element_index, element in enumerate(section.elements):
                report.total_elements += 1
                element_type = type(element).__name__
                report.element_types[element_type] += 1

                for style_id in _collect_style_ids(element):
                    usage = report.styles.setdefault(style_id, StyleUsage())
                    usage.count += 1
                    if element_type not in usage.types:
                        usage.types.append(element_type)

                    if detailed and style_id not in report.first_occurrences:
                        report.first_occurrences[style_id] = StyleOccurrence(
                            section=section_index,
                            element=element_index,
                            type=element_type,
                            preview=element_text(element)[:PREVIEW_LENGTH],
                        )

        logger.info(
            "Inspected %d element(s), %d style id(s)",
            report.total_elements,
            len(report.styles),
        )
        return report

    @staticmethod
    def export_template(report: InspectionReport, path: str | Path) -> Path:
        """Write a YAML style-map template for the styles in *report*.

        Style ids are sorted alphabetically; each entry carries the
        suggested mapping and a comment with its usage.
        """
        path = Path(path)
        content = _TEMPLATE_HEADER
        for style_id in sorted(report.styles):
            usage = report.styles[style_id]
            entry = {
                key: value
                for key, value in suggest_mapping(style_id).items()
                if value is not None
            }
            content += yaml.safe_dump(
                {style_id: entry}, sort_keys=False, allow_unicode=True
            )
            content += f"  # Used {usage.count} time(s) in: {', '.join(usage.types)}\n\n"

        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "w", encoding="utf-8") as fh:
            fh.write(content)
        logger.info("Style template exported to %s", path)
        return path
