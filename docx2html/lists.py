"""Reconstruction of nested lists from list-styled paragraphs.

Word documents converted without native numbering often express lists as a
flat run of paragraphs styled ``ListParagraph``, ``ListParagraph2``, ...
where the numeric suffix is the nesting depth.  This module groups such
paragraphs and rebuilds the ``<ul>``/``<ol>`` hierarchy.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Optional, Sequence

from docx2html.inline import class_attr
from docx2html.models import Paragraph, resolve_style_id
from docx2html.style_map import StyleMap, detect_list_level, normalize_style_id

logger = logging.getLogger(__name__)

_INDENT = "  "
_LI = "li"


@dataclass
class ListEntry:
    """A list paragraph with its resolved nesting information."""
    element: Paragraph
    style_id: str
    level: int
    list_type: str
    config: Optional[dict[str, Any]]


class ListReconstructionEngine:
    """Groups list paragraphs and renders them as nested HTML lists.

    Parameters
    ----------
    style_map : StyleMap
        Decides which paragraph styles are list styles.
    """

    def __init__(self, style_map: StyleMap) -> None:
        self._style_map = style_map

    def is_list_item(self, element: Any) -> bool:
        """Return ``True`` if *element* is a paragraph with a list style."""
        if not isinstance(element, Paragraph):
            return False
        style_id = resolve_style_id(element.style_id)
        return self._style_map.resolve_list_config(style_id) is not None

    def gather(self, elements: Sequence[Any], start: int) -> tuple[list[ListEntry], int]:
        """Collect consecutive list items beginning at *start*.

        Returns
        -------
        tuple[list[ListEntry], int]
            The gathered entries and the index of the first element after
            the group.
        """
        entries: list[ListEntry] = []
        index = start
        while index < len(elements) and self.is_list_item(elements[index]):
            paragraph = elements[index]
            style_id = resolve_style_id(paragraph.style_id)
            config = self._style_map.resolve_list_config(style_id)
            entries.append(ListEntry(
                element=paragraph,
                style_id=style_id,
                level=detect_list_level(style_id),
                list_type=(config or {}).get("listType") or "ul",
                config=config,
            ))
            index += 1
        return entries, index

    def build_nested_list(
        self,
        entries: Sequence[ListEntry],
        render_content: Callable[[Paragraph], str],
    ) -> str:
        """Render *entries* as one nested list structure.

        Parameters
        ----------
        entries : sequence of ListEntry
            A gathered group, in document order.
        render_content : callable
            Renders the inline content of one list paragraph.
        """
        if not entries:
            return ""

        html = ""
        stack: list[str] = []  # open container tags, and "li" for open parents
        current_level = 0

        for index, entry in enumerate(entries):
            level = entry.level
            has_children = (
                index + 1 < len(entries) and entries[index + 1].level > level
            )

            # Close nested lists (and the items that own them) down to level.
            while current_level > level:
                tag = stack.pop()
                if tag == _LI:
                    html += f"{_INDENT * current_level}</li>\n"
                else:
                    html += f"{_INDENT * (current_level - 1)}</{tag}>\n"
                    current_level -= 1

            # A parent item left open at this level is a finished sibling.
            if current_level == level and stack and stack[-1] == _LI:
                stack.pop()
                html += f"{_INDENT * current_level}</li>\n"

            while current_level < level:
                container_class = ""
                if current_level == 0 and entry.config:
                    container_class = class_attr(entry.config.get("className"))
                # Nested containers start on their own line after the parent item's text.
                if current_level > 0:
                    html += f"\n{_INDENT * current_level}"
                html += f"<{entry.list_type}{container_class}>\n"
                stack.append(entry.list_type)
                current_level += 1

            item_class = class_attr(normalize_style_id(entry.style_id))
            html += f"{_INDENT * current_level}<li{item_class}>"
            html += render_content(entry.element)

            if has_children:
                stack.append(_LI)
            else:
                html += "</li>\n"

        while stack:
            tag = stack.pop()
            if tag == _LI:
                html += f"{_INDENT * current_level}</li>\n"
            else:
                current_level -= 1
                html += f"{_INDENT * current_level}</{tag}>\n"

        logger.debug("Rebuilt list of %d item(s)", len(entries))
        return html
