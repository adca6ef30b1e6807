"""Data models for the docx2html document tree.

These models describe a parsed word-processing document independently of
the ``.docx`` container.  The parser produces them, the renderers consume
them, and nothing in between needs to know about WordprocessingML.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Optional


# ── Header / footer page types ──────────────────────────────────────

FIRST_PAGE = 1
DEFAULT_PAGE = 2
EVEN_PAGE = 3


# ── Inline formatting ───────────────────────────────────────────────


@dataclass(frozen=True)
class FontStyle:
    """Character formatting of a text run.

    Instances are immutable and compare by value, so two runs can be merged
    whenever their styles are equal.
    """
    bold: bool = False
    italic: bool = False
    underline: Optional[str] = None  # underline kind, "none" means no underline
    strikethrough: bool = False
    double_strikethrough: bool = False
    superscript: bool = False
    subscript: bool = False
    small_caps: bool = False
    all_caps: bool = False
    color: Optional[str] = None
    bg_color: Optional[str] = None
    highlight: Optional[str] = None  # Word highlight name, e.g. "yellow"


@dataclass
class TextRun:
    """A contiguous span of text sharing the same character formatting."""
    text: str
    style: Optional[FontStyle] = None


@dataclass
class Link:
    """A hyperlink, either external (URL) or internal (``#anchor``)."""
    source: str = ""
    text: Optional[str] = None


@dataclass
class Image:
    """A reference to an embedded picture.

    ``source`` is whatever the provider exposes for the picture: a
    ``zip://<docx>#<internal path>`` URL, a bare internal path, a
    relationship id, or a filesystem path.
    """
    source: str = ""
    name: str = ""
    width: Optional[int] = None   # px
    height: Optional[int] = None  # px


@dataclass
class Footnote:
    """A footnote citation together with the note body."""
    elements: list[Any] = field(default_factory=list)


@dataclass
class Endnote:
    """An endnote citation together with the note body."""
    elements: list[Any] = field(default_factory=list)


InlineElement = TextRun | Link | Image | Footnote | Endnote


# ── Block-level elements ────────────────────────────────────────────


@dataclass
class Paragraph:
    """A paragraph: a sequence of inline runs plus its paragraph style."""
    runs: list[InlineElement] = field(default_factory=list)
    style_id: Any = None

    @property
    def text(self) -> str:
        return "".join(
            r.text for r in self.runs if isinstance(r, TextRun)
        )


@dataclass
class PlainText:
    """Bare text placed directly in a container, outside any paragraph."""
    text: str = ""
    style: Optional[FontStyle] = None


@dataclass
class Heading:
    """A heading paragraph (``Heading 1`` .. ``Heading 6``, ``Title``)."""
    depth: int = 1
    runs: list[InlineElement] = field(default_factory=list)
    style_id: Any = None

    @property
    def text(self) -> str:
        return "".join(
            r.text for r in self.runs if isinstance(r, TextRun)
        )


@dataclass
class ListItem:
    """A natively numbered list item carrying a single text run."""
    text: TextRun = field(default_factory=lambda: TextRun(text=""))
    depth: int = 0


@dataclass
class LineBreak:
    """An explicit line break between blocks."""
    pass


@dataclass
class TableCell:
    """Single table cell with its own block content.

    WordprocessingML has no cell styles, so :class:`DocxParser` leaves
    ``style_id`` unset; it is only filled by providers that build trees
    directly.  Paragraph styles inside the cell still reach the output.
    """
    elements: list[Any] = field(default_factory=list)
    grid_span: int = 1
    style_id: Any = None


@dataclass
class TableRow:
    """Row with a sequence of cells."""
    cells: list[TableCell] = field(default_factory=list)


@dataclass
class Table:
    """A table with its rows and table style."""
    rows: list[TableRow] = field(default_factory=list)
    style_id: Any = None


# ── Content type union ──────────────────────────────────────────────

Element = (
    Paragraph | PlainText | Heading | Table | ListItem
    | Footnote | Endnote | Link | Image | LineBreak
)


# ── Document structure ──────────────────────────────────────────────


@dataclass
class HeaderFooter:
    """Header or footer content for one page type."""
    page_type: int = DEFAULT_PAGE
    elements: list[Element] = field(default_factory=list)


@dataclass
class Section:
    """A document section: body elements plus optional headers/footers."""
    elements: list[Element] = field(default_factory=list)
    headers: list[HeaderFooter] = field(default_factory=list)
    footers: list[HeaderFooter] = field(default_factory=list)

    def has_content(self) -> bool:
        """Return ``True`` if the body, a header or a footer holds any element."""
        if self.elements:
            return True
        return any(hf.elements for hf in (*self.headers, *self.footers))


def resolve_style_id(style: Any) -> str:
    """Return the style identifier carried by *style*.

    Providers expose styles either as a plain string id or as an object
    bearing the id (``style_id``) or name (``name``).  Anything else
    resolves to ``""``.
    """
    if style is None:
        return ""
    if isinstance(style, str):
        return style
    for attr in ("style_id", "name"):
        value = getattr(style, attr, None)
        if isinstance(value, str) and value:
            return value
    return ""
