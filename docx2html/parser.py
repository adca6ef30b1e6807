"""DOCX file parser that produces the docx2html section tree.

Reads a Microsoft Word .docx file using python-docx for package access and
lxml for low-level XML inspection (section properties, run formatting,
drawings, note references, etc.).  The result is a list of
:class:`Section` objects that the renderers can consume without any
knowledge of the DOCX format.
"""

from __future__ import annotations

import logging
import os
import re
from typing import Any, Optional

from docx import Document as open_docx
from docx.document import Document
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.oxml.ns import qn
from lxml import etree

from docx2html.models import (
    DEFAULT_PAGE,
    EVEN_PAGE,
    FIRST_PAGE,
    Endnote,
    FontStyle,
    Footnote,
    HeaderFooter,
    Heading,
    Image,
    Link,
    Paragraph,
    Section,
    Table,
    TableCell,
    TableRow,
    TextRun,
)

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────

# 1 px at 96 dpi = 9525 EMU
_EMU_PER_PX = 9525

# Heading style prefix used by python-docx (e.g. "Heading 1", "Heading 2").
_HEADING_RE = re.compile(r"^Heading\s*(\d)$", re.IGNORECASE)
# French style names ("Titre 1", "Titre1").
_TITRE_RE = re.compile(r"^Titre\s*(\d)$", re.IGNORECASE)

_VML_NS = "urn:schemas-microsoft-com:vml"
_VML_OFFICE_NS = "urn:schemas-microsoft-com:office:office"

_PAGE_TYPES: dict[str, int] = {
    "first": FIRST_PAGE,
    "default": DEFAULT_PAGE,
    "even": EVEN_PAGE,
}

# Note ids used by Word for separator pseudo-notes.
_SEPARATOR_NOTE_TYPES = ("separator", "continuationSeparator", "continuationNotice")

# Inline containers whose runs are part of the visible paragraph text.
_TRANSPARENT_INLINE_TAGS = ("ins", "smartTag", "fldSimple", "customXml", "bdo", "dir")


# ── Helpers ────────────────────────────────────────────────────────────


def _localname(elem) -> str:
    return etree.QName(elem.tag).localname if isinstance(elem.tag, str) else ""


def _emu_to_px(emu: int) -> int:
    """Convert English Metric Units to CSS pixels."""
    return round(emu / _EMU_PER_PX)


def _flag_value(rpr, tag: str) -> bool:
    """Read a boolean toggle element like ``<w:b/>`` or ``<w:b w:val="0"/>``."""
    elem = rpr.find(qn(tag))
    if elem is None:
        return False
    val = elem.get(qn("w:val"), "true")
    return val.lower() not in ("false", "0", "none", "off")


def _attr_value(rpr, tag: str, attr: str = "w:val") -> Optional[str]:
    elem = rpr.find(qn(tag))
    if elem is None:
        return None
    return elem.get(qn(attr))


def parse_font_style(rpr) -> Optional[FontStyle]:
    """Build a :class:`FontStyle` from a ``<w:rPr>`` element.

    Returns ``None`` when the run carries no formatting of interest.
    """
    if rpr is None:
        return None

    vert_align = _attr_value(rpr, "w:vertAlign")
    underline = _attr_value(rpr, "w:u")
    bg_color = _attr_value(rpr, "w:shd", "w:fill")
    highlight = _attr_value(rpr, "w:highlight")

    style = FontStyle(
        bold=_flag_value(rpr, "w:b"),
        italic=_flag_value(rpr, "w:i"),
        underline=underline if underline and underline != "none" else None,
        strikethrough=_flag_value(rpr, "w:strike"),
        double_strikethrough=_flag_value(rpr, "w:dstrike"),
        superscript=vert_align == "superscript",
        subscript=vert_align == "subscript",
        small_caps=_flag_value(rpr, "w:smallCaps"),
        all_caps=_flag_value(rpr, "w:caps"),
        color=_attr_value(rpr, "w:color"),
        bg_color=bg_color if bg_color and bg_color.lower() != "auto" else None,
        highlight=highlight if highlight and highlight != "none" else None,
    )
    return None if style == FontStyle() else style


def _part_root(part):
    """Return the XML root of a package part (python-docx XmlPart or raw Part)."""
    element = getattr(part, "element", None)
    if element is not None:
        return element
    return etree.fromstring(part.blob)


# ── Main parser ────────────────────────────────────────────────────────


class DocxParser:
    """Parse a ``.docx`` file into a list of :class:`Section`.

    Usage::

        parser = DocxParser()
        sections = parser.parse("document.docx")
    """

    def __init__(self) -> None:
        self._doc: Optional[Document] = None
        self._path: str = ""
        self._style_name_map: dict[str, str] = {}  # styleId -> canonical name
        self._style_outline_lvl: dict[str, int] = {}  # styleId -> outline level (0-based)
        self._footnotes: dict[str, list[Paragraph | Table]] = {}
        self._endnotes: dict[str, list[Paragraph | Table]] = {}

    # ── Public API ─────────────────────────────────────────────────

    def parse(self, file_path: str) -> list[Section]:
        """Parse *file_path* and return its sections.

        Raises
        ------
        FileNotFoundError
            If *file_path* does not exist.
        ValueError
            If *file_path* is not a ``.docx`` file or is corrupted.
        """
        if not os.path.isfile(file_path):
            raise FileNotFoundError(f"File not found: {file_path}")

        if not file_path.lower().endswith(".docx"):
            raise ValueError(
                f"Unsupported file type (expected .docx): {file_path}"
            )

        try:
            self._doc = open_docx(file_path)
        except Exception as exc:
            raise ValueError(
                f"Failed to open document (file may be corrupted): {exc}"
            ) from exc

        self._path = os.path.abspath(file_path)
        logger.info("Parsing document: %s", file_path)

        self._build_style_map()
        self._footnotes = self._load_notes(RT.FOOTNOTES, "w:footnote")
        self._endnotes = self._load_notes(RT.ENDNOTES, "w:endnote")

        sections = self._walk_body()

        logger.info(
            "Parsed %d section(s), %d element(s), %d footnote(s), %d endnote(s)",
            len(sections),
            sum(len(s.elements) for s in sections),
            len(self._footnotes),
            len(self._endnotes),
        )
        return sections

    # ── Style / note maps ──────────────────────────────────────────

    def _build_style_map(self) -> None:
        """Build mappings from style ID to canonical name and outline level.

        This allows heading detection to work regardless of whether the style
        ID is localised (e.g. "Titre1" in French) or differs from the
        canonical English name (e.g. "Heading1" vs "Heading 1").
        """
        assert self._doc is not None
        self._style_name_map = {}
        self._style_outline_lvl = {}

        styles_element = self._doc.styles.element
        for style_elem in styles_element.findall(qn("w:style")):
            style_id = style_elem.get(qn("w:styleId"), "")
            if not style_id:
                continue

            name_elem = style_elem.find(qn("w:name"))
            if name_elem is not None:
                name = name_elem.get(qn("w:val"), "")
                if name:
                    self._style_name_map[style_id] = name

            ppr = style_elem.find(qn("w:pPr"))
            if ppr is not None:
                outline_lvl = ppr.find(qn("w:outlineLvl"))
                if outline_lvl is not None:
                    val = outline_lvl.get(qn("w:val"), "")
                    if val.isdigit():
                        self._style_outline_lvl[style_id] = int(val)

        logger.debug(
            "Style map built: %d styles, %d with outline levels",
            len(self._style_name_map),
            len(self._style_outline_lvl),
        )

    def _load_notes(self, reltype: str, note_tag: str) -> dict[str, list[Paragraph | Table]]:
        """Parse the footnotes or endnotes part into ``{note id: blocks}``."""
        assert self._doc is not None
        notes: dict[str, list[Paragraph | Table]] = {}

        for rel in self._doc.part.rels.values():
            if rel.reltype != reltype or rel.is_external:
                continue
            part = rel.target_part
            root = _part_root(part)
            for note in root.findall(qn(note_tag)):
                if note.get(qn("w:type")) in _SEPARATOR_NOTE_TYPES:
                    continue
                note_id = note.get(qn("w:id"))
                if note_id is None:
                    continue
                notes[note_id] = self._walk_blocks(note, part)

        return notes

    # ── Body walk ──────────────────────────────────────────────────

    def _walk_body(self) -> list[Section]:
        """Split the body into sections at paragraph-level ``<w:sectPr>``."""
        assert self._doc is not None
        body = self._doc.element.body
        part = self._doc.part

        sections: list[Section] = []
        elements: list[Any] = []
        final_sect_pr = None

        for child in body:
            tag = _localname(child)

            if tag == "sectPr":
                final_sect_pr = child
                continue
            if tag not in ("p", "tbl", "sdt"):
                logger.debug("Skipping unknown body element: %s", tag)
                continue

            elements.extend(self._process_block(child, part))

            if tag == "p":
                ppr = child.find(qn("w:pPr"))
                sect_pr = ppr.find(qn("w:sectPr")) if ppr is not None else None
                if sect_pr is not None:
                    sections.append(self._build_section(elements, sect_pr))
                    elements = []

        sections.append(self._build_section(elements, final_sect_pr))
        return sections

    def _build_section(self, elements: list[Any], sect_pr) -> Section:
        section = Section(elements=elements)
        if sect_pr is None:
            return section

        section.headers = self._header_footers(sect_pr, "w:headerReference")
        section.footers = self._header_footers(sect_pr, "w:footerReference")
        return section

    def _header_footers(self, sect_pr, reference_tag: str) -> list[HeaderFooter]:
        """Resolve header or footer references of a section.

        A section without a reference of its own is linked to the previous
        one; the linked content is not repeated.
        """
        assert self._doc is not None
        result: list[HeaderFooter] = []

        for ref in sect_pr.findall(qn(reference_tag)):
            rid = ref.get(qn("r:id"))
            page_type = _PAGE_TYPES.get(ref.get(qn("w:type"), "default"), DEFAULT_PAGE)
            part = self._doc.part.related_parts.get(rid) if rid else None
            if part is None:
                logger.debug("Missing %s part %s", reference_tag, rid)
                continue
            result.append(HeaderFooter(
                page_type=page_type,
                elements=self._walk_blocks(_part_root(part), part),
            ))

        result.sort(key=lambda hf: hf.page_type)
        return result

    def _walk_blocks(self, container, part) -> list[Any]:
        """Return the block elements of a body-like container."""
        elements: list[Any] = []
        for child in container:
            elements.extend(self._process_block(child, part))
        return elements

    def _process_block(self, elem, part) -> list[Any]:
        tag = _localname(elem)
        if tag == "p":
            paragraph = self._process_paragraph(elem, part)
            return [paragraph] if paragraph is not None else []
        if tag == "tbl":
            return [self._process_table(elem, part)]
        if tag == "sdt":
            # Structured document tags wrap content; recurse into them.
            sdt_content = elem.find(qn("w:sdtContent"))
            if sdt_content is not None:
                return self._walk_blocks(sdt_content, part)
        return []

    # ── Paragraph processing ───────────────────────────────────────

    def _process_paragraph(self, para_elem, part) -> Paragraph | Heading | None:
        """Process a ``<w:p>`` element; empty paragraphs yield ``None``."""
        ppr = para_elem.find(qn("w:pPr"))
        style_id = None
        if ppr is not None:
            pstyle = ppr.find(qn("w:pStyle"))
            if pstyle is not None:
                style_id = pstyle.get(qn("w:val")) or None

        runs = self._parse_runs(para_elem, part)
        if not runs:
            return None

        heading_level = self._detect_heading_level(ppr, style_id)
        if heading_level is not None:
            return Heading(depth=heading_level, runs=runs, style_id=style_id)
        return Paragraph(runs=runs, style_id=style_id)

    def _detect_heading_level(self, ppr, style_id: Optional[str]) -> Optional[int]:
        """Return heading level (1-6) if the paragraph is a heading, else *None*.

        Detection order:
        1. Paragraph-level outline level (``<w:outlineLvl>`` in ``<w:pPr>``).
        2. Style outline level from the document's style definitions.
        3. Style name / style ID pattern matching (English + French).
        """
        if ppr is not None:
            outline_lvl = ppr.find(qn("w:outlineLvl"))
            if outline_lvl is not None:
                val = outline_lvl.get(qn("w:val"), "")
                if val.isdigit() and int(val) <= 5:
                    return int(val) + 1  # outlineLvl is 0-based

        if not style_id:
            return None

        if style_id in self._style_outline_lvl:
            outline = self._style_outline_lvl[style_id]
            if outline <= 5:
                return outline + 1

        style_name = self._style_name_map.get(style_id, "")
        for candidate in (style_name, style_id):
            if not candidate:
                continue
            m = _HEADING_RE.match(candidate) or _TITRE_RE.match(candidate)
            if m:
                return min(max(int(m.group(1)), 1), 6)
            if candidate.lower() in ("title", "titre"):
                return 1

        return None

    # ── Run parsing ────────────────────────────────────────────────

    def _parse_runs(self, para_elem, part) -> list[Any]:
        """Parse all inline content of a paragraph, including hyperlinks."""
        result: list[Any] = []

        for child in para_elem:
            tag = _localname(child)

            if tag == "r":
                result.extend(self._parse_single_run(child, part))
            elif tag == "hyperlink":
                inner = self._parse_runs(child, part)
                href = self._resolve_hyperlink(child, part)
                if href is None:
                    result.extend(inner)
                    continue
                text = "".join(r.text for r in inner if isinstance(r, TextRun))
                result.append(Link(source=href, text=text or None))
                # Images and note citations inside the link follow it.
                result.extend(r for r in inner if not isinstance(r, TextRun))
            elif tag in _TRANSPARENT_INLINE_TAGS:
                result.extend(self._parse_runs(child, part))
            elif tag == "sdt":
                sdt_content = child.find(qn("w:sdtContent"))
                if sdt_content is not None:
                    result.extend(self._parse_runs(sdt_content, part))

        return result

    def _parse_single_run(self, r_elem, part) -> list[Any]:
        """Parse a ``<w:r>`` element into text runs and inline objects."""
        style = parse_font_style(r_elem.find(qn("w:rPr")))
        result: list[Any] = []
        text = ""

        def flush() -> None:
            nonlocal text
            if text:
                result.append(TextRun(text=text, style=style))
                text = ""

        for child in r_elem:
            tag = _localname(child)
            if tag == "t":
                text += child.text or ""
            elif tag == "tab":
                text += "\t"
            elif tag in ("br", "cr"):
                # Page and column breaks carry no text.
                if child.get(qn("w:type"), "textWrapping") == "textWrapping":
                    text += "\n"
            elif tag == "noBreakHyphen":
                text += "‑"
            elif tag == "drawing":
                flush()
                result.extend(self._parse_drawing(child, part))
            elif tag == "pict":
                flush()
                result.extend(self._parse_pict(child, part))
            elif tag == "footnoteReference":
                flush()
                result.append(Footnote(elements=list(self._footnotes.get(child.get(qn("w:id")), []))))
            elif tag == "endnoteReference":
                flush()
                result.append(Endnote(elements=list(self._endnotes.get(child.get(qn("w:id")), []))))

        flush()
        return result

    @staticmethod
    def _resolve_hyperlink(hyperlink_elem, part) -> Optional[str]:
        """Resolve a ``<w:hyperlink>`` element to its target URL."""
        rid = hyperlink_elem.get(qn("r:id"))
        if rid and rid in part.rels:
            return part.rels[rid].target_ref
        anchor = hyperlink_elem.get(qn("w:anchor"))
        if anchor:
            return f"#{anchor}"
        return None

    # ── Images ─────────────────────────────────────────────────────

    def _image_source(self, part, rid: str) -> Optional[str]:
        """Return a ``zip://`` reference for the image related by *rid*."""
        image_part = part.related_parts.get(rid)
        if image_part is None:
            logger.debug("Image relationship %s not found", rid)
            return None
        internal_path = str(image_part.partname).lstrip("/")
        return f"zip://{self._path}#{internal_path}"

    def _parse_drawing(self, drawing_elem, part) -> list[Image]:
        """Parse a ``<w:drawing>`` element for inline/anchor images."""
        images: list[Image] = []

        width, height = self._drawing_extent(drawing_elem)
        alt_text = self._drawing_alt_text(drawing_elem)

        # Both inline and anchor images share the same nested structure.
        for blip in drawing_elem.iter(qn("a:blip")):
            embed_id = blip.get(qn("r:embed"))
            if embed_id is None:
                continue
            source = self._image_source(part, embed_id)
            if source is None:
                continue
            images.append(Image(source=source, name=alt_text, width=width, height=height))

        return images

    @staticmethod
    def _drawing_extent(drawing_elem) -> tuple[Optional[int], Optional[int]]:
        """Read ``<wp:extent>`` from a drawing element (EMU -> px)."""
        for extent in drawing_elem.iter(qn("wp:extent")):
            cx = extent.get("cx")
            cy = extent.get("cy")
            w = _emu_to_px(int(cx)) if cx and cx.isdigit() else None
            h = _emu_to_px(int(cy)) if cy and cy.isdigit() else None
            return w, h
        return None, None

    @staticmethod
    def _drawing_alt_text(drawing_elem) -> str:
        """Extract alt text from ``<wp:docPr>`` in a drawing element."""
        for doc_pr in drawing_elem.iter(qn("wp:docPr")):
            descr = doc_pr.get("descr", "")
            name = doc_pr.get("name", "")
            return descr or name
        return ""

    def _parse_pict(self, pict_elem, part) -> list[Image]:
        """Best-effort parse of legacy ``<w:pict>`` / VML images."""
        images: list[Image] = []
        for img_data in pict_elem.iter(f"{{{_VML_NS}}}imagedata"):
            rid = img_data.get(qn("r:id"))
            if rid is None:
                continue
            source = self._image_source(part, rid)
            if source is not None:
                images.append(Image(source=source, name=img_data.get(f"{{{_VML_OFFICE_NS}}}title", "")))
        return images

    # ── Table processing ───────────────────────────────────────────

    def _process_table(self, tbl_elem, part) -> Table:
        """Process a ``<w:tbl>`` element into a :class:`Table`."""
        style_id = None
        tbl_pr = tbl_elem.find(qn("w:tblPr"))
        if tbl_pr is not None:
            tbl_style = tbl_pr.find(qn("w:tblStyle"))
            if tbl_style is not None:
                style_id = tbl_style.get(qn("w:val")) or None

        table = Table(style_id=style_id)
        for tr in tbl_elem.findall(qn("w:tr")):
            row = TableRow()
            for tc in tr.findall(qn("w:tc")):
                grid_span = 1
                tc_pr = tc.find(qn("w:tcPr"))
                if tc_pr is not None:
                    span = tc_pr.find(qn("w:gridSpan"))
                    val = span.get(qn("w:val"), "1") if span is not None else "1"
                    grid_span = int(val) if val.isdigit() and int(val) > 0 else 1
                # Cells carry no style id of their own in WordprocessingML.
                row.cells.append(TableCell(
                    elements=self._walk_blocks(tc, part),
                    grid_span=grid_span,
                ))
            table.rows.append(row)

        return table
