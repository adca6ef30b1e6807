"""Tests for DocxParser and end-to-end conversion of generated .docx files."""

from __future__ import annotations

import base64
import io
import json
import re
from pathlib import Path

import pytest
from docx import Document
from docx.opc.constants import RELATIONSHIP_TYPE as RT
from docx.oxml import OxmlElement
from docx.oxml.ns import qn
from docx.shared import Inches, RGBColor

from docx2html.models import DEFAULT_PAGE, FontStyle, Heading, Image, Link, Paragraph, Table, TextRun

# 1x1 transparent PNG
PNG_1PX = base64.b64decode(
    "iVBORw0KGgoAAAANSUhEUgAAAAEAAAABCAYAAAAfFcSJAAAADUlEQVR42mNkYPhfDwAChwGA60e6kgAAAABJRU5ErkJggg=="
)


def _add_hyperlink(paragraph, url: str, text: str) -> None:
    rid = paragraph.part.relate_to(url, RT.HYPERLINK, is_external=True)
    hyperlink = OxmlElement("w:hyperlink")
    hyperlink.set(qn("r:id"), rid)
    run = OxmlElement("w:r")
    t = OxmlElement("w:t")
    t.text = text
    run.append(t)
    hyperlink.append(run)
    paragraph._p.append(hyperlink)


def _build_sample(path: Path) -> Path:
    doc = Document()
    doc.add_heading("Annual Report", level=1)

    p = doc.add_paragraph("Plain ")
    bold = p.add_run("bold")
    bold.bold = True
    red = p.add_run(" red")
    red.font.color.rgb = RGBColor(0xFF, 0x00, 0x00)

    doc.add_paragraph("First item", style="List Paragraph")
    doc.add_paragraph("Second item", style="List Paragraph")

    link_paragraph = doc.add_paragraph("See ")
    _add_hyperlink(link_paragraph, "https://example.com", "Example")

    table = doc.add_table(rows=2, cols=2)
    table.cell(0, 0).text = "Name"
    table.cell(0, 1).text = "Value"
    table.cell(1, 0).text = "Alpha"
    table.cell(1, 1).text = "1"

    doc.add_picture(io.BytesIO(PNG_1PX), width=Inches(1))

    doc.sections[0].header.add_paragraph("Running head")

    doc.save(str(path))
    return path


@pytest.fixture
def sample_docx(tmp_path) -> Path:
    return _build_sample(tmp_path / "sample.docx")


def _of_type(elements, cls):
    return [e for e in elements if isinstance(e, cls)]


# ── Parser tests ────────────────────────────────────────────────────


class TestParser:
    def test_file_not_found(self, tmp_path):
        from docx2html.parser import DocxParser

        with pytest.raises(FileNotFoundError):
            DocxParser().parse(str(tmp_path / "nonexistent.docx"))

    def test_wrong_extension(self, tmp_path):
        from docx2html.parser import DocxParser

        path = tmp_path / "notes.txt"
        path.write_text("hello", encoding="utf-8")
        with pytest.raises(ValueError, match="Unsupported file type"):
            DocxParser().parse(str(path))

    def test_corrupted_file(self, tmp_path):
        from docx2html.parser import DocxParser

        path = tmp_path / "broken.docx"
        path.write_bytes(b"this is not a zip archive")
        with pytest.raises(ValueError, match="corrupted"):
            DocxParser().parse(str(path))

    def test_heading(self, sample_docx):
        from docx2html.parser import DocxParser

        sections = DocxParser().parse(str(sample_docx))
        headings = _of_type(sections[0].elements, Heading)
        assert len(headings) == 1
        assert headings[0].depth == 1
        assert headings[0].text == "Annual Report"
        assert headings[0].style_id == "Heading1"

    def test_run_formatting(self, sample_docx):
        from docx2html.parser import DocxParser

        sections = DocxParser().parse(str(sample_docx))
        paragraph = next(
            p for p in _of_type(sections[0].elements, Paragraph) if p.text.startswith("Plain")
        )
        assert paragraph.runs[0] == TextRun("Plain ")
        assert paragraph.runs[1] == TextRun("bold", FontStyle(bold=True))
        assert paragraph.runs[2].style.color == "FF0000"

    def test_list_paragraph_style_id(self, sample_docx):
        from docx2html.parser import DocxParser

        sections = DocxParser().parse(str(sample_docx))
        items = [p for p in _of_type(sections[0].elements, Paragraph) if p.style_id == "ListParagraph"]
        assert [p.text for p in items] == ["First item", "Second item"]

    def test_hyperlink(self, sample_docx):
        from docx2html.parser import DocxParser

        sections = DocxParser().parse(str(sample_docx))
        paragraph = next(
            p for p in _of_type(sections[0].elements, Paragraph) if p.text.startswith("See")
        )
        assert paragraph.runs[-1] == Link(source="https://example.com", text="Example")

    def test_hyperlink_keeps_picture(self, tmp_path):
        from docx2html.parser import DocxParser

        doc = Document()
        paragraph = doc.add_paragraph()
        picture_run = paragraph.add_run()
        picture_run.add_picture(io.BytesIO(PNG_1PX), width=Inches(1))

        rid = paragraph.part.relate_to("https://example.com/chart", RT.HYPERLINK, is_external=True)
        hyperlink = OxmlElement("w:hyperlink")
        hyperlink.set(qn("r:id"), rid)
        text_run = OxmlElement("w:r")
        t = OxmlElement("w:t")
        t.text = "Chart"
        text_run.append(t)
        hyperlink.append(text_run)
        hyperlink.append(picture_run._r)
        paragraph._p.append(hyperlink)

        path = tmp_path / "linked_picture.docx"
        doc.save(str(path))

        runs = DocxParser().parse(str(path))[0].elements[0].runs
        assert runs[0] == Link(source="https://example.com/chart", text="Chart")
        assert len(runs) == 2
        assert isinstance(runs[1], Image)
        assert runs[1].source.endswith("#word/media/image1.png")

    def test_table_cell_paragraph_style(self, tmp_path):
        from docx2html.parser import DocxParser

        doc = Document()
        table = doc.add_table(rows=1, cols=1)
        cell_paragraph = table.cell(0, 0).paragraphs[0]
        cell_paragraph.text = "cited"
        cell_paragraph.style = "Quote"
        path = tmp_path / "cell_style.docx"
        doc.save(str(path))

        parsed = _of_type(DocxParser().parse(str(path))[0].elements, Table)[0]
        cell = parsed.rows[0].cells[0]
        assert cell.style_id is None
        assert cell.elements[0].style_id == "Quote"
        assert cell.elements[0].text == "cited"

    def test_table(self, sample_docx):
        from docx2html.parser import DocxParser

        sections = DocxParser().parse(str(sample_docx))
        tables = _of_type(sections[0].elements, Table)
        assert len(tables) == 1
        table = tables[0]
        assert len(table.rows) == 2
        assert [len(row.cells) for row in table.rows] == [2, 2]
        assert table.rows[1].cells[0].elements[0].text == "Alpha"

    def test_image(self, sample_docx):
        from docx2html.parser import DocxParser

        sections = DocxParser().parse(str(sample_docx))
        images = [
            run
            for p in _of_type(sections[0].elements, Paragraph)
            for run in p.runs
            if isinstance(run, Image)
        ]
        assert len(images) == 1
        image = images[0]
        assert image.source.startswith("zip://")
        assert image.source.endswith("#word/media/image1.png")
        assert image.width == 96
        assert image.height == 96

    def test_header(self, sample_docx):
        from docx2html.parser import DocxParser

        sections = DocxParser().parse(str(sample_docx))
        assert len(sections[0].headers) == 1
        header = sections[0].headers[0]
        assert header.page_type == DEFAULT_PAGE
        assert [e.text for e in header.elements] == ["Running head"]

    def test_section_breaks(self, tmp_path):
        from docx2html.parser import DocxParser

        doc = Document()
        doc.add_paragraph("one")
        doc.add_section()
        doc.add_paragraph("two")
        path = tmp_path / "sections.docx"
        doc.save(str(path))

        sections = DocxParser().parse(str(path))
        assert len(sections) == 2
        assert [p.text for p in sections[0].elements] == ["one"]
        assert [p.text for p in sections[1].elements] == ["two"]

    def test_empty_paragraphs_skipped(self, tmp_path):
        from docx2html.parser import DocxParser

        doc = Document()
        doc.add_paragraph("")
        doc.add_paragraph("text")
        path = tmp_path / "empty.docx"
        doc.save(str(path))

        sections = DocxParser().parse(str(path))
        assert [p.text for p in sections[0].elements] == ["text"]

    def test_line_break_in_run(self, tmp_path):
        from docx2html.parser import DocxParser

        doc = Document()
        run = doc.add_paragraph().add_run("a")
        run.add_break()
        run.add_text("b")
        path = tmp_path / "breaks.docx"
        doc.save(str(path))

        sections = DocxParser().parse(str(path))
        assert sections[0].elements[0].text == "a\nb"


class TestParseFontStyle:
    def test_no_formatting_returns_none(self):
        from docx2html.parser import parse_font_style

        assert parse_font_style(None) is None
        assert parse_font_style(OxmlElement("w:rPr")) is None

    def test_explicit_off_toggle(self):
        from docx2html.parser import parse_font_style

        rpr = OxmlElement("w:rPr")
        b = OxmlElement("w:b")
        b.set(qn("w:val"), "0")
        rpr.append(b)
        i = OxmlElement("w:i")
        rpr.append(i)
        assert parse_font_style(rpr) == FontStyle(italic=True)

    def test_vert_align_and_highlight(self):
        from docx2html.parser import parse_font_style

        rpr = OxmlElement("w:rPr")
        va = OxmlElement("w:vertAlign")
        va.set(qn("w:val"), "superscript")
        rpr.append(va)
        hl = OxmlElement("w:highlight")
        hl.set(qn("w:val"), "yellow")
        rpr.append(hl)
        assert parse_font_style(rpr) == FontStyle(superscript=True, highlight="yellow")


# ── End-to-end tests ────────────────────────────────────────────────


class TestEndToEnd:
    def test_docx_to_html(self, sample_docx):
        from docx2html.converter import DocxConverter
        from docx2html.style_map import StyleMap

        html = (
            DocxConverter()
            .with_style_map(StyleMap.from_file())
            .load_document(sample_docx)
            .to_html()
        )

        assert html.startswith("<!DOCTYPE html>")
        assert '<h1 class="heading1">Annual Report</h1>' in html
        assert "Plain <strong>bold</strong>" in html
        assert '<span style="color: #ff0000;"> red</span>' in html
        assert '<ul class="list">' in html
        assert '<li class="list-paragraph">First item</li>' in html
        assert '<a href="https://example.com" rel="noopener noreferrer">Example</a>' in html
        assert "<td>Alpha</td>" in html
        assert '<header class="header-default">' in html

    def test_images_extracted(self, sample_docx, tmp_path):
        from docx2html.converter import DocxConverter

        assets = tmp_path / "out" / "assets"
        html = (
            DocxConverter()
            .load_document(sample_docx)
            .with_assets_dir(assets)
            .set_output_file_path(tmp_path / "out" / "report.html")
            .to_html(fragment=True)
        )

        match = re.search(r'src="(assets/[0-9a-f]{40}\.png)"', html)
        assert match is not None
        assert (tmp_path / "out" / match.group(1)).is_file()
        assert (assets / "assets-manifest.json").is_file()

    def test_docx_to_json(self, sample_docx):
        from docx2html.converter import DocxConverter

        data = json.loads(DocxConverter().load_document(sample_docx).convert("json"))
        assert len(data) == 1
        types = [item["type"] for item in data[0]]
        assert types[0] == "Heading"
        assert "Table" in types
        assert data[0][0]["text"] == "Annual Report"
