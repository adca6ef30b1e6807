"""High-level conversion entry points.

:func:`create_transformer` builds the renderer for an output format and
:class:`DocxConverter` chains parsing, configuration and rendering::

    html = (
        DocxConverter()
        .load_document("report.docx")
        .with_style_map(StyleMap.from_file("styles.yaml"))
        .with_assets_dir("out/assets")
        .set_output_file_path("out/report.html")
        .to_html()
    )
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Optional

from docx2html.images import DocxArchive, ImageAssetExtractor
from docx2html.json_renderer import JsonRenderer
from docx2html.models import Section
from docx2html.parser import DocxParser
from docx2html.renderer import HtmlRenderer
from docx2html.style_map import StyleMap, TransformationRules

logger = logging.getLogger(__name__)

SUPPORTED_FORMATS = ("html", "json")


def create_transformer(
    fmt: str,
    style_map: Optional[StyleMap] = None,
    rules: Optional[TransformationRules] = None,
    **options: Any,
) -> HtmlRenderer | JsonRenderer:
    """Return the renderer for *fmt*.

    Extra keyword *options* (``image_extractor``, ``debug``) are passed to
    the HTML renderer.

    Raises
    ------
    ValueError
        If *fmt* is not ``"html"`` or ``"json"``.
    """
    match fmt:
        case "html":
            return HtmlRenderer(style_map, rules, **options)
        case "json":
            return JsonRenderer(style_map, rules)
        case _:
            raise ValueError(f"Unsupported format: {fmt}")


class DocxConverter:
    """Fluent facade over parser, renderers and image extraction."""

    def __init__(self) -> None:
        self.style_map = StyleMap()
        self.rules = TransformationRules()
        self.debug = False
        self._document_path: Optional[Path] = None
        self._sections: Optional[list[Section]] = None
        self._assets_dir: Optional[Path] = None
        self._output_file_path: Optional[Path] = None

    # ── Configuration ──────────────────────────────────────────────

    def load_document(self, path: str | Path) -> "DocxConverter":
        """Parse the ``.docx`` file at *path*.

        Raises
        ------
        FileNotFoundError
            If *path* does not exist.
        ValueError
            If *path* is not a readable ``.docx`` file.
        """
        self._sections = DocxParser().parse(str(path))
        self._document_path = Path(path)
        return self

    def with_sections(self, sections: list[Section]) -> "DocxConverter":
        """Use an already built document tree instead of parsing a file."""
        self._sections = list(sections)
        self._document_path = None
        return self

    def with_style_map(self, style_map: StyleMap) -> "DocxConverter":
        self.style_map = style_map
        return self

    def with_transformation_rules(self, rules: TransformationRules) -> "DocxConverter":
        self.rules = rules
        return self

    def with_assets_dir(self, assets_dir: str | Path | None) -> "DocxConverter":
        self._assets_dir = Path(assets_dir) if assets_dir else None
        return self

    def set_output_file_path(self, path: str | Path | None) -> "DocxConverter":
        self._output_file_path = Path(path) if path else None
        return self

    def with_debug(self, debug: bool = True) -> "DocxConverter":
        self.debug = debug
        return self

    # ── Output ─────────────────────────────────────────────────────

    @property
    def sections(self) -> list[Section]:
        if self._sections is None:
            raise RuntimeError("No document loaded; call load_document() first")
        return self._sections

    def build_image_extractor(self) -> Optional[ImageAssetExtractor]:
        """Return an extractor for the loaded document, or ``None`` without assets dir."""
        if self._assets_dir is None:
            return None
        archive = DocxArchive(self._document_path) if self._document_path else None
        return ImageAssetExtractor(archive, self._assets_dir, self._output_file_path)

    def to_html(self, fragment: bool = False) -> str:
        renderer = create_transformer(
            "html",
            self.style_map,
            self.rules,
            image_extractor=self.build_image_extractor(),
            debug=self.debug,
        )
        return renderer.transform(self.sections, fragment=fragment)

    def to_json(self) -> str:
        return create_transformer("json", self.style_map, self.rules).transform(self.sections)

    def convert(self, fmt: str = "html", fragment: bool = False) -> str:
        """Render the loaded document as *fmt* (``"html"`` or ``"json"``).

        Raises
        ------
        ValueError
            If *fmt* is not supported.
        """
        if fmt not in SUPPORTED_FORMATS:
            raise ValueError(f"Unsupported format: {fmt}")
        logger.info("Converting %s to %s", self._document_path or "<sections>", fmt)
        if fmt == "json":
            return self.to_json()
        return self.to_html(fragment=fragment)
