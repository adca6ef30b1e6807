"""Extraction of embedded images into a content-addressed asset directory.

Image bytes are read from the ``.docx`` container and written as
``<sha1>.<ext>`` into the assets directory, so the same picture embedded
twice (under two relationship ids, or in two documents) is stored once.
A JSON manifest next to the assets records which container paths map to
each file; references found in the manifest are answered without opening
the container again.

Classes
-------
DocxArchive
    Read-only access to entries and relationships of a ``.docx`` file.
ImageAssetExtractor
    Resolves image references to extracted asset paths.
"""

from __future__ import annotations

import hashlib
import json
import logging
import os
import posixpath
import re
import threading
import zipfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Iterator, Optional

from lxml import etree

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────

MANIFEST_FILENAME = "assets-manifest.json"

ZIP_SCHEME = "zip://"

_DOCUMENT_RELS_PATH = "word/_rels/document.xml.rels"
_REL_NS = "http://schemas.openxmlformats.org/package/2006/relationships"

_RELATIONSHIP_ID_RE = re.compile(r"^rId\d+$")

# Manifest locks, one per resolved manifest path.
_manifest_locks: dict[str, threading.Lock] = {}
_manifest_locks_guard = threading.Lock()


# ── Container access ──────────────────────────────────────────────────


class DocxArchive:
    """Read entries and relationships from a ``.docx`` (ZIP) container.

    Parameters
    ----------
    path : str or Path
        Path of the container on disk.
    """

    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        self._relationships: Optional[dict[str, str]] = None

    def read_entry(self, internal_path: str) -> Optional[bytes]:
        """Return the bytes stored at *internal_path*, or ``None`` if absent.

        Raises
        ------
        OSError
            If the container cannot be opened.
        zipfile.BadZipFile
            If the container is not a valid ZIP archive.
        """
        with zipfile.ZipFile(self.path) as zf:
            try:
                return zf.read(internal_path)
            except KeyError:
                return None

    def list_relationships(self) -> dict[str, str]:
        """Return ``{rId: internal path}`` for the main document part.

        Targets are resolved relative to ``word/``.  External targets
        (hyperlinks) are skipped.
        """
        if self._relationships is not None:
            return dict(self._relationships)

        relationships: dict[str, str] = {}
        data = self.read_entry(_DOCUMENT_RELS_PATH)
        if data is not None:
            root = etree.fromstring(data)
            for rel in root.iter(f"{{{_REL_NS}}}Relationship"):
                if rel.get("TargetMode") == "External":
                    continue
                rel_id = rel.get("Id")
                target = rel.get("Target")
                if not rel_id or not target:
                    continue
                if target.startswith("/"):
                    target = target.lstrip("/")
                else:
                    target = posixpath.normpath(posixpath.join("word", target))
                relationships[rel_id] = target

        self._relationships = relationships
        return dict(relationships)


def split_zip_reference(reference: str) -> tuple[Optional[str], str]:
    """Split ``zip://<container>#<internal>`` into its two parts.

    Any other reference is returned unchanged as the internal part, with
    ``None`` for the container.  Part names never contain ``#``, so the
    split is on the last one; the container path may contain others.
    """
    if reference.startswith(ZIP_SCHEME) and "#" in reference:
        container, internal = reference[len(ZIP_SCHEME):].rsplit("#", 1)
        return container, internal
    return None, reference


# ── Manifest ──────────────────────────────────────────────────────────


@contextmanager
def _manifest_lock(manifest_path: Path) -> Iterator[None]:
    key = str(manifest_path.resolve())
    with _manifest_locks_guard:
        lock = _manifest_locks.setdefault(key, threading.Lock())
    with lock:
        yield


def load_manifest(manifest_path: Path) -> list[dict[str, Any]]:
    """Load the manifest, treating a missing or corrupt file as empty."""
    if not manifest_path.is_file():
        return []
    try:
        with open(manifest_path, "r", encoding="utf-8") as fh:
            data = json.load(fh)
    except (OSError, ValueError) as exc:
        logger.warning("Ignoring unreadable asset manifest %s: %s", manifest_path, exc)
        return []

    if not isinstance(data, list):
        logger.warning("Ignoring malformed asset manifest %s", manifest_path)
        return []

    entries: list[dict[str, Any]] = []
    for entry in data:
        if not (
            isinstance(entry, dict)
            and isinstance(entry.get("contentHash"), str)
            and isinstance(entry.get("filename"), str)
        ):
            logger.warning("Dropping malformed manifest entry in %s: %r", manifest_path, entry)
            continue
        aliases = entry.get("internalPaths")
        if not isinstance(aliases, list):
            aliases = []
        entries.append({
            "contentHash": entry["contentHash"],
            "filename": entry["filename"],
            "internalPaths": [a for a in aliases if isinstance(a, str)],
        })
    return entries


def save_manifest(manifest_path: Path, entries: list[dict[str, Any]]) -> None:
    with open(manifest_path, "w", encoding="utf-8") as fh:
        json.dump(entries, fh, indent=2, ensure_ascii=False)


def _find_alias(entries: list[dict[str, Any]], *references: str) -> Optional[dict[str, Any]]:
    for entry in entries:
        aliases = entry.get("internalPaths") or []
        if any(ref in aliases for ref in references):
            return entry
    return None


# ── Extractor ─────────────────────────────────────────────────────────


class ImageAssetExtractor:
    """Resolves image references to deduplicated files under an assets dir.

    Parameters
    ----------
    archive : DocxArchive or None
        Container of the document being rendered.  ``zip://`` references
        name their own container and do not need it.
    assets_dir : str or Path or None
        Output directory for extracted images.  Extraction is disabled
        while it is unset.
    output_file_path : str or Path or None
        HTML file being written.  When set, returned paths are relative to
        its directory.

    Usage::

        extractor = ImageAssetExtractor(DocxArchive("doc.docx"), "out/assets")
        extractor.extract("word/media/image1.png")   # 'out/assets/3f2a....png'
    """

    def __init__(
        self,
        archive: Optional[DocxArchive] = None,
        assets_dir: str | Path | None = None,
        output_file_path: str | Path | None = None,
    ) -> None:
        self._archive = archive
        self._assets_dir: Optional[Path] = None
        self._output_file_path: Optional[Path] = None
        self._manifest: list[dict[str, Any]] = []
        if assets_dir:
            self.set_assets_dir(assets_dir)
        if output_file_path:
            self.set_output_file_path(output_file_path)

    # ── Configuration ──────────────────────────────────────────────

    @property
    def assets_dir(self) -> Optional[Path]:
        return self._assets_dir

    @property
    def manifest_path(self) -> Optional[Path]:
        if self._assets_dir is None:
            return None
        return self._assets_dir / MANIFEST_FILENAME

    def set_assets_dir(self, assets_dir: str | Path) -> None:
        """Enable extraction into *assets_dir*, creating it if needed."""
        self._assets_dir = Path(assets_dir)
        self._assets_dir.mkdir(parents=True, exist_ok=True)
        self._manifest = load_manifest(self.manifest_path)
        logger.debug(
            "Assets directory %s (%d manifest entries)",
            self._assets_dir,
            len(self._manifest),
        )

    def set_output_file_path(self, output_file_path: str | Path) -> None:
        self._output_file_path = Path(output_file_path)

    def parse_relationships(self) -> dict[str, str]:
        """Return the relationship map of the bound container (empty if none)."""
        return self._relationships_of(self._archive)

    @staticmethod
    def _relationships_of(archive: Optional[DocxArchive]) -> dict[str, str]:
        if archive is None:
            return {}
        try:
            return archive.list_relationships()
        except (OSError, zipfile.BadZipFile, etree.XMLSyntaxError) as exc:
            logger.warning("Could not read relationships from %s: %s", archive.path, exc)
            return {}

    @staticmethod
    def _alias(archive: Optional[DocxArchive], internal_path: str) -> str:
        """Manifest key for *internal_path*, qualified by its container.

        Every document stores its first picture as ``word/media/image1.*``,
        so bare internal paths would collide across documents sharing one
        assets directory.
        """
        if archive is None:
            return internal_path
        return f"{ZIP_SCHEME}{archive.path.as_posix()}#{internal_path}"

    # ── Extraction ─────────────────────────────────────────────────

    def extract(self, reference: str) -> Optional[str]:
        """Extract the image behind *reference* and return its asset path.

        Parameters
        ----------
        reference : str
            ``zip://<docx>#<internal path>``, an internal path such as
            ``word/media/image1.png``, a bare media file name, or a
            relationship id.

        Returns
        -------
        str or None
            Path of the extracted asset, or ``None`` when extraction is
            disabled or the image cannot be read.
        """
        if self._assets_dir is None or not reference:
            return None

        container, internal_path = split_zip_reference(reference)
        archive = DocxArchive(container) if container else self._archive

        if _RELATIONSHIP_ID_RE.match(internal_path):
            resolved = self._relationships_of(archive).get(internal_path)
            if resolved is None:
                logger.debug("Unknown image relationship id: %s", internal_path)
                return None
            internal_path = resolved

        alias = self._alias(archive, internal_path)
        entry = _find_alias(self._manifest, alias)
        if entry is not None:
            return self._format_path(self._assets_dir / entry["filename"])

        if archive is None:
            logger.debug("No container to read image %s from", reference)
            return None

        try:
            found_path, data = self._read_candidates(archive, internal_path)
        except (OSError, zipfile.BadZipFile) as exc:
            logger.warning("Could not read image %s from %s: %s", internal_path, archive.path, exc)
            return None
        if data is None:
            logger.debug("Image %s not found in %s", internal_path, archive.path)
            return None

        content_hash = hashlib.sha1(data).hexdigest()
        extension = posixpath.splitext(found_path)[1].lstrip(".") or "bin"
        filename = f"{content_hash}.{extension}"
        asset_path = self._assets_dir / filename

        try:
            if not asset_path.exists():
                asset_path.write_bytes(data)
                logger.info("Extracted image %s -> %s", found_path, asset_path)
            self._record(content_hash, filename, alias)
        except OSError as exc:
            logger.warning("Could not store image %s: %s", internal_path, exc)
            return None

        return self._format_path(asset_path)

    @staticmethod
    def _read_candidates(
        archive: DocxArchive,
        internal_path: str,
    ) -> tuple[str, Optional[bytes]]:
        candidates = [internal_path]
        if not internal_path.startswith("word/"):
            candidates.append("word/media/" + internal_path.lstrip("/"))
        for candidate in candidates:
            data = archive.read_entry(candidate)
            if data is not None:
                return candidate, data
        return internal_path, None

    def _record(self, content_hash: str, filename: str, internal_path: str) -> None:
        """Add *internal_path* to the manifest under *content_hash*."""
        manifest_path = self.manifest_path
        with _manifest_lock(manifest_path):
            entries = load_manifest(manifest_path)
            for entry in entries:
                if entry["contentHash"] == content_hash:
                    aliases = entry.setdefault("internalPaths", [])
                    if internal_path not in aliases:
                        aliases.append(internal_path)
                    break
            else:
                entries.append({
                    "contentHash": content_hash,
                    "filename": filename,
                    "internalPaths": [internal_path],
                })
            save_manifest(manifest_path, entries)
            self._manifest = entries

    def _format_path(self, asset_path: Path) -> str:
        if self._output_file_path is None:
            return asset_path.as_posix()
        base_dir = self._output_file_path.resolve().parent
        return Path(os.path.relpath(asset_path.resolve(), base_dir)).as_posix()
