"""Style map and transformation rules that drive HTML generation.

Loads the declarative style-map configuration (YAML or JSON) and answers
style lookups for the renderers: which HTML construct a paragraph style
converts to, which CSS classes it carries, and whether it belongs to a list.

Classes
-------
StyleMap
    Style id -> output configuration lookup.
TransformationRules
    Registry of custom render callables keyed by element kind and style id.
"""

from __future__ import annotations

import json
import logging
import re
from copy import deepcopy
from pathlib import Path
from typing import Any, Callable, Optional

import yaml

logger = logging.getLogger(__name__)

# ── Constants ──────────────────────────────────────────────────────────

_PROJECT_ROOT = Path(__file__).resolve().parent.parent
_DEFAULT_STYLE_MAP_PATH = _PROJECT_ROOT / "config" / "style-map.yaml"

VALID_CONVERT_TO = ("list", "blockquote", "div", "heading")
VALID_LIST_TYPES = ("ul", "ol")

_TRAILING_DIGITS_RE = re.compile(r"\d+$")
_CAMEL_BOUNDARY_RE = re.compile(r"([a-z])([A-Z])")
_INVALID_CLASS_CHARS_RE = re.compile(r"[^a-z0-9-]")
_REPEATED_HYPHENS_RE = re.compile(r"-+")

# Keys accepted at the top level of a converter configuration file.
_CONFIG_KEYS = ("styleMap", "assetsDir", "format", "debug")


# ── Loading helpers ────────────────────────────────────────────────────


def _read_mapping(path: Path) -> dict[str, Any]:
    """Read a YAML or JSON file and return its top-level mapping."""
    if not path.is_file():
        raise FileNotFoundError(f"Configuration file not found: {path}")

    with open(path, "r", encoding="utf-8") as fh:
        if path.suffix.lower() == ".json":
            data = json.load(fh)
        else:
            data = yaml.safe_load(fh)

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ValueError(f"Expected a mapping at the top level in {path}")
    return data


def _deep_merge(base: dict, overlay: dict) -> dict:
    """Recursively merge *overlay* into a copy of *base*.

    Overlay values take precedence.  Nested dicts are merged rather than
    replaced outright.
    """
    result = deepcopy(base)
    for key, value in overlay.items():
        if (
            key in result
            and isinstance(result[key], dict)
            and isinstance(value, dict)
        ):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = deepcopy(value)
    return result


def normalize_style_id(style_id: str) -> str:
    """Turn a style id into a kebab-case CSS class name.

    ``ListParagraph`` -> ``list-paragraph``, ``Heading 1`` -> ``heading-1``.
    """
    normalized = _CAMEL_BOUNDARY_RE.sub(r"\1-\2", style_id or "").lower()
    normalized = _INVALID_CLASS_CHARS_RE.sub("-", normalized)
    normalized = _REPEATED_HYPHENS_RE.sub("-", normalized)
    return normalized.strip("-")


def detect_list_level(style_id: str) -> int:
    """Return the nesting level encoded as a numeric style-id suffix (default 1)."""
    match = _TRAILING_DIGITS_RE.search(style_id or "")
    if match is None:
        return 1
    return max(1, int(match.group()))


def validate_style_map(entries: dict[str, Any]) -> None:
    """Raise ``ValueError`` if any style-map entry is malformed."""
    for style_id, config in entries.items():
        if not isinstance(config, dict):
            raise ValueError(
                f"Style '{style_id}' must map to a mapping, got {type(config).__name__}"
            )
        convert_to = config.get("convertTo")
        if convert_to is not None and convert_to not in VALID_CONVERT_TO:
            raise ValueError(
                f"Invalid convertTo '{convert_to}' for style '{style_id}' "
                f"(expected one of {', '.join(VALID_CONVERT_TO)})"
            )
        list_type = config.get("listType")
        if list_type is not None and list_type not in VALID_LIST_TYPES:
            raise ValueError(
                f"Invalid listType '{list_type}' for style '{style_id}'"
            )
        level = config.get("level")
        if level is not None and (isinstance(level, bool) or not isinstance(level, int)):
            raise ValueError(
                f"Heading level for style '{style_id}' must be an integer"
            )


def load_config(path: str | Path) -> dict[str, Any]:
    """Load a converter configuration file.

    Recognised keys are ``styleMap`` (inline style map), ``assetsDir``,
    ``format`` and ``debug``.  Unknown keys are logged and ignored.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValueError
        If the file is not a mapping or its style map is invalid.
    """
    path = Path(path)
    data = _read_mapping(path)

    for key in data:
        if key not in _CONFIG_KEYS:
            logger.warning("Ignoring unknown configuration key '%s' in %s", key, path)

    style_map = data.get("styleMap") or {}
    if not isinstance(style_map, dict):
        raise ValueError(f"'styleMap' must be a mapping in {path}")
    validate_style_map(style_map)

    logger.debug("Loaded converter configuration from %s", path)
    return {key: data[key] for key in _CONFIG_KEYS if key in data}


# ── StyleMap ──────────────────────────────────────────────────────────


class StyleMap:
    """Maps style identifiers to output configuration.

    Each entry is a mapping with the optional keys ``convertTo``
    (``list``, ``blockquote``, ``div`` or ``heading``), ``className``,
    ``listType`` (``ul`` or ``ol``) and ``level`` (headings only).

    Parameters
    ----------
    initial_map : dict or None, optional
        Initial entries, keyed by style id.

    Raises
    ------
    ValueError
        If any initial entry is malformed.
    """

    def __init__(self, initial_map: dict[str, dict[str, Any]] | None = None) -> None:
        self._entries: dict[str, dict[str, Any]] = dict(initial_map or {})
        validate_style_map(self._entries)

    @classmethod
    def from_file(
        cls,
        path: str | Path | None = None,
        overlay_path: str | Path | None = None,
    ) -> "StyleMap":
        """Load a style map from a YAML or JSON file.

        Parameters
        ----------
        path : str or Path, optional
            Style-map file.  Defaults to ``config/style-map.yaml`` relative
            to the project root.
        overlay_path : str or Path or None, optional
            Optional second file deep-merged on top of the first.

        Raises
        ------
        FileNotFoundError
            If a requested file does not exist.
        ValueError
            If a file is not a mapping or contains invalid entries.
        """
        base_path = Path(path) if path else _DEFAULT_STYLE_MAP_PATH
        entries = _read_mapping(base_path)

        if overlay_path is not None:
            entries = _deep_merge(entries, _read_mapping(Path(overlay_path)))
            logger.info("Applied style-map overlay from %s", overlay_path)

        style_map = cls(entries)
        logger.info("StyleMap loaded from %s (%d styles)", base_path, len(style_map))
        return style_map

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, style_id: object) -> bool:
        return style_id in self._entries

    def add(self, style_id: str, output_config: dict[str, Any]) -> None:
        """Register or replace the configuration for *style_id*."""
        validate_style_map({style_id: output_config})
        self._entries[style_id] = output_config

    def get_output_config(self, style_id: str) -> Optional[dict[str, Any]]:
        """Return the configuration for *style_id*, or ``None`` if unmapped."""
        if not style_id:
            return None
        return self._entries.get(style_id)

    def should_convert_to_list(self, style_id: str) -> bool:
        config = self.get_output_config(style_id)
        return bool(config) and config.get("convertTo") == "list"

    def get_class_names(self, style_id: str) -> str:
        """Return the mapped ``className`` for *style_id*, or ``""``."""
        config = self.get_output_config(style_id)
        if config and config.get("className"):
            return str(config["className"])
        return ""

    def resolve_list_config(self, style_id: str) -> Optional[dict[str, Any]]:
        """Return the list configuration for *style_id*, if it is a list style.

        The exact id is tried first.  Failing that, trailing digits are
        stripped (``ListParagraph2`` -> ``ListParagraph``) and the base
        style is tried.  Treating the suffix as a nesting level is a naming
        heuristic: a style whose name merely ends in a number is treated the
        same way.
        """
        if self.should_convert_to_list(style_id):
            return self._entries[style_id]

        base_id = _TRAILING_DIGITS_RE.sub("", style_id)
        if base_id != style_id and self.should_convert_to_list(base_id):
            return self._entries[base_id]
        return None

    def to_dict(self) -> dict[str, dict[str, Any]]:
        return deepcopy(self._entries)


# ── TransformationRules ───────────────────────────────────────────────

Rule = Callable[[Any, dict[str, Any]], str]


class TransformationRules:
    """Custom render overrides keyed by element kind and style id.

    A rule is a callable ``rule(element, context) -> str`` whose return
    value replaces the default HTML for the matching element.  Element
    kinds used by the HTML renderer are ``"paragraphs"`` and ``"tables"``.
    """

    def __init__(self, rules: dict[str, dict[str, Rule]] | None = None) -> None:
        self._rules: dict[str, dict[str, Rule]] = {
            kind: dict(by_style) for kind, by_style in (rules or {}).items()
        }

    def register(self, element_kind: str, style_id: str, rule: Rule) -> None:
        if not callable(rule):
            raise ValueError(f"Rule for {element_kind}/{style_id} is not callable")
        self._rules.setdefault(element_kind, {})[style_id] = rule

    def get_rules(self) -> dict[str, dict[str, Rule]]:
        return {kind: dict(by_style) for kind, by_style in self._rules.items()}

    def get_rule_for(self, element_kind: str, style_id: str) -> Optional[Rule]:
        rule = self._rules.get(element_kind, {}).get(style_id)
        return rule if callable(rule) else None
