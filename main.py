"""CLI entry point for docx2html.

Usage::

    python main.py convert input.docx [-o output.html] [-f html|json] \\
        [-s style-map.yaml] [-c config.yaml] [-a assets/] [--fragment] [--debug] [-v]
    python main.py inspect input.docx [-d] [-e template.yaml] [-v]
"""

import argparse
import logging
import sys
import os
from pathlib import Path

from docx2html.converter import SUPPORTED_FORMATS, DocxConverter
from docx2html.inspector import StyleInspector
from docx2html.parser import DocxParser
from docx2html.style_map import StyleMap, load_config

logger = logging.getLogger("docx2html")


def _build_argument_parser() -> argparse.ArgumentParser:
    """Create and return the CLI argument parser."""
    parser = argparse.ArgumentParser(
        prog="docx2html",
        description="Convert .docx documents to semantic HTML driven by a style map.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    # -- convert -----------------------------------------------------------
    convert = subparsers.add_parser(
        "convert",
        help="Convert a .docx file to HTML or JSON.",
    )
    convert.add_argument(
        "input",
        help="Path to the input .docx file.",
    )
    convert.add_argument(
        "-o", "--output",
        default=None,
        help="Path to the output file. Defaults to standard output.",
    )
    convert.add_argument(
        "-f", "--format",
        default=None,
        choices=SUPPORTED_FORMATS,
        help="Output format (default: html, or the config file's 'format').",
    )
    convert.add_argument(
        "-s", "--style-map",
        default=None,
        help="Path to a YAML/JSON style map. Defaults to the bundled config/style-map.yaml.",
    )
    convert.add_argument(
        "-c", "--config",
        default=None,
        help="Path to a YAML/JSON converter configuration file.",
    )
    convert.add_argument(
        "-a", "--assets-dir",
        default=None,
        help="Directory to extract images into.",
    )
    convert.add_argument(
        "--fragment",
        action="store_true",
        default=False,
        help="Emit an HTML fragment without <html>/<body> scaffolding.",
    )
    convert.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Log the style id and mapping of every paragraph.",
    )

    # -- inspect -----------------------------------------------------------
    inspect = subparsers.add_parser(
        "inspect",
        help="List the element types and style ids used in a .docx file.",
    )
    inspect.add_argument(
        "input",
        help="Path to the input .docx file.",
    )
    inspect.add_argument(
        "-d", "--detailed",
        action="store_true",
        default=False,
        help="Show the first occurrence of each style id with a preview.",
    )
    inspect.add_argument(
        "-e", "--export",
        default=None,
        help="Export a YAML style-map template to this path.",
    )

    # Verbosity
    for sub in (convert, inspect):
        sub.add_argument(
            "-v", "--verbose",
            action="store_true",
            default=False,
            help="Enable verbose (DEBUG) logging output.",
        )

    return parser


def _setup_logging(verbose: bool) -> None:
    """Configure the root logger for the application."""
    level = logging.DEBUG if verbose else logging.INFO

    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    handlers: list[logging.Handler] = [
        logging.StreamHandler(sys.stderr),
        logging.FileHandler(log_dir / "docx2html.log", encoding="utf-8"),
    ]

    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
        handlers=handlers,
        force=True,
    )


def _build_style_map(style_map_arg: str | None, config: dict) -> StyleMap:
    """Load the style map and apply the config file's inline entries."""
    style_map = StyleMap.from_file(style_map_arg)
    for style_id, output_config in (config.get("styleMap") or {}).items():
        style_map.add(style_id, output_config)
    return style_map


def _print_report(report, detailed: bool) -> None:
    """Print a human-readable inspection report to stdout."""
    print("\n--- Document Summary ---")
    print(f"  Total elements : {report.total_elements}")
    print(f"  Total sections : {report.total_sections}")

    print("\n--- Element Types ---")
    for element_type, count in report.element_types.most_common():
        print(f"  {element_type:<20} {count}")

    if not report.styles:
        print("\nNo style IDs found in document.")
    else:
        print("\n--- Style IDs Found ---")
        for style_id, usage in report.styles_by_count():
            print(f"  {style_id:<30} {usage.count:>5}  {', '.join(usage.types)}")

    if detailed and report.first_occurrences:
        print("\n--- Style ID Details (First Occurrence) ---")
        for style_id, occurrence in report.first_occurrences.items():
            print(f"\n  Style ID: {style_id}")
            print(f"    Element Type: {occurrence.type}")
            print(f"    Section: {occurrence.section}, Element: {occurrence.element}")
            if occurrence.preview:
                print(f"    Preview: {occurrence.preview}")
    print()


def _run_convert(args: argparse.Namespace) -> None:
    config = load_config(args.config) if args.config else {}

    fmt = args.format or config.get("format") or "html"
    if fmt not in SUPPORTED_FORMATS:
        raise ValueError(f"Unsupported format: {fmt}")
    assets_dir = args.assets_dir or config.get("assetsDir")
    debug = args.debug or bool(config.get("debug"))

    style_map = _build_style_map(args.style_map, config)

    converter = (
        DocxConverter()
        .with_style_map(style_map)
        .with_assets_dir(assets_dir)
        .set_output_file_path(args.output)
        .with_debug(debug)
        .load_document(args.input)
    )
    output = converter.convert(fmt, fragment=args.fragment)

    if args.output:
        output_path = Path(args.output)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_text(output, encoding="utf-8")
        print(f"{fmt.upper()} saved to: {output_path}")
        logger.info("Conversion complete: %s", output_path)
    else:
        sys.stdout.write(output)


def _run_inspect(args: argparse.Namespace) -> None:
    sections = DocxParser().parse(args.input)
    inspector = StyleInspector()
    report = inspector.inspect(sections, detailed=args.detailed)
    _print_report(report, args.detailed)

    if args.export:
        path = inspector.export_template(report, args.export)
        print(f"Template exported to: {path}")
        print(f"Edit {path} to customize your style mappings.")


def main(argv: list[str] | None = None) -> None:
    """Run the docx2html command line."""
    parser = _build_argument_parser()
    args = parser.parse_args(argv)

    # -- Logging -----------------------------------------------------------
    _setup_logging(args.verbose or getattr(args, "debug", False))

    # -- Validate input ----------------------------------------------------
    input_path = args.input
    if not os.path.isfile(input_path):
        logger.error("Input file not found: %s", input_path)
        print(f"Error: Input file not found: {input_path}", file=sys.stderr)
        sys.exit(1)

    try:
        if args.command == "convert":
            _run_convert(args)
        else:
            _run_inspect(args)

    except FileNotFoundError as exc:
        logger.error("File not found: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except ValueError as exc:
        logger.error("Invalid input: %s", exc)
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)
    except Exception as exc:
        logger.exception("Unexpected error during conversion.")
        print(
            f"Error: An unexpected error occurred: {exc}\n"
            "Run with -v for detailed debug output.",
            file=sys.stderr,
        )
        sys.exit(2)


if __name__ == "__main__":
    main()
