#!/usr/bin/env python3
import sys
import argparse
import json
import logging
from pathlib import Path

from PySide6.QtGui import QGuiApplication

from cardgrid.config import SIZING_MODE_FLAGS
from cardgrid.errors import CardGridError
from cardgrid.models.page import Page, PageGroup, Side, SourceKind
from cardgrid.models.processing_mode import ProcessingMode
from cardgrid.models.settings import ExtractionSettings, OutputSettings
from cardgrid.services.calibration import calibrate
from cardgrid.services.card_pipeline import CardPipeline
from cardgrid.services.export_manager import ExportManager, export_calibration_pdf
from cardgrid.utils.unit_converter import format_dimension, inches_to_pixels
from cardgrid.utils.validator import SchemaValidator

logger = logging.getLogger("cardgrid")

# --- Helpers ---------------------------------------------------------------

def _norm(p: Path) -> Path:
    """Normalize a Path: expand ~ and resolve to absolute (non-strict)."""
    return p.expanduser().resolve()

def _die(msg: str, code: int = 2):
    print(f"Error: {msg}", file=sys.stderr)
    sys.exit(code)

def _ensure_pdf_path(path_like) -> Path:
    """
    Ensure the given path-like is (or will be) a PDF path.
    We don't require existence here because we're about to create it.
    """
    p = _norm(Path(path_like))
    if p.suffix.lower() != ".pdf":
        _die(f"invalid PDF path: {path_like}")
    if not p.parent.is_dir():
        _die(f"directory does not exist: {p.parent}")
    return p


def load_config(path) -> dict:
    """Read and validate a plain configuration object from JSON."""
    p = _norm(Path(path))
    if not p.is_file():
        _die(f"config does not exist or is not a file: {path}")
    try:
        config = json.loads(p.read_text(encoding="utf-8"))
    except json.JSONDecodeError as exc:
        _die(f"config is not valid JSON: {exc}")
    ok, message = SchemaValidator().validate_config(config)
    if not ok:
        _die(message)
    return config


def build_pages(images) -> list:
    pages = []
    for order, s in enumerate(images):
        p = _norm(Path(s))
        if not p.is_file():
            _die(f"image does not exist or is not a file: {s}")
        pages.append(Page(source_file=str(p), source_kind=SourceKind.RASTER_IMAGE, display_order=order))
    return pages


# --- Argparse --------------------------------------------------------------

def build_parser():
    p = argparse.ArgumentParser(
        prog="cardgrid",
        description="Cut scanned card sheets into cards and lay them out for printing"
    )
    p.add_argument("images", nargs="*", help="page images, in display order")

    p.add_argument("--config", "-c", dest="config_path",
                   help="JSON with extractionSettings / outputSettings / processingMode / pageGroups")
    p.add_argument("--mode", choices=["simplex", "duplex", "gutter-fold"],
                   help="processing mode (overrides the config)")
    p.add_argument("--orientation", choices=["vertical", "horizontal"], default="vertical",
                   help="fold orientation for gutter-fold")
    p.add_argument("--sizing-mode", choices=list(SIZING_MODE_FLAGS),
                   help="card image sizing: " + ", ".join(
                       f"{name} ({flags['desc']})" for name, flags in SIZING_MODE_FLAGS.items()))
    p.add_argument("--side", choices=[s.value for s in Side],
                   help="export only this side's cards")

    # Export targets
    p.add_argument("--export", "-e", dest="export_path", help="PDF file to write cards to")
    p.add_argument("--calibration-sheet", dest="calibration_path",
                   help="PDF file to write a printer calibration sheet to")

    p.add_argument("--calibrate", nargs=3, type=float, metavar=("RIGHT", "TOP", "CROSSHAIR"),
                   help="measured distances (inches) from a printed calibration sheet")

    p.add_argument("--verbose", "-v", action="store_true", help="debug logging")
    return p


# --- Main ------------------------------------------------------------------

def main(argv=None):
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config_path) if args.config_path else {}
    extraction = ExtractionSettings.from_dict(config.get("extractionSettings", {"grid": {"rows": 1, "columns": 1}}))
    output = OutputSettings.from_dict(config.get("outputSettings", {}))
    mode = ProcessingMode.from_dict(config.get("processingMode", {}))
    if args.mode:
        mode = ProcessingMode.from_dict({"type": args.mode, "orientation": args.orientation})
    if args.sizing_mode:
        output = output.with_changes(sizing_mode=args.sizing_mode)
    groups = [PageGroup.from_dict(g) for g in config.get("pageGroups", [])]
    logger.debug("Mode %s, grid %dx%d, sizing %s, %d group(s)", mode.kind.value,
                 extraction.grid.rows, extraction.grid.columns, output.sizing_mode, len(groups))
    logger.debug("Card %s x %s on %s x %s paper",
                 *(format_dimension(inches_to_pixels(v)) for v in output.card_size + output.page_size))

    # CALIBRATION --------------------------------------------------------------
    if args.calibrate:
        right, top, crosshair = args.calibrate
        try:
            result = calibrate(
                right, top, crosshair,
                card_width=output.card_size[0], card_height=output.card_size[1],
                current_horizontal_offset=output.offset[0],
                current_vertical_offset=output.offset[1],
                current_scale_percent=output.card_scale_percent,
            )
        except CardGridError as exc:
            _die(str(exc))
        print(f"Horizontal offset: {result.new_horizontal_offset:+.3f} in  ({result.diagnostics[0]})")
        print(f"Vertical offset:   {result.new_vertical_offset:+.3f} in  ({result.diagnostics[1]})")
        print(f"Scale:             {result.new_scale_percent:.0f}%  ({result.diagnostics[2]})")
        if not args.export_path and not args.calibration_path:
            return 0

    app = QGuiApplication.instance() or QGuiApplication(sys.argv[:1])

    if args.calibration_path:
        export_calibration_pdf(_ensure_pdf_path(args.calibration_path), output)

    # EXPORT -----------------------------------------------------------------
    if args.export_path:
        if not args.images:
            _die("--export requires at least one page image")
        pdf_path = _ensure_pdf_path(args.export_path)
        with CardPipeline(build_pages(args.images), extraction, output, mode, groups=groups) as pipeline:
            try:
                report = ExportManager(pipeline).export_pdf(pdf_path, side=args.side)
            except CardGridError as exc:
                _die(str(exc), code=1)
        for warning in report.warnings:
            print(f"Warning: {warning}", file=sys.stderr)
        print(f"Exported {report.exported} card(s) to {pdf_path}")
        return 0 if report.exported else 1

    if not args.calibration_path and not args.calibrate:
        parser.print_help()
    return 0

if __name__ == "__main__":
    sys.exit(main())
