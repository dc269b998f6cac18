"""Command-line entry point for offline correction diagnostics.

Sub-commands:
    items   <pdf> [--page N]                        normalized fragments
    lines   <pdf> [--page N]                        line grouping
    extract <pdf> --page N --bbox x1,y1,x2,y2 ...   run the pipeline on boxes
    replay  <page.json>                             re-run a saved page
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Optional

import pypdfium2 as pdfium
from pydantic import ValidationError

from core.config import config
from core.extraction.pipeline import extract_text_for_regions
from core.extraction.reading_order import compute_line_threshold, group_into_lines
from core.ingestion.pdf_text import load_page_fragments
from core.logging_setup import setup_logging
from models.schemas import PageRegions, PipelineTrace, Region

log = logging.getLogger("regionsnap")


def _parse_bbox(value: str) -> list[float]:
    parts = value.split(",")
    if len(parts) != 4:
        raise argparse.ArgumentTypeError(f"expected x1,y1,x2,y2, got {value!r}")
    try:
        return [float(p) for p in parts]
    except ValueError:
        raise argparse.ArgumentTypeError(f"non-numeric bbox {value!r}") from None


def _write_trace(trace: Optional[PipelineTrace], path: Optional[Path]) -> None:
    if trace is None or path is None:
        return
    path.write_text(trace.model_dump_json(indent=2), encoding="utf-8")
    log.info(f"Trace written to {path}")


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------

def cmd_items(args: argparse.Namespace) -> int:
    fragments = load_page_fragments(args.pdf, args.page)
    ordered = sorted(fragments, key=lambda f: (f.baseline, f.x))
    threshold = compute_line_threshold([f.baseline for f in ordered])

    print(f"{len(fragments)} fragments on page {args.page}")
    print(
        f"line threshold {threshold.value:.1f} ({threshold.path}; "
        f"stable={threshold.stable_count}, micro={threshold.micro_cluster_count})"
    )
    for f in ordered:
        flag = " [symbol]" if f.symbol_font else ""
        print(
            f"bl={f.baseline:7.1f}  x={f.x:6.1f}  y={f.y:6.1f}  "
            f"w={f.width:6.1f}  h={f.height:5.1f}  {f.text!r}{flag}"
        )
    return 0


def cmd_lines(args: argparse.Namespace) -> int:
    fragments = load_page_fragments(args.pdf, args.page)
    lines = group_into_lines(fragments)
    print(f"{len(lines)} lines on page {args.page}")
    for idx, line in enumerate(lines):
        text = " ".join(h.text for h in line.hits)
        print(
            f"[{idx:3d}] bl={line.baseline:7.1f}  y={line.top_y:6.1f}-{line.bottom_y:6.1f}  "
            f"x={line.min_x:6.1f}-{line.max_x:6.1f}  {text}"
        )
    return 0


def cmd_extract(args: argparse.Namespace) -> int:
    fragments = load_page_fragments(args.pdf, args.page)
    regions = [Region(id=i + 1, bbox=bbox) for i, bbox in enumerate(args.bbox)]
    trace = PipelineTrace() if args.trace else None

    extract_text_for_regions(regions, fragments, trace=trace)

    for region in regions:
        before = ", ".join(f"{v:.1f}" for v in region.original_bbox or region.bbox)
        after = ", ".join(f"{v:.1f}" for v in region.bbox)
        print(f"Region {region.id}: [{before}] -> [{after}]")
        print(region.text)
        print()
    _write_trace(trace, args.trace)
    return 0


def cmd_replay(args: argparse.Namespace) -> int:
    page = PageRegions.model_validate_json(args.page_json.read_text(encoding="utf-8"))
    trace = PipelineTrace() if args.trace else None

    extract_text_for_regions(page.regions, page.fragments, trace=trace)

    print(json.dumps(
        [r.model_dump() for r in page.regions], indent=2, ensure_ascii=False,
    ))
    _write_trace(trace, args.trace)
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------

def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="regionsnap",
        description="Correct proposed region boxes against a PDF text layer.",
    )
    parser.add_argument("--log-level", default=config.log_level)
    parser.add_argument("--log-format", default=config.log_format, choices=("text", "json"))
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("items", help="print the page's normalized fragments")
    p.add_argument("pdf", type=Path)
    p.add_argument("--page", type=int, default=1)
    p.set_defaults(func=cmd_items)

    p = sub.add_parser("lines", help="print the line grouping of a page")
    p.add_argument("pdf", type=Path)
    p.add_argument("--page", type=int, default=1)
    p.set_defaults(func=cmd_lines)

    p = sub.add_parser("extract", help="run the pipeline on boxes of one page")
    p.add_argument("pdf", type=Path)
    p.add_argument("--page", type=int, default=1)
    p.add_argument("--bbox", type=_parse_bbox, action="append", required=True,
                   help="x1,y1,x2,y2 in normalized units (repeatable)")
    p.add_argument("--trace", type=Path, help="write the diagnostic trace JSON here")
    p.set_defaults(func=cmd_extract)

    p = sub.add_parser("replay", help="re-run a saved page (PageRegions JSON)")
    p.add_argument("page_json", type=Path)
    p.add_argument("--trace", type=Path, help="write the diagnostic trace JSON here")
    p.set_defaults(func=cmd_replay)

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    setup_logging(args.log_format, args.log_level)

    try:
        return args.func(args)
    except (OSError, ValueError, ValidationError, pdfium.PdfiumError) as exc:
        log.error(f"{args.command} failed: {exc}", extra={"error_type": type(exc).__name__})
        return 1


if __name__ == "__main__":
    sys.exit(main())
