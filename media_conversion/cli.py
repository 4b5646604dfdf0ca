"""Command-line interface for media conversion."""

from __future__ import annotations

import argparse
import dataclasses
import logging
import mimetypes
import sys

from .config import SETTINGS
from .media import MediaDescriptor, RequestContext
from .orchestrator import ConversionOrchestrator
from .schema import ConversionStatus, ExtractionStrategy


def build_parser() -> argparse.ArgumentParser:
    """Create the CLI argument parser."""

    parser = argparse.ArgumentParser(description="Extract plain text from a media file.")
    parser.add_argument("path", help="Path to the media file.")
    parser.add_argument(
        "--content-type",
        type=str,
        default=None,
        help="MIME type of the file (default: guessed from the extension).",
    )
    parser.add_argument(
        "--strategy",
        type=ExtractionStrategy,
        choices=list(ExtractionStrategy),
        default=None,
        metavar="{" + ",".join(s.value for s in ExtractionStrategy) + "}",
        help="Override the strategy chosen from the content type.",
    )
    parser.add_argument("--tenant-id", type=str, default=None, help="Tenant to attribute the call to.")
    parser.add_argument(
        "--threshold",
        type=int,
        default=None,
        metavar="PCT",
        help=f"OCR confidence below which the vision fallback runs "
             f"(default: {SETTINGS.ocr_fallback_threshold}).",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="WARNING",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        help="Logging level (default: WARNING).",
    )
    return parser


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=getattr(logging, args.log_level),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    try:
        settings = SETTINGS
        if args.threshold is not None:
            settings = dataclasses.replace(
                settings, ocr_fallback_threshold=max(0, min(100, args.threshold))
            )
        content_type = args.content_type or mimetypes.guess_type(args.path)[0]
        descriptor = MediaDescriptor.from_path(args.path, content_type=content_type)
        result = ConversionOrchestrator(settings).convert(
            descriptor,
            context=RequestContext(tenant_id=args.tenant_id),
            strategy=args.strategy,
        )
        print(result.model_dump_json(indent=2))
        if result.status is not ConversionStatus.SUCCESS:
            print(f"Error: {result.error_message}", file=sys.stderr)
            return 1
        return 0
    except Exception as exc:  # pragma: no cover - safety net
        print(f"Unexpected error: {exc}", file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
