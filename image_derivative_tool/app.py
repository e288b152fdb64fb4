"""
Command-line entry point.

Usage:
    python -m image_derivative_tool.app https://example.com/uploads/photo.jpg --width 300 --height 200
    image-derivative-tool URL [options]          (after pip install)

Prints the derivative descriptor as JSON.  On failure the structured error
is printed to stderr and the exit status is 1.
"""

import argparse
import json
import logging
import sys
from dataclasses import replace
from pathlib import Path

from image_derivative_tool.config import BACKENDS, DEFAULT_HEIGHT, DEFAULT_WIDTH
from image_derivative_tool.resizer import process_request
from image_derivative_tool.settings import load_settings, validate_quality


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="image-derivative-tool",
        description="Create (or reuse) a cropped, resized copy of an image and print its URL and size.",
    )
    parser.add_argument("url", help="public URL of the source image")
    parser.add_argument("--width", type=int, default=DEFAULT_WIDTH)
    parser.add_argument("--height", type=int, default=DEFAULT_HEIGHT)
    parser.add_argument("--no-crop", dest="crop", action="store_false",
                        help="stretch the whole image into the box instead of cropping")
    parser.add_argument("--retina", action="store_true", help="render at twice the requested size")
    parser.add_argument("--settings", type=Path, help="settings.json to use instead of the default")
    parser.add_argument("--document-root", type=Path, help="directory the URL path is resolved against")
    parser.add_argument("--backend", choices=BACKENDS)
    parser.add_argument("--quality", type=int, help="JPEG quality (1-100)")
    parser.add_argument("-v", "--verbose", action="store_true", help="debug logging")
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )

    settings = load_settings(args.settings)
    changes = {}
    if args.document_root is not None:
        changes["document_root"] = args.document_root
    if args.backend is not None:
        changes["backend"] = args.backend
    if args.quality is not None:
        error = validate_quality(args.quality)
        if error:
            parser.error(error)
        changes["jpeg_quality"] = args.quality
    if changes:
        settings = replace(settings, **changes)

    result = process_request(
        {
            "url": args.url,
            "width": args.width,
            "height": args.height,
            "crop": args.crop,
            "retina": args.retina,
        },
        settings=settings,
    )

    success = result.pop("success")
    if not success:
        print(json.dumps(result), file=sys.stderr)
        return 1
    print(json.dumps(result))
    return 0


if __name__ == "__main__":
    sys.exit(main())
