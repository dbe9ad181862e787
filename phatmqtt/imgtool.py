"""
Command line helper for preparing images offline.

    phatmqtt-imgtool convert snapshot.png -o out.png
"""

import argparse
import logging
import sys
from pathlib import Path
from typing import List, Optional

from phatmqtt.config import configure_logging
from phatmqtt.errors import ImageValidationError
from phatmqtt.imaging import TARGET_HEIGHT, TARGET_WIDTH, convert

logger = logging.getLogger(__name__)


def convert_command(args: argparse.Namespace) -> int:
    source = Path(args.input)
    try:
        data = source.read_bytes()
    except OSError as e:
        logger.error(f"Unable to open file: {e}")
        return 1

    try:
        converted, _content_type = convert(data, perform_conversion=True)
    except ImageValidationError as e:
        logger.error(f"Unable to convert {source}: {e.message}")
        return 1

    output = Path(args.output) if args.output else source.with_name("out.png")
    output.write_bytes(converted)
    logger.info(f"Wrote {output} ({len(converted)} bytes)")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="phatmqtt-imgtool")
    parser.add_argument("-v", "--verbose", action="store_true", help="enable verbose logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    convert_parser = subparsers.add_parser(
        "convert",
        help=f"convert a {TARGET_WIDTH}x{TARGET_HEIGHT} image to the display palette",
    )
    convert_parser.add_argument("input", help="input image path")
    convert_parser.add_argument("-o", "--output", help="output path (default: out.png next to input)")
    convert_parser.set_defaults(func=convert_command)
    return parser


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    configure_logging(args.verbose)
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
