from __future__ import annotations

import argparse
import logging
import sys

from .api import remap_file
from .config import RemapOptions
from .errors import RemapError


_EPILOG = """\
examples:
  errmap "Error at app.js:10:5" ./dist/app.js.map
  node dist/app.js 2>&1 | errmap - ./dist/app.js.map
"""


def main(argv: list[str] | None = None) -> int:
    ap = argparse.ArgumentParser(
        prog="errmap",
        description="Map compiled file positions (file.js:line:column) in an error message "
        "back to their original source positions using a source map",
        epilog=_EPILOG,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    ap.add_argument("message", help="Error message containing compiled file positions ('-' reads stdin)")
    ap.add_argument("sourcemap", help="Path to the .map source map file")
    ap.add_argument(
        "--ext",
        action="append",
        default=[],
        help="Compiled file extension to recognize (repeatable, default: .js)",
    )
    ap.add_argument("-v", "--verbose", action="store_true", help="Log each resolution to stderr")
    args = ap.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        stream=sys.stderr,
        format="%(name)s - %(levelname)s - %(message)s",
    )

    try:
        options = RemapOptions(extensions=tuple(args.ext)) if args.ext else RemapOptions()
    except ValueError as e:
        ap.error(str(e))

    message = sys.stdin.read() if args.message == "-" else args.message
    try:
        out = remap_file(message, args.sourcemap, options=options)
    except RemapError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if args.message == "-":
        sys.stdout.write(out)
    else:
        print(out)
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
