"""Command line front-end: merge config files and print the result.

    merge-env-config [-json] config1.yaml [config2.yaml ...]

Later files override earlier ones. Every file is expanded as a template
before decoding, and the merged result is written to standard output as YAML
(or indented JSON with ``-json``).
"""

import argparse
import logging
import sys
from typing import Any, Optional

from . import __version__
from .errors import ConfigError
from .loader.file import marshal, marshal_json
from .manager import Loader

logger = logging.getLogger(__name__)

PROG = "merge-env-config"

USAGE = f"""Usage of {PROG}:

  {PROG} [-json] config1.yaml [config2.yaml ...]
"""


def build_parser() -> argparse.ArgumentParser:
    """Build the argument parser."""
    parser = argparse.ArgumentParser(
        prog=PROG,
        usage=f"{PROG} [-json] config1.yaml [config2.yaml ...]",
        description="Merge configuration files with environment expansion.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "-json", dest="json", action="store_true", help="file(s) is JSON"
    )
    parser.add_argument(
        "-v", "-version", dest="version", action="store_true", help="show version"
    )
    parser.add_argument("paths", nargs="*", metavar="config", help="config files")
    return parser


def print_usage(parser: argparse.ArgumentParser) -> None:
    print(USAGE, file=sys.stderr)
    parser.print_help(sys.stderr)


def main(argv: Optional[list[str]] = None, loader: Optional[Loader] = None) -> int:
    """Run the CLI and return the process exit status."""
    logging.basicConfig(level=logging.WARNING, stream=sys.stderr)

    parser = build_parser()
    args = parser.parse_args(argv)

    if args.version:
        print(f"{PROG} {__version__}")
        return 0

    if not args.paths:
        print_usage(parser)
        return 1

    loader = loader or Loader()
    conf: dict[str, Any] = {}
    try:
        if args.json:
            loader.load_with_env_json(conf, *args.paths)
            output = marshal_json(conf)
        else:
            loader.load_with_env(conf, *args.paths)
            output = marshal(conf)
    except ConfigError as e:
        logger.debug(f"load failed: {e!r}")
        print(e, file=sys.stderr)
        return 1

    sys.stdout.write(output.decode("utf-8"))
    return 0
