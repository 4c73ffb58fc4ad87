"""Command-line interface for generating remote-call modules from *.pyi interface declarations.

Notes:
    - Every declaration file yields three modules: `<name>_messages.py`, `<name>_client.py` and `<name>_server.py`.
    - Generated modules import their runtime support from `rpc_stub_generator.runtime`.
"""

from __future__ import annotations

import argparse
import logging
import os.path
from collections.abc import Sequence

from rpc_stub_generator.run import GeneratorError, run

logger = logging.getLogger(__name__)


def _add_recursive_argument(parser: argparse.ArgumentParser):
    """Add a recursive argument to a parser.

    Args:
        parser (argparse.ArgumentParser): The parser to add the argument to.
    """
    parser.add_argument(
        "-r",
        "--recursive",
        dest="recursive",
        default=False,
        action="store_true",
        help="recursively search for *.pyi files with a given glob expression.",
    )


def setup_parser() -> argparse.ArgumentParser:
    """Setup for the parser.

    Returns:
        argparse.ArgumentParser: The parser after setup.
    """
    parser = argparse.ArgumentParser(description="Generate remote-call modules for interface declarations.")

    parser.add_argument(
        "-p",
        "--paths",
        type=str,
        nargs="+",
        default=["**/*.pyi"],
        help="path or glob expressions that match *.pyi declaration files.",
    )

    parser.add_argument(
        "-e",
        "--excludes",
        type=str,
        nargs="+",
        default=[],
        help="path or glob expressions to exclude from path matches.",
    )

    parser.add_argument(
        "-o",
        "--output-dir",
        type=str,
        default="generated",
        help="directory to write all generated modules to; it is made a package if it is not one yet.",
    )

    parser.add_argument(
        "--no-format",
        dest="no_format",
        default=False,
        action="store_true",
        help="skip formatting the generated modules with ruff.",
    )

    parser.add_argument(
        "-v",
        "--verbose",
        dest="verbose",
        default=False,
        action="store_true",
        help="log debug messages.",
    )

    _add_recursive_argument(parser)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point of the generator.

    Args:
        argv (Sequence[str] | None, optional): Run arguments. Defaults to None.

    Returns:
        int: Error code.
    """
    parser = setup_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    root_directory = os.getcwd()
    logger.info("Working from root directory: %s", root_directory)

    try:
        run(args, root_directory)

    except GeneratorError as e:
        logger.error(str(e))
        return 1

    return 0
