"""Command-line interface for discovering the interface and data of canisters."""

from __future__ import annotations

import argparse
import logging
import os.path
from collections.abc import Sequence

from canister_mapper.config import DEFAULT_BULK_METHOD
from canister_mapper.errors import CanisterMapperError
from canister_mapper.run import run

logger = logging.getLogger(__name__)


def _add_description_arguments(parser: argparse.ArgumentParser):
    """Add the interface description arguments to a parser.

    Args:
        parser (argparse.ArgumentParser): The parser to add the arguments to.
    """
    parser.add_argument(
        "--did-js",
        dest="did_js",
        type=str,
        default=None,
        help="path to the executable interface description (*.did.js).",
    )

    parser.add_argument(
        "--did",
        type=str,
        default=None,
        help="path to the static interface declaration (*.did.d.ts or *.did).",
    )

    parser.add_argument(
        "-o",
        "--output",
        type=str,
        default="",
        help="file to write the JSON result to; defaults to standard output.",
    )


def setup_parser() -> argparse.ArgumentParser:
    """Setup for the parser.

    Returns:
        argparse.ArgumentParser: The parser after setup.
    """
    parser = argparse.ArgumentParser(description="Discover canister interfaces and map their data to forms.")

    parser.add_argument(
        "-v",
        "--verbose",
        default=False,
        action="store_true",
        help="log per-method details.",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    inspect_parser = subparsers.add_parser("inspect", help="parse interface descriptions and classify methods.")
    _add_description_arguments(inspect_parser)

    load_parser = subparsers.add_parser("load", help="load all data of a canister from recorded replies.")
    load_parser.add_argument("canister_id", type=str, help="text form of the canister principal.")
    load_parser.add_argument(
        "-r",
        "--replies",
        type=str,
        required=True,
        help="JSON file with the recorded replies per method.",
    )
    load_parser.add_argument(
        "--privileged",
        default=False,
        action="store_true",
        help="try the bulk method before calling the individual getters.",
    )
    load_parser.add_argument(
        "--bulk-method",
        dest="bulk_method",
        type=str,
        default=DEFAULT_BULK_METHOD,
        help=f"name of the bulk method used with --privileged (default: {DEFAULT_BULK_METHOD}).",
    )
    _add_description_arguments(load_parser)

    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point of the canister mapper.

    Args:
        argv (Sequence[str] | None, optional): Run arguments. Defaults to None.

    Returns:
        int: Error code.
    """
    parser = setup_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    if not args.did_js and not args.did:
        parser.error("at least one of --did-js and --did is required")

    root_directory = os.getcwd()
    logging.info("Working from root directory: %s", root_directory)

    try:
        run(args, root_directory)
    except CanisterMapperError as e:
        logger.error(f"{type(e).__name__}: {e}")
        return 1

    return 0
