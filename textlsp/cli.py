#!/usr/bin/env python3
"""Command-line interface for the Text Language Server."""

import argparse
import json
import logging
import sys
from typing import List, Optional

from textlsp.diagnostics import DiagnosticsEngine
from textlsp.router import converter
from textlsp.service import configure_logging, run_server
from textlsp.settings import Settings


def parse_args(args: Optional[List[str]] = None) -> argparse.Namespace:
    """Parse command-line arguments.

    Args:
        args: Command-line arguments. If None, sys.argv is used.

    Returns:
        Parsed arguments namespace.
    """
    parser = argparse.ArgumentParser(
        description="Text Language Server CLI"
    )

    subparsers = parser.add_subparsers(dest="action", help="Action to perform")

    # Linter subcommand
    lint_parser = subparsers.add_parser("lint", help="Print diagnostics for a file as JSON")
    lint_parser.add_argument("file", help="Path to the file to lint")
    lint_parser.add_argument(
        "--max-problems",
        type=int,
        default=None,
        help="Maximum number of diagnostics to report"
    )
    lint_parser.add_argument(
        "--settings",
        default=None,
        help="Path to a JSON file holding client settings"
    )

    # Server subcommand
    server_parser = subparsers.add_parser("server", help="Run as a language server over stdio")
    server_parser.add_argument("--log-file", default=None, help="Write logs to this file")

    parser.add_argument(
        "--debug",
        action="store_true",
        help="Enable debug logging"
    )

    return parser.parse_args(args)


def load_settings(path: Optional[str], max_problems: Optional[int]) -> Settings:
    """Build settings for an offline lint run.

    Args:
        path: JSON settings file in the shape the client pushes, or None.
        max_problems: Overrides ``maxNumberOfProblems`` when given.

    Returns:
        Validated settings.
    """
    payload = {}
    if path:
        with open(path, encoding="utf-8") as f:
            payload = json.load(f)

    if max_problems is not None:
        section = dict(payload.get("languageServerExample") or {})
        section["maxNumberOfProblems"] = max_problems
        payload = {**payload, "languageServerExample": section}
    return Settings.from_payload(payload)


def lint(file_path: str, settings: Settings) -> list:
    with open(file_path, encoding="utf-8", newline="") as f:
        text = f.read()
    return converter.unstructure(DiagnosticsEngine().compute(text, settings))


def main(args: Optional[List[str]] = None) -> int:
    """Run the CLI application.

    Args:
        args: Command-line arguments. If None, sys.argv is used.

    Returns:
        Exit code (0 for success, non-zero for error).
    """
    parsed_args = parse_args(args)

    try:
        if parsed_args.action == "lint":
            configure_logging(parsed_args.debug)
            settings = load_settings(parsed_args.settings, parsed_args.max_problems)
            print(json.dumps(lint(parsed_args.file, settings), indent=2))
            return 0

        if parsed_args.action == "server":
            configure_logging(parsed_args.debug, parsed_args.log_file)
            return run_server()

        print("Please specify an action. Use --help for available commands.")
        return 1

    except Exception as e:
        logging.error(f"Error: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
