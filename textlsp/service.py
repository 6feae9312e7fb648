#!/usr/bin/env python3
"""Main service module for the Text Language Server.

This module runs a language server session over the process's standard
streams, or any pair of binary streams handed to ``run_server``.
"""

import logging
import sys
from typing import BinaryIO, Optional

import click

from textlsp.session import Session
from textlsp.transport import StreamTransport

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging(debug: bool = False, log_file: Optional[str] = None) -> None:
    """Configure logging for the server.

    Logs never go to stdout, which carries the protocol.

    Args:
        debug: Whether to enable debug logging.
        log_file: File to write logs to instead of stderr.
    """
    log_level = logging.DEBUG if debug else logging.INFO
    if log_file:
        logging.basicConfig(level=log_level, format=LOG_FORMAT, filename=log_file)
    else:
        logging.basicConfig(level=log_level, format=LOG_FORMAT, stream=sys.stderr)


def run_server(reader: Optional[BinaryIO] = None, writer: Optional[BinaryIO] = None) -> int:
    """Serve one client session until it exits.

    Args:
        reader: Stream to read messages from. Defaults to stdin.
        writer: Stream to write messages to. Defaults to stdout.

    Returns:
        Exit code of the session.
    """
    if reader is None or writer is None:
        transport = StreamTransport.stdio()
    else:
        transport = StreamTransport(reader, writer)

    session = Session(transport)
    logger = logging.getLogger("textlsp")
    logger.info("Starting text language server")
    try:
        return session.serve()
    except KeyboardInterrupt:
        logger.info("Interrupted")
        return 1
    finally:
        logger.info("Text language server stopped")


@click.command()
@click.option("--debug/--no-debug", default=False, help="Enable debug logging")
@click.option("--log-file", type=click.Path(dir_okay=False), default=None, help="Write logs to this file")
def main(debug: bool, log_file: Optional[str]) -> None:
    """Run the Text Language Server over stdio.

    Args:
        debug: Whether to enable debug logging.
        log_file: File to write logs to.
    """
    configure_logging(debug, log_file)
    sys.exit(run_server())


if __name__ == "__main__":
    main()  # pylint: disable=no-value-for-parameter
