"""Content-Length framed JSON-RPC transport over binary streams."""

import json
import logging
import sys
from typing import Any, BinaryIO, Dict, Optional

from textlsp.errors import TextLspError

logger = logging.getLogger("textlsp.transport")


class TransportError(TextLspError):
    """A message could not be read from the stream."""


class StreamTransport:
    """Reads and writes framed JSON-RPC messages.

    Each message is a block of ``Name: value`` header lines terminated by an
    empty line, followed by a UTF-8 JSON body of ``Content-Length`` bytes.
    """

    def __init__(self, reader: BinaryIO, writer: BinaryIO):
        """Initialize the transport.

        Args:
            reader: Stream messages are read from.
            writer: Stream messages are written to.
        """
        self.reader = reader
        self.writer = writer

    @classmethod
    def stdio(cls) -> "StreamTransport":
        """Create a transport over the process's standard streams."""
        return cls(sys.stdin.buffer, sys.stdout.buffer)

    def _read_headers(self) -> Optional[Dict[str, str]]:
        headers: Dict[str, str] = {}
        while True:
            line = self.reader.readline()
            if not line:
                return None

            line = line.strip()
            if not line:
                if headers:
                    return headers
                # Stray blank line between messages
                continue

            name, sep, value = line.decode("ascii", errors="replace").partition(":")
            if not sep:
                raise TransportError(f"Malformed header line: {line!r}")
            headers[name.strip().lower()] = value.strip()

    def read_message(self) -> Optional[Dict[str, Any]]:
        """Read the next message.

        Returns:
            The decoded message, or None at end of input.

        Raises:
            TransportError: If the headers or the body are malformed. The
                stream stays positioned after the offending message whenever
                its length was known.
        """
        headers = self._read_headers()
        if headers is None:
            return None

        try:
            content_length = int(headers["content-length"])
        except (KeyError, ValueError) as e:
            raise TransportError(f"Missing or invalid Content-Length header: {headers}") from e
        if content_length < 0:
            raise TransportError(f"Negative Content-Length: {content_length}")

        content = self.reader.read(content_length)
        if len(content) < content_length:
            logger.warning("Input ended in the middle of a message")
            return None

        try:
            message = json.loads(content.decode("utf-8"))
        except (UnicodeDecodeError, ValueError) as e:
            raise TransportError(f"Invalid JSON body: {e}") from e

        logger.debug(f"Received LSP message: {message}")
        if not isinstance(message, dict):
            raise TransportError(f"Expected a JSON object, got {type(message).__name__}")
        return message

    def write_message(self, message: Dict[str, Any]) -> None:
        """Write a message.

        Args:
            message: JSON-serializable message.
        """
        content = json.dumps(message).encode("utf-8")
        header = f"Content-Length: {len(content)}\r\n\r\n".encode()

        logger.debug(f"Sending LSP message: {message}")

        self.writer.write(header + content)
        self.writer.flush()
