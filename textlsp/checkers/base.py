"""Base checker interface."""

import abc
import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterator, List

from lsprotocol.types import DiagnosticSeverity


@dataclass(frozen=True)
class Finding:
    """A single match reported by a checker.

    Columns are code point indices into the line the match was found on; the
    diagnostics engine converts them to protocol coordinates.
    """

    line: int
    start: int
    end: int
    message: str
    severity: DiagnosticSeverity
    code: str = ""


class BaseChecker(abc.ABC):
    """Abstract base class for checkers.

    A checker scans the lines of a document and yields findings in document
    order. It must be deterministic and must not perform I/O; the engine may
    stop consuming the iterator as soon as it has enough findings.
    """

    def __init__(self):
        self.logger = logging.getLogger(f"textlsp.checkers.{self.name}")

    @property
    @abc.abstractmethod
    def name(self) -> str:
        """Get the checker name, used as the diagnostic source.

        Returns:
            The checker name.
        """
        pass

    @abc.abstractmethod
    def check(self, lines: List[str], options: Dict[str, Any]) -> Iterator[Finding]:
        """Scan document lines.

        Args:
            lines: Document lines, already split on normalized line endings.
            options: Checker-specific settings from the client configuration.

        Yields:
            Findings in document order.
        """
        pass

    def fix_for(self, finding_text: str, options: Dict[str, Any]) -> str:
        """Get the replacement text for a flagged token.

        Args:
            finding_text: The flagged text.
            options: Checker-specific settings.

        Returns:
            The replacement, or an empty string if the checker offers no fix.
        """
        return ""
