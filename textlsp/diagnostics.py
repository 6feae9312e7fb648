"""Diagnostics engine.

Turns document text and the current settings into an ordered list of
diagnostics by running every registered checker over the document lines.
Findings from all checkers are merged in document order and cut off at the
configured ``maxNumberOfProblems``; later findings are never looked at once the
cap is reached.
"""

import heapq
import itertools
import logging
from typing import Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

from lsprotocol.types import Diagnostic, Position, Range

from textlsp.checkers import BaseChecker, Finding, SpellingChecker
from textlsp.errors import AnalysisFailure
from textlsp.settings import Settings
from textlsp.utils.text import split_lines, to_utf16_column

logger = logging.getLogger("textlsp.diagnostics")


class DiagnosticsEngine:
    """Runs checkers and converts their findings to protocol diagnostics."""

    def __init__(self, checkers: Optional[Sequence[BaseChecker]] = None):
        """Initialize the engine.

        Args:
            checkers: Checkers to run. Defaults to the spelling checker.
        """
        self.checkers: List[BaseChecker] = list(checkers) if checkers is not None else [SpellingChecker()]

    def _guarded(
        self, index: int, lines: List[str], settings: Settings
    ) -> Iterator[Tuple[int, int, int, Finding]]:
        checker = self.checkers[index]
        options = settings.language_server_example.checker_options
        try:
            for finding in checker.check(lines, options):
                # The checker index breaks ties so equal positions keep registration order
                yield finding.line, finding.start, index, finding
        except Exception as e:
            raise AnalysisFailure(checker.name, e) from e

    def findings(self, text: str, settings: Settings) -> List[Tuple[BaseChecker, Finding]]:
        """Collect findings in document order, honoring the problem cap.

        Raises:
            AnalysisFailure: If a checker raises.
        """
        cap = settings.max_problems
        lines = split_lines(text)
        if cap <= 0 or not lines:
            return []

        streams: Iterable[Iterator[Tuple[int, int, int, Finding]]] = [
            self._guarded(index, lines, settings) for index in range(len(self.checkers))
        ]
        merged = heapq.merge(*streams, key=lambda item: item[:3])
        return [
            (self.checkers[index], finding)
            for _, _, index, finding in itertools.islice(merged, cap)
        ]

    def compute(self, text: str, settings: Settings) -> List[Diagnostic]:
        """Compute diagnostics for a document.

        A failing checker does not propagate: the failure is logged and the
        round yields no diagnostics.

        Args:
            text: Full document text.
            settings: Settings in effect.

        Returns:
            Diagnostics in document order, at most ``settings.max_problems``.
        """
        try:
            return [diagnostic for _, _, diagnostic in self.diagnose(text, settings)]
        except AnalysisFailure as e:
            logger.error(f"Analysis failed, publishing no diagnostics: {e}", exc_info=e.cause)
            return []

    def diagnose(self, text: str, settings: Settings) -> List[Tuple[BaseChecker, Finding, Diagnostic]]:
        """Collect findings together with their protocol diagnostics.

        Raises:
            AnalysisFailure: If a checker raises or reports a position outside
                the document.
        """
        lines = split_lines(text)
        results = []
        for checker, finding in self.findings(text, settings):
            try:
                diagnostic = to_diagnostic(checker.name, finding, lines)
            except (IndexError, TypeError) as e:
                raise AnalysisFailure(checker.name, e) from e
            results.append((checker, finding, diagnostic))
        return results


def finding_range(finding: Finding, lines: List[str]) -> Range:
    """Get the protocol range of a finding, in UTF-16 columns."""
    line = lines[finding.line]
    return Range(
        start=Position(line=finding.line, character=to_utf16_column(line, finding.start)),
        end=Position(line=finding.line, character=to_utf16_column(line, finding.end)),
    )


def to_diagnostic(source: str, finding: Finding, lines: List[str]) -> Diagnostic:
    return Diagnostic(
        range=finding_range(finding, lines),
        message=finding.message,
        severity=finding.severity,
        source=source,
        code=finding.code or None,
    )


def summarize(diagnostics: Iterable[Diagnostic]) -> Dict[str, int]:
    """Count diagnostics per severity name, for logging."""
    counts: Dict[str, int] = {}
    for diagnostic in diagnostics:
        name = diagnostic.severity.name if diagnostic.severity is not None else "Unknown"
        counts[name] = counts.get(name, 0) + 1
    return counts
