"""Banned-token spelling checker."""

import re
from typing import Any, Dict, Iterator, List, Mapping, Pattern

from lsprotocol.types import DiagnosticSeverity

from textlsp.checkers.base import BaseChecker, Finding

DEFAULT_BANNED_TOKENS: Dict[str, str] = {"typescript": "TypeScript"}


class SpellingChecker(BaseChecker):
    """Flags tokens that should be spelled differently.

    Matching is case-sensitive and literal: ``typescript`` is flagged while
    ``TypeScript`` and ``Typescript`` are not. Extra tokens can be configured
    with the ``bannedTokens`` option, a mapping of token to preferred spelling.
    """

    severity = DiagnosticSeverity.Warning

    @property
    def name(self) -> str:
        return "ex"

    def banned_tokens(self, options: Dict[str, Any]) -> Dict[str, str]:
        """Get the banned tokens in effect.

        Args:
            options: Checker-specific settings.

        Returns:
            Mapping of banned token to its preferred spelling.
        """
        tokens = dict(DEFAULT_BANNED_TOKENS)
        configured = options.get("bannedTokens")
        if isinstance(configured, Mapping):
            for token, replacement in configured.items():
                if isinstance(token, str) and token and isinstance(replacement, str):
                    tokens[token] = replacement
        return tokens

    def _pattern(self, tokens: Dict[str, str]) -> Pattern[str]:
        # Longest first so overlapping tokens prefer the longer match
        ordered = sorted(tokens, key=len, reverse=True)
        return re.compile("|".join(re.escape(token) for token in ordered))

    def check(self, lines: List[str], options: Dict[str, Any]) -> Iterator[Finding]:
        tokens = self.banned_tokens(options)
        pattern = self._pattern(tokens)

        for line_number, line in enumerate(lines):
            for match in pattern.finditer(line):
                token = match.group()
                yield Finding(
                    line=line_number,
                    start=match.start(),
                    end=match.end(),
                    message=f"{token} should be spelled {tokens[token]}",
                    severity=self.severity,
                    code="spelling",
                )

    def fix_for(self, finding_text: str, options: Dict[str, Any]) -> str:
        return self.banned_tokens(options).get(finding_text, "")
