"""Checkers producing diagnostics for document text."""

from textlsp.checkers.base import BaseChecker, Finding
from textlsp.checkers.spelling import SpellingChecker

__all__ = ["BaseChecker", "Finding", "SpellingChecker"]
