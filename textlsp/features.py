"""Language features served by the request router.

Every handler looks the document up in the document store and answers with no
data when the URI is not tracked: the client may close a document while a
request about it is still in flight.
"""

import logging
import re
from typing import Dict, List, Optional, Tuple

from lsprotocol.types import (
    COMPLETION_ITEM_RESOLVE,
    TEXT_DOCUMENT_CODE_ACTION,
    TEXT_DOCUMENT_COMPLETION,
    TEXT_DOCUMENT_DEFINITION,
    TEXT_DOCUMENT_DOCUMENT_HIGHLIGHT,
    TEXT_DOCUMENT_DOCUMENT_SYMBOL,
    TEXT_DOCUMENT_FORMATTING,
    TEXT_DOCUMENT_HOVER,
    TEXT_DOCUMENT_RANGE_FORMATTING,
    TEXT_DOCUMENT_REFERENCES,
    TEXT_DOCUMENT_RENAME,
    CodeAction,
    CodeActionKind,
    CodeActionParams,
    CompletionItem,
    CompletionItemKind,
    CompletionParams,
    DefinitionParams,
    DocumentFormattingParams,
    DocumentHighlight,
    DocumentHighlightKind,
    DocumentHighlightParams,
    DocumentRangeFormattingParams,
    DocumentSymbol,
    DocumentSymbolParams,
    FormattingOptions,
    Hover,
    HoverParams,
    Location,
    MarkupContent,
    MarkupKind,
    Position,
    Range,
    ReferenceParams,
    RenameParams,
    SymbolKind,
    TextEdit,
    WorkspaceEdit,
)

from textlsp.diagnostics import DiagnosticsEngine
from textlsp.errors import AnalysisFailure, InvalidParams
from textlsp.router import RequestRouter
from textlsp.settings import SettingsState
from textlsp.utils.documents import Document, DocumentStore
from textlsp.utils.text import iter_words, prefix_at, to_utf16_column, utf16_length, word_at

HEADING_RE = re.compile(r"^(#{1,6})[ \t]+(.*?)[ \t#]*$")
NAME_RE = re.compile(r"^\w+$")

# Completion item data id -> (label, kind, detail, documentation, insert text)
COMPLETION_ITEMS: Dict[int, Tuple[str, CompletionItemKind, str, str, Optional[str]]] = {
    1: ("TypeScript", CompletionItemKind.Text, "TypeScript details", "TypeScript documentation", None),
    2: ("JavaScript", CompletionItemKind.Class, "JavaScript details", "JavaScript documentation", "hello sdsa"),
}


def occurrences(document: Document, word: str) -> List[Range]:
    """Find every whole-word occurrence of ``word`` in a document."""
    ranges = []
    for line_number, line in enumerate(document.lines):
        for start, end, candidate in iter_words(line):
            if candidate == word:
                ranges.append(
                    Range(
                        start=Position(line=line_number, character=to_utf16_column(line, start)),
                        end=Position(line=line_number, character=to_utf16_column(line, end)),
                    )
                )
    return ranges


def ranges_touch(a: Range, b: Range) -> bool:
    """Check whether two ranges overlap or share an endpoint."""
    a_start = (a.start.line, a.start.character)
    a_end = (a.end.line, a.end.character)
    b_start = (b.start.line, b.start.character)
    b_end = (b.end.line, b.end.character)
    return a_start <= b_end and b_start <= a_end


def line_range(lines: List[str], line: int) -> Range:
    return Range(
        start=Position(line=line, character=0),
        end=Position(line=line, character=utf16_length(lines[line])),
    )


def format_line(line: str, options: FormattingOptions) -> str:
    """Format a single line.

    Leading tabs become spaces when ``insert_spaces`` is set. Trailing
    whitespace is removed unless ``trim_trailing_whitespace`` is explicitly
    false.
    """
    if options.trim_trailing_whitespace is not False:
        line = line.rstrip()

    stripped = line.lstrip(" \t")
    leading = line[: len(line) - len(stripped)]
    if options.insert_spaces and "\t" in leading:
        leading = leading.expandtabs(max(options.tab_size, 1))
    return leading + stripped


def format_edits(document: Document, options: FormattingOptions, first: int, last: int, whole: bool) -> List[TextEdit]:
    """Compute formatting edits for a line span of a document.

    Args:
        document: Document to format.
        options: Client formatting options.
        first: First line to format.
        last: Last line to format, inclusive.
        whole: Whether final newline handling applies.

    Returns:
        Non-overlapping edits in document order.
    """
    lines = document.lines
    if not lines:
        return []
    last = min(last, len(lines) - 1)
    newline = "\r\n" if "\r\n" in document.text else "\n"

    # Blank lines after the final newline, deleted as one block
    blank_tail: Optional[int] = None
    if whole and options.trim_final_newlines and len(lines) > 1 and lines[-1] == "":
        start = len(lines) - 1
        while start > 0 and not lines[start - 1].strip():
            start -= 1
        if start < len(lines) - 1:
            blank_tail = start

    edits: List[TextEdit] = []
    for number in range(first, last + 1):
        if blank_tail is not None and number >= blank_tail:
            break
        line = lines[number]
        formatted = format_line(line, options)
        if whole and options.insert_final_newline and number == len(lines) - 1 and formatted:
            formatted += newline
        if formatted != line:
            edits.append(TextEdit(range=line_range(lines, number), new_text=formatted))

    if blank_tail is not None:
        edits.append(
            TextEdit(
                range=Range(
                    start=Position(line=blank_tail, character=0),
                    end=Position(line=len(lines) - 1, character=0),
                ),
                new_text="",
            )
        )
    return edits


class TextFeatures:
    """Request handlers over the document store and settings."""

    def __init__(self, documents: DocumentStore, settings: SettingsState, engine: DiagnosticsEngine):
        """Initialize the handlers.

        Args:
            documents: Store of open documents.
            settings: Current client settings.
            engine: Diagnostics engine, used for quick fixes.
        """
        self.documents = documents
        self.settings = settings
        self.engine = engine
        self.logger = logging.getLogger("textlsp.features")

    def _document(self, uri: str) -> Optional[Document]:
        document = self.documents.get(uri)
        if document is None:
            self.logger.debug(f"Request for untracked document: {uri}")
        return document

    def _word(self, uri: str, position: Position) -> Optional[Tuple[Document, Range, str]]:
        document = self._document(uri)
        if document is None:
            return None
        found = word_at(document.lines, position.line, position.character)
        if found is None:
            return None
        start, end, word = found
        span = Range(
            start=Position(line=position.line, character=start),
            end=Position(line=position.line, character=end),
        )
        return document, span, word

    def _documents_in_order(self, first: Document) -> List[Document]:
        others = sorted((d for d in self.documents.all() if d.uri != first.uri), key=lambda d: d.uri)
        return [first] + others

    def completion(self, params: CompletionParams) -> List[CompletionItem]:
        document = self._document(params.text_document.uri)
        if document is None:
            return []

        prefix = prefix_at(document.lines, params.position.line, params.position.character)

        items = []
        for data, (label, kind, _, _, _) in COMPLETION_ITEMS.items():
            if label.lower().startswith(prefix.lower()):
                items.append(CompletionItem(label=label, kind=kind, data=data))
        return items

    def completion_resolve(self, item: CompletionItem) -> CompletionItem:
        """Add detail and documentation to a completion item by its data id."""
        entry = COMPLETION_ITEMS.get(item.data) if isinstance(item.data, int) else None
        if entry is None:
            return item

        _, _, detail, documentation, insert_text = entry
        item.detail = detail
        item.documentation = documentation
        if insert_text is not None:
            item.insert_text = insert_text
        return item

    def hover(self, params: HoverParams) -> Optional[Hover]:
        found = self._word(params.text_document.uri, params.position)
        if found is None:
            return None
        document, span, word = found

        options = self.settings.current().language_server_example.checker_options
        fix = next(filter(None, (c.fix_for(word, options) for c in self.engine.checkers)), "")

        if fix:
            value = f"`{word}` should be spelled `{fix}`"
        else:
            count = len(occurrences(document, word))
            value = f"`{word}`: {count} occurrence{'s' if count != 1 else ''} in this document"
        return Hover(contents=MarkupContent(kind=MarkupKind.Markdown, value=value), range=span)

    def document_symbol(self, params: DocumentSymbolParams) -> Optional[List[DocumentSymbol]]:
        """List Markdown-style headings as a symbol hierarchy."""
        document = self._document(params.text_document.uri)
        if document is None:
            return None

        lines = document.lines
        headings = []
        for number, line in enumerate(lines):
            match = HEADING_RE.match(line)
            if match and match.group(2):
                headings.append((number, len(match.group(1)), match))
        if not headings:
            return None

        roots: List[DocumentSymbol] = []
        stack: List[Tuple[int, DocumentSymbol]] = []
        for index, (number, level, match) in enumerate(headings):
            # A section runs until the next heading of the same or a higher level
            end_line = len(lines) - 1
            for next_number, next_level, _ in headings[index + 1:]:
                if next_level <= level:
                    end_line = next_number - 1
                    break

            line = lines[number]
            symbol = DocumentSymbol(
                name=match.group(2),
                kind=SymbolKind.String,
                range=Range(
                    start=Position(line=number, character=0),
                    end=Position(line=end_line, character=utf16_length(lines[end_line])),
                ),
                selection_range=Range(
                    start=Position(line=number, character=to_utf16_column(line, match.start(2))),
                    end=Position(line=number, character=to_utf16_column(line, match.end(2))),
                ),
                children=[],
            )

            while stack and stack[-1][0] >= level:
                stack.pop()
            if stack:
                stack[-1][1].children.append(symbol)
            else:
                roots.append(symbol)
            stack.append((level, symbol))
        return roots

    def formatting(self, params: DocumentFormattingParams) -> List[TextEdit]:
        document = self._document(params.text_document.uri)
        if document is None:
            return []
        return format_edits(document, params.options, 0, len(document.lines) - 1, whole=True)

    def range_formatting(self, params: DocumentRangeFormattingParams) -> List[TextEdit]:
        document = self._document(params.text_document.uri)
        if document is None:
            return []

        first = params.range.start.line
        last = params.range.end.line
        # A range ending at column 0 does not touch its last line
        if params.range.end.character == 0 and last > first:
            last -= 1
        return format_edits(document, params.options, first, last, whole=False)

    def definition(self, params: DefinitionParams) -> Optional[List[Location]]:
        """Locate the first occurrence of the word in each open document."""
        found = self._word(params.text_document.uri, params.position)
        if found is None:
            return None
        document, _, word = found

        locations = []
        for candidate in self._documents_in_order(document):
            ranges = occurrences(candidate, word)
            if ranges:
                locations.append(Location(uri=candidate.uri, range=ranges[0]))
        return locations

    def references(self, params: ReferenceParams) -> List[Location]:
        found = self._word(params.text_document.uri, params.position)
        if found is None:
            return []
        document, _, word = found

        locations = []
        for candidate in self._documents_in_order(document):
            ranges = occurrences(candidate, word)
            if not params.context.include_declaration:
                ranges = ranges[1:]
            locations.extend(Location(uri=candidate.uri, range=r) for r in ranges)
        return locations

    def document_highlight(self, params: DocumentHighlightParams) -> Optional[List[DocumentHighlight]]:
        found = self._word(params.text_document.uri, params.position)
        if found is None:
            return None
        document, _, word = found

        return [
            DocumentHighlight(
                range=r,
                kind=DocumentHighlightKind.Write if index == 0 else DocumentHighlightKind.Read,
            )
            for index, r in enumerate(occurrences(document, word))
        ]

    def code_action(self, params: CodeActionParams) -> Optional[List[CodeAction]]:
        """Offer quick fixes for the diagnostics inside the requested range."""
        document = self._document(params.text_document.uri)
        if document is None:
            return None

        settings = self.settings.current()
        options = settings.language_server_example.checker_options
        try:
            found = self.engine.diagnose(document.text, settings)
        except AnalysisFailure as e:
            self.logger.error(f"No quick fixes, analysis failed: {e}")
            return []

        actions = []
        for checker, finding, diagnostic in found:
            if not ranges_touch(diagnostic.range, params.range):
                continue
            flagged = document.lines[finding.line][finding.start:finding.end]
            fix = checker.fix_for(flagged, options)
            if not fix:
                continue
            actions.append(
                CodeAction(
                    title=f"Change to {fix}",
                    kind=CodeActionKind.QuickFix,
                    diagnostics=[diagnostic],
                    edit=WorkspaceEdit(changes={document.uri: [TextEdit(range=diagnostic.range, new_text=fix)]}),
                    is_preferred=True,
                )
            )
        return actions

    def rename(self, params: RenameParams) -> Optional[WorkspaceEdit]:
        if not NAME_RE.match(params.new_name):
            raise InvalidParams(f"Invalid name: {params.new_name!r}")

        found = self._word(params.text_document.uri, params.position)
        if found is None:
            return None
        document, _, word = found

        changes: Dict[str, List[TextEdit]] = {}
        for candidate in self._documents_in_order(document):
            edits = [TextEdit(range=r, new_text=params.new_name) for r in occurrences(candidate, word)]
            if edits:
                changes[candidate.uri] = edits
        return WorkspaceEdit(changes=changes)


def register_features(router: RequestRouter, features: TextFeatures) -> None:
    """Register every request handler with the router."""
    router.register(TEXT_DOCUMENT_COMPLETION, features.completion, CompletionParams)
    router.register(COMPLETION_ITEM_RESOLVE, features.completion_resolve, CompletionItem)
    router.register(TEXT_DOCUMENT_HOVER, features.hover, HoverParams)
    router.register(TEXT_DOCUMENT_DOCUMENT_SYMBOL, features.document_symbol, DocumentSymbolParams)
    router.register(TEXT_DOCUMENT_FORMATTING, features.formatting, DocumentFormattingParams)
    router.register(TEXT_DOCUMENT_RANGE_FORMATTING, features.range_formatting, DocumentRangeFormattingParams)
    router.register(TEXT_DOCUMENT_DEFINITION, features.definition, DefinitionParams)
    router.register(TEXT_DOCUMENT_REFERENCES, features.references, ReferenceParams)
    router.register(TEXT_DOCUMENT_DOCUMENT_HIGHLIGHT, features.document_highlight, DocumentHighlightParams)
    router.register(TEXT_DOCUMENT_CODE_ACTION, features.code_action, CodeActionParams)
    router.register(TEXT_DOCUMENT_RENAME, features.rename, RenameParams)
