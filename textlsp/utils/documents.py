"""Document store for the text language server."""

import logging
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from textlsp.errors import StaleVersion, UnknownDocument
from textlsp.utils.text import split_lines

DocumentListener = Callable[[str, "Document"], None]

CHANGED = "changed"
CLOSED = "closed"


@dataclass(frozen=True)
class Document:
    """Full text of an open document at a given version."""

    uri: str
    language_id: str
    version: int
    text: str
    lines: List[str] = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "lines", split_lines(self.text))


class DocumentStore:
    """Tracks the documents the client has open.

    The store is the only holder of document text. Every successful ``open``
    and ``update`` notifies listeners with a ``"changed"`` event and every
    ``close`` with a ``"closed"`` event.
    """

    def __init__(self):
        """Initialize an empty document store."""
        self.logger = logging.getLogger("textlsp.documents")
        self._documents: Dict[str, Document] = {}
        self._listeners: List[DocumentListener] = []

    def add_listener(self, listener: DocumentListener) -> None:
        """Register a callback for document events.

        Args:
            listener: Callable receiving the event name and the document.
        """
        self._listeners.append(listener)

    def _notify(self, event: str, document: Document) -> None:
        for listener in self._listeners:
            listener(event, document)

    def open(self, uri: str, language_id: str, version: int, text: str) -> Document:
        """Start tracking a document.

        Re-opening a URI that is already tracked resets its entry, provided the
        new version is newer than the stored one.

        Args:
            uri: Client-assigned document URI.
            language_id: Language identifier of the document.
            version: Initial version number.
            text: Full document text.

        Returns:
            The stored document.

        Raises:
            StaleVersion: If the URI is tracked and ``version`` is not newer.
        """
        existing = self._documents.get(uri)
        if existing is not None:
            if version <= existing.version:
                raise StaleVersion(uri, existing.version, version)
            self.logger.warning(f"Document re-opened, resetting: {uri}")

        document = Document(uri=uri, language_id=language_id, version=version, text=text)
        self._documents[uri] = document
        self.logger.debug(f"Opened {uri} at version {version}")
        self._notify(CHANGED, document)
        return document

    def update(self, uri: str, version: int, text: str) -> Document:
        """Replace the full text of a tracked document.

        Args:
            uri: Document URI.
            version: New version, strictly greater than the stored one.
            text: New full text.

        Returns:
            The stored document.

        Raises:
            UnknownDocument: If the URI is not tracked.
            StaleVersion: If ``version`` is not newer than the stored version.
        """
        existing = self._documents.get(uri)
        if existing is None:
            raise UnknownDocument(uri)
        if version <= existing.version:
            raise StaleVersion(uri, existing.version, version)

        document = Document(
            uri=uri, language_id=existing.language_id, version=version, text=text
        )
        self._documents[uri] = document
        self.logger.debug(f"Updated {uri} to version {version}")
        self._notify(CHANGED, document)
        return document

    def close(self, uri: str) -> Document:
        """Stop tracking a document.

        Raises:
            UnknownDocument: If the URI is not tracked.
        """
        document = self._documents.pop(uri, None)
        if document is None:
            raise UnknownDocument(uri)
        self.logger.debug(f"Closed {uri}")
        self._notify(CLOSED, document)
        return document

    def get(self, uri: str) -> Optional[Document]:
        return self._documents.get(uri)

    def all(self) -> List[Document]:
        """Get a snapshot of every open document."""
        return list(self._documents.values())

    def __contains__(self, uri: object) -> bool:
        return uri in self._documents

    def __len__(self) -> int:
        return len(self._documents)
