"""Language server session.

The session owns the document store and the settings, wires them to the
diagnostics engine and the request router, and runs the message loop. Messages
are handled one at a time, each to completion, before the next one is read.
"""

import logging
from typing import Any, Callable, Dict, List, Optional

from lsprotocol.types import (
    EXIT,
    INITIALIZED,
    TEXT_DOCUMENT_DID_CHANGE,
    TEXT_DOCUMENT_DID_CLOSE,
    TEXT_DOCUMENT_DID_OPEN,
    TEXT_DOCUMENT_PUBLISH_DIAGNOSTICS,
    WINDOW_LOG_MESSAGE,
    WORKSPACE_DID_CHANGE_CONFIGURATION,
    WORKSPACE_DID_CHANGE_WATCHED_FILES,
    Diagnostic,
    DidChangeConfigurationParams,
    DidChangeTextDocumentParams,
    DidChangeWatchedFilesParams,
    DidCloseTextDocumentParams,
    DidOpenTextDocumentParams,
    ErrorCodes,
    FileChangeType,
    InitializedParams,
    LogMessageParams,
    MessageType,
    PublishDiagnosticsParams,
)
from pygls.uris import to_fs_path

from textlsp.diagnostics import DiagnosticsEngine, summarize
from textlsp.errors import (
    DocumentError,
    InvalidParams,
    InvalidSettings,
    NotInitialized,
    ProtocolFault,
)
from textlsp.features import TextFeatures, register_features
from textlsp.router import CapabilitySet, RequestRouter, RouterState, converter
from textlsp.settings import Settings, SettingsState
from textlsp.transport import StreamTransport, TransportError
from textlsp.utils.documents import CHANGED, CLOSED, Document, DocumentStore

Message = Dict[str, Any]


class Session:
    """A single client session."""

    def __init__(
        self,
        transport: Optional[StreamTransport] = None,
        engine: Optional[DiagnosticsEngine] = None,
        capabilities: Optional[CapabilitySet] = None,
        send: Optional[Callable[[Message], None]] = None,
    ):
        """Initialize the session.

        Args:
            transport: Transport the message loop reads from and writes to.
            engine: Diagnostics engine. Defaults to the spelling checker.
            capabilities: Capabilities the server declares.
            send: Callable for outgoing messages. Defaults to the transport.
        """
        self.logger = logging.getLogger("textlsp.session")
        self.transport = transport
        self._send = send
        self.exit_code: Optional[int] = None

        self.documents = DocumentStore()
        self.settings = SettingsState()
        self.engine = engine or DiagnosticsEngine()
        self.features = TextFeatures(self.documents, self.settings, self.engine)

        self.router = RequestRouter(capabilities)
        register_features(self.router, self.features)
        self.router.register(INITIALIZED, self.initialized, InitializedParams)
        self.router.register(TEXT_DOCUMENT_DID_OPEN, self.did_open, DidOpenTextDocumentParams)
        self.router.register(TEXT_DOCUMENT_DID_CHANGE, self.did_change, DidChangeTextDocumentParams)
        self.router.register(TEXT_DOCUMENT_DID_CLOSE, self.did_close, DidCloseTextDocumentParams)
        self.router.register(
            WORKSPACE_DID_CHANGE_CONFIGURATION, self.did_change_configuration, DidChangeConfigurationParams
        )
        self.router.register(
            WORKSPACE_DID_CHANGE_WATCHED_FILES, self.did_change_watched_files, DidChangeWatchedFilesParams
        )

        self.documents.add_listener(self._on_document_event)
        self.settings.add_listener(self._on_settings_replaced)

    # Outgoing messages

    def send(self, message: Message) -> None:
        if self._send is not None:
            self._send(message)
        elif self.transport is not None:
            self.transport.write_message(message)
        else:
            self.logger.debug(f"No transport, dropping message: {message}")

    def notify(self, method: str, params: Any) -> None:
        """Send a notification to the client.

        Args:
            method: Notification method.
            params: lsprotocol params object.
        """
        self.send({"jsonrpc": "2.0", "method": method, "params": converter.unstructure(params)})

    def log_message(self, message: str, message_type: MessageType = MessageType.Log) -> None:
        self.notify(WINDOW_LOG_MESSAGE, LogMessageParams(type=message_type, message=message))

    def publish_diagnostics(self, uri: str, diagnostics: List[Diagnostic], version: Optional[int] = None) -> None:
        self.notify(
            TEXT_DOCUMENT_PUBLISH_DIAGNOSTICS,
            PublishDiagnosticsParams(uri=uri, diagnostics=diagnostics, version=version),
        )

    # Re-validation

    def validate(self, document: Document) -> List[Diagnostic]:
        """Compute and publish diagnostics for a document.

        Args:
            document: Document to validate.

        Returns:
            The published diagnostics.
        """
        diagnostics = self.engine.compute(document.text, self.settings.current())
        self.logger.debug(f"Diagnostics for {document.uri}@{document.version}: {summarize(diagnostics)}")
        self.publish_diagnostics(document.uri, diagnostics, document.version)
        return diagnostics

    def _on_document_event(self, event: str, document: Document) -> None:
        if event == CHANGED:
            self.validate(document)
        elif event == CLOSED:
            # Withdraw whatever the client still shows for the document
            self.publish_diagnostics(document.uri, [])

    def _on_settings_replaced(self, settings: Settings) -> None:
        for document in self.documents.all():
            self.validate(document)

    # Notification handlers

    def initialized(self, params: InitializedParams) -> None:
        self.logger.info("Client initialized")

    def did_open(self, params: DidOpenTextDocumentParams) -> None:
        item = params.text_document
        self.documents.open(item.uri, item.language_id, item.version, item.text)

    def did_change(self, params: DidChangeTextDocumentParams) -> None:
        if not params.content_changes:
            return

        for change in params.content_changes:
            if getattr(change, "range", None) is not None:
                raise InvalidParams("Incremental document changes are not supported")

        # Full sync: the last change carries the complete new text
        text = params.content_changes[-1].text
        self.documents.update(params.text_document.uri, params.text_document.version, text)

    def did_close(self, params: DidCloseTextDocumentParams) -> None:
        self.documents.close(params.text_document.uri)

    def did_change_configuration(self, params: DidChangeConfigurationParams) -> None:
        settings = self.settings.replace(params.settings)
        self.log_message(f"settings: maxNumberOfProblems={settings.max_problems}")

    def did_change_watched_files(self, params: DidChangeWatchedFilesParams) -> None:
        for change in params.changes:
            self.logger.info(f"Watched file {FileChangeType(change.type).name.lower()}: {to_fs_path(change.uri)}")
        self.log_message(f"Received {len(params.changes)} file change event(s)")

    # Message loop

    def handle(self, message: Message) -> Optional[Message]:
        """Handle one incoming message.

        Args:
            message: Decoded JSON-RPC message.

        Returns:
            The response for a request, or None for notifications.
        """
        method = message.get("method")
        if not isinstance(method, str):
            # Responses to server-initiated requests; the server sends none
            self.logger.debug(f"Ignoring message without method: {message}")
            return None

        params = message.get("params")
        if "id" in message:
            return self._handle_request(message["id"], method, params)
        self._handle_notification(method, params)
        return None

    def _handle_request(self, msg_id: Any, method: str, params: Any) -> Message:
        try:
            result = self.router.dispatch(method, params)
        except ProtocolFault as e:
            self.logger.warning(f"Request {method} failed: {e.message}")
            return {"jsonrpc": "2.0", "id": msg_id, "error": e.to_error()}
        except Exception as e:
            self.logger.exception(f"Unexpected error handling {method}")
            return {
                "jsonrpc": "2.0",
                "id": msg_id,
                "error": {"code": int(ErrorCodes.InternalError), "message": str(e)},
            }
        return {"jsonrpc": "2.0", "id": msg_id, "result": result}

    def _handle_notification(self, method: str, params: Any) -> None:
        if method == EXIT:
            self.exit_code = 0 if self.router.state is RouterState.SHUTDOWN else 1
            self.logger.info(f"Exit requested (code {self.exit_code})")
            return
        if method.startswith("$/"):
            self.logger.debug(f"Ignoring {method}")
            return

        try:
            self.router.dispatch(method, params)
        except NotInitialized:
            self.logger.debug(f"Dropping {method} received before initialize")
        except ProtocolFault as e:
            self.logger.warning(f"Notification {method} failed: {e.message}")
        except (DocumentError, InvalidSettings) as e:
            self.logger.warning(f"Notification {method} rejected: {e}")
        except Exception:
            self.logger.exception(f"Unexpected error handling {method}")

    def serve(self) -> int:
        """Run the message loop until the input ends or the client exits.

        Returns:
            Process exit code: 0 after an orderly shutdown and exit, 1
            otherwise.
        """
        if self.transport is None:
            raise ValueError("Cannot serve without a transport")

        self.logger.info("Serving")
        while self.exit_code is None:
            try:
                message = self.transport.read_message()
            except TransportError as e:
                self.logger.error(f"Error reading from client: {e}")
                self.send(
                    {
                        "jsonrpc": "2.0",
                        "id": None,
                        "error": {"code": int(ErrorCodes.ParseError), "message": str(e)},
                    }
                )
                continue

            if message is None:
                self.logger.info("Input closed")
                break

            response = self.handle(message)
            if response is not None:
                self.send(response)

        return self.exit_code if self.exit_code is not None else 1
