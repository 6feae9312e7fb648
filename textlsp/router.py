"""Request router.

Maps protocol method names to handlers. The router starts uninitialized and
only accepts the ``initialize`` handshake; the handshake fixes the capability
set for the rest of the session and moves the router to the ready state, in
which every message is dispatched by method name to exactly one handler.
"""

import enum
import logging
from dataclasses import dataclass, fields
from typing import Any, Callable, Dict, Optional, Type

from lsprotocol.types import (
    INITIALIZE,
    SHUTDOWN,
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
    COMPLETION_ITEM_RESOLVE,
    CodeActionKind,
    CodeActionOptions,
    CompletionOptions,
    InitializeParams,
    ServerCapabilities,
    TextDocumentSyncKind,
    TextDocumentSyncOptions,
)
from pygls.protocol import default_converter
from pygls.uris import to_fs_path

from textlsp import __version__
from textlsp.errors import (
    InvalidParams,
    InvalidRequest,
    MethodNotFound,
    NotInitialized,
)

SERVER_NAME = "textlsp"

converter = default_converter()

Handler = Callable[[Any], Any]


class RouterState(enum.Enum):
    UNINITIALIZED = "uninitialized"
    READY = "ready"
    SHUTDOWN = "shutdown"


@dataclass(frozen=True)
class CapabilitySet:
    """Features the server supports, advertised once at initialization."""

    completion: bool = True
    completion_resolve: bool = True
    hover: bool = True
    document_symbol: bool = True
    formatting: bool = True
    range_formatting: bool = True
    definition: bool = True
    references: bool = True
    document_highlight: bool = True
    code_action: bool = True
    rename: bool = True

    def restrict(self, available: Callable[[str], bool]) -> "CapabilitySet":
        """Turn off every capability ``available`` rejects.

        Args:
            available: Predicate over capability names.

        Returns:
            A new capability set.
        """
        values = {f.name: getattr(self, f.name) and available(f.name) for f in fields(self)}
        return CapabilitySet(**values)

    def enabled(self, name: str) -> bool:
        return bool(getattr(self, name))

    def to_server_capabilities(self) -> ServerCapabilities:
        """Render the set as the ``capabilities`` of an initialize result."""
        completion = None
        if self.completion:
            completion = CompletionOptions(resolve_provider=self.completion_resolve)

        code_action = None
        if self.code_action:
            code_action = CodeActionOptions(code_action_kinds=[CodeActionKind.QuickFix])

        return ServerCapabilities(
            text_document_sync=TextDocumentSyncOptions(
                open_close=True, change=TextDocumentSyncKind.Full
            ),
            completion_provider=completion,
            hover_provider=self.hover or None,
            document_symbol_provider=self.document_symbol or None,
            document_formatting_provider=self.formatting or None,
            document_range_formatting_provider=self.range_formatting or None,
            definition_provider=self.definition or None,
            references_provider=self.references or None,
            document_highlight_provider=self.document_highlight or None,
            code_action_provider=code_action,
            rename_provider=self.rename or None,
        )


# Capability gating each request method
METHOD_CAPABILITIES: Dict[str, str] = {
    TEXT_DOCUMENT_COMPLETION: "completion",
    COMPLETION_ITEM_RESOLVE: "completion_resolve",
    TEXT_DOCUMENT_HOVER: "hover",
    TEXT_DOCUMENT_DOCUMENT_SYMBOL: "document_symbol",
    TEXT_DOCUMENT_FORMATTING: "formatting",
    TEXT_DOCUMENT_RANGE_FORMATTING: "range_formatting",
    TEXT_DOCUMENT_DEFINITION: "definition",
    TEXT_DOCUMENT_REFERENCES: "references",
    TEXT_DOCUMENT_DOCUMENT_HIGHLIGHT: "document_highlight",
    TEXT_DOCUMENT_CODE_ACTION: "code_action",
    TEXT_DOCUMENT_RENAME: "rename",
}


@dataclass(frozen=True)
class Route:
    method: str
    handler: Handler
    params_type: Optional[Type[Any]]
    capability: Optional[str]


class RequestRouter:
    """Dispatches protocol messages to handlers by method name."""

    def __init__(self, declared: Optional[CapabilitySet] = None):
        """Initialize the router.

        Args:
            declared: Capabilities the server declares. The set in effect is
                computed from it at initialization, dropping any capability
                without a registered handler.
        """
        self.logger = logging.getLogger("textlsp.router")
        self.declared = declared or CapabilitySet()
        self.capabilities: Optional[CapabilitySet] = None
        self.state = RouterState.UNINITIALIZED
        self.workspace_root: Optional[str] = None
        self.client_capabilities: Any = None
        self._routes: Dict[str, Route] = {}

        self.register(SHUTDOWN, self.shutdown, None)

    def register(self, method: str, handler: Handler, params_type: Optional[Type[Any]]) -> None:
        """Register the handler for a method.

        Args:
            method: Protocol method name.
            handler: Callable taking the structured params.
            params_type: lsprotocol type the raw params are structured into,
                or None for handlers taking no params.

        Raises:
            ValueError: If the method already has a handler.
        """
        if method in self._routes or method == INITIALIZE:
            raise ValueError(f"Handler already registered for {method}")
        self._routes[method] = Route(
            method=method,
            handler=handler,
            params_type=params_type,
            capability=METHOD_CAPABILITIES.get(method),
        )

    def has_route(self, method: str) -> bool:
        return method in self._routes

    def _capability_routed(self, name: str) -> bool:
        return any(route.capability == name for route in self._routes.values())

    def initialize(self, params: InitializeParams) -> Dict[str, Any]:
        """Perform the initialize handshake.

        Args:
            params: Handshake parameters from the client.

        Returns:
            The initialize result, already in wire format.

        Raises:
            InvalidRequest: If the handshake already happened.
        """
        if self.state is not RouterState.UNINITIALIZED:
            raise InvalidRequest("Server is already initialized")

        if params.root_uri:
            self.workspace_root = to_fs_path(params.root_uri)
        else:
            self.workspace_root = params.root_path
        self.client_capabilities = params.capabilities

        self.capabilities = self.declared.restrict(self._capability_routed)
        self.state = RouterState.READY
        self.logger.info(f"Initialized for workspace: {self.workspace_root}")

        return {
            "capabilities": converter.unstructure(self.capabilities.to_server_capabilities()),
            "serverInfo": {"name": SERVER_NAME, "version": __version__},
        }

    def shutdown(self, _params: Any = None) -> None:
        self.state = RouterState.SHUTDOWN
        self.logger.info("Shutdown requested")

    def _structure(self, route: Route, params: Any) -> Any:
        if route.params_type is None:
            return params
        try:
            return converter.structure(params, route.params_type)
        except Exception as e:
            raise InvalidParams(f"Invalid params for {route.method}: {e}") from e

    def dispatch(self, method: str, params: Any = None) -> Any:
        """Dispatch a message to its handler.

        Args:
            method: Protocol method name.
            params: Raw JSON params.

        Returns:
            The handler result in wire format.

        Raises:
            NotInitialized: Before the initialize handshake.
            InvalidRequest: After shutdown, or on a repeated handshake.
            MethodNotFound: For unknown or unsupported methods.
            InvalidParams: If the params do not match the method.
        """
        if method == INITIALIZE:
            if self.state is not RouterState.UNINITIALIZED:
                raise InvalidRequest("Server is already initialized")
            try:
                handshake = converter.structure(params, InitializeParams)
            except Exception as e:
                raise InvalidParams(f"Invalid params for {INITIALIZE}: {e}") from e
            return self.initialize(handshake)

        if self.state is RouterState.UNINITIALIZED:
            raise NotInitialized(f"Server is not initialized, cannot handle {method}")
        if self.state is RouterState.SHUTDOWN:
            raise InvalidRequest(f"Server is shutting down, cannot handle {method}")

        route = self._routes.get(method)
        if route is None:
            raise MethodNotFound(f"Unknown method: {method}")
        if route.capability is not None and not self.capabilities.enabled(route.capability):
            raise MethodNotFound(f"Method not supported: {method}")

        self.logger.debug(f"Dispatching {method}")
        result = route.handler(self._structure(route, params))
        return converter.unstructure(result)
