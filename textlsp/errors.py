"""Exception taxonomy for the text language server."""

from typing import Any, Dict, Optional

from lsprotocol.types import ErrorCodes


class TextLspError(Exception):
    """Base class for all errors raised by textlsp."""


class ProtocolFault(TextLspError):
    """A request that cannot be served; answered with a JSON-RPC error.

    Protocol faults are fatal to the request only. The session responds with
    an error envelope and keeps serving.
    """

    code: int = ErrorCodes.InternalError

    def __init__(self, message: str, data: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.data = data

    def to_error(self) -> Dict[str, Any]:
        """Render the fault as a JSON-RPC error object.

        Returns:
            Dictionary with ``code``, ``message`` and optionally ``data``.
        """
        error: Dict[str, Any] = {"code": int(self.code), "message": self.message}
        if self.data is not None:
            error["data"] = self.data
        return error


class NotInitialized(ProtocolFault):
    """A request other than ``initialize`` arrived before the handshake."""

    code = ErrorCodes.ServerNotInitialized


class MethodNotFound(ProtocolFault):
    """No handler serves the method, or its capability is not advertised."""

    code = ErrorCodes.MethodNotFound


class InvalidRequest(ProtocolFault):
    code = ErrorCodes.InvalidRequest


class InvalidParams(ProtocolFault):
    code = ErrorCodes.InvalidParams


class DocumentError(TextLspError):
    """Base class for document store failures."""

    def __init__(self, uri: str, message: str):
        super().__init__(message)
        self.uri = uri


class UnknownDocument(DocumentError):
    def __init__(self, uri: str):
        super().__init__(uri, f"Document is not open: {uri}")


class StaleVersion(DocumentError):
    """An update carried a version that is not newer than the stored one."""

    def __init__(self, uri: str, current: int, received: int):
        super().__init__(
            uri,
            f"Stale version {received} for {uri} (current version is {current})",
        )
        self.current = current
        self.received = received


class InvalidSettings(TextLspError):
    """The client pushed a configuration payload that does not validate."""


class AnalysisFailure(TextLspError):
    """A checker raised while computing diagnostics."""

    def __init__(self, checker: str, cause: BaseException):
        super().__init__(f"Checker {checker} failed: {cause}")
        self.checker = checker
        self.cause = cause
