from __future__ import annotations

import pytest

from textlsp.errors import InvalidParams, InvalidRequest, MethodNotFound, NotInitialized
from textlsp.router import CapabilitySet, RequestRouter, RouterState
from textlsp.session import Session

from tests.lsp_helpers import DOC_URI, FakeClient, position

INIT_PARAMS = {"processId": 1234, "rootUri": "file:///workspace", "capabilities": {}}


def test_requests_before_initialize_are_rejected() -> None:
    router = Session().router
    assert router.state is RouterState.UNINITIALIZED

    with pytest.raises(NotInitialized) as excinfo:
        router.dispatch("textDocument/hover", position(DOC_URI, 0, 0))
    assert excinfo.value.to_error()["code"] == -32002

    with pytest.raises(NotInitialized):
        router.dispatch("no/such/method")


def test_initialize_advertises_capabilities() -> None:
    router = Session().router

    result = router.dispatch("initialize", INIT_PARAMS)

    assert router.state is RouterState.READY
    assert router.workspace_root == "/workspace"
    assert result["serverInfo"]["name"] == "textlsp"
    capabilities = result["capabilities"]
    assert capabilities["textDocumentSync"] == {"openClose": True, "change": 1}
    assert capabilities["completionProvider"]["resolveProvider"] is True
    assert capabilities["codeActionProvider"]["codeActionKinds"] == ["quickfix"]
    for provider in (
        "hoverProvider",
        "documentSymbolProvider",
        "documentFormattingProvider",
        "documentRangeFormattingProvider",
        "definitionProvider",
        "referencesProvider",
        "documentHighlightProvider",
        "renameProvider",
    ):
        assert capabilities[provider] is True


def test_initialize_falls_back_to_root_path() -> None:
    router = RequestRouter()
    router.dispatch("initialize", {"processId": None, "rootUri": None, "rootPath": "/legacy", "capabilities": {}})
    assert router.workspace_root == "/legacy"


def test_second_initialize_is_rejected() -> None:
    router = Session().router
    router.dispatch("initialize", INIT_PARAMS)
    with pytest.raises(InvalidRequest):
        router.dispatch("initialize", INIT_PARAMS)


def test_unknown_method_when_ready() -> None:
    router = Session().router
    router.dispatch("initialize", INIT_PARAMS)

    with pytest.raises(MethodNotFound) as excinfo:
        router.dispatch("textDocument/teleport", {})
    assert excinfo.value.to_error()["code"] == -32601


def test_disabled_capability_is_neither_advertised_nor_served() -> None:
    router = Session(capabilities=CapabilitySet(hover=False, rename=False)).router

    result = router.dispatch("initialize", INIT_PARAMS)

    assert "hoverProvider" not in result["capabilities"]
    assert "renameProvider" not in result["capabilities"]
    assert router.capabilities.hover is False
    with pytest.raises(MethodNotFound):
        router.dispatch("textDocument/hover", position(DOC_URI, 0, 0))


def test_capabilities_without_handlers_are_dropped() -> None:
    router = RequestRouter()

    result = router.dispatch("initialize", INIT_PARAMS)

    assert router.capabilities == CapabilitySet(**{name: False for name in CapabilitySet.__dataclass_fields__})
    assert "completionProvider" not in result["capabilities"]


def test_duplicate_registration_is_an_error() -> None:
    router = RequestRouter()
    router.register("custom/ping", lambda params: "pong", None)
    with pytest.raises(ValueError):
        router.register("custom/ping", lambda params: "pong", None)
    with pytest.raises(ValueError):
        router.register("initialize", lambda params: None, None)


def test_invalid_params() -> None:
    router = Session().router
    router.dispatch("initialize", INIT_PARAMS)

    with pytest.raises(InvalidParams):
        router.dispatch("textDocument/hover", {"textDocument": {"uri": DOC_URI}})
    with pytest.raises(InvalidParams):
        RequestRouter().dispatch("initialize", {"rootUri": "file:///workspace"})


def test_shutdown_then_requests_are_invalid() -> None:
    client = FakeClient()
    client.initialize()

    assert client.result("shutdown") is None
    assert client.session.router.state is RouterState.SHUTDOWN

    response = client.request("textDocument/hover", position(DOC_URI, 0, 0))
    assert response["error"]["code"] == -32600


def test_untracked_documents_answer_with_no_data() -> None:
    client = FakeClient()
    client.initialize()
    missing = "file:///workspace/closed.txt"

    assert client.result("textDocument/hover", position(missing, 0, 0)) is None
    assert client.result("textDocument/definition", position(missing, 0, 0)) is None
    assert client.result(
        "textDocument/references", {**position(missing, 0, 0), "context": {"includeDeclaration": True}}
    ) == []
    assert client.result("textDocument/documentHighlight", position(missing, 0, 0)) is None
    assert client.result("textDocument/completion", position(missing, 0, 0)) == []
    assert client.result("textDocument/documentSymbol", {"textDocument": {"uri": missing}}) is None
    assert client.result(
        "textDocument/formatting",
        {"textDocument": {"uri": missing}, "options": {"tabSize": 4, "insertSpaces": True}},
    ) == []
