from __future__ import annotations

import io
import json
from typing import Any

from textlsp.session import Session
from textlsp.transport import StreamTransport

from tests.lsp_helpers import DOC_URI, OTHER_URI, FakeClient, position


def _frame(message: dict[str, Any]) -> bytes:
    payload = json.dumps(message).encode("utf-8")
    return f"Content-Length: {len(payload)}\r\n\r\n".encode("utf-8") + payload


def _read_all(data: bytes) -> list[dict[str, Any]]:
    transport = StreamTransport(io.BytesIO(data), io.BytesIO())
    messages = []
    while (message := transport.read_message()) is not None:
        messages.append(message)
    return messages


def _starts(published: dict[str, Any]) -> list[tuple[int, int]]:
    return [
        (d["range"]["start"]["line"], d["range"]["start"]["character"])
        for d in published["diagnostics"]
    ]


def test_open_publishes_diagnostics_for_version(ready_client: FakeClient) -> None:
    ready_client.open(DOC_URI, "some typescript\n", version=3)

    [published] = ready_client.published()
    assert published["uri"] == DOC_URI
    assert published["version"] == 3
    assert published["diagnostics"] == [
        {
            "range": {"start": {"line": 0, "character": 5}, "end": {"line": 0, "character": 15}},
            "severity": 2,
            "code": "spelling",
            "source": "ex",
            "message": "typescript should be spelled TypeScript",
        }
    ]


def test_change_replaces_previous_diagnostics(ready_client: FakeClient) -> None:
    ready_client.open(DOC_URI, "typescript\n")
    ready_client.change(DOC_URI, "fixed\nthen typescript typescript\n", version=2)

    first, second = ready_client.published()
    assert _starts(first) == [(0, 0)]
    assert second["version"] == 2
    assert _starts(second) == [(1, 5), (1, 16)]
    assert ready_client.session.documents.get(DOC_URI).text == "fixed\nthen typescript typescript\n"


def test_stale_change_is_ignored(ready_client: FakeClient) -> None:
    ready_client.open(DOC_URI, "original", version=5)
    ready_client.outbox.clear()

    ready_client.change(DOC_URI, "typescript", version=5)
    ready_client.change(DOC_URI, "typescript", version=4)

    assert ready_client.published() == []
    document = ready_client.session.documents.get(DOC_URI)
    assert (document.version, document.text) == (5, "original")


def test_change_of_unknown_document_is_ignored(ready_client: FakeClient) -> None:
    ready_client.change(DOC_URI, "typescript", version=1)
    assert ready_client.published() == []
    assert DOC_URI not in ready_client.session.documents


def test_incremental_change_is_rejected(ready_client: FakeClient) -> None:
    ready_client.open(DOC_URI, "original")
    ready_client.outbox.clear()

    ready_client.notify(
        "textDocument/didChange",
        {
            "textDocument": {"uri": DOC_URI, "version": 2},
            "contentChanges": [
                {
                    "range": {"start": {"line": 0, "character": 0}, "end": {"line": 0, "character": 8}},
                    "text": "typescript",
                }
            ],
        },
    )

    assert ready_client.published() == []
    assert ready_client.session.documents.get(DOC_URI).text == "original"


def test_close_withdraws_diagnostics(ready_client: FakeClient) -> None:
    ready_client.open(DOC_URI, "nothing wrong here\n")
    ready_client.outbox.clear()

    ready_client.close(DOC_URI)

    [withdrawn] = ready_client.published()
    assert withdrawn["uri"] == DOC_URI
    assert withdrawn["diagnostics"] == []
    assert ready_client.session.documents.get(DOC_URI) is None
    assert ready_client.result("textDocument/hover", position(DOC_URI, 0, 0)) is None


def test_configuration_change_revalidates_every_open_document(ready_client: FakeClient) -> None:
    ready_client.open(DOC_URI, "typescript typescript\n")
    ready_client.open(OTHER_URI, "typescript\ntypescript\n")
    ready_client.outbox.clear()

    ready_client.configure({"languageServerExample": {"maxNumberOfProblems": 1}})

    published = {p["uri"]: p for p in ready_client.published()}
    assert set(published) == {DOC_URI, OTHER_URI}
    assert _starts(published[DOC_URI]) == [(0, 0)]
    assert _starts(published[OTHER_URI]) == [(0, 0)]
    assert ready_client.log_messages() == ["settings: maxNumberOfProblems=1"]

    ready_client.open("file:///workspace/third.txt", "typescript typescript")
    assert len(ready_client.published()[-1]["diagnostics"]) == 1


def test_null_cap_revalidates_with_default(ready_client: FakeClient) -> None:
    ready_client.open(DOC_URI, "js typescript js\n")
    ready_client.configure({"languageServerExample": {"maxNumberOfProblems": 1}})
    ready_client.outbox.clear()

    ready_client.configure(
        {"languageServerExample": {"maxNumberOfProblems": None, "bannedTokens": {"js": "JavaScript"}}}
    )

    (published,) = ready_client.published()
    assert _starts(published) == [(0, 0), (0, 3), (0, 14)]
    assert ready_client.log_messages() == ["settings: maxNumberOfProblems=100"]


def test_invalid_configuration_keeps_settings(ready_client: FakeClient) -> None:
    ready_client.configure({"languageServerExample": {"maxNumberOfProblems": 2}})
    ready_client.configure({"languageServerExample": {"maxNumberOfProblems": -4}})
    assert ready_client.session.settings.current().max_problems == 2


def test_watched_files_are_informational(ready_client: FakeClient) -> None:
    ready_client.notify(
        "workspace/didChangeWatchedFiles",
        {"changes": [{"uri": "file:///workspace/a.txt", "type": 1}, {"uri": "file:///workspace/b.txt", "type": 3}]},
    )
    assert ready_client.log_messages() == ["Received 2 file change event(s)"]
    assert ready_client.published() == []


def test_messages_before_initialize(client: FakeClient) -> None:
    client.open(DOC_URI, "typescript")
    assert client.outbox == []
    assert len(client.session.documents) == 0

    response = client.request("textDocument/hover", position(DOC_URI, 0, 0))
    assert response["error"]["code"] == -32002


def test_session_survives_faults(ready_client: FakeClient) -> None:
    def _explode(params: Any) -> None:
        raise RuntimeError("handler bug")

    ready_client.session.router.register("custom/explode", _explode, None)

    unknown = ready_client.request("textDocument/teleport", {})
    assert unknown["error"]["code"] == -32601

    crashed = ready_client.request("custom/explode")
    assert crashed["error"] == {"code": -32603, "message": "handler bug"}

    ready_client.notify("custom/unknownNotification", {})
    ready_client.notify("$/cancelRequest", {"id": 1})
    ready_client.notify("$/setTrace", {"value": "off"})

    ready_client.open(DOC_URI, "still serving")
    assert ready_client.result("textDocument/hover", position(DOC_URI, 0, 1))["contents"]["value"].startswith("`still`")


def test_messages_without_method_are_ignored(ready_client: FakeClient) -> None:
    assert ready_client.session.handle({"jsonrpc": "2.0", "id": 9, "result": None}) is None
    assert ready_client.outbox == []


def test_serve_full_lifecycle() -> None:
    messages = [
        {"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"processId": None, "rootUri": None, "capabilities": {}}},
        {"jsonrpc": "2.0", "method": "initialized", "params": {}},
        {
            "jsonrpc": "2.0",
            "method": "textDocument/didOpen",
            "params": {"textDocument": {"uri": DOC_URI, "languageId": "plaintext", "version": 1, "text": "typescript"}},
        },
        {"jsonrpc": "2.0", "id": 2, "method": "shutdown"},
        {"jsonrpc": "2.0", "method": "exit"},
        {"jsonrpc": "2.0", "id": 3, "method": "shutdown"},
    ]
    writer = io.BytesIO()
    session = Session(StreamTransport(io.BytesIO(b"".join(_frame(m) for m in messages)), writer))

    assert session.serve() == 0

    sent = _read_all(writer.getvalue())
    assert [m.get("id", m.get("method")) for m in sent] == [1, "textDocument/publishDiagnostics", 2]
    assert "capabilities" in sent[0]["result"]
    assert len(sent[1]["params"]["diagnostics"]) == 1
    assert sent[2]["result"] is None


def test_serve_recovers_from_malformed_messages() -> None:
    bad_body = b"Content-Length: 9\r\n\r\n{not json"
    good = _frame({"jsonrpc": "2.0", "id": 1, "method": "initialize", "params": {"processId": None, "rootUri": None, "capabilities": {}}})
    writer = io.BytesIO()
    session = Session(StreamTransport(io.BytesIO(bad_body + good), writer))

    # Input ends without exit
    assert session.serve() == 1

    parse_error, initialized = _read_all(writer.getvalue())
    assert parse_error["id"] is None
    assert parse_error["error"]["code"] == -32700
    assert initialized["id"] == 1
    assert "result" in initialized


def test_exit_without_shutdown() -> None:
    client = FakeClient()
    client.initialize()
    client.notify("exit")
    assert client.session.exit_code == 1
