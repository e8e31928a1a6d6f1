"""Unit tests for the requests-based completion client."""

from __future__ import annotations

import json
from typing import Any

import pytest

from chunkwright.errors import BackendError, StreamProtocolError
from chunkwright.llm import completion_client as completion_http
from chunkwright.llm.completion_client import HttpCompletionClient, PassThroughCompletionClient
from chunkwright.models import ModelVariant, RewriteRequest

ENDPOINT = "http://backend.test/api/rewrite-chunk"


class _MockRequestsResponse:
    """Minimal requests response mock for one-shot and streamed payloads."""

    def __init__(
        self,
        *,
        payload: bytes = b"",
        status_code: int = 200,
        lines: list[str] | None = None,
    ) -> None:
        """Initialize response with raw payload bytes, HTTP status, and stream lines."""

        self.content = payload
        self.status_code = status_code
        self._lines = lines or []
        self.closed = False
        # requests' choice for `text/*` responses that omit a charset.
        self.encoding = "ISO-8859-1"

    def raise_for_status(self) -> None:
        """Raise HTTPError when the response status represents a failure."""

        if self.status_code >= 400:
            raise completion_http.requests.HTTPError(
                f"HTTP {self.status_code} error",
                response=self,
            )

    def iter_lines(self, decode_unicode: bool = False) -> list[str | bytes]:
        """Return UTF-8 encoded stream lines, decoded with `encoding` on request."""

        raw_lines = [line.encode("utf-8") for line in self._lines]
        if decode_unicode:
            return [line.decode(self.encoding) for line in raw_lines]
        return list(raw_lines)

    def close(self) -> None:
        """Record that the response was released."""

        self.closed = True


def _request(*, stream: bool = False, chat_context: str | None = None) -> RewriteRequest:
    """Build a deterministic rewrite request."""

    return RewriteRequest(
        content="Original chunk text.",
        instructions="Make it formal.",
        model=ModelVariant.GPT4,
        chat_context=chat_context,
        chunk_index=1,
        total_chunks=3,
        stream=stream,
        chunk_id="chunk-2",
    )


def _install_post(
    monkeypatch: pytest.MonkeyPatch, response: _MockRequestsResponse
) -> list[dict[str, Any]]:
    """Patch `requests.post` to return `response` and record call arguments."""

    calls: list[dict[str, Any]] = []

    def _mock_post(url: str, **kwargs: Any) -> _MockRequestsResponse:
        """Record the call and return the prepared response."""

        calls.append({"url": url, **kwargs})
        return response

    monkeypatch.setattr("chunkwright.llm.completion_client.requests.post", _mock_post)
    return calls


def test_one_shot_request_sends_payload_and_parses_result(monkeypatch: pytest.MonkeyPatch) -> None:
    """One-shot mode should post the wire payload and read `rewrittenContent`."""

    response = _MockRequestsResponse(
        payload=json.dumps(
            {"rewrittenContent": "Formal chunk text.", "explanation": "Tone adjusted."}
        ).encode("utf-8")
    )
    calls = _install_post(monkeypatch, response)
    client = HttpCompletionClient(endpoint_url=ENDPOINT, api_key=" sk-test-key ", timeout_seconds=30)

    result = client.rewrite(_request(chat_context="Earlier discussion."))

    assert result.content == "Formal chunk text."
    assert result.explanation == "Tone adjusted."
    assert len(calls) == 1
    call = calls[0]
    assert call["url"] == ENDPOINT
    assert call["timeout"] == 30
    assert call["stream"] is False
    assert call["headers"]["Authorization"] == "Bearer sk-test-key"
    assert call["headers"]["Accept"] == "application/json"
    assert call["json"] == {
        "content": "Original chunk text.",
        "instructions": "Make it formal.",
        "model": "gpt4",
        "chunkIndex": 1,
        "totalChunks": 3,
        "stream": False,
        "chatContext": "Earlier discussion.",
    }


def test_streaming_request_consumes_frames_and_closes(monkeypatch: pytest.MonkeyPatch) -> None:
    """Streaming mode should forward live snapshots and return the complete frame."""

    response = _MockRequestsResponse(
        lines=[
            'data: {"type": "chunk", "content": "Form"}',
            "",
            'data: {"type": "chunk", "content": "al"}',
            'data: {"type": "complete", "rewrittenContent": "Formal text."}',
        ]
    )
    calls = _install_post(monkeypatch, response)
    snapshots: list[str] = []
    client = HttpCompletionClient(endpoint_url=ENDPOINT)

    result = client.rewrite(_request(stream=True), on_snapshot=snapshots.append)

    assert result.content == "Formal text."
    assert snapshots == ["Form", "Formal"]
    assert response.closed is True
    assert calls[0]["stream"] is True
    assert calls[0]["headers"]["Accept"] == "text/event-stream"
    assert "Authorization" not in calls[0]["headers"]


def test_streaming_preserves_non_ascii_text_without_charset(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    """Streamed frames should be read as UTF-8 even when the response declares no charset."""

    response = _MockRequestsResponse(
        lines=[
            'data: {"type": "chunk", "content": "café "}',
            'data: {"type": "complete", "rewrittenContent": "café — naïve “quoted”"}',
        ]
    )
    _install_post(monkeypatch, response)
    snapshots: list[str] = []
    client = HttpCompletionClient(endpoint_url=ENDPOINT)

    result = client.rewrite(_request(stream=True), on_snapshot=snapshots.append)

    assert result.content == "café — naïve “quoted”"
    assert snapshots == ["café "]


def test_streaming_error_frame_raises_protocol_error(monkeypatch: pytest.MonkeyPatch) -> None:
    """An error frame should fail the request and still release the response."""

    response = _MockRequestsResponse(lines=['data: {"type": "error", "error": "overloaded"}'])
    _install_post(monkeypatch, response)
    client = HttpCompletionClient(endpoint_url=ENDPOINT)

    with pytest.raises(StreamProtocolError, match="overloaded") as exc_info:
        client.rewrite(_request(stream=True))

    assert exc_info.value.chunk_id == "chunk-2"
    assert response.closed is True


@pytest.mark.parametrize(
    ("status_code", "body", "failure_kind", "fragment"),
    [
        (500, {"error": "boom"}, "http_error", "Backend request failed (HTTP 500): boom"),
        (401, {"error": {"message": "bad credentials"}}, "invalid_api_key", "authentication failed"),
        (413, {"message": "payload"}, "payload_too_large", "oversized request (HTTP 413)"),
        (400, {"error": "maximum context length exceeded"}, "payload_too_large", "context length"),
        (429, {"error": "slow down"}, "rate_limited", "rate limit exceeded"),
        (504, {}, "timeout", "timed out (HTTP 504)"),
    ],
)
def test_http_errors_are_classified(
    monkeypatch: pytest.MonkeyPatch,
    status_code: int,
    body: dict[str, object],
    failure_kind: str,
    fragment: str,
) -> None:
    """HTTP failures should map to deterministic failure kinds with concise messages."""

    _install_post(
        monkeypatch,
        _MockRequestsResponse(payload=json.dumps(body).encode("utf-8"), status_code=status_code),
    )
    client = HttpCompletionClient(endpoint_url=ENDPOINT)

    with pytest.raises(BackendError) as exc_info:
        client.rewrite(_request())

    error = exc_info.value
    assert error.failure_kind == failure_kind
    assert error.status_code == status_code
    assert error.chunk_id == "chunk-2"
    assert fragment in error.message


def test_error_bodies_are_redacted_and_shortened(monkeypatch: pytest.MonkeyPatch) -> None:
    """API keys in error bodies should be redacted and long messages capped."""

    body = "Rejected key sk-abcdefghijklmnop " + "x" * 400
    _install_post(monkeypatch, _MockRequestsResponse(payload=body.encode("utf-8"), status_code=502))
    client = HttpCompletionClient(endpoint_url=ENDPOINT)

    with pytest.raises(BackendError) as exc_info:
        client.rewrite(_request())

    message = exc_info.value.message
    assert "sk-abcdefghijklmnop" not in message
    assert "[redacted-key]" in message
    assert message.endswith("...")


@pytest.mark.parametrize(
    ("raised", "failure_kind"),
    [
        (completion_http.requests.Timeout("read timed out"), "timeout"),
        (completion_http.requests.ConnectionError("connection refused"), "transport"),
    ],
)
def test_transport_failures_are_classified(
    monkeypatch: pytest.MonkeyPatch, raised: Exception, failure_kind: str
) -> None:
    """Network-layer failures should become backend errors without HTTP status."""

    def _failing_post(_url: str, **_kwargs: object) -> None:
        """Raise the prepared transport error."""

        raise raised

    monkeypatch.setattr("chunkwright.llm.completion_client.requests.post", _failing_post)
    client = HttpCompletionClient(endpoint_url=ENDPOINT)

    with pytest.raises(BackendError) as exc_info:
        client.rewrite(_request())

    assert exc_info.value.failure_kind == failure_kind
    assert exc_info.value.status_code is None


@pytest.mark.parametrize(
    "payload",
    [b"not json", b"[1, 2, 3]", b'{"explanation": "missing content"}'],
)
def test_malformed_one_shot_payloads_are_rejected(
    monkeypatch: pytest.MonkeyPatch, payload: bytes
) -> None:
    """Invalid JSON or missing `rewrittenContent` should fail as a malformed response."""

    _install_post(monkeypatch, _MockRequestsResponse(payload=payload))
    client = HttpCompletionClient(endpoint_url=ENDPOINT)

    with pytest.raises(BackendError) as exc_info:
        client.rewrite(_request())

    assert exc_info.value.failure_kind == "malformed_response"


def test_pass_through_client_echoes_content() -> None:
    """The dry-run client should echo content and record requests."""

    client = PassThroughCompletionClient()
    snapshots: list[str] = []

    result = client.rewrite(_request(stream=True), on_snapshot=snapshots.append)

    assert result.content == "Original chunk text."
    assert snapshots == ["Original chunk text."]
    assert len(client.requests) == 1
