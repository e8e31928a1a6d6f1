"""HTTP client for the chunk rewrite completion backend.

Responsibilities:
- Send rewrite requests in one-shot JSON or line-streamed mode.
- Normalize response extraction into `RewriteResult` values.
- Raise `BackendError` with deterministic failure kinds for run-level reporting.
"""

from __future__ import annotations

import json
import re
import socket
from typing import Any, Protocol

import requests

from ..errors import BackendError
from ..models import RewriteRequest, RewriteResult
from .streaming import SnapshotObserver, StreamReader, iter_frames


class CompletionClient(Protocol):
    """Protocol for backends that rewrite one chunk of text."""

    def rewrite(
        self,
        request: RewriteRequest,
        on_snapshot: SnapshotObserver | None = None,
    ) -> RewriteResult:
        """Return the final rewritten content for `request`."""


class HttpCompletionClient:
    """Minimal requests-based client for the rewrite endpoint."""

    _MAX_PROVIDER_MESSAGE_CHARS = 180

    def __init__(
        self,
        *,
        endpoint_url: str,
        api_key: str | None = None,
        timeout_seconds: float = 120.0,
    ) -> None:
        """Initialize endpoint, credential, and per-request timeout settings."""

        self.endpoint_url = endpoint_url.strip()
        self.api_key = api_key.strip() if isinstance(api_key, str) else ""
        self.timeout_seconds = timeout_seconds

    def rewrite(
        self,
        request: RewriteRequest,
        on_snapshot: SnapshotObserver | None = None,
    ) -> RewriteResult:
        """Dispatch to streaming or one-shot mode based on `request.stream`."""

        if request.stream:
            return self._rewrite_streaming(request, on_snapshot)
        return self._rewrite_once(request)

    def _headers(self, *, stream: bool) -> dict[str, str]:
        """Build request headers, adding bearer auth when an API key is set."""

        headers = {
            "Content-Type": "application/json",
            "Accept": "text/event-stream" if stream else "application/json",
        }
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _post(self, request: RewriteRequest) -> requests.Response:
        """POST the request payload and map transport and HTTP failures."""

        try:
            response = requests.post(
                self.endpoint_url,
                headers=self._headers(stream=request.stream),
                json=request.as_payload(),
                timeout=self.timeout_seconds,
                stream=request.stream,
            )
            response.raise_for_status()
        except requests.HTTPError as exc:
            raise self._http_error_to_backend_error(exc, request.chunk_id) from exc
        except (requests.RequestException, TimeoutError) as exc:
            raise self._transport_error(exc, request.chunk_id) from exc
        return response

    def _rewrite_once(self, request: RewriteRequest) -> RewriteResult:
        """Execute one non-streaming request and parse `{rewrittenContent}`."""

        response = self._post(request)
        try:
            payload = json.loads(bytes(response.content).decode("utf-8"))
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            raise BackendError(
                "Backend returned invalid JSON payload.",
                failure_kind="malformed_response",
                status_code=response.status_code,
                chunk_id=request.chunk_id,
            ) from exc
        return self._extract_result(payload, request.chunk_id)

    def _rewrite_streaming(
        self,
        request: RewriteRequest,
        on_snapshot: SnapshotObserver | None,
    ) -> RewriteResult:
        """Execute one streaming request and consume its frames to completion."""

        response = self._post(request)
        reader = StreamReader(on_snapshot=on_snapshot, chunk_id=request.chunk_id)
        try:
            # Raw bytes: `text/event-stream` without a charset would decode as ISO-8859-1.
            return reader.consume(iter_frames(response.iter_lines()))
        except (requests.RequestException, TimeoutError) as exc:
            raise self._transport_error(exc, request.chunk_id) from exc
        finally:
            response.close()

    @staticmethod
    def _extract_result(payload: Any, chunk_id: str | None) -> RewriteResult:
        """Extract rewritten content from a one-shot response payload."""

        if not isinstance(payload, dict):
            raise BackendError(
                "Backend response is not a JSON object.",
                failure_kind="malformed_response",
                chunk_id=chunk_id,
            )
        content = payload.get("rewrittenContent")
        if not isinstance(content, str):
            raise BackendError(
                "Backend response missing `rewrittenContent`.",
                failure_kind="malformed_response",
                chunk_id=chunk_id,
            )
        explanation = payload.get("explanation")
        return RewriteResult(
            content=content,
            explanation=explanation if isinstance(explanation, str) else None,
        )

    @staticmethod
    def _decode_error_body(exc: requests.HTTPError) -> str:
        """Decode an HTTP error body into a best-effort UTF-8 payload string."""

        response = exc.response
        if response is None:
            return ""
        try:
            return bytes(response.content).decode("utf-8", errors="replace").strip()
        except (TypeError, ValueError, requests.RequestException):
            return ""

    @classmethod
    def _redact_sensitive_tokens(cls, text: str) -> str:
        """Redact API-key-like tokens from backend error content."""

        redacted = re.sub(r"\bsk-[A-Za-z0-9_-]{8,}\b", "[redacted-key]", text)
        redacted = re.sub(
            r"(?i)bearer\s+[A-Za-z0-9._-]{12,}",
            "Bearer [redacted-token]",
            redacted,
        )
        return redacted

    @classmethod
    def _short_message(cls, text: str) -> str:
        """Normalize and cap user-facing backend message length."""

        compact = " ".join(text.split())
        if len(compact) <= cls._MAX_PROVIDER_MESSAGE_CHARS:
            return compact
        return f"{compact[: cls._MAX_PROVIDER_MESSAGE_CHARS - 1]}..."

    @classmethod
    def _extract_provider_message(cls, body: str) -> str:
        """Extract a concise message from `{"error": ...}` or plain-text bodies."""

        if not body:
            return ""

        try:
            payload = json.loads(body)
        except json.JSONDecodeError:
            return cls._short_message(cls._redact_sensitive_tokens(body))

        message: str | None = None
        if isinstance(payload, dict):
            error_payload = payload.get("error")
            if isinstance(error_payload, dict):
                error_payload = error_payload.get("message")
            if isinstance(error_payload, str) and error_payload.strip():
                message = error_payload.strip()
            elif isinstance(payload.get("message"), str):
                message = payload["message"].strip()

        if not message:
            message = body
        return cls._short_message(cls._redact_sensitive_tokens(message))

    @staticmethod
    def _classify_http_failure(status_code: int, provider_message: str) -> str:
        """Classify HTTP errors into deterministic diagnostic kinds."""

        message_lower = provider_message.lower()
        if status_code in {401, 403} or "api key" in message_lower:
            return "invalid_api_key"
        if status_code == 413 or any(
            phrase in message_lower
            for phrase in ("too large", "too long", "context length", "maximum context", "token limit")
        ):
            return "payload_too_large"
        if status_code == 429:
            return "rate_limited"
        if status_code in {408, 504} or "timeout" in message_lower or "timed out" in message_lower:
            return "timeout"
        return "http_error"

    @staticmethod
    def _classify_transport_failure(reason: object) -> str:
        """Classify network-layer failures into deterministic diagnostic kinds."""

        if isinstance(reason, TimeoutError | socket.timeout | requests.Timeout):
            return "timeout"
        return "transport"

    @classmethod
    def _transport_error(cls, exc: BaseException, chunk_id: str | None) -> BackendError:
        """Convert transport exceptions into backend errors."""

        failure_kind = cls._classify_transport_failure(exc)
        if failure_kind == "timeout":
            detail = "Backend request timed out."
        else:
            detail = f"Backend request transport error: {cls._short_message(str(exc))}"
        return BackendError(detail, failure_kind=failure_kind, chunk_id=chunk_id)

    @classmethod
    def _http_error_to_backend_error(
        cls, exc: requests.HTTPError, chunk_id: str | None
    ) -> BackendError:
        """Convert HTTP errors into normalized backend exceptions with metadata."""

        status_code = exc.response.status_code if exc.response is not None else 0
        provider_message = cls._extract_provider_message(cls._decode_error_body(exc))
        failure_kind = cls._classify_http_failure(status_code, provider_message)

        headline = {
            "invalid_api_key": "Backend authentication failed",
            "payload_too_large": "Backend rejected an oversized request",
            "rate_limited": "Backend rate limit exceeded",
            "timeout": "Backend request timed out",
        }.get(failure_kind, "Backend request failed")

        if provider_message:
            detail = f"{headline} (HTTP {status_code}): {provider_message}"
        else:
            detail = f"{headline} (HTTP {status_code})."

        return BackendError(
            detail,
            failure_kind=failure_kind,
            status_code=status_code,
            chunk_id=chunk_id,
        )


class PassThroughCompletionClient:
    """Deterministic client that returns request content unchanged (dry runs)."""

    def __init__(self) -> None:
        """Initialize call recording for inspection."""

        self.requests: list[RewriteRequest] = []

    def rewrite(
        self,
        request: RewriteRequest,
        on_snapshot: SnapshotObserver | None = None,
    ) -> RewriteResult:
        """Echo `request.content` as the rewritten result."""

        self.requests.append(request)
        if request.stream and on_snapshot is not None:
            on_snapshot(request.content)
        return RewriteResult(content=request.content)
