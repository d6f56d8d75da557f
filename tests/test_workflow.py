"""Tests for OperationWorkflow against an in-process fake service."""

from __future__ import annotations

import os
from pathlib import Path
from typing import Callable

import httpx
import pytest

from errors import (
    LOSSY_FORMAT,
    NETWORK_ERROR,
    RATE_LIMITED,
    READ_ERROR,
    SERVER_ERROR,
    TOO_LARGE,
    UNAUTHORIZED,
    UNSUPPORTED,
    WRONG_EXTENSION,
)
from models import (
    Failure,
    OperationKind,
    OperationRequest,
    OperationState,
    Outcome,
    Rejection,
    Settings,
    Success,
)
from service_client import ServiceClient
from workflow import MAX_UPLOAD_BYTES, OperationWorkflow

Handler = Callable[[httpx.Request], httpx.Response]


# ---------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------

class FakeStore:
    def __init__(self, key: str = "secret", base_url: str = "http://fortner.test") -> None:
        self.key = key
        self.base_url = base_url

    def get(self) -> Settings:
        return Settings(base_url=self.base_url, api_key=self.key)

    def set_endpoint(self, url: str) -> None:
        self.base_url = url

    def set_key(self, key: str) -> None:
        self.key = key

    def clear_key(self) -> None:
        self.key = ""


class SpyService:
    """Records every request and answers with a canned handler."""

    def __init__(self, handler: Handler) -> None:
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)


class RecordingObserver:
    def __init__(self) -> None:
        self.transitions: list[tuple[OperationState, OperationState]] = []
        self.progress: list[str] = []
        self.outcomes: list[Outcome] = []

    def on_state_change(self, from_state: OperationState, to_state: OperationState) -> None:
        self.transitions.append((from_state, to_state))

    def on_progress(self, message: str) -> None:
        self.progress.append(message)

    def on_outcome(self, outcome: Outcome) -> None:
        self.outcomes.append(outcome)


def _make(
    kind: OperationKind,
    handler: Handler,
    store: FakeStore | None = None,
    observer: RecordingObserver | None = None,
) -> tuple[OperationWorkflow, SpyService]:
    spy = SpyService(handler)
    http = httpx.Client(transport=httpx.MockTransport(spy))
    client = ServiceClient(store or FakeStore(), http=http)
    return OperationWorkflow(kind, client, observer=observer), spy


def _ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, content=b"payload")


def _encode(name: str = "image.png", data: bytes = b"\x89PNG" * 10) -> OperationRequest:
    return OperationRequest(OperationKind.ENCODE, name, data)


# ---------------------------------------------------------------
# Client-side rejections
# ---------------------------------------------------------------

@pytest.mark.parametrize("name", ["photo.jpg", "photo.JPEG", "clip.webp", "pic.avif"])
def test_lossy_suffix_rejected_without_network(name: str) -> None:
    workflow, spy = _make(OperationKind.ENCODE, _ok)

    outcome = workflow.run(_encode(name))

    assert isinstance(outcome, Rejection)
    assert outcome.reason == LOSSY_FORMAT
    assert workflow.state == OperationState.REJECTED
    assert spy.requests == []


def test_unsupported_suffix_rejected_without_network() -> None:
    workflow, spy = _make(OperationKind.ENCODE, _ok)

    outcome = workflow.run(_encode("notes.txt"))

    assert isinstance(outcome, Rejection)
    assert outcome.reason == UNSUPPORTED
    assert ".txt" in outcome.message
    assert spy.requests == []


def test_oversized_file_rejected_without_network() -> None:
    workflow, spy = _make(OperationKind.ENCODE, _ok)

    outcome = workflow.run(_encode(data=b"\0" * (MAX_UPLOAD_BYTES + 1)))

    assert isinstance(outcome, Rejection)
    assert outcome.reason == TOO_LARGE
    assert spy.requests == []


def test_exactly_max_size_is_transferred() -> None:
    observer = RecordingObserver()
    workflow, spy = _make(OperationKind.ENCODE, _ok, observer=observer)

    outcome = workflow.run(_encode(data=b"\0" * MAX_UPLOAD_BYTES))

    assert isinstance(outcome, Success)
    assert len(spy.requests) == 1
    assert (OperationState.VALIDATING, OperationState.TRANSFERRING) in observer.transitions


def test_decode_requires_archive_suffix() -> None:
    workflow, spy = _make(OperationKind.DECODE, _ok)

    outcome = workflow.run(OperationRequest(OperationKind.DECODE, "image.png", b"data"))

    assert isinstance(outcome, Rejection)
    assert outcome.reason == WRONG_EXTENSION
    assert spy.requests == []


def test_empty_credential_never_transfers() -> None:
    workflow, spy = _make(OperationKind.ENCODE, _ok, store=FakeStore(key=""))

    outcome = workflow.run(_encode())

    assert isinstance(outcome, Failure)
    assert outcome.code == UNAUTHORIZED
    assert spy.requests == []


# ---------------------------------------------------------------
# Transfer
# ---------------------------------------------------------------

def test_encode_request_shape() -> None:
    workflow, spy = _make(OperationKind.ENCODE, _ok)

    workflow.run(_encode("scan.tiff", b"tiff-bytes"))

    request = spy.requests[0]
    assert request.method == "POST"
    assert str(request.url) == "http://fortner.test/encode"
    assert request.headers["X-API-Key"] == "secret"
    assert b'name="file"; filename="scan.tiff"' in request.content
    assert b"tiff-bytes" in request.content


def test_happy_path_transitions_and_events() -> None:
    observer = RecordingObserver()
    workflow, _ = _make(OperationKind.ENCODE, _ok, observer=observer)

    outcome = workflow.run(_encode())

    assert observer.transitions == [
        (OperationState.IDLE, OperationState.VALIDATING),
        (OperationState.VALIDATING, OperationState.TRANSFERRING),
        (OperationState.TRANSFERRING, OperationState.AWAITING_RESPONSE),
        (OperationState.AWAITING_RESPONSE, OperationState.SUCCEEDED),
    ]
    assert observer.progress == ["Compressing image.png..."]
    assert observer.outcomes == [outcome]
    assert workflow.state.terminal


# ---------------------------------------------------------------
# Response classification
# ---------------------------------------------------------------

def test_encode_success_reads_size_headers() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            content=b"x" * 16,
            headers={"X-Original-Size": "10485760", "X-Compressed-Size": "1048576"},
        )

    workflow, _ = _make(OperationKind.ENCODE, handler)

    outcome = workflow.run(_encode("big.png"))

    assert isinstance(outcome, Success)
    assert outcome.original_size == 10485760
    assert outcome.compressed_size == 1048576
    assert outcome.ratio_percent == 90.0
    assert outcome.score is not None
    assert outcome.score.label == "Excellent"
    assert outcome.output_name == "big.fortner"


def test_ratio_computed_when_header_missing() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(
            200,
            content=b"x",
            headers={"X-Original-Size": "1000", "X-Compressed-Size": "250"},
        )

    workflow, _ = _make(OperationKind.ENCODE, handler)

    outcome = workflow.run(_encode())

    assert isinstance(outcome, Success)
    assert outcome.ratio_percent == 75.0


def test_ratio_header_with_percent_sign() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"x", headers={"X-Compression-Ratio": "93.4%"})

    workflow, _ = _make(OperationKind.ENCODE, handler)

    outcome = workflow.run(_encode())

    assert isinstance(outcome, Success)
    assert outcome.ratio_percent == 93.4
    assert outcome.score is not None
    assert outcome.score.label == "Outstanding"


def test_sizes_fall_back_to_file_and_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"x" * 25)

    workflow, _ = _make(OperationKind.ENCODE, handler)

    outcome = workflow.run(_encode(data=b"y" * 100))

    assert isinstance(outcome, Success)
    assert (outcome.original_size, outcome.compressed_size, outcome.ratio_percent) == (100, 25, 75.0)


def test_decode_success_only_needs_payload() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        assert str(request.url) == "http://fortner.test/decode"
        return httpx.Response(200, content=b"\x89PNG-restored")

    workflow, _ = _make(OperationKind.DECODE, handler)

    outcome = workflow.run(OperationRequest(OperationKind.DECODE, "photo.FORTNER", b"arc"))

    assert isinstance(outcome, Success)
    assert outcome.payload == b"\x89PNG-restored"
    assert outcome.output_name == "photo.png"
    assert outcome.score is None


def test_decode_sizes_report_archive_as_compressed() -> None:
    workflow, _ = _make(OperationKind.DECODE, lambda r: httpx.Response(200, content=b"r" * 40))

    outcome = workflow.run(OperationRequest(OperationKind.DECODE, "photo.fortner", b"a" * 10))

    assert isinstance(outcome, Success)
    assert outcome.original_size == 40
    assert outcome.compressed_size == 10


def test_unauthorized_response() -> None:
    workflow, _ = _make(OperationKind.ENCODE, lambda r: httpx.Response(401))

    outcome = workflow.run(_encode())

    assert isinstance(outcome, Failure)
    assert outcome.code == UNAUTHORIZED
    assert outcome.http_status == 401
    assert workflow.state == OperationState.FAILED


def test_rate_limited_releases_file() -> None:
    workflow, spy = _make(OperationKind.ENCODE, lambda r: httpx.Response(429))

    outcome = workflow.run(_encode())

    assert isinstance(outcome, Failure)
    assert outcome.code == RATE_LIMITED
    assert workflow.request is None
    assert len(spy.requests) == 1


def test_server_lossy_message_overrides_client_check() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(400, json={"error": "rejected: jpeg artifacts detected"})

    workflow, _ = _make(OperationKind.ENCODE, handler)

    outcome = workflow.run(_encode("scan.tiff"))

    assert isinstance(outcome, Rejection)
    assert outcome.reason == LOSSY_FORMAT
    assert outcome.message == "rejected: jpeg artifacts detected"
    assert workflow.state == OperationState.REJECTED


def test_lossy_marker_in_details_is_detected() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(422, json={"error": "Rejected", "details": "Source looks LOSSY"})

    workflow, _ = _make(OperationKind.ENCODE, handler)

    outcome = workflow.run(_encode())

    assert isinstance(outcome, Rejection)
    assert outcome.reason == LOSSY_FORMAT


def test_server_error_message_is_surfaced() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, json={"error": "Engine crashed", "details": "out of memory"})

    workflow, _ = _make(OperationKind.ENCODE, handler)

    outcome = workflow.run(_encode())

    assert outcome == Failure(
        code=SERVER_ERROR, message="Engine crashed: out of memory", http_status=500
    )


def test_unparsable_error_body_uses_generic_message() -> None:
    workflow, _ = _make(OperationKind.DECODE, lambda r: httpx.Response(502, content=b"<html>"))

    outcome = workflow.run(OperationRequest(OperationKind.DECODE, "a.fortner", b"arc"))

    assert isinstance(outcome, Failure)
    assert outcome.code == SERVER_ERROR
    assert outcome.message == "Bad Gateway"


def test_network_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    workflow, _ = _make(OperationKind.ENCODE, handler)

    outcome = workflow.run(_encode())

    assert isinstance(outcome, Failure)
    assert outcome.code == NETWORK_ERROR
    assert "connection refused" in outcome.message
    assert workflow.request is None


@pytest.mark.parametrize("base_url", ["http://[::1", "http://fortner.test:port"])
def test_malformed_endpoint_fails_with_network_error(base_url: str) -> None:
    observer = RecordingObserver()
    workflow, spy = _make(
        OperationKind.ENCODE, _ok, store=FakeStore(base_url=base_url), observer=observer
    )

    outcome = workflow.run(_encode())

    assert isinstance(outcome, Failure)
    assert outcome.code == NETWORK_ERROR
    assert workflow.state == OperationState.FAILED
    assert observer.outcomes == [outcome]
    assert spy.requests == []


def test_non_ascii_key_fails_with_network_error() -> None:
    observer = RecordingObserver()
    store = FakeStore(key="clé")
    workflow, spy = _make(OperationKind.ENCODE, _ok, store=store, observer=observer)

    outcome = workflow.run(_encode())

    assert isinstance(outcome, Failure)
    assert outcome.code == NETWORK_ERROR
    assert workflow.state == OperationState.FAILED
    assert observer.outcomes == [outcome]
    assert spy.requests == []


# ---------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------

def test_second_run_is_noop() -> None:
    workflow, spy = _make(OperationKind.ENCODE, _ok)

    first = workflow.run(_encode())
    second = workflow.run(_encode("other.png"))

    assert second is first
    assert len(spy.requests) == 1


def test_release_drops_payload() -> None:
    workflow, _ = _make(OperationKind.ENCODE, _ok)
    workflow.run(_encode())

    workflow.release()

    assert workflow.outcome is None
    assert workflow.request is None
    assert workflow.state == OperationState.SUCCEEDED


def test_endpoint_change_applies_to_next_request() -> None:
    store = FakeStore()
    first, spy_a = _make(OperationKind.ENCODE, _ok, store=store)
    first.run(_encode())

    store.set_endpoint("http://other.test")
    second, spy_b = _make(OperationKind.ENCODE, _ok, store=store)
    second.run(_encode())

    assert spy_a.requests[0].url.host == "fortner.test"
    assert spy_b.requests[0].url.host == "other.test"


# ---------------------------------------------------------------
# Files on disk
# ---------------------------------------------------------------

def test_path_request_is_read_only_after_validation(tmp_path: Path) -> None:
    path = tmp_path / "scan.png"
    path.write_bytes(b"png-bytes")
    request = OperationRequest.from_path(OperationKind.ENCODE, path)
    workflow, spy = _make(OperationKind.ENCODE, _ok)

    assert request.data is None
    assert request.size_bytes == 9

    outcome = workflow.run(request)

    assert isinstance(outcome, Success)
    assert b"png-bytes" in spy.requests[0].content
    assert request.data is None
    assert request.size_bytes == 9


def test_oversized_path_rejected_without_reading(tmp_path: Path) -> None:
    path = tmp_path / "huge.png"
    path.write_bytes(b"")
    os.truncate(path, MAX_UPLOAD_BYTES + 1)
    request = OperationRequest.from_path(OperationKind.ENCODE, path)
    path.unlink()
    workflow, spy = _make(OperationKind.ENCODE, _ok)

    outcome = workflow.run(request)

    assert isinstance(outcome, Rejection)
    assert outcome.reason == TOO_LARGE
    assert request.data is None
    assert spy.requests == []


def test_unreadable_path_fails_with_read_error(tmp_path: Path) -> None:
    path = tmp_path / "gone.png"
    path.write_bytes(b"png-bytes")
    request = OperationRequest.from_path(OperationKind.ENCODE, path)
    path.unlink()
    observer = RecordingObserver()
    workflow, spy = _make(OperationKind.ENCODE, _ok, observer=observer)

    outcome = workflow.run(request)

    assert isinstance(outcome, Failure)
    assert outcome.code == READ_ERROR
    assert workflow.state == OperationState.FAILED
    assert observer.outcomes == [outcome]
    assert spy.requests == []
