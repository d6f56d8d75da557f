"""Single-use state machine driving one encode or decode operation.

    IDLE -> VALIDATING -> TRANSFERRING -> AWAITING_RESPONSE -> SUCCEEDED | REJECTED | FAILED

Client-side rejections happen in VALIDATING and never touch the network.
Every other failure is returned as a ``Failure`` outcome; nothing is raised
to the caller. The engine knows nothing about rendering: observers receive
state changes, progress messages and the final outcome.
"""

from __future__ import annotations

import threading
from typing import Optional

import httpx
from loguru import logger

from errors import (
    ERROR_MESSAGES,
    LOSSY_FORMAT,
    NETWORK_ERROR,
    RATE_LIMITED,
    READ_ERROR,
    SERVER_ERROR,
    TOO_LARGE,
    UNAUTHORIZED,
    UNSUPPORTED,
    WRONG_EXTENSION,
    is_lossy_message,
)
from formats import classify, decoded_name, encoded_name, extension, is_archive
from interfaces import OperationObserver
from models import (
    Failure,
    FormatClass,
    OperationKind,
    OperationRequest,
    OperationState,
    Outcome,
    Rejection,
    Success,
)
from scoring import compression_ratio, format_bytes, score
from service_client import ServiceClient

MAX_UPLOAD_BYTES = 50 * 1024 * 1024

ORIGINAL_SIZE_HEADER = "X-Original-Size"
COMPRESSED_SIZE_HEADER = "X-Compressed-Size"
RATIO_HEADER = "X-Compression-Ratio"


class OperationWorkflow:
    def __init__(
        self,
        kind: OperationKind,
        client: ServiceClient,
        max_upload_bytes: int = MAX_UPLOAD_BYTES,
        observer: Optional[OperationObserver] = None,
    ) -> None:
        self._kind = kind
        self._client = client
        self._max_upload_bytes = max_upload_bytes
        self._observer = observer

        self._lock = threading.RLock()
        self._state = OperationState.IDLE
        self._request: Optional[OperationRequest] = None
        self._outcome: Optional[Outcome] = None

    @property
    def kind(self) -> OperationKind:
        return self._kind

    @property
    def state(self) -> OperationState:
        return self._state

    @property
    def outcome(self) -> Optional[Outcome]:
        return self._outcome

    @property
    def request(self) -> Optional[OperationRequest]:
        return self._request

    def run(self, request: OperationRequest) -> Optional[Outcome]:
        """Drive ``request`` to a terminal state and return its outcome.

        The engine is single-use; calling ``run`` again returns the outcome of
        the first run (``None`` while it is still in flight or once released).
        """
        with self._lock:
            if self._state is not OperationState.IDLE:
                return self._outcome
            self._request = request
            self._transition(OperationState.VALIDATING)

        rejection = self._validate(request)
        if rejection is not None:
            return self._finish(OperationState.REJECTED, rejection)

        settings = self._client.store.get()
        if not settings.api_key:
            return self._finish(
                OperationState.FAILED,
                Failure(code=UNAUTHORIZED, message="No API key configured"),
            )

        try:
            request.load()
        except OSError as exc:
            return self._finish(
                OperationState.FAILED,
                Failure(code=READ_ERROR, message=f"{ERROR_MESSAGES[READ_ERROR]} {exc}"),
            )

        self._transition(OperationState.TRANSFERRING)
        verb = "Compressing" if self._kind is OperationKind.ENCODE else "Decompressing"
        self._emit_progress(f"{verb} {request.name}...")
        logger.info(
            f"Uploading {request.name} ({format_bytes(request.size_bytes)}) "
            f"to {settings.base_url}/{self._kind.value}"
        )

        try:
            self._transition(OperationState.AWAITING_RESPONSE)
            response = self._client.post_file(request, settings)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            # ValueError covers unparsable URLs and header values that are not ASCII.
            message = str(exc) or exc.__class__.__name__
            return self._finish(OperationState.FAILED, Failure(code=NETWORK_ERROR, message=message))

        return self._classify(request, response)

    def release(self) -> None:
        """Drop the request bytes and any payload held by this operation."""
        with self._lock:
            self._request = None
            self._outcome = None

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _validate(self, request: OperationRequest) -> Optional[Rejection]:
        if self._kind is OperationKind.DECODE:
            if not is_archive(request.name):
                return Rejection(WRONG_EXTENSION, ERROR_MESSAGES[WRONG_EXTENSION])
            return None

        if request.size_bytes > self._max_upload_bytes:
            return Rejection(TOO_LARGE, ERROR_MESSAGES[TOO_LARGE])
        format_class = classify(request.name)
        if format_class is FormatClass.UNSUPPORTED:
            return Rejection(UNSUPPORTED, f"Unsupported file type: .{extension(request.name)}")
        if format_class is FormatClass.LOSSY:
            return Rejection(LOSSY_FORMAT, ERROR_MESSAGES[LOSSY_FORMAT])
        return None

    def _classify(self, request: OperationRequest, response: httpx.Response) -> Outcome:
        status = response.status_code
        if status == 401:
            return self._finish(
                OperationState.FAILED,
                Failure(code=UNAUTHORIZED, message=ERROR_MESSAGES[UNAUTHORIZED], http_status=status),
            )
        if status == 429:
            return self._finish(
                OperationState.FAILED,
                Failure(code=RATE_LIMITED, message=ERROR_MESSAGES[RATE_LIMITED], http_status=status),
            )
        if not response.is_success:
            message = _error_message(response)
            if is_lossy_message(message):
                return self._finish(OperationState.REJECTED, Rejection(LOSSY_FORMAT, message))
            return self._finish(
                OperationState.FAILED,
                Failure(code=SERVER_ERROR, message=message, http_status=status),
            )

        payload = response.content
        if self._kind is OperationKind.DECODE:
            success = Success(
                original_size=len(payload),
                compressed_size=request.size_bytes,
                ratio_percent=0.0,
                payload=payload,
                output_name=decoded_name(request.name),
            )
        else:
            original_size = _int_header(response, ORIGINAL_SIZE_HEADER, request.size_bytes)
            compressed_size = _int_header(response, COMPRESSED_SIZE_HEADER, len(payload))
            ratio = _ratio_header(response)
            if ratio is None:
                ratio = compression_ratio(original_size, compressed_size)
            success = Success(
                original_size=original_size,
                compressed_size=compressed_size,
                ratio_percent=ratio,
                payload=payload,
                output_name=encoded_name(request.name),
                score=score(ratio),
            )
        return self._finish(OperationState.SUCCEEDED, success)

    def _finish(self, to_state: OperationState, outcome: Outcome) -> Outcome:
        with self._lock:
            self._outcome = outcome
            if self._request is not None:
                self._request.release()
            self._request = None
            self._transition(to_state)
        if isinstance(outcome, Failure):
            logger.warning(f"{self._kind.value} failed: {outcome.code} {outcome.message}")
        elif isinstance(outcome, Rejection):
            logger.info(f"{self._kind.value} rejected: {outcome.reason} {outcome.message}")
        else:
            logger.info(f"{self._kind.value} succeeded: {outcome.output_name}")
        if self._observer:
            self._observer.on_outcome(outcome)
        return outcome

    def _emit_progress(self, message: str) -> None:
        if self._observer:
            self._observer.on_progress(message)

    def _transition(self, to_state: OperationState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.debug(f"{self._kind.value}: {from_state.value} -> {to_state.value}")
        if self._observer:
            self._observer.on_state_change(from_state, to_state)


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.reason_phrase or ERROR_MESSAGES[SERVER_ERROR]
    if not isinstance(body, dict):
        return ERROR_MESSAGES[SERVER_ERROR]
    message = str(body.get("error") or response.reason_phrase or ERROR_MESSAGES[SERVER_ERROR])
    details = body.get("details")
    if details:
        message = f"{message}: {details}"
    return message


def _int_header(response: httpx.Response, name: str, default: int) -> int:
    try:
        return int(response.headers[name])
    except (KeyError, ValueError):
        return default


def _ratio_header(response: httpx.Response) -> Optional[float]:
    raw = response.headers.get(RATIO_HEADER)
    if not raw:
        return None
    try:
        return float(raw.strip().rstrip("%"))
    except ValueError:
        return None
