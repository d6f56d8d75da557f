"""Session orchestration: key lifecycle, endpoint changes and operation dispatch."""

from __future__ import annotations

import threading
from typing import Callable, Dict, Optional, Set

import httpx
from loguru import logger

from errors import ERROR_MESSAGES, NETWORK_ERROR, NON_ASCII_KEY, RATE_LIMITED, UNAUTHORIZED
from interfaces import OperationObserver
from models import (
    KeyValidation,
    OperationKind,
    OperationRequest,
    Outcome,
    Rejection,
    SessionState,
    Success,
)
from scoring import format_bytes
from service_client import ServiceClient
from workflow import OperationWorkflow

SessionCallback = Callable[[SessionState, SessionState], None]
NoticeCallback = Callable[[str], None]
WorkflowFactory = Callable[[OperationKind, Optional[OperationObserver]], OperationWorkflow]


class SessionController:
    def __init__(
        self,
        client: ServiceClient,
        on_session_change: Optional[SessionCallback] = None,
        on_notice: Optional[NoticeCallback] = None,
        workflow_factory: Optional[WorkflowFactory] = None,
    ) -> None:
        self._client = client
        self._store = client.store
        self._on_session_change = on_session_change
        self._on_notice = on_notice
        self._workflow_factory = workflow_factory or self._default_workflow

        self._lock = threading.RLock()
        self._workflows: Dict[OperationKind, OperationWorkflow] = {}
        self._in_flight: Set[OperationKind] = set()
        self._state = SessionState.READY if self._store.get().api_key else SessionState.KEY_ENTRY

    @property
    def state(self) -> SessionState:
        return self._state

    def current(self, kind: OperationKind) -> Optional[OperationWorkflow]:
        return self._workflows.get(kind)

    # ------------------------------------------------------------------
    # Key and endpoint
    # ------------------------------------------------------------------

    def submit_key(self, candidate: str) -> KeyValidation:
        """Accept ``candidate`` only if the service answers 2xx to a keyed probe."""
        key = candidate.strip()
        if not key:
            return KeyValidation(accepted=False, message="Please enter an API key")
        if not key.isascii():
            return KeyValidation(accepted=False, message=ERROR_MESSAGES[NON_ASCII_KEY])

        try:
            response = self._client.validate_key(key)
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as exc:
            logger.warning(f"Key validation could not reach server: {exc}")
            return KeyValidation(accepted=False, message=ERROR_MESSAGES[NETWORK_ERROR])

        if not response.is_success:
            logger.info(f"Key rejected by server with HTTP {response.status_code}")
            return KeyValidation(
                accepted=False,
                message="Could not connect — check your key and try again",
            )

        with self._lock:
            self._store.set_key(key)
            self._transition(SessionState.READY)
        self._notify("Ready")
        return KeyValidation(accepted=True)

    def change_key(self) -> None:
        with self._lock:
            self._store.clear_key()
            self._transition(SessionState.KEY_ENTRY)

    def set_endpoint(self, url: str) -> str:
        """Persist a new service URL and return the one now in effect."""
        self._store.set_endpoint(url)
        return self._store.get().base_url

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    def submit(
        self,
        request: OperationRequest,
        observer: Optional[OperationObserver] = None,
    ) -> Optional[Outcome]:
        """Run one operation to completion on the calling thread.

        Returns ``None`` without doing anything when no key is configured or
        another operation of the same kind is still in flight.
        """
        with self._lock:
            if self._state != SessionState.READY:
                self._notify("Enter an API key first")
                return None
            if request.kind in self._in_flight:
                logger.debug(f"Ignoring {request.kind.value}: an operation is already in flight")
                return None
            previous = self._workflows.get(request.kind)
            if previous is not None:
                previous.release()
            workflow = self._workflow_factory(request.kind, observer)
            self._workflows[request.kind] = workflow
            self._in_flight.add(request.kind)

        try:
            outcome = workflow.run(request)
        finally:
            with self._lock:
                self._in_flight.discard(request.kind)
        if outcome is not None:
            self._handle_outcome(request, outcome)
        return outcome

    def reset(self, kind: OperationKind) -> None:
        """Discard the finished operation of ``kind`` and free its buffers."""
        with self._lock:
            workflow = self._workflows.get(kind)
            if workflow is None or kind in self._in_flight:
                return
            workflow.release()
            del self._workflows[kind]

    # ------------------------------------------------------------------
    # Internal
    # ------------------------------------------------------------------

    def _default_workflow(
        self, kind: OperationKind, observer: Optional[OperationObserver]
    ) -> OperationWorkflow:
        return OperationWorkflow(kind, self._client, observer=observer)

    def _handle_outcome(self, request: OperationRequest, outcome: Outcome) -> None:
        label = "Encode" if request.kind is OperationKind.ENCODE else "Decode"
        if isinstance(outcome, Success):
            if request.kind is OperationKind.ENCODE:
                self._notify(
                    f"Compressed: {request.name} → {outcome.output_name} "
                    f"({outcome.ratio_percent:.1f}% smaller)"
                )
            else:
                self._notify(
                    f"Decompressed: {request.name} → {outcome.output_name} "
                    f"({format_bytes(len(outcome.payload))})"
                )
            return
        if isinstance(outcome, Rejection):
            self._notify(outcome.message)
            return
        if outcome.code == UNAUTHORIZED:
            with self._lock:
                self._store.clear_key()
                self._transition(SessionState.KEY_ENTRY)
            self._notify(ERROR_MESSAGES[UNAUTHORIZED])
            return
        if outcome.code == RATE_LIMITED:
            self._notify(ERROR_MESSAGES[RATE_LIMITED])
            return
        if outcome.code == NETWORK_ERROR:
            self._notify(f"Network error: {outcome.message}")
            return
        self._notify(f"{label} error: {outcome.message}")

    def _notify(self, message: str) -> None:
        if self._on_notice:
            self._on_notice(message)

    def _transition(self, to_state: SessionState) -> None:
        from_state = self._state
        if from_state == to_state:
            return
        self._state = to_state
        logger.info(f"Session: {from_state.value} -> {to_state.value}")
        if self._on_session_change:
            self._on_session_change(from_state, to_state)
