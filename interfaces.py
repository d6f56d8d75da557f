"""Protocol interfaces used by the workflow engine and SessionController."""

from __future__ import annotations

from typing import Protocol

from models import Outcome, OperationState, Settings


class ConfigStore(Protocol):
    def get(self) -> Settings: ...

    def set_endpoint(self, url: str) -> None: ...

    def set_key(self, key: str) -> None: ...

    def clear_key(self) -> None: ...


class OperationObserver(Protocol):
    def on_state_change(self, from_state: OperationState, to_state: OperationState) -> None: ...

    def on_progress(self, message: str) -> None: ...

    def on_outcome(self, outcome: Outcome) -> None: ...
