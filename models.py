"""Core data models for the app."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional, Union


class OperationKind(str, Enum):
    ENCODE = "encode"
    DECODE = "decode"


class OperationState(str, Enum):
    IDLE = "IDLE"
    VALIDATING = "VALIDATING"
    TRANSFERRING = "TRANSFERRING"
    AWAITING_RESPONSE = "AWAITING_RESPONSE"
    SUCCEEDED = "SUCCEEDED"
    REJECTED = "REJECTED"
    FAILED = "FAILED"

    @property
    def terminal(self) -> bool:
        return self in (OperationState.SUCCEEDED, OperationState.REJECTED, OperationState.FAILED)


class SessionState(str, Enum):
    KEY_ENTRY = "KEY_ENTRY"
    READY = "READY"


class HealthStatus(str, Enum):
    CHECKING = "checking"
    ONLINE = "online"
    OFFLINE = "offline"


class FormatClass(str, Enum):
    LOSSLESS = "lossless"
    LOSSY = "lossy"
    UNSUPPORTED = "unsupported"


class Severity(str, Enum):
    EXCELLENT = "#2ecc71"
    GOOD = "#27ae60"
    FAIR = "#f39c12"
    POOR = "#e74c3c"


@dataclass(frozen=True)
class Settings:
    base_url: str
    api_key: str = ""


@dataclass
class OperationRequest:
    kind: OperationKind
    name: str
    data: Optional[bytes] = None
    path: Optional[Path] = None
    size: Optional[int] = None

    @property
    def size_bytes(self) -> int:
        if self.size is not None:
            return self.size
        return len(self.data) if self.data is not None else 0

    @classmethod
    def from_path(cls, kind: OperationKind, path: Path) -> "OperationRequest":
        """Describe a file on disk; its bytes are read later by ``load``."""
        return cls(kind=kind, name=path.name, path=path, size=path.stat().st_size)

    def load(self) -> bytes:
        if self.data is None and self.path is not None:
            self.data = self.path.read_bytes()
        return self.data or b""

    def release(self) -> None:
        self.size = self.size_bytes
        self.data = None


@dataclass(frozen=True)
class CompressionScore:
    tier: float
    label: str
    severity: Severity

    @property
    def stars(self) -> str:
        full = int(self.tier)
        half = 1 if self.tier - full else 0
        return "★" * full + "⯪" * half + "☆" * (5 - full - half)


@dataclass(frozen=True)
class Success:
    original_size: int
    compressed_size: int
    ratio_percent: float
    payload: bytes
    output_name: str
    score: Optional[CompressionScore] = None


@dataclass(frozen=True)
class Rejection:
    reason: str
    message: str = ""


@dataclass(frozen=True)
class Failure:
    code: str
    message: str = ""
    http_status: Optional[int] = None


Outcome = Union[Success, Rejection, Failure]


@dataclass(frozen=True)
class HealthReport:
    status: HealthStatus
    detail: str = ""


@dataclass(frozen=True)
class KeyValidation:
    accepted: bool
    message: str = ""
