from __future__ import annotations

from enum import Enum


class BackendErrorReason(str, Enum):
    TIMEOUT = "timeout"
    NON_ZERO_EXIT = "non_zero_exit"
    TRANSPORT = "transport"
    MALFORMED_OUTPUT = "malformed_output"


class BackendError(RuntimeError):
    """Raised when a single backend call fails; `reason` classifies the failure."""

    def __init__(self, reason: BackendErrorReason, detail: str = "") -> None:
        self.reason = BackendErrorReason(reason)
        self.detail = detail
        super().__init__(f"{self.reason.value}: {detail}" if detail else self.reason.value)
