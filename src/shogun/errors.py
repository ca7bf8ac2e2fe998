"""Error types shared by every role.

All domain errors derive from ``ShogunError`` and carry a machine-readable
``kind`` plus a free-form ``context`` dict, so callers can branch on the kind
instead of matching message text.
"""

from enum import Enum
from typing import Any


class ErrorKind(str, Enum):
    VALIDATION = "YAML_VALIDATION_ERROR"
    PATH_NOT_FOUND = "PATH_NOT_FOUND"
    COMMUNICATION = "TMUX_COMMUNICATION_ERROR"
    WATCH = "FILE_WATCHER_ERROR"
    DECOMPOSITION = "TASK_DECOMPOSITION_ERROR"
    ALLOCATION = "PLAYER_ALLOCATION_ERROR"
    QUALITY_GATE = "QUALITY_GATE_ERROR"


class ShogunError(Exception):
    """Base class for coordination errors."""

    kind: ErrorKind = ErrorKind.VALIDATION

    def __init__(
        self,
        message: str,
        kind: ErrorKind | None = None,
        context: dict[str, Any] | None = None,
    ):
        super().__init__(message)
        self.message = message
        if kind is not None:
            self.kind = kind
        self.context = context or {}

    @property
    def code(self) -> str:
        return self.kind.value

    def to_dict(self) -> dict:
        return {"kind": self.code, "message": self.message, "context": self.context}


class DocumentValidationError(ShogunError):
    """A document failed schema validation."""

    kind = ErrorKind.VALIDATION

    def __init__(self, message: str, errors: list | None = None, context: dict | None = None):
        self.errors = list(errors or [])
        ctx = dict(context or {})
        ctx.setdefault("errors", self.errors)
        super().__init__(message, context=ctx)


class PathNotFoundError(ShogunError):
    """A nested key path is missing from a document."""

    kind = ErrorKind.PATH_NOT_FOUND

    def __init__(self, keys: list[str], context: dict | None = None):
        self.keys = list(keys)
        ctx = dict(context or {})
        ctx.setdefault("keys", self.keys)
        super().__init__(f"Path not found: {'.'.join(self.keys)}", context=ctx)


class CommunicationError(ShogunError):
    """Messaging to an agent pane failed after all retries."""

    kind = ErrorKind.COMMUNICATION

    def __init__(self, message: str, target: str, payload: str | None = None, attempts: int = 0):
        self.target = target
        self.payload = payload
        self.attempts = attempts
        super().__init__(
            message,
            context={"target": target, "payload": payload, "attempts": attempts},
        )


class WatchError(ShogunError):
    kind = ErrorKind.WATCH


class DecompositionError(ShogunError):
    kind = ErrorKind.DECOMPOSITION


class AllocationError(ShogunError):
    kind = ErrorKind.ALLOCATION


class QualityGateError(ShogunError):
    kind = ErrorKind.QUALITY_GATE
