"""Result types for operations over many items.

Single-item operations either return normally or raise a
``FileManagerError``. Batch operations never raise for per-item problems;
they report a count plus the list of items that failed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List

from .errors import FileManagerError, PARTIAL_FAILURE, TransferFailed, from_os_error


OUTCOME_OK = "ok"
OUTCOME_PARTIAL = "partial"
OUTCOME_FAILED = "failed"


@dataclass
class ItemError:
    path: str
    error: str
    message: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"path": self.path, "error": self.error, "message": self.message}

    @classmethod
    def from_exception(cls, path: str, exc: Exception) -> "ItemError":
        if isinstance(exc, FileManagerError):
            return cls(path, exc.code, exc.message)
        if isinstance(exc, OSError):
            err = from_os_error(exc, path)
            return cls(path, err.code, err.message)
        return cls(path, TransferFailed.code, str(exc) or exc.__class__.__name__)


@dataclass
class BatchResult:
    deleted_count: int = 0
    errors: List[ItemError] = field(default_factory=list)

    @property
    def outcome(self) -> str:
        if not self.errors:
            return OUTCOME_OK
        if self.deleted_count:
            return OUTCOME_PARTIAL
        return OUTCOME_FAILED

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "ok": True,
            "outcome": self.outcome,
            "deletedCount": self.deleted_count,
            "errors": [e.to_dict() for e in self.errors],
        }
        if self.outcome == OUTCOME_PARTIAL:
            payload["error"] = PARTIAL_FAILURE
        return payload
