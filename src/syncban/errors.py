"""Exception hierarchy for the sync engine and remote stores."""

from __future__ import annotations

UNAVAILABLE = "unavailable"
REJECTED = "rejected"
QUOTA_EXCEEDED = "quota_exceeded"


class SyncError(Exception):
    """Base class for every error raised by syncban."""


class ValidationError(SyncError, ValueError):
    """A board is not in a state that may be persisted remotely."""


class RemoteError(SyncError):
    """A remote store refused or failed a request."""

    code = "error"

    def __init__(self, message: str = "", code: str | None = None) -> None:
        super().__init__(message)
        self.message = message
        if code is not None:
            self.code = code

    def to_dict(self) -> dict:
        return {"code": self.code, "message": self.message}


class RemoteUnavailable(RemoteError):
    """Transient connectivity failure; retried later."""

    code = UNAVAILABLE


class QuotaExceeded(RemoteError):
    """Rate limit or quota hit; retried with backoff."""

    code = QUOTA_EXCEEDED


class RemoteRejected(RemoteError):
    """Permanent rejection (auth, permissions). Never retried automatically."""

    code = REJECTED


class ConflictPending(SyncError):
    """A document is paused waiting for conflict resolutions."""

    def __init__(self, document_id: str) -> None:
        super().__init__(f"document {document_id} has unresolved conflicts")
        self.document_id = document_id


class UnresolvedConflictError(SyncError, ValueError):
    """A diff set reached the merge step with conflicts left unanswered."""

    def __init__(self, paths: list[str]) -> None:
        super().__init__("unresolved conflicts: " + ", ".join(paths))
        self.paths = paths


class StaleResolutionError(SyncError):
    """The remote (or local) copy moved since the conflict was presented.

    The diff set has been recomputed; fetch it again and resubmit.
    """

    def __init__(self, document_id: str, version: str) -> None:
        super().__init__(f"resolutions for {document_id} are stale; recompute and retry")
        self.document_id = document_id
        self.version = version
