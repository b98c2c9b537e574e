"""Durable FIFO of remote writes that could not be delivered yet."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field
from typing import Awaitable, Callable

from syncban.errors import QuotaExceeded, RemoteError, RemoteRejected, RemoteUnavailable
from syncban.ids import new_id
from syncban.model.document import now_iso

logger = logging.getLogger(__name__)

QUEUE_KEY = "queue"

Replay = Callable[["QueuedOperation"], Awaitable[None]]


@dataclass
class QueuedOperation:
    """One pending write of a full document snapshot."""

    document_id: str
    payload: dict
    id: str = field(default_factory=lambda: new_id("op"))
    enqueued_at: str = field(default_factory=now_iso)
    attempts: int = 0
    last_error: str | None = None
    rejected: bool = False

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict) -> QueuedOperation:
        return cls(**data)


@dataclass
class DrainResult:
    """Outcome of one drain pass."""

    replayed: list[str] = field(default_factory=list)
    remaining: int = 0
    error: RemoteError | None = None
    blocked_by: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None and self.blocked_by is None


class OperationQueue:
    """Ordered pending writes, persisted to a local store on every change.

    Operations are replayed strictly in enqueue order. A failed replay stops
    the drain so nothing queued after it can overtake it. A permanently
    rejected operation stays at the head, flagged, until acknowledged.
    """

    def __init__(self, store) -> None:
        self.store = store
        self._ops: list[QueuedOperation] = [
            QueuedOperation.from_dict(raw) for raw in store.load(QUEUE_KEY) or ()
        ]

    def _persist(self) -> None:
        self.store.save(QUEUE_KEY, [op.to_dict() for op in self._ops])

    def enqueue(self, document_id: str, payload: dict, rejected: str | None = None) -> QueuedOperation:
        """Append a write. Pass the rejection message to park it for acknowledgment."""
        op = QueuedOperation(document_id=document_id, payload=payload)
        if rejected is not None:
            op.rejected = True
            op.attempts = 1
            op.last_error = rejected
        self._ops.append(op)
        self._persist()
        logger.info("queued write for %s (%d pending)", document_id, len(self._ops))
        return op

    def size(self) -> int:
        return len(self._ops)

    def operations(self) -> list[QueuedOperation]:
        return list(self._ops)

    def get(self, op_id: str) -> QueuedOperation | None:
        for op in self._ops:
            if op.id == op_id:
                return op
        return None

    def pending_for(self, document_id: str) -> list[QueuedOperation]:
        return [op for op in self._ops if op.document_id == document_id]

    def rejected(self) -> list[QueuedOperation]:
        return [op for op in self._ops if op.rejected]

    def discard(self, document_id: str) -> int:
        """Drop every operation for a document. Returns how many were dropped."""
        before = len(self._ops)
        self._ops = [op for op in self._ops if op.document_id != document_id]
        dropped = before - len(self._ops)
        if dropped:
            self._persist()
        return dropped

    def acknowledge(self, op_id: str, retry: bool = False) -> QueuedOperation:
        """Acknowledge a rejected operation: drop it, or clear the flag to retry."""
        op = self.get(op_id)
        if op is None:
            raise KeyError(op_id)
        if retry:
            op.rejected = False
            op.last_error = None
        else:
            self._ops.remove(op)
        self._persist()
        return op

    async def drain(self, replay: Replay) -> DrainResult:
        """Replay queued operations in order, removing each one that succeeds."""
        result = DrainResult()
        for op in list(self._ops):
            if op not in self._ops:
                # replay of an earlier op superseded this one
                continue
            if op.rejected:
                result.blocked_by = op.id
                break
            try:
                await replay(op)
            except RemoteRejected as exc:
                op.rejected = True
                op.attempts += 1
                op.last_error = str(exc)
                result.error = exc
                logger.error("write for %s rejected: %s", op.document_id, exc)
                break
            except (RemoteUnavailable, QuotaExceeded) as exc:
                op.attempts += 1
                op.last_error = str(exc)
                result.error = exc
                logger.warning("replay of %s failed (attempt %d): %s", op.document_id, op.attempts, exc)
                break
            if op in self._ops:
                self._ops.remove(op)
            result.replayed.append(op.id)
            self._persist()
        self._persist()
        result.remaining = len(self._ops)
        return result
