"""Remote document store interface."""

from __future__ import annotations

import copy
from typing import Callable, Protocol

Listener = Callable[[str, dict], None]


class RemoteStore(Protocol):
    """The authoritative store other collaborators write to.

    Methods are blocking; the sync engine calls them from worker threads.
    ``write`` raises RemoteUnavailable, QuotaExceeded or RemoteRejected.
    """

    def fetch(self, document_id: str) -> dict | None: ...

    def write(self, document_id: str, document: dict) -> None: ...

    def list_ids(self) -> list[str]: ...

    def subscribe(self, document_id: str, callback: Listener) -> Callable[[], None]: ...


class Subscriptions:
    """Listener registry shared by store implementations."""

    def __init__(self) -> None:
        self._listeners: dict[str, list[Listener]] = {}

    def add(self, document_id: str, callback: Listener) -> Callable[[], None]:
        self._listeners.setdefault(document_id, []).append(callback)

        def unsubscribe() -> None:
            callbacks = self._listeners.get(document_id, [])
            if callback in callbacks:
                callbacks.remove(callback)

        return unsubscribe

    def notify(self, document_id: str, document: dict) -> None:
        for cb in list(self._listeners.get(document_id, ())):
            cb(document_id, copy.deepcopy(document))


class MemoryRemote:
    """Dict-backed store living in this process."""

    def __init__(self, documents: dict[str, dict] | None = None) -> None:
        self.documents: dict[str, dict] = copy.deepcopy(documents or {})
        self.subscriptions = Subscriptions()

    def fetch(self, document_id: str) -> dict | None:
        return copy.deepcopy(self.documents.get(document_id))

    def write(self, document_id: str, document: dict) -> None:
        self.documents[document_id] = copy.deepcopy(document)
        self.subscriptions.notify(document_id, document)

    def list_ids(self) -> list[str]:
        return list(self.documents)

    def subscribe(self, document_id: str, callback: Listener) -> Callable[[], None]:
        return self.subscriptions.add(document_id, callback)
