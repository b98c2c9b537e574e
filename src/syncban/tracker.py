"""Unsaved-changes tracking for open boards."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Callable

from syncban.model.node import ANY, Node

logger = logging.getLogger(__name__)


class MutationTracker:
    """Per-document dirty flags driven by the board tree's change events.

    - ``attach(doc_id, board)`` starts watching every change under the board
    - the engine wraps its own rewrites in ``with tracker.suppressing():``
      so a pull or merge is never mistaken for a local edit
    - ``mark_clean`` is called only once the remote store confirmed a write
    """

    def __init__(self, on_change: Callable[[str], None] | None = None) -> None:
        self.on_change = on_change
        self._dirty: set[str] = set()
        self._unwatch: dict[str, Callable[[], None]] = {}
        self._suppressing = False

    def attach(self, doc_id: str, board: Node) -> None:
        """Watch a board; any unsuppressed change marks it dirty."""
        self.detach(doc_id)

        def changed(node: Any, key: str, old: Any, new: Any) -> None:
            if not self._suppressing:
                self.mark_dirty(doc_id)

        self._unwatch[doc_id] = board.watch(ANY, changed)

    def detach(self, doc_id: str) -> None:
        """Stop watching. The dirty flag is kept until the write lands."""
        unwatch = self._unwatch.pop(doc_id, None)
        if unwatch is not None:
            unwatch()

    @contextmanager
    def suppressing(self):
        """Context manager that hides engine-made changes from the tracker."""
        previous = self._suppressing
        self._suppressing = True
        try:
            yield
        finally:
            self._suppressing = previous

    def mark_dirty(self, doc_id: str) -> None:
        if doc_id not in self._dirty:
            logger.debug("%s has unsaved changes", doc_id)
        self._dirty.add(doc_id)
        if self.on_change is not None:
            self.on_change(doc_id)

    def mark_clean(self, doc_id: str) -> None:
        self._dirty.discard(doc_id)

    def is_dirty(self, doc_id: str) -> bool:
        return doc_id in self._dirty

    def dirty_ids(self) -> list[str]:
        return sorted(self._dirty)
