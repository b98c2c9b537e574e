"""Mixin that manages Node watches with deferred callbacks and auto-cleanup."""

from __future__ import annotations

from typing import Any

from syncban.model.node import ANY, Callback, ListNode, Node


class NodeWatcherMixin:
    """Mixin for widgets that redraw when a Node changes.

    Subclasses should:
    - Call ``_init_watcher()`` in ``__init__``
    - Use ``self.node_watch(node, callback)`` instead of ``node.watch(...)``;
      without ``key`` every change at or below the node is seen
    - Skip writing ``on_unmount`` -- the mixin handles cleanup

    Callbacks run through ``call_later``, after the change that fired them
    has completed.
    """

    def _init_watcher(self) -> None:
        self._watches: list = []

    def node_watch(self, node: Node | ListNode, callback: Callback, key: str = ANY) -> None:
        """Register a deferred watch that is removed on unmount."""

        def deferred(source_node: Any, key: str, old: Any, new: Any) -> None:
            self.call_later(callback, source_node, key, old, new)

        self._watches.append(node.watch(key, deferred))

    def on_unmount(self) -> None:
        for unwatch in self._watches:
            unwatch()
        self._watches.clear()
