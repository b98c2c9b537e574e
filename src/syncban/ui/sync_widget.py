"""Sync status indicator widget."""

from __future__ import annotations

from textual.widgets import Static

from syncban.model.node import Node
from syncban.sync import ERROR, OFFLINE, STATES, SYNCED, SYNCING, SyncEngine
from syncban.ui.watcher import NodeWatcherMixin

ICON_IDLE = "○"
ICON_SYNCING = "↻"
ICON_SYNCED = "✓"
ICON_OFFLINE = "⚡"
ICON_ERROR = "✗"
ICON_CONFLICT = "⚠"

ICONS = {SYNCING: ICON_SYNCING, SYNCED: ICON_SYNCED, OFFLINE: ICON_OFFLINE, ERROR: ICON_ERROR}


def _status_text(status: Node | None) -> str:
    """One-line summary of an engine status node."""
    if status is None:
        return f"{ICON_IDLE} idle"
    state = status.state or "idle"
    parts = [f"{ICONS.get(state, ICON_IDLE)} {state}"]
    if status.pending:
        parts.append(f"{status.pending} queued")
    if status.conflicts:
        noun = "conflict" if status.conflicts == 1 else "conflicts"
        parts.append(f"{ICON_CONFLICT} {status.conflicts} {noun}")
    if state == ERROR and status.error:
        parts.append(status.error)
    return "  ".join(parts)


class SyncStatus(NodeWatcherMixin, Static):
    """Shows the engine's sync state, queued writes, conflicts and last error.

    Click to run a poll cycle now.
    """

    def __init__(self, engine: SyncEngine, **kwargs) -> None:
        self._init_watcher()
        kwargs.setdefault("markup", False)
        super().__init__(_status_text(engine.status), **kwargs)
        self.engine = engine

    def on_mount(self) -> None:
        self.node_watch(self.engine.status, self._on_status_changed)
        self._update_display()

    def _on_status_changed(self, node, key, old, new) -> None:
        self._update_display()

    def _update_display(self) -> None:
        status = self.engine.status
        self.update(_status_text(status))
        for state in STATES:
            self.set_class(status.state == state, f"-{state}")
        self.set_class(bool(status.conflicts), "-conflict")

    def on_click(self, event) -> None:
        event.stop()
        self.run_worker(self.engine.poll_once(), exclusive=True)
