"""Textual widgets for syncban."""

from syncban.ui.sync_widget import SyncStatus

__all__ = ["SyncStatus"]
