"""Tests for NodeWatcherMixin."""

from syncban.model.node import Node
from syncban.ui.watcher import NodeWatcherMixin


class FakeWidget(NodeWatcherMixin):
    """Minimal stand-in for a Textual widget; runs deferred callbacks at once."""

    def __init__(self):
        self._init_watcher()

    def call_later(self, callback, *args):
        callback(*args)


def test_watch_fires_callback():
    widget = FakeWidget()
    node = Node(state="idle")
    calls = []
    widget.node_watch(node, lambda src, key, old, new: calls.append((key, old, new)), key="state")

    node.state = "syncing"
    node.pending = 1
    assert calls == [("state", "idle", "syncing")]


def test_watch_any_key_by_default():
    widget = FakeWidget()
    node = Node(state="idle", pending=0)
    calls = []
    widget.node_watch(node, lambda src, key, old, new: calls.append(key))

    node.state = "offline"
    node.pending = 2
    assert calls == ["state", "pending"]


def test_on_unmount_cleans_up():
    widget = FakeWidget()
    node = Node(state="idle")
    calls = []
    widget.node_watch(node, lambda src, key, old, new: calls.append(new))

    widget.on_unmount()

    node.state = "synced"
    assert calls == []
