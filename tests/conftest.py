"""Shared fixtures: a failure-injecting remote, small boards and a CLI runner."""

import copy

import pytest

from syncban.cli import build_parser
from syncban.config import SyncConfig
from syncban.errors import QuotaExceeded, RemoteRejected, RemoteUnavailable
from syncban.git_remote import GitRemote
from syncban.model.board import create_board, create_card, create_column
from syncban.model.document import board_to_dict
from syncban.remote import MemoryRemote
from syncban.store import MemoryStore
from syncban.sync import SyncEngine

# Later than any timestamp the engine produces, so edits made with it
# always look like another client's newer write.
LATER = "2030-01-01T00:00:00+00:00"
EVEN_LATER = "2030-01-02T00:00:00+00:00"


class FakeRemote(MemoryRemote):
    """MemoryRemote that can go offline, reject writes or run out of quota."""

    def __init__(self, documents=None):
        super().__init__(documents)
        self.online = True
        self.reject = False
        self.quota_failures = 0
        self.writes = []

    def _check(self):
        if not self.online:
            raise RemoteUnavailable("network down")

    def fetch(self, document_id):
        self._check()
        return super().fetch(document_id)

    def list_ids(self):
        self._check()
        return super().list_ids()

    def write(self, document_id, document):
        self._check()
        if self.reject:
            raise RemoteRejected("permission denied")
        if self.quota_failures:
            self.quota_failures -= 1
            raise QuotaExceeded("too many requests")
        self.writes.append((document_id, copy.deepcopy(document)))
        super().write(document_id, document)

    def put(self, document, updated_at=LATER):
        """Another collaborator's write: stored directly, without notifying."""
        document = copy.deepcopy(document)
        document["updated_at"] = updated_at
        self.documents[document["id"]] = document
        return document


def make_board(board_id="b-1"):
    """Board with Todo and Done columns and one card per column."""
    board = create_board("Team board", board_id=board_id)
    create_column(board, "Todo", column_id="col-todo")
    create_column(board, "Done", column_id="col-done")
    create_card(board, "Write docs", column=board.columns["col-todo"], card_id="c-1", priority="low")
    create_card(board, "Ship it", column=board.columns["col-done"], card_id="c-2")
    board.updated_at = "2024-01-01T00:00:00+00:00"
    return board


@pytest.fixture
def board_doc():
    return board_to_dict(make_board())


@pytest.fixture
def remote(board_doc):
    return FakeRemote({board_doc["id"]: board_doc})


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def config():
    """Timers long enough that nothing fires unless a test flushes or polls."""
    return SyncConfig(poll_interval=60, debounce=60, cooldown=60, backoff_base=0, quota_retries=2)


@pytest.fixture
def engine(remote, store, config):
    return SyncEngine(remote, store, config)


# --- CLI ---


@pytest.fixture
def store_dir(tmp_path):
    return tmp_path / "store"


@pytest.fixture
def cli(store_dir):
    """Run a command line against the test store and return its exit code."""

    def run(*argv):
        args = build_parser().parse_args([*argv, "--store", str(store_dir)])
        return args.func(args)

    return run


@pytest.fixture
def initialized(cli, store_dir, board_doc, capsys):
    """An initialized store whose remote holds board b-1."""
    assert cli("init") == 0
    GitRemote(store_dir / "remote.git").write("b-1", board_doc)
    capsys.readouterr()
    return store_dir


@pytest.fixture
def shared_remote(initialized):
    return GitRemote(initialized / "remote.git")
