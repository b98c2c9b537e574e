"""Tests for 'syncban init' and 'syncban status'."""

import json
from io import StringIO

import pytest
import yaml

from syncban.__main__ import main
from syncban.git_remote import GitRemote


def test_init_creates_store(cli, store_dir, capsys):
    assert cli("init") == 0

    out = capsys.readouterr().out
    assert "Initialized syncban store" in out
    assert "Wrote default config" in out
    assert (store_dir / "remote.git").is_dir()
    config = yaml.safe_load((store_dir / "config.yaml").read_text())
    assert config["sync"]["poll-interval"] == 15.0
    assert config["sync"]["conflict-policy"] == "manual"


def test_init_twice_keeps_config(cli, store_dir, capsys):
    cli("init")
    (store_dir / "config.yaml").write_text("sync:\n  debounce: 5\n")
    capsys.readouterr()

    assert cli("init") == 0

    assert "Wrote default config" not in capsys.readouterr().out
    assert "debounce: 5" in (store_dir / "config.yaml").read_text()


def test_init_with_board(cli, store_dir, capsys):
    assert cli("init", "--board", "Roadmap", "--json") == 0

    data = json.loads(capsys.readouterr().out)
    board = data["board"]
    assert board["status"] == "written"
    remote = GitRemote(store_dir / "remote.git")
    assert remote.list_ids() == [board["id"]]
    doc = remote.fetch(board["id"])
    assert doc["name"] == "Roadmap"
    assert [c["title"] for c in doc["columns"]] == ["Backlog", "Doing", "Done"]


def test_status_empty(cli, initialized, capsys):
    assert cli("status") == 0
    out = capsys.readouterr().out
    assert "no documents" in out
    assert "0 queued writes" in out


def test_status_after_local_edit(cli, initialized, capsys, monkeypatch):
    monkeypatch.setattr("sys.stdin", StringIO(json.dumps({"name": "Draft", "columns": []})))
    assert cli("board", "set", "b-9", "--local") == 0
    capsys.readouterr()

    assert cli("status", "--json") == 0

    data = json.loads(capsys.readouterr().out)
    assert data["documents"] == [{"id": "b-9", "name": "Draft", "dirty": True, "synced": False, "pending": 0}]
    assert data["pending"] == 0


def test_main_without_command(monkeypatch, capsys):
    monkeypatch.setattr("sys.argv", ["syncban"])
    with pytest.raises(SystemExit) as exc_info:
        main()
    assert exc_info.value.code == 1
    assert "usage" in capsys.readouterr().out
