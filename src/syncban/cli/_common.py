"""Shared helpers for CLI command handlers."""

import json
import sys
from pathlib import Path

from syncban.config import load_config
from syncban.errors import RemoteError
from syncban.git_remote import GitRemote
from syncban.store import JsonFileStore
from syncban.sync import DOCUMENT_PREFIX, SyncEngine

CONFIG_NAME = "config.yaml"
REMOTE_NAME = "remote.git"


def store_path(args) -> Path:
    return Path(args.store).resolve()


def remote_path(args) -> Path:
    """--remote, or a private repository inside the store directory."""
    if args.remote:
        return Path(args.remote).resolve()
    return store_path(args) / REMOTE_NAME


def config_path(args) -> Path:
    if args.config:
        return Path(args.config).resolve()
    return store_path(args) / CONFIG_NAME


def open_remote(args) -> GitRemote:
    """Open the remote repository. Exit 1 if it does not exist."""
    try:
        return GitRemote(remote_path(args))
    except RemoteError as e:
        error(f"{e} (run 'syncban init' first)", args.json)


def open_store(args) -> JsonFileStore:
    return JsonFileStore(store_path(args))


def load_record(store: JsonFileStore, doc_id: str) -> dict | None:
    """The cached {base, working, dirty} record of a document, if any."""
    return store.load(DOCUMENT_PREFIX + doc_id)


def make_engine(args, **kwargs) -> SyncEngine:
    """Build an engine over the store, remote and config named by args. Exit 1 on failure."""
    try:
        config = load_config(config_path(args))
    except ValueError as e:
        error(str(e), args.json)
    if getattr(args, "ephemeral", False):
        config.ephemeral = True
    return SyncEngine(open_remote(args), open_store(args), config, **kwargs)


def output_json(data: dict | list) -> None:
    """Write JSON to stdout."""
    print(json.dumps(data, indent=2))


def output_result(data: dict, text: str, json_mode: bool) -> None:
    """Output result as JSON or plain text."""
    if json_mode:
        output_json(data)
    else:
        print(text)


def error(message: str, json_mode: bool) -> None:
    """Print error to stderr and exit 1."""
    if json_mode:
        print(json.dumps({"error": message}), file=sys.stderr)
    else:
        print(f"error: {message}", file=sys.stderr)
    sys.exit(1)


def format_diff_line(diff: dict) -> str:
    """One line per FieldDiff: marker, path, label and the competing values."""
    marker = {"local_only": "L", "remote_only": "R", "both_changed": "!"}[diff["conflict_type"]]
    line = f"{marker} {diff['path']:<40} {diff['label']}"
    if diff["conflict_type"] == "both_changed":
        line += f"\n    local:  {json.dumps(diff['local_value'])}\n    remote: {json.dumps(diff['remote_value'])}"
    return line
