"""CLI argument parser and dispatch for syncban."""

import argparse

from syncban.cli.board import board_get, board_list, board_set
from syncban.cli.diff import diff, resolve
from syncban.cli.init import init_store
from syncban.cli.queue import queue_ack, queue_list
from syncban.cli.status import status
from syncban.cli.sync import sync


def build_parser() -> argparse.ArgumentParser:
    """Build the full CLI argument parser."""
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument("--store", default=".syncban", help="Local store directory (default: .syncban)")
    common.add_argument("--remote", help="Path to the shared git repository (default: <store>/remote.git)")
    common.add_argument("--config", help="YAML settings file (default: <store>/config.yaml)")
    common.add_argument("--json", action="store_true", help="Machine-readable JSON output")

    parser = argparse.ArgumentParser(
        prog="syncban",
        description="Offline-tolerant kanban board sync",
        parents=[common],
    )

    nouns = parser.add_subparsers(dest="noun")

    # --- init ---
    init_p = nouns.add_parser("init", help="Create the local store and remote repository", parents=[common])
    init_p.add_argument("--board", metavar="NAME", help="Also create a board with default columns")
    init_p.set_defaults(func=init_store)

    # --- status ---
    status_p = nouns.add_parser("status", help="Show unsaved and queued changes", parents=[common])
    status_p.set_defaults(func=status)

    # --- sync ---
    sync_p = nouns.add_parser("sync", help="Sync boards with the remote", parents=[common])
    sync_p.add_argument("-d", "--daemon", action="store_true", help="Run as background daemon")
    sync_p.add_argument("--interval", type=float, help="Daemon poll interval in seconds (default: from config)")
    sync_p.set_defaults(func=sync)

    # --- board ---
    board_p = nouns.add_parser("board", help="Board operations", parents=[common])
    board_verbs = board_p.add_subparsers(dest="verb")

    board_list_p = board_verbs.add_parser("list", help="List local and remote boards", parents=[common])
    board_list_p.set_defaults(func=board_list)

    board_get_p = board_verbs.add_parser("get", help="Dump board JSON", parents=[common])
    board_get_p.add_argument("id", help="Board ID")
    board_get_p.set_defaults(func=board_get)

    board_set_p = board_verbs.add_parser("set", help="Replace board from JSON on stdin", parents=[common])
    board_set_p.add_argument("id", help="Board ID")
    board_set_p.add_argument("--local", dest="ephemeral", action="store_true", help="Only update the local copy")
    board_set_p.set_defaults(func=board_set)

    # board with no verb = list
    board_p.set_defaults(func=board_list)

    # --- diff / resolve ---
    diff_p = nouns.add_parser("diff", help="Three-way diff of a board", parents=[common])
    diff_p.add_argument("id", help="Board ID")
    diff_p.set_defaults(func=diff)

    resolve_p = nouns.add_parser("resolve", help="Resolve conflicts of a board", parents=[common])
    resolve_p.add_argument("id", help="Board ID")
    resolve_p.add_argument("choices", nargs="+", metavar="PATH=local|remote", help="Resolution per diff path")
    resolve_p.add_argument("--version", help="Diff version shown by 'syncban diff'; rejects stale answers")
    resolve_p.set_defaults(func=resolve)

    # --- queue ---
    queue_p = nouns.add_parser("queue", help="Offline write queue", parents=[common])
    queue_verbs = queue_p.add_subparsers(dest="verb")

    queue_list_p = queue_verbs.add_parser("list", help="List queued writes", parents=[common])
    queue_list_p.set_defaults(func=queue_list)

    queue_ack_p = queue_verbs.add_parser("ack", help="Acknowledge a rejected write", parents=[common])
    queue_ack_p.add_argument("op_id", help="Operation ID")
    queue_ack_p.add_argument("--retry", action="store_true", help="Retry instead of dropping it")
    queue_ack_p.set_defaults(func=queue_ack)

    # queue with no verb = list
    queue_p.set_defaults(func=queue_list)

    return parser
