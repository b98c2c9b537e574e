"""Handler for 'syncban init'."""

import asyncio

from syncban.cli._common import config_path, make_engine, output_json, remote_path, store_path
from syncban.config import SyncConfig, save_config
from syncban.git_remote import init_remote
from syncban.model.board import create_board, create_column

DEFAULT_COLUMNS = ("Backlog", "Doing", "Done")


async def _create_board(args, name: str) -> tuple[str, str]:
    engine = make_engine(args)
    board = create_board(name)
    for title in DEFAULT_COLUMNS:
        create_column(board, title)
    doc_id = engine.add(board)
    result = await engine.force_sync(doc_id)
    await engine.stop()
    return doc_id, result.status


def init_store(args) -> int:
    """Create the local store, the remote repository and a default config."""
    store = store_path(args)
    store.mkdir(parents=True, exist_ok=True)
    remote = init_remote(remote_path(args))

    cfg = config_path(args)
    created_config = not cfg.exists()
    if created_config:
        save_config(SyncConfig(), cfg)

    data = {"store": str(store), "remote": str(remote), "config": str(cfg), "board": None}
    if args.board:
        doc_id, status = asyncio.run(_create_board(args, args.board))
        data["board"] = {"id": doc_id, "status": status}

    if args.json:
        output_json(data)
    else:
        print(f"Initialized syncban store at {store}")
        print(f"Remote: {remote}")
        if created_config:
            print(f"Wrote default config to {cfg}")
        if data["board"]:
            print(f"Created board {data['board']['id']} ({data['board']['status']})")
    return 0
