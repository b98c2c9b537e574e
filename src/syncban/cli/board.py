"""Handlers for 'syncban board' commands."""

import asyncio
import json
import sys

from syncban.cli._common import error, load_record, make_engine, open_remote, open_store, output_json, output_result
from syncban.errors import RemoteError, ValidationError
from syncban.model.document import board_from_dict, validate_board


def _read(args) -> tuple[dict, bool]:
    """Working copy from the local cache, else the remote copy. Read-only."""
    record = load_record(open_store(args), args.id)
    if record is not None:
        return record["working"], bool(record.get("dirty"))
    try:
        data = open_remote(args).fetch(args.id)
    except RemoteError as e:
        error(str(e), args.json)
    if data is None:
        error(f"Board '{args.id}' not found.", args.json)
    return data, False


def board_list(args) -> int:
    """List boards cached locally and available remotely."""
    engine = make_engine(args)
    local = set(engine.stored_ids())
    try:
        remote = set(engine.remote.list_ids())
    except RemoteError as e:
        remote = set()
        print(f"warning: {e}", file=sys.stderr)
    items = [{"id": doc_id, "local": doc_id in local, "remote": doc_id in remote} for doc_id in sorted(local | remote)]
    if args.json:
        output_json(items)
    else:
        for item in items:
            where = "+".join(k for k in ("local", "remote") if item[k])
            print(f"{item['id']}  ({where})")
    return 0


def board_get(args) -> int:
    """Dump the working copy of a board as JSON."""
    data, dirty = _read(args)
    if args.json:
        output_json({"board": data, "dirty": dirty})
    else:
        print(json.dumps(data, indent=2))
    return 0


async def _replace(args, data: dict) -> dict:
    engine = make_engine(args)
    try:
        board = await engine.open(args.id)
    except KeyError:
        board = None
    except RemoteError as e:
        error(str(e), args.json)
    if board is None:
        engine.add(board_from_dict(data))
    else:
        board.update(board_from_dict(data))
    result = await engine.force_sync(args.id)
    await engine.stop()
    return result.to_dict()


def board_set(args) -> int:
    """Replace a board's working copy with JSON from stdin and sync it."""
    try:
        data = json.loads(sys.stdin.read())
    except json.JSONDecodeError as e:
        error(f"invalid JSON: {e}", args.json)
    if not isinstance(data, dict):
        error("expected a JSON object", args.json)
    data.setdefault("id", args.id)
    if data["id"] != args.id:
        error(f"board id {data['id']!r} does not match {args.id!r}", args.json)
    try:
        validate_board(data)
    except ValidationError as e:
        error(str(e), args.json)

    result = asyncio.run(_replace(args, data))
    text = f"{args.id}: {result['status']}"
    if result["error"]:
        text += f" ({result['error']})"
    output_result(result, text, args.json)
    return 0 if result["status"] in ("written", "queued", "merged", "unchanged", "pulled", "local") else 1
