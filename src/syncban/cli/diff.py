"""Handlers for 'syncban diff' and 'syncban resolve'."""

import asyncio

from syncban.cli._common import error, format_diff_line, load_record, make_engine, open_remote, open_store, output_json
from syncban.diff import CHOICES, compute_diff, conflicts, diff_version
from syncban.errors import RemoteError, StaleResolutionError, SyncError
from syncban.model.document import empty_board
from syncban.sync import CONFLICT


def _compute(args) -> dict:
    record = load_record(open_store(args), args.id)
    try:
        remote = open_remote(args).fetch(args.id)
    except RemoteError as e:
        error(str(e), args.json)
    if record is None and remote is None:
        error(f"Board '{args.id}' not found.", args.json)
    if record is None:
        base = local = remote
    else:
        base = record.get("base") or empty_board(args.id)
        local = record["working"]
    if remote is None:
        return {"id": args.id, "version": None, "remote": False, "diffs": []}
    diffs = compute_diff(base, local, remote)
    return {
        "id": args.id,
        "version": diff_version(diffs),
        "remote": True,
        "conflicts": len(conflicts(diffs)),
        "diffs": [d.to_dict() for d in diffs],
    }


def diff(args) -> int:
    """Show the three-way diff between the last synced, working and remote copies."""
    data = _compute(args)
    if args.json:
        output_json(data)
        return 0
    if not data["remote"]:
        print(f"{args.id} does not exist remotely")
        return 0
    if not data["diffs"]:
        print("no differences")
        return 0
    for d in data["diffs"]:
        print(format_diff_line(d))
    print(f"version: {data['version']}  ({data['conflicts']} conflicts)")
    return 0


def _parse_choices(pairs: list[str], json_mode: bool) -> dict[str, str]:
    choices = {}
    for pair in pairs:
        path, sep, choice = pair.rpartition("=")
        if not sep or not path or choice not in CHOICES:
            error(f"expected PATH={'|'.join(CHOICES)}, got {pair!r}", json_mode)
        choices[path] = choice
    return choices


async def _resolve(args, choices: dict[str, str]) -> dict:
    engine = make_engine(args)
    try:
        result = await engine.force_sync(args.id)
        if result.status != CONFLICT:
            error(f"{args.id} has no pending conflicts (sync: {result.status})", args.json)
        merged = await engine.resolve(args.id, choices, version=args.version)
    except KeyError:
        error(f"Board '{args.id}' not found.", args.json)
    except StaleResolutionError as e:
        error(f"{e} (new version {e.version})", args.json)
    except (SyncError, ValueError) as e:
        error(str(e), args.json)
    finally:
        await engine.stop()
    return {
        "id": args.id,
        "dirty": engine.get_dirty(args.id),
        "pending": engine.get_pending_count(),
        "updated_at": merged.get("updated_at"),
    }


def resolve(args) -> int:
    """Answer the conflicts of a board and write the merge."""
    choices = _parse_choices(args.choices, args.json)
    data = asyncio.run(_resolve(args, choices))
    if args.json:
        output_json(data)
    else:
        state = "queued" if data["pending"] else "written"
        print(f"resolved {args.id} ({state})")
    return 0
