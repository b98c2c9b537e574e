"""Handlers for 'syncban sync' command."""

import asyncio
import logging
import signal
import sys

from syncban.cli._common import make_engine, output_json
from syncban.sync import ERROR, INVALID, REJECTED

logger = logging.getLogger(__name__)


async def _do_sync(args) -> tuple[int, dict]:
    """One poll cycle plus a write of every unsaved document.

    Returns (exit_code, result_dict) where result_dict is
    {documents: [...], pending: int, conflicts: [...], state: str, error: str|None}.
    """
    engine = make_engine(args)
    try:
        for doc_id in engine.stored_ids():
            await engine.open(doc_id)
        await engine.poll_once()
        results = [await engine.force_sync(doc_id) for doc_id in list(engine.boards)]
    finally:
        await engine.stop()

    result = {
        "documents": [r.to_dict() for r in results],
        "pending": engine.get_pending_count(),
        "conflicts": engine.paused_ids(),
        "state": engine.get_sync_state(),
        "error": engine.status.error,
    }
    failed = engine.get_sync_state() == ERROR or any(r.status in (REJECTED, INVALID) for r in results)
    return (1 if failed else 0), result


def sync(args) -> int:
    """One-shot sync handler. Dispatches to daemon if -d."""
    if args.daemon:
        return sync_daemon(args)

    exit_code, result = asyncio.run(_do_sync(args))

    if args.json:
        output_json(result)
        return exit_code

    for doc in result["documents"]:
        line = f"{doc['document_id']}: {doc['status']}"
        if doc["error"]:
            line += f" ({doc['error']})"
        print(line)
    if result["pending"]:
        print(f"{result['pending']} writes queued")
    if result["conflicts"]:
        print(f"conflicts: {', '.join(result['conflicts'])} (see 'syncban diff <id>')")
    if result["error"]:
        print(f"error: {result['error']}", file=sys.stderr)
    if not result["documents"]:
        print("nothing to do")
    return exit_code


async def _run_daemon(args) -> None:
    stop = asyncio.Event()
    loop = asyncio.get_running_loop()
    for signum in (signal.SIGINT, signal.SIGTERM):
        loop.add_signal_handler(signum, stop.set)

    def _on_conflict(doc_id, diffs):
        logger.warning("%s paused with conflicts; resolve with 'syncban resolve %s'", doc_id, doc_id)

    engine = make_engine(args, on_conflict=_on_conflict)
    if args.interval is not None:
        engine.config.poll_interval = args.interval

    def _on_state(node, key, old, new):
        if new == "error":
            logger.error("sync failed: %s", node.error)
        elif new == "offline" and old != "offline":
            logger.warning("remote unavailable; %d writes queued", node.pending or 0)

    engine.status.watch("state", _on_state)
    async with engine:
        await stop.wait()


def sync_daemon(args) -> int:
    """Poll on interval until SIGINT/SIGTERM, then flush and stop cleanly."""
    logging.basicConfig(
        format="%(asctime)s %(levelname)s %(message)s",
        stream=sys.stderr,
        level=logging.INFO,
    )
    asyncio.run(_run_daemon(args))
    logger.info("stopped")
    return 0
