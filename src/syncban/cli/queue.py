"""Handlers for 'syncban queue' commands."""

from syncban.cli._common import error, open_store, output_json, output_result
from syncban.queue import OperationQueue


def _summary(op) -> dict:
    return {
        "id": op.id,
        "document_id": op.document_id,
        "enqueued_at": op.enqueued_at,
        "attempts": op.attempts,
        "last_error": op.last_error,
        "rejected": op.rejected,
    }


def queue_list(args) -> int:
    """List queued writes in replay order."""
    queue = OperationQueue(open_store(args))
    items = [_summary(op) for op in queue.operations()]
    if args.json:
        output_json(items)
        return 0
    if not items:
        print("queue is empty")
    for item in items:
        flag = "  REJECTED" if item["rejected"] else ""
        err = f"  {item['last_error']}" if item["last_error"] else ""
        print(f"{item['id']}  {item['document_id']}  {item['enqueued_at']}  x{item['attempts']}{flag}{err}")
    return 0


def queue_ack(args) -> int:
    """Acknowledge a rejected write: drop it, or re-arm it with --retry."""
    queue = OperationQueue(open_store(args))
    op = queue.get(args.op_id)
    if op is None:
        error(f"Operation '{args.op_id}' not found.", args.json)
    if not op.rejected and not args.retry:
        error(f"Operation '{args.op_id}' was not rejected; only rejected writes can be dropped.", args.json)
    queue.acknowledge(args.op_id, retry=args.retry)
    action = "re-armed" if args.retry else "dropped"
    output_result({"id": args.op_id, "action": action, "pending": queue.size()}, f"{action} {args.op_id}", args.json)
    return 0
