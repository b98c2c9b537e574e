"""Handler for 'syncban status'."""

from syncban.cli._common import output_json, store_path
from syncban.queue import OperationQueue
from syncban.store import JsonFileStore
from syncban.sync import DOCUMENT_PREFIX


def status(args) -> int:
    """Show cached documents, unsaved changes and queued writes. Never contacts the remote."""
    store = JsonFileStore(store_path(args))
    queue = OperationQueue(store)

    documents = []
    for key in store.keys(DOCUMENT_PREFIX):
        record = store.load(key)
        doc_id = key[len(DOCUMENT_PREFIX) :]
        working = record.get("working") or {}
        documents.append(
            {
                "id": doc_id,
                "name": working.get("name"),
                "dirty": bool(record.get("dirty")),
                "synced": record.get("base") is not None,
                "pending": len(queue.pending_for(doc_id)),
            }
        )

    rejected = [op.id for op in queue.rejected()]
    if args.json:
        output_json({"documents": documents, "pending": queue.size(), "rejected": rejected})
        return 0

    if not documents:
        print("no documents")
    for doc in documents:
        flags = []
        if doc["dirty"]:
            flags.append("unsaved changes")
        if not doc["synced"]:
            flags.append("never synced")
        if doc["pending"]:
            flags.append(f"{doc['pending']} queued")
        suffix = f"  ({', '.join(flags)})" if flags else ""
        print(f"{doc['id']}  {doc['name'] or ''}{suffix}")
    print(f"{queue.size()} queued writes")
    if rejected:
        print(f"rejected, needs 'syncban queue ack': {', '.join(rejected)}")
    return 0
