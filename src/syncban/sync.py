"""Background sync engine.

Keeps local working copies of boards editable offline and reconciles them
with a remote store: debounce → write or queue → poll → pull, merge or pause.
All remote I/O runs via asyncio.to_thread; state changes land on the
``status`` node so watchers (the TUI, the daemon) see them as they happen.
"""

from __future__ import annotations

import asyncio
import copy
import logging
from dataclasses import dataclass, field
from typing import Callable, Iterable

from syncban.config import SyncConfig
from syncban.diff import CHOICES, FieldDiff, compute_diff, conflicts, diff_version, unresolved
from syncban.errors import (
    ConflictPending,
    QuotaExceeded,
    RemoteError,
    RemoteRejected,
    RemoteUnavailable,
    StaleResolutionError,
    SyncError,
    UnresolvedConflictError,
    ValidationError,
)
from syncban.merge import apply_resolutions
from syncban.model.document import (
    board_from_dict,
    board_to_dict,
    empty_board,
    is_newer,
    now_iso,
    same_content,
    validate_board,
)
from syncban.model.node import Node
from syncban.queue import DrainResult, OperationQueue, QueuedOperation
from syncban.store import MemoryStore
from syncban.tracker import MutationTracker

logger = logging.getLogger(__name__)

IDLE = "idle"
SYNCING = "syncing"
SYNCED = "synced"
OFFLINE = "offline"
ERROR = "error"
STATES = (IDLE, SYNCING, SYNCED, OFFLINE, ERROR)

# SyncResult.status values
WRITTEN = "written"
QUEUED = "queued"
PULLED = "pulled"
MERGED = "merged"
UNCHANGED = "unchanged"
CONFLICT = "conflict"
REJECTED = "rejected"
INVALID = "invalid"
LOCAL = "local"

DOCUMENT_PREFIX = "documents/"

ConflictCallback = Callable[[str, list[FieldDiff]], None]


def _doc_key(doc_id: str) -> str:
    return DOCUMENT_PREFIX + doc_id


@dataclass
class SyncResult:
    """What happened to one document during a forced sync or flush."""

    document_id: str
    status: str
    error: Exception | None = None

    @property
    def ok(self) -> bool:
        return self.status not in (CONFLICT, REJECTED, INVALID)

    def to_dict(self) -> dict:
        return {
            "document_id": self.document_id,
            "status": self.status,
            "error": str(self.error) if self.error is not None else None,
        }


@dataclass
class PendingConflict:
    """A document paused until the user answers its both-changed fields."""

    document_id: str
    base: dict
    local: dict
    remote: dict
    diffs: list[FieldDiff] = field(default_factory=list)
    version: str = ""


def _moved(remote_doc: dict, base: dict | None) -> bool:
    """True if the remote copy differs from the last version this client saw."""
    if base is None:
        return True
    return is_newer(remote_doc, base) or not same_content(remote_doc, base)


def _resolution_map(resolutions) -> dict[str, str]:
    """Accept {path: choice}, [(path, choice)] or [{"path": ..., "choice": ...}]."""
    if isinstance(resolutions, dict):
        items: Iterable = resolutions.items()
    else:
        items = (
            (item["path"], item.get("choice", item.get("resolution"))) if isinstance(item, dict) else tuple(item)
            for item in resolutions
        )
    choices = {}
    for path, choice in items:
        if choice not in CHOICES:
            raise ValueError(f"resolution for {path} must be one of {', '.join(CHOICES)}, not {choice!r}")
        choices[path] = choice
    return choices


class SyncEngine:
    """Sync orchestrator for a set of board documents.

    Typical use::

        engine = SyncEngine(remote, JsonFileStore(path), load_config(cfg))
        async with engine:
            board = await engine.open("board-1234")
            board.name = "Renamed"           # marked dirty, written after debounce

    Local edits are never overwritten: a remote change only replaces a
    document that has no unsaved edits. Diverged documents go through a
    three-way merge; conflicting fields pause the document until
    ``resolve()`` is called.
    """

    def __init__(
        self,
        remote,
        store=None,
        config: SyncConfig | None = None,
        *,
        on_conflict: ConflictCallback | None = None,
        is_online: Callable[[], bool] | None = None,
    ) -> None:
        self.remote = remote
        self.store = store if store is not None else MemoryStore()
        self.config = config or SyncConfig()
        self.on_conflict = on_conflict
        self.is_online = is_online
        self.tracker = MutationTracker(on_change=self._on_local_edit)
        self.queue = OperationQueue(self.store)
        self.status = Node(state=IDLE, pending=self.queue.size(), conflicts=0, online=True, error=None)
        self.boards: dict[str, Node] = {}
        self._base: dict[str, dict | None] = {}
        self._conflicts: dict[str, PendingConflict] = {}
        self._locks: dict[str, asyncio.Lock] = {}
        self._timers: dict[str, asyncio.TimerHandle] = {}
        self._tasks: set[asyncio.Task] = set()
        self._unsubscribe: dict[str, Callable[[], None]] = {}
        self._loop: asyncio.AbstractEventLoop | None = None
        self._poll_task: asyncio.Task | None = None
        self._stop_event: asyncio.Event | None = None
        self._cooldown: asyncio.TimerHandle | None = None
        self._polling = False
        self._draining = False

    @property
    def ephemeral(self) -> bool:
        return self.config.ephemeral

    # --- lifecycle ---

    async def __aenter__(self) -> SyncEngine:
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    async def start(self) -> None:
        """Reopen locally cached documents and start the poll loop."""
        if self._poll_task is not None:
            return
        self._loop = asyncio.get_running_loop()
        for doc_id in self.stored_ids():
            if doc_id not in self.boards:
                self._load_local(doc_id)
        if self.ephemeral:
            logger.info("ephemeral session: remote sync disabled")
            return
        self._stop_event = asyncio.Event()
        self._poll_task = asyncio.create_task(self._poll_loop())

    async def stop(self) -> None:
        """Stop polling, flush debounced writes and wait for in-flight work."""
        task, self._poll_task = self._poll_task, None
        if task is not None:
            self._stop_event.set()
            await task
        if self._cooldown is not None:
            self._cooldown.cancel()
            self._cooldown = None
        await self.flush()

    async def _poll_loop(self) -> None:
        while not self._stop_event.is_set():
            try:
                await self.poll_once()
            except asyncio.CancelledError:
                raise
            except Exception as exc:
                logger.exception("sync cycle failed")
                self._set_error(exc)
            try:
                await asyncio.wait_for(self._stop_event.wait(), timeout=self.config.poll_interval)
            except asyncio.TimeoutError:
                pass

    # --- documents ---

    def stored_ids(self) -> list[str]:
        return sorted(key[len(DOCUMENT_PREFIX) :] for key in self.store.keys(DOCUMENT_PREFIX))

    async def open(self, doc_id: str) -> Node:
        """Return the working copy of a document, fetching it if not cached."""
        self._capture_loop()
        board = self.boards.get(doc_id)
        if board is not None:
            return board
        board = self._load_local(doc_id)
        if board is not None:
            return board
        if self.ephemeral:
            raise KeyError(doc_id)
        remote_doc = await asyncio.to_thread(self.remote.fetch, doc_id)
        if remote_doc is None:
            raise KeyError(doc_id)
        if doc_id in self.boards:
            # adopted by a poll while the fetch was in flight
            return self.boards[doc_id]
        return self._adopt(doc_id, remote_doc)

    def add(self, board: Node) -> str:
        """Start tracking a board created locally. It is written on the next flush."""
        self._capture_loop()
        doc_id = board.id
        if doc_id in self.boards:
            raise ValueError(f"document {doc_id} is already open")
        self._base[doc_id] = None
        self._register(doc_id, board)
        self.tracker.mark_dirty(doc_id)
        self._save_local(doc_id)
        return doc_id

    async def close(self, doc_id: str) -> None:
        """Flush a document's pending write and stop tracking it in memory.

        Writes already in flight still land, built from the stored working
        copy. Later polls keep the stored copy current without reopening it,
        unless it has unsaved edits that need a merge. A paused document can
        still be resolved after it is closed.
        """
        if doc_id not in self.boards:
            return
        timer = self._timers.pop(doc_id, None)
        if timer is not None:
            timer.cancel()
            await self._flush_document(doc_id)
        self._save_local(doc_id)
        self.tracker.detach(doc_id)
        unsubscribe = self._unsubscribe.pop(doc_id, None)
        if unsubscribe is not None:
            unsubscribe()
        del self.boards[doc_id]

    def _capture_loop(self) -> None:
        if self._loop is None:
            try:
                self._loop = asyncio.get_running_loop()
            except RuntimeError:
                pass

    def _register(self, doc_id: str, board: Node) -> None:
        self.boards[doc_id] = board
        self.tracker.attach(doc_id, board)
        if not self.ephemeral and hasattr(self.remote, "subscribe"):
            self._unsubscribe[doc_id] = self.remote.subscribe(doc_id, self._remote_changed)

    def _load_local(self, doc_id: str) -> Node | None:
        record = self.store.load(_doc_key(doc_id))
        if record is None:
            return None
        board = board_from_dict(record["working"])
        self._base[doc_id] = record.get("base")
        self._register(doc_id, board)
        if record.get("dirty"):
            self.tracker.mark_dirty(doc_id)
        return board

    def _adopt(self, doc_id: str, remote_doc: dict) -> Node:
        board = board_from_dict(remote_doc)
        self._base[doc_id] = remote_doc
        self._register(doc_id, board)
        self._save_local(doc_id)
        logger.info("adopted %s from remote", doc_id)
        return board

    def _forget(self, doc_id: str) -> None:
        self.tracker.detach(doc_id)
        self.tracker.mark_clean(doc_id)
        unsubscribe = self._unsubscribe.pop(doc_id, None)
        if unsubscribe is not None:
            unsubscribe()
        self.boards.pop(doc_id, None)
        self._base.pop(doc_id, None)
        self.store.delete(_doc_key(doc_id))

    def _save_local(self, doc_id: str) -> None:
        board = self.boards.get(doc_id)
        if board is None:
            return
        self.store.save(
            _doc_key(doc_id),
            {
                "base": self._base.get(doc_id),
                "working": board_to_dict(board),
                "dirty": self.tracker.is_dirty(doc_id),
            },
        )

    def _lock(self, doc_id: str) -> asyncio.Lock:
        return self._locks.setdefault(doc_id, asyncio.Lock())

    # --- accessors ---

    def get_dirty(self, doc_id: str) -> bool:
        return self.tracker.is_dirty(doc_id)

    def get_pending_count(self) -> int:
        return self.queue.size()

    def get_sync_state(self) -> str:
        return self.status.state

    def last_synced(self, doc_id: str) -> dict | None:
        """The remote version the working copy was last reconciled with."""
        return self._base.get(doc_id)

    def conflicts(self, doc_id: str) -> list[FieldDiff]:
        """The diff set of a paused document, or [] if it is not paused."""
        pending = self._conflicts.get(doc_id)
        return list(pending.diffs) if pending else []

    def conflict_version(self, doc_id: str) -> str | None:
        pending = self._conflicts.get(doc_id)
        return pending.version if pending else None

    def paused_ids(self) -> list[str]:
        return sorted(self._conflicts)

    # --- state ---

    def _set_state(self, state: str) -> None:
        if self._cooldown is not None:
            self._cooldown.cancel()
            self._cooldown = None
        self.status.state = state
        if state == SYNCED and self._loop is not None:
            self._cooldown = self._loop.call_later(self.config.cooldown, self._settle)

    def _settle(self) -> None:
        self._cooldown = None
        if self.status.state == SYNCED:
            self.status.state = IDLE

    def _set_error(self, exc: Exception) -> None:
        self.status.error = str(exc)
        self._set_state(ERROR)

    def _queue_changed(self) -> None:
        self.status.pending = self.queue.size()

    def _note_failure(self, exc: Exception) -> None:
        if isinstance(exc, (RemoteRejected, ValidationError)):
            self._set_error(exc)
        else:
            self._set_state(OFFLINE)

    def _online(self) -> bool:
        if self.is_online is not None:
            online = bool(self.is_online())
            if online != self.status.online:
                self._connectivity_changed(online)
        return self.status.online

    def set_online(self, online: bool) -> None:
        """Report a connectivity change. Going online drains the queue."""
        if online != self.status.online:
            self._connectivity_changed(online)

    def _connectivity_changed(self, online: bool) -> None:
        self.status.online = online
        if not online:
            logger.warning("connection lost; writes will be queued")
            self._set_state(OFFLINE)
            return
        logger.info("connection restored (%d queued writes)", self.queue.size())
        self._set_state(IDLE)
        if self.queue.size() and not self.ephemeral:
            self._capture_loop()
            if self._loop is not None:
                self._spawn(self.drain())

    # --- background tasks ---

    def _spawn(self, coro) -> asyncio.Task:
        self._capture_loop()
        task = self._loop.create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._task_done)
        return task

    def _task_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("background sync task failed", exc_info=exc)
            self._set_error(exc)

    def _on_local_edit(self, doc_id: str) -> None:
        if self._loop is None or self._loop.is_closed():
            return
        timer = self._timers.pop(doc_id, None)
        if timer is not None:
            timer.cancel()
        self._timers[doc_id] = self._loop.call_later(self.config.debounce, self._debounce_fired, doc_id)

    def _debounce_fired(self, doc_id: str) -> None:
        self._timers.pop(doc_id, None)
        if doc_id in self.boards:
            self._spawn(self._flush_document(doc_id))

    def _remote_changed(self, doc_id: str, document: dict) -> None:
        # may be called from a worker thread
        loop = self._loop
        if loop is None or loop.is_closed():
            return
        loop.call_soon_threadsafe(self._schedule_refresh, doc_id)

    def _schedule_refresh(self, doc_id: str) -> None:
        if doc_id in self.boards:
            self._spawn(self._refresh(doc_id))

    async def _refresh(self, doc_id: str) -> None:
        try:
            remote_doc = await asyncio.to_thread(self.remote.fetch, doc_id)
        except RemoteError as exc:
            logger.warning("fetch %s failed: %s", doc_id, exc)
            return
        async with self._lock(doc_id):
            await self._reconcile(doc_id, remote_doc)

    async def flush(self, doc_id: str | None = None) -> list[SyncResult]:
        """Write debounced changes now and wait for every in-flight task.

        With a document id, that document is flushed even without a pending
        debounce timer.
        """
        if doc_id is not None:
            ids = [doc_id]
        else:
            ids = list(self._timers)
        results = []
        for target in ids:
            timer = self._timers.pop(target, None)
            if timer is not None:
                timer.cancel()
            if target in self.boards:
                results.append(await self._flush_document(target))
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        return results

    async def _flush_document(self, doc_id: str) -> SyncResult:
        async with self._lock(doc_id):
            self._save_local(doc_id)
            if self.ephemeral:
                return SyncResult(doc_id, LOCAL)
            if doc_id in self._conflicts:
                return SyncResult(doc_id, CONFLICT, ConflictPending(doc_id))
            if not self.tracker.is_dirty(doc_id):
                return SyncResult(doc_id, UNCHANGED)
            return await self._push_locked(doc_id)

    # --- writes ---

    def _snapshot(self, doc_id: str) -> dict:
        board = self.boards.get(doc_id)
        if board is not None:
            payload = board_to_dict(board)
        else:
            # closed while its write was waiting for the lock
            record = self.store.load(_doc_key(doc_id))
            if record is None:
                raise KeyError(doc_id)
            payload = copy.deepcopy(record["working"])
        payload["updated_at"] = now_iso()
        return payload

    async def _write_with_backoff(self, doc_id: str, payload: dict) -> None:
        attempt = 0
        while True:
            try:
                await asyncio.to_thread(self.remote.write, doc_id, payload)
                return
            except QuotaExceeded as exc:
                if attempt >= self.config.quota_retries:
                    raise
                delay = self.config.backoff_base * 2**attempt
                logger.warning("quota exceeded writing %s, retrying in %.1fs: %s", doc_id, delay, exc)
                await asyncio.sleep(delay)
                attempt += 1

    async def _push_locked(self, doc_id: str) -> SyncResult:
        """Write the current working copy, or queue it. Caller holds the lock."""
        payload = self._snapshot(doc_id)
        try:
            validate_board(payload)
        except ValidationError as exc:
            logger.error("not writing %s: %s", doc_id, exc)
            self._set_error(exc)
            return SyncResult(doc_id, INVALID, exc)

        if not self._online() or self.queue.pending_for(doc_id):
            self.queue.enqueue(doc_id, payload)
            self._queue_changed()
            if self.status.online:
                self._spawn(self.drain())
            else:
                self._set_state(OFFLINE)
            return SyncResult(doc_id, QUEUED)

        self._set_state(SYNCING)
        try:
            await self._write_with_backoff(doc_id, payload)
        except RemoteRejected as exc:
            logger.error("write for %s rejected: %s", doc_id, exc)
            self.queue.enqueue(doc_id, payload, rejected=str(exc))
            self._queue_changed()
            self._set_error(exc)
            return SyncResult(doc_id, REJECTED, exc)
        except (RemoteUnavailable, QuotaExceeded) as exc:
            logger.warning("write for %s failed, queued: %s", doc_id, exc)
            self.queue.enqueue(doc_id, payload)
            self._queue_changed()
            self._set_state(OFFLINE)
            return SyncResult(doc_id, QUEUED, exc)
        self._confirmed(doc_id, payload)
        self.status.error = None
        self._set_state(SYNCED)
        return SyncResult(doc_id, WRITTEN)

    def _confirmed(self, doc_id: str, payload: dict, replayed: QueuedOperation | None = None) -> None:
        """Record a write the remote accepted."""
        self._base[doc_id] = payload
        pending = [op for op in self.queue.pending_for(doc_id) if op is not replayed]
        board = self.boards.get(doc_id)
        if board is not None:
            with self.tracker.suppressing():
                board.updated_at = payload["updated_at"]
            if not pending and same_content(board_to_dict(board), payload):
                self.tracker.mark_clean(doc_id)
            self._save_local(doc_id)
        else:
            record = self.store.load(_doc_key(doc_id))
            if record is not None:
                record["base"] = payload
                record["dirty"] = bool(pending) or not same_content(record["working"], payload)
                self.store.save(_doc_key(doc_id), record)
                if not record["dirty"]:
                    self.tracker.mark_clean(doc_id)
        logger.info("wrote %s", doc_id)

    # --- drain ---

    async def drain(self) -> DrainResult:
        """Replay queued writes in order. Stops at the first failure."""
        if self.ephemeral or self._draining or not self._online():
            return DrainResult(remaining=self.queue.size())
        self._draining = True
        self._set_state(SYNCING)
        try:
            result = await self.queue.drain(self._replay)
        finally:
            self._draining = False
            self._queue_changed()
        if result.error is not None:
            self._note_failure(result.error)
        elif result.blocked_by is not None:
            op = self.queue.get(result.blocked_by)
            self._set_error(SyncError(f"write {result.blocked_by} was rejected: {op.last_error if op else ''}"))
        else:
            self.status.error = None
            self._set_state(SYNCED)
        if result.replayed:
            logger.info("replayed %d queued writes, %d remaining", len(result.replayed), result.remaining)
        return result

    async def _replay(self, op: QueuedOperation) -> None:
        doc_id = op.document_id
        async with self._lock(doc_id):
            if op not in self.queue.operations():
                # discarded by a merge while waiting for the lock
                return
            remote_doc = await asyncio.to_thread(self.remote.fetch, doc_id)
            base = self._base.get(doc_id)
            if remote_doc is not None and _moved(remote_doc, base):
                logger.warning("%s changed remotely while queued; merging instead of replaying", doc_id)
                if doc_id not in self.boards and self._load_local(doc_id) is None:
                    self._register(doc_id, board_from_dict(op.payload))
                    self.tracker.mark_dirty(doc_id)
                await self._diverged(doc_id, remote_doc)
                return
            await self._write_with_backoff(doc_id, op.payload)
            self._confirmed(doc_id, op.payload, replayed=op)

    # --- polling ---

    async def poll_once(self) -> bool:
        """Run one poll cycle. Returns False if skipped."""
        if self.ephemeral:
            return False
        if self._polling:
            logger.debug("previous poll still running, skipping")
            return False
        self._polling = True
        try:
            if not self._online():
                self._set_state(OFFLINE)
                return True
            self._set_state(SYNCING)
            failure = None
            try:
                ids = await asyncio.to_thread(self.remote.list_ids)
            except RemoteError as exc:
                logger.warning("listing remote documents failed: %s", exc)
                failure = exc
                ids = []
            for doc_id in dict.fromkeys([*ids, *self.boards]):
                try:
                    remote_doc = await asyncio.to_thread(self.remote.fetch, doc_id)
                except RemoteError as exc:
                    logger.warning("fetch %s failed: %s", doc_id, exc)
                    failure = exc
                    continue
                async with self._lock(doc_id):
                    await self._reconcile(doc_id, remote_doc)
            if self.queue.size():
                result = await self.drain()
                if not result.ok:
                    return True
            if failure is not None:
                self._note_failure(failure)
            else:
                self.status.error = None
                self._set_state(SYNCED)
            return True
        finally:
            self._polling = False

    async def _reconcile(self, doc_id: str, remote_doc: dict | None) -> SyncResult | None:
        """Bring one document up to date with its remote copy. Caller holds the lock."""
        board = self.boards.get(doc_id)
        base = self._base.get(doc_id)
        if remote_doc is None:
            if board is None or base is None:
                return None
            if self.tracker.is_dirty(doc_id):
                logger.warning("%s was deleted remotely but has unsaved edits; keeping it", doc_id)
                return None
            logger.info("%s was deleted remotely", doc_id)
            self._forget(doc_id)
            return None
        if board is None:
            record = self.store.load(_doc_key(doc_id))
            if record is None:
                self._adopt(doc_id, remote_doc)
                return SyncResult(doc_id, PULLED)
            if not record.get("dirty") and not self.tracker.is_dirty(doc_id) and doc_id not in self._conflicts:
                return self._pull_stored(doc_id, record, remote_doc)
            # unsaved edits are reopened so they get written or merged
            board = self._load_local(doc_id)
            base = self._base.get(doc_id)

        pending = self._conflicts.get(doc_id)
        if pending is not None:
            if same_content(remote_doc, pending.remote) and remote_doc.get("updated_at") == pending.remote.get(
                "updated_at"
            ):
                return SyncResult(doc_id, CONFLICT, ConflictPending(doc_id))
            logger.info("%s moved remotely while paused; recomputing conflicts", doc_id)
            return await self._diverged(doc_id, remote_doc)

        if not _moved(remote_doc, base):
            return None
        if not self.tracker.is_dirty(doc_id):
            self._pull(doc_id, remote_doc)
            return SyncResult(doc_id, PULLED)
        return await self._diverged(doc_id, remote_doc)

    def _pull(self, doc_id: str, remote_doc: dict) -> None:
        board = self.boards[doc_id]
        with self.tracker.suppressing():
            board.update(board_from_dict(remote_doc))
        self._base[doc_id] = remote_doc
        self._save_local(doc_id)
        logger.info("pulled %s", doc_id)

    def _pull_stored(self, doc_id: str, record: dict, remote_doc: dict) -> SyncResult | None:
        """Update a closed, clean document in the store without reopening it."""
        if not _moved(remote_doc, record.get("base")):
            return None
        self.store.save(_doc_key(doc_id), {"base": remote_doc, "working": copy.deepcopy(remote_doc), "dirty": False})
        self._base[doc_id] = remote_doc
        logger.info("pulled %s", doc_id)
        return SyncResult(doc_id, PULLED)

    async def _diverged(self, doc_id: str, remote_doc: dict) -> SyncResult:
        """Three-way merge a dirty document against a newer remote copy."""
        base = self._base.get(doc_id) or empty_board(doc_id)
        local = board_to_dict(self.boards[doc_id])
        diffs = compute_diff(base, local, remote_doc)
        # queued snapshots are superseded by the merge of the working copy
        if self.queue.discard(doc_id):
            self._queue_changed()
        open_conflicts = conflicts(diffs)
        if open_conflicts and self.config.conflict_policy != "manual":
            logger.warning(
                "resolving %d conflicts in %s in favour of %s copy",
                len(open_conflicts),
                doc_id,
                self.config.conflict_policy,
            )
            for diff in open_conflicts:
                diff.resolution = self.config.conflict_policy
            open_conflicts = []
        if open_conflicts:
            self._pause(doc_id, base, local, remote_doc, diffs)
            return SyncResult(doc_id, CONFLICT, ConflictPending(doc_id))
        if self._conflicts.pop(doc_id, None) is not None:
            self.status.conflicts = len(self._conflicts)
        merged = apply_resolutions(base, local, remote_doc, diffs)
        logger.info("merged %s (%d changes)", doc_id, len(diffs))
        return await self._adopt_merge(doc_id, remote_doc, merged)

    def _pause(self, doc_id: str, base: dict, local: dict, remote_doc: dict, diffs: list[FieldDiff]) -> None:
        version = diff_version(diffs)
        previous = self._conflicts.get(doc_id)
        self._conflicts[doc_id] = PendingConflict(doc_id, base, local, remote_doc, diffs, version)
        self.status.conflicts = len(self._conflicts)
        if previous is not None and previous.version == version:
            return
        logger.warning("%s has %d conflicting changes; sync paused", doc_id, len(conflicts(diffs)))
        if self.on_conflict is not None:
            self.on_conflict(doc_id, diffs)

    async def _adopt_merge(self, doc_id: str, remote_doc: dict, merged: dict) -> SyncResult:
        board = self.boards[doc_id]
        with self.tracker.suppressing():
            board.update(board_from_dict(merged))
        self._base[doc_id] = remote_doc
        if same_content(merged, remote_doc):
            self.tracker.mark_clean(doc_id)
            self._save_local(doc_id)
            return SyncResult(doc_id, MERGED)
        self._save_local(doc_id)
        return await self._push_locked(doc_id)

    # --- user actions ---

    async def resolve(self, doc_id: str, resolutions, version: str | None = None) -> dict:
        """Answer a paused document's conflicts and write the merged result.

        ``resolutions`` maps diff paths to "local" or "remote". Every
        both-changed path must be answered. Raises StaleResolutionError if
        either copy moved since the conflict was presented; the new diff
        set is then available from ``conflicts()``.
        """
        choices = _resolution_map(resolutions)
        async with self._lock(doc_id):
            pending = self._conflicts.get(doc_id)
            if pending is None:
                raise SyncError(f"document {doc_id} has no pending conflicts")
            if version is not None and version != pending.version:
                raise StaleResolutionError(doc_id, pending.version)
            remote_doc = await asyncio.to_thread(self.remote.fetch, doc_id)
            if remote_doc is None:
                raise SyncError(f"document {doc_id} was deleted remotely")
            if doc_id not in self.boards and self._load_local(doc_id) is None:
                raise KeyError(doc_id)
            local = board_to_dict(self.boards[doc_id])
            diffs = compute_diff(pending.base, local, remote_doc)
            moved = remote_doc.get("updated_at") != pending.remote.get("updated_at")
            if moved or diff_version(diffs) != pending.version:
                logger.info("resolutions for %s are stale; recomputing", doc_id)
                await self._diverged(doc_id, remote_doc)
                current = self._conflicts.get(doc_id)
                raise StaleResolutionError(doc_id, current.version if current else diff_version(diffs))

            paths = {d.path for d in diffs}
            unknown = sorted(set(choices) - paths)
            if unknown:
                raise ValueError("unknown diff paths: " + ", ".join(unknown))
            for diff in diffs:
                if diff.path in choices:
                    diff.resolution = choices[diff.path]
            missing = [d.path for d in unresolved(conflicts(diffs))]
            if missing:
                raise UnresolvedConflictError(missing)

            merged = apply_resolutions(pending.base, local, remote_doc, diffs)
            del self._conflicts[doc_id]
            self.status.conflicts = len(self._conflicts)
            logger.info("resolved %d conflicts in %s", len(choices), doc_id)
            await self._adopt_merge(doc_id, remote_doc, merged)
            return merged

    async def force_sync(self, doc_id: str) -> SyncResult:
        """Fetch, reconcile and write one document now, skipping the debounce."""
        timer = self._timers.pop(doc_id, None)
        if timer is not None:
            timer.cancel()
        if self.ephemeral:
            if doc_id in self.boards:
                self._save_local(doc_id)
            return SyncResult(doc_id, LOCAL)
        if doc_id not in self.boards:
            await self.open(doc_id)
        async with self._lock(doc_id):
            self._save_local(doc_id)
            if not self._online():
                if self.tracker.is_dirty(doc_id) and doc_id not in self._conflicts:
                    return await self._push_locked(doc_id)
                return SyncResult(doc_id, UNCHANGED, RemoteUnavailable("offline"))
            try:
                remote_doc = await asyncio.to_thread(self.remote.fetch, doc_id)
            except RemoteError as exc:
                logger.warning("fetch %s failed: %s", doc_id, exc)
                self._note_failure(exc)
                if self.tracker.is_dirty(doc_id) and doc_id not in self._conflicts:
                    return await self._push_locked(doc_id)
                return SyncResult(doc_id, UNCHANGED, exc)
            result = await self._reconcile(doc_id, remote_doc)
            if doc_id in self._conflicts:
                return SyncResult(doc_id, CONFLICT, ConflictPending(doc_id))
            if result is not None and result.status in (WRITTEN, QUEUED, REJECTED, INVALID):
                return result
            if doc_id in self.boards and self.tracker.is_dirty(doc_id):
                return await self._push_locked(doc_id)
            return result or SyncResult(doc_id, UNCHANGED)

    def acknowledge(self, op_id: str, retry: bool = False) -> QueuedOperation:
        """Acknowledge a rejected write: drop it, or re-arm it for the next drain."""
        op = self.queue.acknowledge(op_id, retry=retry)
        self._queue_changed()
        if not self.queue.rejected() and self.status.state == ERROR:
            self.status.error = None
            self._set_state(IDLE)
        logger.info("acknowledged %s (%s)", op_id, "retry" if retry else "dropped")
        return op
