"""Apply diff resolutions to produce a merged board."""

from __future__ import annotations

import copy
import logging

from syncban.diff import LOCAL, REMOTE, FieldDiff, card_column, columns_by_id, flat_cards, unresolved
from syncban.errors import UnresolvedConflictError
from syncban.model.document import now_iso

logger = logging.getLogger(__name__)

# The merge starts from the remote copy: every field nobody answered for
# keeps the server's value, and only "local" resolutions are overlaid.
MERGE_BASELINE = REMOTE

# Columns must exist before cards are placed in them, and may only be
# removed once their cards have been moved or deleted.
_PHASE_COLUMNS, _PHASE_CARDS, _PHASE_COLUMN_DELETES = range(3)


def _split(path: str) -> tuple[str, str | None, str]:
    """Split a diff path into (kind, item id, field).

    "cards.c1.title" -> ("cards", "c1", "title"); "name" -> ("board", None, "name")
    """
    if "." not in path:
        return "board", None, path
    head, field = path.rsplit(".", 1)
    kind, item_id = head.split(".", 1)
    return kind, item_id, field


def _phase(diff: FieldDiff) -> int:
    kind, _, field = _split(diff.path)
    if kind == "columns":
        return _PHASE_COLUMN_DELETES if field == "deleted" else _PHASE_COLUMNS
    return _PHASE_CARDS


def _remove_card(merged: dict, card_id: str) -> dict | None:
    for col in merged["columns"]:
        for i, card in enumerate(col["cards"]):
            if card["id"] == card_id:
                return col["cards"].pop(i)
    return None


def _target_column(merged: dict, local_col: dict | None) -> dict | None:
    """Find where a card lives locally, by column id then by title."""
    if local_col is None:
        return None
    by_id = columns_by_id(merged)
    if local_col["id"] in by_id:
        return by_id[local_col["id"]]
    for col in merged["columns"]:
        if col.get("title") == local_col.get("title"):
            return col
    return None


def _local_position(local_col: dict, card_id: str) -> int:
    for i, card in enumerate(local_col.get("cards") or ()):
        if card["id"] == card_id:
            return i
    return len(local_col.get("cards") or ())


def _place_card(merged: dict, card: dict, target: dict, position: int) -> None:
    cards = target.setdefault("cards", [])
    cards.insert(min(position, len(cards)), card)


def _apply_card(merged: dict, local: dict, card_id: str, field: str) -> None:
    local_card = flat_cards(local).get(card_id)

    if field == "deleted":
        _remove_card(merged, card_id)
        return

    local_col = card_column(local, card_id)
    if field == "added":
        if local_card is None:
            return
        _remove_card(merged, card_id)
        target = _target_column(merged, local_col)
        if target is None:
            if not merged["columns"]:
                merged["columns"].append({**copy.deepcopy(local_col), "cards": []})
            target = merged["columns"][0]
        _place_card(merged, copy.deepcopy(local_card), target, _local_position(local_col, card_id))
        return

    current = card_column(merged, card_id)
    if current is None or local_card is None:
        logger.warning("card %s vanished from the merge; skipping %s", card_id, field)
        return

    if field == "column":
        target = _target_column(merged, local_col)
        if target is None:
            logger.warning("column for card %s no longer exists; keeping it in %s", card_id, current.get("title"))
            return
        if target is not current:
            card = _remove_card(merged, card_id)
            _place_card(merged, card, target, _local_position(local_col, card_id))
        return

    card = next(c for c in current["cards"] if c["id"] == card_id)
    value = local_card.get(field)
    if value is None:
        card.pop(field, None)
    else:
        card[field] = copy.deepcopy(value)


def _apply_column(merged: dict, local: dict, col_id: str, field: str) -> None:
    local_cols = columns_by_id(local)
    merged_cols = columns_by_id(merged)

    if field == "added":
        local_col = local_cols.get(col_id)
        if local_col is None:
            return
        if col_id in merged_cols:
            merged_cols[col_id]["title"] = local_col.get("title")
            return
        position = list(local_cols).index(col_id)
        column = {k: copy.deepcopy(v) for k, v in local_col.items() if k != "cards"}
        column["cards"] = []
        merged["columns"].insert(min(position, len(merged["columns"])), column)
    elif field == "title":
        if col_id in merged_cols and col_id in local_cols:
            merged_cols[col_id]["title"] = local_cols[col_id].get("title")
    elif field == "deleted":
        column = merged_cols.get(col_id)
        if column is None:
            return
        others = [col for col in merged["columns"] if col is not column]
        orphans = column.get("cards") or []
        if orphans and not others:
            logger.warning("keeping column %s: it still holds cards and nothing else can", col_id)
            return
        merged["columns"].remove(column)
        for card in orphans:
            logger.info("moving card %s out of deleted column %s", card["id"], col_id)
            others[0]["cards"].append(card)


def _apply_local(merged: dict, local: dict, diff: FieldDiff) -> None:
    kind, item_id, field = _split(diff.path)
    if kind == "board":
        value = local.get(field)
        if value is None:
            merged.pop(field, None)
        else:
            merged[field] = copy.deepcopy(value)
    elif kind == "cards":
        _apply_card(merged, local, item_id, field)
    elif kind == "columns":
        _apply_column(merged, local, item_id, field)
    else:
        raise ValueError(f"unknown diff path: {diff.path}")


def apply_resolutions(base: dict, local: dict, remote: dict, diffs: list[FieldDiff]) -> dict:
    """Merge local into remote according to each diff's resolution.

    The result is stamped with the current time, except when no diff
    resolves to "local": then it is the remote copy unchanged, remote
    ``updated_at`` included, so merging nothing is a no-op.

    Raises UnresolvedConflictError if any diff has no resolution.
    """
    missing = unresolved(diffs)
    if missing:
        raise UnresolvedConflictError([d.path for d in missing])

    chosen = [d for d in diffs if d.resolution == LOCAL]
    if not chosen:
        # nothing to overlay: the merge is the remote version itself
        return copy.deepcopy(remote)

    merged = copy.deepcopy(remote)
    merged.setdefault("columns", [])
    for col in merged["columns"]:
        col.setdefault("cards", [])

    for diff in sorted(chosen, key=_phase):
        _apply_local(merged, local, diff)

    merged["updated_at"] = now_iso()
    return merged
