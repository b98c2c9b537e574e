"""Convert boards between the reactive Node tree and plain JSON documents.

The Node tree is what the application edits; the plain dict form is what
goes over the wire, into the local store, and through the differ.
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from syncban.errors import ValidationError
from syncban.ids import is_valid_id
from syncban.model.node import ListNode, Node

BOARD_FIELDS = ("id", "name", "description", "updated_at")
CARD_LIST_FIELDS = ("tags", "checklist", "comments")


# --- Timestamps ---


def now_iso() -> str:
    """Current time as an ISO-8601 UTC string."""
    return datetime.now(timezone.utc).isoformat()


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO-8601 string, treating naive values as UTC."""
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def is_newer(document: dict | None, than: dict | None) -> bool:
    """True if document's updated_at is strictly later than than's.

    A document with no timestamp is never newer; anything with a timestamp
    is newer than a missing reference.
    """
    if document is None:
        return False
    ts = parse_timestamp(document.get("updated_at"))
    if ts is None:
        return False
    if than is None:
        return True
    ref = parse_timestamp(than.get("updated_at"))
    return ref is None or ts > ref


# --- Canonical serialization ---


def _normalize(value: Any) -> Any:
    """Collapse None, missing and empty collections so they compare equal."""
    if isinstance(value, Node):
        value = {k: v for k, v in value.items()}
    if isinstance(value, ListNode):
        value = list(value)
    if isinstance(value, dict):
        out = {}
        for k, v in value.items():
            norm = _normalize(v)
            if norm is not None:
                out[k] = norm
        return out or None
    if isinstance(value, (list, tuple)):
        items = [_normalize(v) for v in value]
        return items or None
    return value


def canonical(value: Any) -> str:
    """Stable JSON text for structural equality checks."""
    return json.dumps(_normalize(value), sort_keys=True, separators=(",", ":"), default=str)


def canonical_tags(tags) -> str:
    """Tags are a set: order and duplicates do not matter."""
    return canonical(sorted(set(tags or ())))


def same_content(left: dict | None, right: dict | None) -> bool:
    """Compare two boards ignoring their timestamps."""
    if left is None or right is None:
        return left is right
    strip = lambda doc: {k: v for k, v in doc.items() if k != "updated_at"}  # noqa: E731
    return canonical(strip(left)) == canonical(strip(right))


# --- Node <-> dict ---


def _plain(value: Any) -> Any:
    if isinstance(value, Node):
        return {k: _plain(v) for k, v in value.items()}
    if isinstance(value, ListNode):
        return [_plain(v) for v in value]
    if isinstance(value, (list, tuple)):
        return [_plain(v) for v in value]
    return value


def card_from_dict(data: dict) -> Node:
    """Build a card Node. List fields are stored as tuples so edits reassign them."""
    fields = {}
    for key, value in data.items():
        if key in CARD_LIST_FIELDS and value is not None:
            value = tuple(dict(v) if isinstance(v, dict) else v for v in value)
        fields[key] = value
    return Node(**fields)


def card_to_dict(card: Node) -> dict:
    return {k: _plain(v) for k, v in card.items() if v is not None}


def column_from_dict(data: dict) -> Node:
    cards = ListNode()
    for card in data.get("cards") or ():
        cards[card["id"]] = card_from_dict(card)
    fields = {k: v for k, v in data.items() if k != "cards"}
    return Node(cards=cards, **fields)


def column_to_dict(column: Node) -> dict:
    data = {k: _plain(v) for k, v in column.items() if k != "cards"}
    data["cards"] = [card_to_dict(card) for card in column.cards or ()]
    return data


def board_from_dict(data: dict) -> Node:
    """Build a reactive board tree from a plain document."""
    columns = ListNode()
    for col in data.get("columns") or ():
        columns[col["id"]] = column_from_dict(col)
    fields = {k: v for k, v in data.items() if k != "columns"}
    return Node(columns=columns, **fields)


def board_to_dict(board: Node) -> dict:
    """Snapshot a board tree as a plain document."""
    data = {k: _plain(v) for k, v in board.items() if k != "columns"}
    data["columns"] = [column_to_dict(col) for col in board.columns or ()]
    return data


def empty_board(document_id: str) -> dict:
    """Ancestor for a board that has never been synchronized."""
    return {"id": document_id, "columns": []}


# --- Validation ---


def validate_board(data: dict) -> None:
    """Raise ValidationError unless the board may be persisted remotely."""
    problems = []
    if not data.get("id"):
        problems.append("board has no id")
    elif not is_valid_id(data["id"]):
        problems.append(f"board id {data['id']!r} is not a valid id")
    seen: set[str] = set()
    for col in data.get("columns") or ():
        if not is_valid_id(col.get("id") or ""):
            problems.append(f"column id {col.get('id')!r} is not a valid id")
        if not (col.get("title") or "").strip():
            problems.append(f"column {col.get('id')} has an empty title")
        for card in col.get("cards") or ():
            card_id = card.get("id")
            if not is_valid_id(card_id or ""):
                problems.append(f"card id {card_id!r} is not a valid id")
            if not (card.get("title") or "").strip():
                problems.append(f"card {card_id} has an empty title")
            if card_id in seen:
                problems.append(f"card {card_id} appears in more than one column")
            seen.add(card_id)
    if problems:
        raise ValidationError("; ".join(problems))
