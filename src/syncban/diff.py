"""Three-way, field-level diff of board documents.

Given the last synchronized ``base`` and two descendants, ``local`` and
``remote``, classify every change by who made it:

- ``local_only`` / ``remote_only``: one side changed, safe to take that side
- ``both_changed``: both sides changed to different values, a human decides

Values that both sides changed to the same thing are not reported.
"""

from __future__ import annotations

import hashlib
import json
from dataclasses import asdict, dataclass
from typing import Any, Iterable

from syncban.model.document import canonical, canonical_tags

LOCAL_ONLY = "local_only"
REMOTE_ONLY = "remote_only"
BOTH_CHANGED = "both_changed"

LOCAL = "local"
REMOTE = "remote"
CHOICES = (LOCAL, REMOTE)

BOARD_SCALARS = (("name", "Board name"), ("description", "Board description"))
CARD_SCALARS = (
    ("title", "title"),
    ("description", "description"),
    ("priority", "priority"),
    ("due_date", "due date"),
    ("status", "status"),
    ("color", "color"),
)
CARD_LISTS = (("checklist", "checklist"), ("comments", "comments"))


@dataclass
class FieldDiff:
    """One difference between base, local and remote."""

    path: str
    label: str
    base_value: Any
    local_value: Any
    remote_value: Any
    conflict_type: str
    resolution: str | None = None

    @property
    def is_conflict(self) -> bool:
        return self.conflict_type == BOTH_CHANGED

    def to_dict(self) -> dict:
        return asdict(self)


# --- Lookups on plain documents ---


def flat_cards(doc: dict) -> dict[str, dict]:
    """Map card id to card, in board order."""
    cards = {}
    for col in doc.get("columns") or ():
        for card in col.get("cards") or ():
            cards[card["id"]] = card
    return cards


def columns_by_id(doc: dict) -> dict[str, dict]:
    return {col["id"]: col for col in doc.get("columns") or ()}


def card_column(doc: dict, card_id: str) -> dict | None:
    for col in doc.get("columns") or ():
        if any(card["id"] == card_id for card in col.get("cards") or ()):
            return col
    return None


def column_title(doc: dict, card_id: str) -> str | None:
    col = card_column(doc, card_id)
    return col.get("title") if col else None


def _ordered_ids(*maps: dict) -> list[str]:
    """Union of keys in first-seen order across maps."""
    seen: dict[str, None] = {}
    for m in maps:
        for key in m:
            seen.setdefault(key, None)
    return list(seen)


# --- Diffing ---


def _diff_value(
    diffs: list[FieldDiff],
    path: str,
    label: str,
    base: Any,
    local: Any,
    remote: Any,
    key=canonical,
) -> None:
    base_key, local_key, remote_key = key(base), key(local), key(remote)
    local_changed = local_key != base_key
    remote_changed = remote_key != base_key
    if not local_changed and not remote_changed:
        return
    if local_changed and remote_changed:
        if local_key == remote_key:
            return
        diffs.append(FieldDiff(path, label, base, local, remote, BOTH_CHANGED))
    elif local_changed:
        diffs.append(FieldDiff(path, label, base, local, remote, LOCAL_ONLY, LOCAL))
    else:
        diffs.append(FieldDiff(path, label, base, local, remote, REMOTE_ONLY, REMOTE))


def _card_snapshot(doc: dict, card: dict) -> dict:
    """A card plus where it lives, for comparing independent additions."""
    return {"card": card, "column": column_title(doc, card["id"])}


def _diff_presence(
    diffs: list[FieldDiff],
    kind: str,
    item_id: str,
    title_of,
    base_item,
    local_item,
    remote_item,
    same,
) -> bool:
    """Emit added/deleted diffs. Returns True when the item exists in all three."""
    prefix = f"{kind}s.{item_id}"
    noun = kind.capitalize()
    if base_item is None:
        if local_item is not None and remote_item is None:
            title = title_of(local_item)
            diffs.append(
                FieldDiff(f"{prefix}.added", f'{noun} "{title}" added locally', None, title, None, LOCAL_ONLY, LOCAL)
            )
        elif remote_item is not None and local_item is None:
            title = title_of(remote_item)
            diffs.append(
                FieldDiff(f"{prefix}.added", f'{noun} "{title}" added remotely', None, None, title, REMOTE_ONLY, REMOTE)
            )
        elif local_item is not None and remote_item is not None and not same(local_item, remote_item):
            diffs.append(
                FieldDiff(
                    f"{prefix}.added",
                    f'{noun} "{title_of(local_item)}" added on both sides',
                    None,
                    title_of(local_item),
                    title_of(remote_item),
                    BOTH_CHANGED,
                )
            )
        return False

    if local_item is None and remote_item is None:
        return False
    title = title_of(base_item)
    if local_item is None:
        diffs.append(
            FieldDiff(
                f"{prefix}.deleted", f'{noun} "{title}" deleted locally', title, None, title_of(remote_item),
                LOCAL_ONLY, LOCAL,
            )
        )
        return False
    if remote_item is None:
        diffs.append(
            FieldDiff(
                f"{prefix}.deleted", f'{noun} "{title}" deleted remotely', title, title_of(local_item), None,
                REMOTE_ONLY, REMOTE,
            )
        )
        return False
    return True


def compute_diff(base: dict, local: dict, remote: dict) -> list[FieldDiff]:
    """Field-level differences between base, local and remote.

    Output order is deterministic: board fields, then cards in first-seen
    order across base, local and remote, then columns the same way.
    """
    diffs: list[FieldDiff] = []

    for field, label in BOARD_SCALARS:
        _diff_value(diffs, field, label, base.get(field), local.get(field), remote.get(field))

    base_cards, local_cards, remote_cards = flat_cards(base), flat_cards(local), flat_cards(remote)
    for card_id in _ordered_ids(base_cards, local_cards, remote_cards):
        base_card = base_cards.get(card_id)
        local_card = local_cards.get(card_id)
        remote_card = remote_cards.get(card_id)
        in_all = _diff_presence(
            diffs,
            "card",
            card_id,
            lambda card: card.get("title"),
            base_card,
            local_card,
            remote_card,
            lambda l, r: canonical(_card_snapshot(local, l)) == canonical(_card_snapshot(remote, r)),
        )
        if not in_all:
            continue

        name = local_card.get("title") or remote_card.get("title") or "Untitled"
        prefix = f"cards.{card_id}"
        for field, label in CARD_SCALARS:
            _diff_value(
                diffs, f"{prefix}.{field}", f'"{name}" {label}',
                base_card.get(field), local_card.get(field), remote_card.get(field),
            )
        _diff_value(
            diffs, f"{prefix}.tags", f'"{name}" tags',
            base_card.get("tags"), local_card.get("tags"), remote_card.get("tags"),
            key=canonical_tags,
        )
        for field, label in CARD_LISTS:
            _diff_value(
                diffs, f"{prefix}.{field}", f'"{name}" {label}',
                base_card.get(field), local_card.get(field), remote_card.get(field),
            )
        _diff_value(
            diffs, f"{prefix}.column", f'"{name}" column',
            column_title(base, card_id), column_title(local, card_id), column_title(remote, card_id),
        )

    base_cols, local_cols, remote_cols = columns_by_id(base), columns_by_id(local), columns_by_id(remote)
    for col_id in _ordered_ids(base_cols, local_cols, remote_cols):
        base_col = base_cols.get(col_id)
        local_col = local_cols.get(col_id)
        remote_col = remote_cols.get(col_id)
        in_all = _diff_presence(
            diffs,
            "column",
            col_id,
            lambda col: col.get("title"),
            base_col,
            local_col,
            remote_col,
            lambda l, r: l.get("title") == r.get("title"),
        )
        if in_all:
            _diff_value(
                diffs, f"columns.{col_id}.title", f'Column "{base_col.get("title")}" title',
                base_col.get("title"), local_col.get("title"), remote_col.get("title"),
            )

    return diffs


def conflicts(diffs: Iterable[FieldDiff]) -> list[FieldDiff]:
    """The diffs a human has to answer."""
    return [d for d in diffs if d.conflict_type == BOTH_CHANGED]


def unresolved(diffs: Iterable[FieldDiff]) -> list[FieldDiff]:
    return [d for d in diffs if d.resolution not in CHOICES]


def diff_version(diffs: Iterable[FieldDiff]) -> str:
    """Stable identity of a diff set, ignoring resolutions."""
    payload = [{k: v for k, v in d.to_dict().items() if k != "resolution"} for d in diffs]
    text = json.dumps(payload, sort_keys=True, separators=(",", ":"), default=str)
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:16]
