"""Board, column and card mutation operations.

Every operation edits the reactive tree in place, so the change events it
fires are what the mutation tracker sees as a local edit.
"""

from __future__ import annotations

from syncban.ids import new_id
from syncban.model.document import now_iso
from syncban.model.node import ListNode, Node

CARD_FIELDS = ("title", "description", "priority", "due_date", "status", "color", "tags")


def create_board(name: str, description: str = "", board_id: str | None = None) -> Node:
    """Create an empty board."""
    return Node(
        id=board_id or new_id("b"),
        name=name,
        description=description or None,
        updated_at=now_iso(),
        columns=ListNode(),
    )


def create_column(
    board: Node,
    title: str,
    position: int | None = None,
    column_id: str | None = None,
) -> Node:
    """Create a new column and add it to the board.

    Returns the created column Node.
    """
    column_id = column_id or new_id("col")
    board.columns.insert(column_id, Node(id=column_id, title=title, cards=ListNode()), position)
    return board.columns[column_id]


def rename_column(board: Node, column_id: str, title: str) -> None:
    board.columns[column_id].title = title


def delete_column(board: Node, column_id: str) -> None:
    """Remove a column and every card in it."""
    board.columns[column_id] = None


def find_card_column(board: Node, card_id: str) -> Node | None:
    """Find the column containing a card."""
    for col in board.columns:
        if card_id in col.cards:
            return col
    return None


def find_card(board: Node, card_id: str) -> Node | None:
    col = find_card_column(board, card_id)
    return col.cards[card_id] if col is not None else None


def create_card(
    board: Node,
    title: str,
    column: Node | None = None,
    position: int | None = None,
    card_id: str | None = None,
    **fields,
) -> tuple[str, Node]:
    """Create a new card and add it to a column (the first one by default).

    Returns (card_id, card_node).
    """
    target = column
    if target is None:
        for col in board.columns:
            target = col
            break
    if target is None:
        raise ValueError("board has no columns to hold a card")

    card_id = card_id or new_id("c")
    if "tags" in fields and fields["tags"] is not None:
        fields["tags"] = tuple(sorted(set(fields["tags"])))
    target.cards.insert(card_id, Node(id=card_id, title=title, **fields), position)
    return card_id, target.cards[card_id]


def update_card(board: Node, card_id: str, **changes) -> Node:
    """Assign card fields. A value of None clears the field."""
    card = find_card(board, card_id)
    if card is None:
        raise KeyError(card_id)
    for key, value in changes.items():
        if key not in CARD_FIELDS:
            raise ValueError(f"unknown card field: {key}")
        if key == "tags" and value is not None:
            value = tuple(sorted(set(value)))
        setattr(card, key, value)
    return card


def move_card(
    board: Node,
    card_id: str,
    target_column: Node,
    position: int | None = None,
) -> None:
    """Move a card to target_column at position.

    A same-column move is a reorder.
    """
    source = find_card_column(board, card_id)
    if source is None:
        raise KeyError(card_id)
    card = source.cards[card_id]
    source.cards[card_id] = None
    target_column.cards.insert(card_id, card, position)


def delete_card(board: Node, card_id: str) -> None:
    col = find_card_column(board, card_id)
    if col is not None:
        col.cards[card_id] = None


# --- Checklist and comments ---


def add_checklist_item(board: Node, card_id: str, text: str) -> str:
    """Append a checklist item and return its id."""
    card = find_card(board, card_id)
    item_id = new_id("i")
    card.checklist = tuple(card.checklist or ()) + ({"id": item_id, "text": text, "completed": False},)
    return item_id


def toggle_checklist_item(board: Node, card_id: str, item_id: str) -> None:
    card = find_card(board, card_id)
    card.checklist = tuple(
        {**item, "completed": not item.get("completed")} if item.get("id") == item_id else item
        for item in card.checklist or ()
    )


def add_comment(board: Node, card_id: str, author: str, content: str) -> str:
    """Append a comment and return its id."""
    card = find_card(board, card_id)
    comment_id = new_id("m")
    stamp = now_iso()
    comment = {"id": comment_id, "author": author, "content": content, "created_at": stamp, "updated_at": stamp}
    card.comments = tuple(card.comments or ()) + (comment,)
    return comment_id
