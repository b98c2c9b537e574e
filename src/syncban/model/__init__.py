"""Reactive board model."""

from syncban.model.board import (
    add_checklist_item,
    add_comment,
    create_board,
    create_card,
    create_column,
    delete_card,
    delete_column,
    find_card,
    find_card_column,
    move_card,
    rename_column,
    toggle_checklist_item,
    update_card,
)
from syncban.model.document import (
    board_from_dict,
    board_to_dict,
    canonical,
    is_newer,
    now_iso,
    same_content,
    validate_board,
)
from syncban.model.node import ANY, ListNode, Node

__all__ = [
    "ANY",
    "ListNode",
    "Node",
    "add_checklist_item",
    "add_comment",
    "board_from_dict",
    "board_to_dict",
    "canonical",
    "create_board",
    "create_card",
    "create_column",
    "delete_card",
    "delete_column",
    "find_card",
    "find_card_column",
    "is_newer",
    "move_card",
    "now_iso",
    "rename_column",
    "same_content",
    "toggle_checklist_item",
    "update_card",
    "validate_board",
]
