"""Board, column and card ID generation."""

import uuid


def new_id(prefix: str = "") -> str:
    """Generate a collision-resistant ID.

    Boards are edited on several clients at once, so sequential IDs
    would collide when two people add a card while apart.
    "c" → "c-3f2a9b1c4d5e"
    """
    token = uuid.uuid4().hex[:12]
    return f"{prefix}-{token}" if prefix else token


def is_valid_id(s: str) -> bool:
    """An ID is usable as a dotted-path segment: non-empty, no dots or whitespace."""
    return bool(s) and "." not in s and not any(ch.isspace() for ch in s)
