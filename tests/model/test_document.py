"""Tests for timestamps, canonical equality, the dict codec and validation."""

import pytest

from syncban.errors import ValidationError
from syncban.model.document import (
    board_from_dict,
    board_to_dict,
    canonical,
    canonical_tags,
    is_newer,
    parse_timestamp,
    same_content,
    validate_board,
)
from syncban.model.node import ListNode, Node

DOC = {
    "id": "b-1",
    "name": "Board",
    "updated_at": "2024-01-01T00:00:00+00:00",
    "columns": [
        {
            "id": "col-1",
            "title": "Todo",
            "cards": [
                {
                    "id": "c-1",
                    "title": "Card",
                    "tags": ["x", "y"],
                    "checklist": [{"id": "i-1", "text": "step", "completed": False}],
                }
            ],
        },
        {"id": "col-2", "title": "Done", "cards": []},
    ],
}


# --- timestamps ---


def test_parse_timestamp_variants():
    assert parse_timestamp("2024-01-01T00:00:00Z") == parse_timestamp("2024-01-01T00:00:00+00:00")
    assert parse_timestamp("2024-01-01T00:00:00").tzinfo is not None
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp(None) is None


def test_is_newer():
    old = {"updated_at": "2024-01-01T00:00:00+00:00"}
    new = {"updated_at": "2024-01-02T00:00:00+00:00"}
    assert is_newer(new, old)
    assert not is_newer(old, new)
    assert not is_newer(old, old)
    assert is_newer(old, None)
    assert not is_newer({}, old)
    assert not is_newer(None, old)


# --- canonical equality ---


def test_canonical_ignores_key_order():
    assert canonical({"a": 1, "b": 2}) == canonical({"b": 2, "a": 1})


def test_canonical_treats_empty_and_missing_alike():
    assert canonical({"title": "x", "tags": []}) == canonical({"title": "x"})
    assert canonical({"title": "x", "color": None}) == canonical({"title": "x"})


def test_canonical_tags_is_a_set():
    assert canonical_tags(["b", "a", "a"]) == canonical_tags(["a", "b"])
    assert canonical_tags(None) == canonical_tags([])


def test_same_content_ignores_timestamp():
    other = dict(DOC, updated_at="2030-01-01T00:00:00+00:00")
    assert same_content(DOC, other)
    assert not same_content(DOC, dict(DOC, name="Renamed"))
    assert same_content(None, None)
    assert not same_content(DOC, None)


# --- codec ---


def test_from_dict_builds_id_keyed_tree():
    board = board_from_dict(DOC)
    assert isinstance(board.columns, ListNode)
    assert board.columns.keys() == ["col-1", "col-2"]
    card = board.columns["col-1"].cards["c-1"]
    assert isinstance(card, Node)
    assert card.tags == ("x", "y")
    assert card.checklist[0]["text"] == "step"


def test_round_trip_is_identity():
    assert board_to_dict(board_from_dict(DOC)) == DOC


def test_to_dict_drops_cleared_fields():
    board = board_from_dict(DOC)
    board.columns["col-1"].cards["c-1"].tags = None
    card = board_to_dict(board)["columns"][0]["cards"][0]
    assert "tags" not in card


def test_from_dict_does_not_share_lists():
    data = {"id": "b", "columns": [{"id": "c", "title": "T", "cards": [{"id": "k", "title": "K", "tags": ["a"]}]}]}
    board = board_from_dict(data)
    data["columns"][0]["cards"][0]["tags"].append("b")
    assert board.columns["c"].cards["k"].tags == ("a",)


# --- validation ---


def test_valid_board_passes():
    validate_board(DOC)


def test_empty_card_title_rejected():
    doc = board_to_dict(board_from_dict(DOC))
    doc["columns"][0]["cards"][0]["title"] = "  "
    with pytest.raises(ValidationError, match="empty title"):
        validate_board(doc)


def test_empty_column_title_rejected():
    doc = board_to_dict(board_from_dict(DOC))
    doc["columns"][1]["title"] = ""
    with pytest.raises(ValidationError, match="column col-2"):
        validate_board(doc)


def test_card_in_two_columns_rejected():
    doc = board_to_dict(board_from_dict(DOC))
    doc["columns"][1]["cards"].append(dict(doc["columns"][0]["cards"][0]))
    with pytest.raises(ValidationError, match="more than one column"):
        validate_board(doc)


def test_dotted_card_id_rejected():
    doc = board_to_dict(board_from_dict(DOC))
    doc["columns"][0]["cards"][0]["id"] = "c.1"
    with pytest.raises(ValidationError, match="not a valid id"):
        validate_board(doc)


def test_validation_error_is_a_value_error():
    with pytest.raises(ValueError):
        validate_board({"columns": []})
