"""Tests for the three-way differ."""

import copy

from syncban.diff import (
    BOTH_CHANGED,
    LOCAL,
    LOCAL_ONLY,
    REMOTE,
    REMOTE_ONLY,
    compute_diff,
    conflicts,
    diff_version,
    unresolved,
)


def _doc():
    return {
        "id": "b-1",
        "name": "Board",
        "updated_at": "2024-01-01T00:00:00+00:00",
        "columns": [
            {
                "id": "col-todo",
                "title": "Todo",
                "cards": [{"id": "c-1", "title": "Write docs", "priority": "low", "tags": ["a", "b"]}],
            },
            {"id": "col-done", "title": "Done", "cards": [{"id": "c-2", "title": "Ship it"}]},
        ],
    }


def _card(doc, card_id):
    for col in doc["columns"]:
        for card in col["cards"]:
            if card["id"] == card_id:
                return card
    raise KeyError(card_id)


def _by_path(diffs):
    return {d.path: d for d in diffs}


# --- basics ---


def test_identical_documents_have_no_diffs():
    doc = _doc()
    assert compute_diff(doc, copy.deepcopy(doc), copy.deepcopy(doc)) == []


def test_timestamps_are_not_fields():
    base = _doc()
    remote = copy.deepcopy(base)
    remote["updated_at"] = "2030-01-01T00:00:00+00:00"
    assert compute_diff(base, copy.deepcopy(base), remote) == []


def test_diffing_is_idempotent():
    base, local, remote = _doc(), _doc(), _doc()
    _card(local, "c-1")["title"] = "Write more docs"
    remote["name"] = "Renamed"
    first = compute_diff(base, local, remote)
    second = compute_diff(base, local, remote)
    assert [d.to_dict() for d in first] == [d.to_dict() for d in second]
    assert diff_version(first) == diff_version(second)


# --- classification ---


def test_local_only_change_is_prefilled():
    base, local, remote = _doc(), _doc(), _doc()
    _card(local, "c-1")["description"] = "details"
    (diff,) = compute_diff(base, local, remote)
    assert diff.path == "cards.c-1.description"
    assert diff.conflict_type == LOCAL_ONLY
    assert diff.resolution == LOCAL


def test_remote_only_change_is_prefilled():
    base, local, remote = _doc(), _doc(), _doc()
    remote["description"] = "from remote"
    (diff,) = compute_diff(base, local, remote)
    assert diff.path == "description"
    assert diff.conflict_type == REMOTE_ONLY
    assert diff.resolution == REMOTE


def test_priority_conflict():
    base, local, remote = _doc(), _doc(), _doc()
    _card(local, "c-1")["priority"] = "high"
    _card(remote, "c-1")["priority"] = "medium"
    diffs = compute_diff(base, local, remote)
    (diff,) = diffs
    assert diff.path == "cards.c-1.priority"
    assert diff.conflict_type == BOTH_CHANGED
    assert diff.resolution is None
    assert (diff.base_value, diff.local_value, diff.remote_value) == ("low", "high", "medium")
    assert "Write docs" in diff.label
    assert conflicts(diffs) == [diff]
    assert unresolved(diffs) == [diff]


def test_same_change_on_both_sides_is_not_a_diff():
    base, local, remote = _doc(), _doc(), _doc()
    _card(local, "c-1")["priority"] = "high"
    _card(remote, "c-1")["priority"] = "high"
    assert compute_diff(base, local, remote) == []


def test_tags_compare_as_sets():
    base, local, remote = _doc(), _doc(), _doc()
    _card(local, "c-1")["tags"] = ["b", "a", "a"]
    assert compute_diff(base, local, remote) == []
    _card(local, "c-1")["tags"] = ["a", "b", "c"]
    (diff,) = compute_diff(base, local, remote)
    assert diff.path == "cards.c-1.tags"


def test_cleared_field_equals_absent():
    base, local, remote = _doc(), _doc(), _doc()
    _card(base, "c-2")["color"] = None
    _card(local, "c-2")["tags"] = []
    assert compute_diff(base, local, remote) == []


def test_checklist_is_one_field():
    base, local, remote = _doc(), _doc(), _doc()
    _card(local, "c-1")["checklist"] = [{"id": "i-1", "text": "one", "completed": False}]
    _card(remote, "c-1")["checklist"] = [{"id": "i-2", "text": "two", "completed": False}]
    (diff,) = compute_diff(base, local, remote)
    assert diff.path == "cards.c-1.checklist"
    assert diff.conflict_type == BOTH_CHANGED


# --- structure ---


def test_card_moved_compares_column_titles():
    base, local, remote = _doc(), _doc(), _doc()
    card = local["columns"][0]["cards"].pop()
    local["columns"][1]["cards"].append(card)
    (diff,) = compute_diff(base, local, remote)
    assert diff.path == "cards.c-1.column"
    assert (diff.base_value, diff.local_value) == ("Todo", "Done")
    assert diff.conflict_type == LOCAL_ONLY


def test_card_added_and_deleted():
    base, local, remote = _doc(), _doc(), _doc()
    local["columns"][0]["cards"].append({"id": "c-3", "title": "New"})
    remote["columns"][1]["cards"] = []
    diffs = _by_path(compute_diff(base, local, remote))
    assert diffs["cards.c-3.added"].conflict_type == LOCAL_ONLY
    assert diffs["cards.c-3.added"].local_value == "New"
    assert diffs["cards.c-2.deleted"].conflict_type == REMOTE_ONLY
    assert "deleted remotely" in diffs["cards.c-2.deleted"].label


def test_deleted_card_hides_its_field_changes():
    base, local, remote = _doc(), _doc(), _doc()
    local["columns"][0]["cards"] = []
    _card(remote, "c-1")["priority"] = "high"
    paths = [d.path for d in compute_diff(base, local, remote)]
    assert paths == ["cards.c-1.deleted"]


def test_card_added_on_both_sides_differently_conflicts():
    base, local, remote = _doc(), _doc(), _doc()
    local["columns"][0]["cards"].append({"id": "c-9", "title": "Mine"})
    remote["columns"][0]["cards"].append({"id": "c-9", "title": "Theirs"})
    (diff,) = compute_diff(base, local, remote)
    assert diff.path == "cards.c-9.added"
    assert diff.conflict_type == BOTH_CHANGED


def test_two_added_columns():
    base, local, remote = _doc(), _doc(), _doc()
    local["columns"].append({"id": "col-qa", "title": "QA", "cards": []})
    remote["columns"].append({"id": "col-review", "title": "Review", "cards": []})
    diffs = compute_diff(base, local, remote)
    assert [(d.path, d.conflict_type) for d in diffs] == [
        ("columns.col-qa.added", LOCAL_ONLY),
        ("columns.col-review.added", REMOTE_ONLY),
    ]
    assert conflicts(diffs) == []


def test_column_renamed_on_both_sides():
    base, local, remote = _doc(), _doc(), _doc()
    local["columns"][0]["title"] = "Backlog"
    remote["columns"][0]["title"] = "Inbox"
    diffs = _by_path(compute_diff(base, local, remote))
    assert diffs["columns.col-todo.title"].conflict_type == BOTH_CHANGED


def test_output_order_is_board_cards_columns():
    base, local, remote = _doc(), _doc(), _doc()
    local["columns"].append({"id": "col-qa", "title": "QA", "cards": []})
    _card(remote, "c-2")["priority"] = "high"
    local["name"] = "Renamed"
    paths = [d.path for d in compute_diff(base, local, remote)]
    assert paths == ["name", "cards.c-2.priority", "columns.col-qa.added"]


def test_column_membership_is_by_title():
    """Renaming a column also reports its cards as relocated."""
    base, local, remote = _doc(), _doc(), _doc()
    local["columns"][1]["title"] = "Shipped"
    diffs = _by_path(compute_diff(base, local, remote))
    assert set(diffs) == {"cards.c-2.column", "columns.col-done.title"}
    assert diffs["cards.c-2.column"].local_value == "Shipped"


# --- version ---


def test_version_ignores_resolutions():
    base, local, remote = _doc(), _doc(), _doc()
    _card(local, "c-1")["priority"] = "high"
    _card(remote, "c-1")["priority"] = "medium"
    diffs = compute_diff(base, local, remote)
    before = diff_version(diffs)
    diffs[0].resolution = LOCAL
    assert diff_version(diffs) == before


def test_version_changes_with_content():
    base, local, remote = _doc(), _doc(), _doc()
    _card(local, "c-1")["priority"] = "high"
    _card(remote, "c-1")["priority"] = "medium"
    before = diff_version(compute_diff(base, local, remote))
    _card(remote, "c-1")["priority"] = "urgent"
    assert diff_version(compute_diff(base, local, remote)) != before
