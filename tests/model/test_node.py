"""Tests for the reactive Node and ListNode tree."""

from syncban.model.node import ANY, ListNode, Node


def _board():
    board = Node(name="Sprint")
    board.columns = ListNode()
    board.columns["todo"] = {"title": "Todo", "cards": ListNode()}
    board.columns["todo"].cards["c-1"] = {"title": "First", "priority": "low"}
    return board


# --- Node ---


def test_none_and_absent_are_the_same():
    card = Node(title="Card", color=None)
    assert card.color is None
    assert "color" not in card
    card.priority = "high"
    card.priority = None
    assert "priority" not in card


def test_dicts_become_child_nodes():
    card = Node()
    card.meta = {"owner": "sam"}
    assert isinstance(card.meta, Node)
    assert card.meta.path == "meta"


def test_equal_tuple_does_not_emit():
    events = []
    card = Node(tags=("a", "b"))
    card.watch("tags", lambda n, k, old, new: events.append(new))
    card.tags = ("a", "b")
    assert events == []
    card.tags = ("a",)
    assert events == [("a",)]


def test_unwatch_stops_events():
    events = []
    card = Node()
    unwatch = card.watch("title", lambda n, k, old, new: events.append(new))
    card.title = "One"
    unwatch()
    card.title = "Two"
    assert events == ["One"]


# --- Wildcard watchers ---


def test_any_sees_every_key():
    events = []
    card = Node()
    card.watch(ANY, lambda n, k, old, new: events.append(k))
    card.title = "Card"
    card.priority = "low"
    assert events == ["title", "priority"]


def test_any_on_root_sees_deep_changes():
    events = []
    board = _board()
    board.watch(ANY, lambda n, k, old, new: events.append((k, old, new)))
    board.columns["todo"].cards["c-1"].priority = "high"
    assert events == [("priority", "low", "high")]


def test_any_sees_additions_and_removals():
    events = []
    board = _board()
    board.watch(ANY, lambda n, k, old, new: events.append(k))
    board.columns["todo"].cards["c-2"] = {"title": "Second"}
    board.columns["todo"].cards["c-1"] = None
    assert events == ["c-2", "c-1"]


def test_keyed_watchers_fire_before_any():
    order = []
    card = Node()
    card.watch(ANY, lambda n, k, old, new: order.append("any"))
    card.watch("title", lambda n, k, old, new: order.append("title"))
    card.title = "Card"
    assert order == ["title", "any"]


def test_bubbled_node_is_the_source():
    sources = []
    board = _board()
    board.watch(ANY, lambda n, k, old, new: sources.append(n))
    card = board.columns["todo"].cards["c-1"]
    card.title = "Renamed"
    assert sources == [card]


# --- ListNode ---


def test_deleting_missing_item_is_silent():
    events = []
    cards = ListNode()
    cards.watch(ANY, lambda n, k, old, new: events.append(k))
    cards["nope"] = None
    assert events == []


def test_insert_at_position():
    cards = ListNode()
    cards["a"] = {"title": "A"}
    cards["c"] = {"title": "C"}
    cards.insert("b", {"title": "B"}, 1)
    assert cards.keys() == ["a", "b", "c"]
    assert [c.title for c in cards] == ["A", "B", "C"]
    assert cards.index("b") == 1


def test_insert_out_of_range_appends():
    cards = ListNode()
    cards["a"] = {"title": "A"}
    cards.insert("b", {"title": "B"}, 99)
    cards.insert("c", {"title": "C"})
    assert cards.keys() == ["a", "b", "c"]


def test_insert_existing_key_moves_it():
    cards = ListNode()
    for key in "abc":
        cards[key] = {"title": key.upper()}
    moved = cards["c"]
    cards.insert("c", moved, 0)
    assert cards.keys() == ["c", "a", "b"]
    assert cards["c"] is moved


def test_iteration_tolerates_mutation():
    cards = ListNode()
    for key in "abc":
        cards[key] = {"title": key}
    for card in cards:
        cards[card.title] = None
    assert len(cards) == 0


def test_index_of_missing_raises():
    cards = ListNode()
    try:
        cards.index("missing")
    except KeyError:
        pass
    else:
        raise AssertionError("expected KeyError")


# --- update ---


def test_update_preserves_watchers_and_identity():
    events = []
    board = _board()
    card = board.columns["todo"].cards["c-1"]
    card.watch("priority", lambda n, k, old, new: events.append(new))

    other = _board()
    other.columns["todo"].cards["c-1"].priority = "high"
    board.update(other)

    assert board.columns["todo"].cards["c-1"] is card
    assert events == ["high"]


def test_update_removes_missing_keys_and_items():
    board = _board()
    board.description = "old"
    other = Node(name="Sprint", columns=ListNode())
    other.columns["todo"] = {"title": "Todo", "cards": ListNode()}
    board.update(other)
    assert board.description is None
    assert board.columns["todo"].cards.keys() == []


def test_update_reorders_and_emits_once():
    events = []
    cards = ListNode()
    for key in "abc":
        cards[key] = {"title": key}
    other = ListNode()
    for key in "cab":
        other[key] = {"title": key}
    cards.watch(ANY, lambda n, k, old, new: events.append((old, new)))
    cards.update(other)
    assert cards.keys() == ["c", "a", "b"]
    assert events == [(["a", "b", "c"], ["c", "a", "b"])]
