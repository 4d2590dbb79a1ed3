import pytest

from conftest import make_cards, make_lists, positions
from taskboard.errors import ContainerMismatch, MoveNotAllowed, PositionOutOfRange
from taskboard.operations import CardReorderOperation, ListReorderOperation
from taskboard.positioning import PositionedCollection


class RecordingPolicy:
    def __init__(self, error=None):
        self.calls = []
        self.error = error

    def check_card_move(self, card, target_list_id, target_size):
        self.calls.append((card.id, target_list_id, target_size))
        if self.error is not None:
            raise self.error


# === PositionedCollection ===


def test_collection_orders_by_position():
    lists = make_lists(3)
    lists[0].position, lists[2].position = 2, 0
    collection = PositionedCollection("b1", lists)
    assert [item.id for item in collection] == ["l2", "l1", "l0"]
    assert collection.is_dense()
    assert collection.find("l1") is lists[1]
    assert collection.at(0) is lists[2]


def test_collection_rejects_foreign_sibling():
    lists = make_lists(2) + make_lists(1, board_id="b2")
    with pytest.raises(ContainerMismatch):
        PositionedCollection("b1", lists)


def test_collection_of_infers_key():
    assert PositionedCollection.of(make_cards(2)).container_key == "l1"
    assert PositionedCollection.of([], container_key="l9").container_key == "l9"
    with pytest.raises(ContainerMismatch):
        PositionedCollection.of([])


def test_collection_detects_gaps():
    lists = make_lists(3)
    lists[2].position = 5
    assert not PositionedCollection("b1", lists).is_dense()
    assert not PositionedCollection("b1", lists).has_duplicates()


def test_collection_detects_duplicates():
    lists = make_lists(3)
    lists[2].position = 1
    collection = PositionedCollection("b1", lists)
    assert collection.has_duplicates()
    assert not collection.is_dense()


# === Lists ===


def test_list_create_appends():
    ops = ListReorderOperation()
    lists = make_lists(3)
    assert ops.on_create("b1", lists) == 3
    assert ops.on_create("b1", []) == 0
    assert [l.position for l in lists] == [0, 1, 2]


def test_list_delete_compacts_siblings():
    ops = ListReorderOperation()
    lists = make_lists(4)
    result = ops.on_delete(lists[1], lists)

    assert result.write_set() == [("l2", 1), ("l3", 2)]
    assert result.changed == [lists[2], lists[3]]
    assert positions(lists[:1] + lists[2:]) == {"l0": 0, "l2": 1, "l3": 2}


def test_list_delete_last_sibling():
    ops = ListReorderOperation()
    lists = make_lists(1)
    assert ops.on_delete(lists[0], lists).is_noop


def test_list_delete_against_other_board_snapshot():
    ops = ListReorderOperation()
    with pytest.raises(ContainerMismatch):
        ops.on_delete(make_lists(1, board_id="b2")[0], make_lists(3))


def test_list_move_forward_and_back():
    ops = ListReorderOperation()
    lists = make_lists(5)
    result = ops.on_move(lists[1], lists, 3)
    assert result.write_set() == [("l2", 1), ("l3", 2), ("l1", 3)]

    ops.on_move(lists[1], lists, 1)
    assert positions(lists) == {f"l{i}": i for i in range(5)}


def test_list_move_to_current_position_is_noop():
    ops = ListReorderOperation()
    lists = make_lists(3)
    result = ops.on_move(lists[2], lists, 2)
    assert result.is_noop
    assert result.write_set() == []


@pytest.mark.parametrize("new_position", [-1, 3, 10])
def test_list_move_out_of_range(new_position):
    ops = ListReorderOperation()
    lists = make_lists(3)
    with pytest.raises(PositionOutOfRange):
        ops.on_move(lists[0], lists, new_position)
    assert [l.position for l in lists] == [0, 1, 2]


def test_list_move_with_stale_mover():
    ops = ListReorderOperation()
    lists = make_lists(3)
    stale = make_lists(3)[0]
    stale.position = 2
    with pytest.raises(ContainerMismatch):
        ops.on_move(stale, lists, 1)


def test_list_reindex_repairs_gap():
    ops = ListReorderOperation()
    lists = make_lists(3)
    lists[2].position = 4
    result = ops.on_reindex("b1", lists)
    assert result.write_set() == [("l2", 2)]


# === Cards ===


def test_card_move_within_list():
    ops = CardReorderOperation()
    cards = make_cards(4)
    result = ops.on_move_within_list(cards[3], cards, 0)
    assert result.write_set() == [("c0", 1), ("c1", 2), ("c2", 3), ("c3", 0)]


def test_card_move_across_lists():
    policy = RecordingPolicy()
    ops = CardReorderOperation(move_policy=policy)
    source = make_cards(3, list_id="a", prefix="a")
    target = make_cards(2, list_id="b", prefix="b")

    result = ops.on_move_across_lists(source[0], source, "b", target, 1)

    assert policy.calls == [("a0", "b", 2)]
    assert result.write_set() == [("a1", 0), ("a2", 1), ("b1", 2), ("a0", 1, "b")]
    assert source[0].list_id == "b"
    assert sorted(c.position for c in source[1:]) == [0, 1]
    assert sorted(c.position for c in target + [source[0]]) == [0, 1, 2]


def test_card_move_across_lists_appends_by_default():
    ops = CardReorderOperation()
    source = make_cards(2, list_id="a", prefix="a")
    target = make_cards(2, list_id="b", prefix="b")
    result = ops.on_move_across_lists(source[1], source, "b", target)
    assert result.write_set() == [("a1", 2, "b")]


def test_card_move_across_lists_accepts_append_slot_only():
    ops = CardReorderOperation()
    source = make_cards(2, list_id="a", prefix="a")
    target = make_cards(2, list_id="b", prefix="b")
    with pytest.raises(PositionOutOfRange):
        ops.on_move_across_lists(source[0], source, "b", target, 3)
    assert source[0].list_id == "a"
    assert [c.position for c in source + target] == [0, 1, 0, 1]


def test_card_move_vetoed_by_policy_changes_nothing():
    ops = CardReorderOperation(move_policy=RecordingPolicy(MoveNotAllowed("archived", code="archived_board")))
    source = make_cards(2, list_id="a", prefix="a")
    target = make_cards(1, list_id="b", prefix="b")
    with pytest.raises(MoveNotAllowed) as excinfo:
        ops.on_move_across_lists(source[0], source, "b", target, 0)
    assert excinfo.value.code == "archived_board"
    assert source[0].list_id == "a"
    assert target[0].position == 0


def test_card_move_across_to_own_list_is_within_move():
    policy = RecordingPolicy()
    ops = CardReorderOperation(move_policy=policy)
    cards = make_cards(3, list_id="a", prefix="a")
    result = ops.on_move_across_lists(cards[0], cards, "a", cards, 2)
    assert result.write_set() == [("a1", 0), ("a2", 1), ("a0", 2)]
    assert policy.calls == []


def test_card_snapshot_for_wrong_list():
    ops = CardReorderOperation()
    source = make_cards(2, list_id="a", prefix="a")
    target = make_cards(2, list_id="c", prefix="c")
    with pytest.raises(ContainerMismatch):
        ops.on_move_across_lists(source[0], source, "b", target, 0)


def test_consecutive_deletes_from_fresh_snapshots():
    ops = CardReorderOperation()
    cards = make_cards(4)
    ops.on_delete(cards[0], cards)
    remaining = cards[1:]
    ops.on_delete(remaining[0], remaining)
    assert positions(remaining[1:]) == {"c2": 0, "c3": 1}


def test_move_refuses_colliding_snapshot():
    ops = CardReorderOperation()
    cards = make_cards(3)
    cards[2].position = 1
    with pytest.raises(ContainerMismatch):
        ops.on_move_within_list(cards[2], cards, 0)
    assert positions(cards) == {"c0": 0, "c1": 1, "c2": 1}

    ops.on_reindex("l1", cards)
    ops.on_move_within_list(cards[2], cards, 0)
    assert positions(cards) == {"c0": 1, "c1": 2, "c2": 0}


def test_cross_move_refuses_colliding_target():
    ops = CardReorderOperation()
    source = make_cards(2, list_id="a", prefix="a")
    target = make_cards(2, list_id="b", prefix="b")
    target[1].position = 0
    with pytest.raises(ContainerMismatch):
        ops.on_move_across_lists(source[0], source, "b", target, 1)
    assert source[0].list_id == "a"
    assert positions(source + target) == {"a0": 0, "a1": 1, "b0": 0, "b1": 0}


def test_move_in_gapped_snapshot_moves_requested_card():
    ops = CardReorderOperation()
    cards = make_cards(3)
    cards[1].position, cards[2].position = 2, 5
    ops.on_move_within_list(cards[2], cards, 0)
    assert positions(cards) == {"c0": 1, "c1": 3, "c2": 0}
