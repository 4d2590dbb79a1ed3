"""Position arithmetic for dense, zero-based sibling orderings.

Every function here is pure: it reads a snapshot of siblings and returns the
:class:`PositionChange` records needed to keep positions ``0..N-1`` without
gaps or duplicates. Nothing is mutated until a change is applied.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Generic, List, Optional, Sequence, TypeVar

from .errors import ContainerMismatch, PositionOutOfRange
from .positioning import Positioned, sort_key

T = TypeVar("T", bound=Positioned)


@dataclass(frozen=True)
class PositionChange(Generic[T]):
    item: T
    old_position: int
    new_position: int
    new_container_key: Optional[str] = None

    @property
    def item_id(self) -> str:
        return self.item.id

    def apply(self) -> T:
        if self.new_container_key is not None:
            self.item.container_key = self.new_container_key
        self.item.position = self.new_position
        return self.item

    def as_tuple(self) -> tuple:
        if self.new_container_key is None:
            return (self.item.id, self.new_position)
        return (self.item.id, self.new_position, self.new_container_key)


def _shift(item: T, delta: int) -> PositionChange[T]:
    return PositionChange(item, item.position, item.position + delta)


def _at(siblings: Sequence[T], position: int) -> T:
    for item in siblings:
        if item.position == position:
            return item
    raise PositionOutOfRange(position, len(siblings))


def _resolve_mover(siblings: Sequence[T], position: int, mover: Optional[T]) -> T:
    if mover is None:
        return _at(siblings, position)
    if mover.position != position or not any(item is mover for item in siblings):
        raise ContainerMismatch(f"{mover.id} is not the sibling at position {position}")
    return mover


def compute_insert_position(siblings: Sequence[Positioned]) -> int:
    """Return the slot for a new item appended after ``siblings``."""
    return len(siblings)


def compute_removal_shift(siblings: Sequence[T], removed_position: int) -> List[PositionChange[T]]:
    """Close the gap left at ``removed_position``.

    Every sibling above the removed slot moves down by one; the item sitting at
    ``removed_position`` itself (if still present in the snapshot) is skipped.
    """
    return [_shift(item, -1) for item in siblings if item.position > removed_position]


def compute_insertion_shift(siblings: Sequence[T], insert_position: int) -> List[PositionChange[T]]:
    """Open a slot at ``insert_position`` by moving everything from there up."""
    return [_shift(item, 1) for item in siblings if item.position >= insert_position]


def compute_move_within_container(
    siblings: Sequence[T], from_position: int, to_position: int, mover: Optional[T] = None
) -> List[PositionChange[T]]:
    """Move the sibling at ``from_position`` to ``to_position``.

    Moving forward pulls ``(from, to]`` down by one, moving backward pushes
    ``[to, from)`` up by one. The mover's own change is the last record.
    Returns an empty list when both positions are equal.

    Pass ``mover`` when the caller already holds the item; it is then matched
    by identity rather than looked up by position.
    """
    if from_position == to_position:
        return []
    if not 0 <= to_position < len(siblings):
        raise PositionOutOfRange(to_position, len(siblings))
    mover = _resolve_mover(siblings, from_position, mover)
    others = [item for item in siblings if item is not mover]

    if from_position < to_position:
        changes = [
            _shift(item, -1)
            for item in others
            if from_position < item.position <= to_position
        ]
    else:
        changes = [
            _shift(item, 1)
            for item in others
            if to_position <= item.position < from_position
        ]
    changes.append(PositionChange(mover, from_position, to_position))
    return changes


def compute_cross_container_move(
    source_siblings: Sequence[T],
    removed_position: int,
    target_siblings: Sequence[T],
    insert_position: int,
    target_key: str,
    mover: Optional[T] = None,
) -> List[PositionChange[T]]:
    """Relocate the source sibling at ``removed_position`` into the target.

    The source closes its gap, the target opens ``insert_position`` (valid
    from ``0`` to ``len(target_siblings)`` inclusive) and the mover lands
    there with its container key set to ``target_key``.
    """
    if not 0 <= insert_position <= len(target_siblings):
        raise PositionOutOfRange(insert_position, len(target_siblings), upper=len(target_siblings))
    mover = _resolve_mover(source_siblings, removed_position, mover)

    changes = compute_removal_shift(
        [item for item in source_siblings if item is not mover], removed_position
    )
    changes.extend(compute_insertion_shift(target_siblings, insert_position))
    changes.append(PositionChange(mover, removed_position, insert_position, target_key))
    return changes


def compute_append_move(
    source_siblings: Sequence[T],
    removed_position: int,
    target_siblings: Sequence[T],
    target_key: str,
    mover: Optional[T] = None,
) -> List[PositionChange[T]]:
    """Cross-container move that always lands at the end of the target."""
    return compute_cross_container_move(
        source_siblings,
        removed_position,
        target_siblings,
        compute_insert_position(target_siblings),
        target_key,
        mover,
    )


def compute_reindex(siblings: Sequence[T]) -> List[PositionChange[T]]:
    """Renumber a gapped or duplicated snapshot to ``0..N-1``.

    Current relative order is kept, ties broken by id. Siblings already at the
    right slot produce no change, so a dense snapshot yields an empty list.
    """
    return [
        PositionChange(item, item.position, index)
        for index, item in enumerate(sorted(siblings, key=sort_key))
        if item.position != index
    ]
