from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Generic, List, Optional, Protocol, Sequence, TypeVar, Union

from .errors import ContainerMismatch, PositionOutOfRange
from .positioning import Positioned, PositionedCollection
from .reindexer import (
    PositionChange,
    compute_cross_container_move,
    compute_insert_position,
    compute_move_within_container,
    compute_reindex,
    compute_removal_shift,
)

logger = logging.getLogger("taskboard.operations")

T = TypeVar("T", bound=Positioned)

Siblings = Union[PositionedCollection[T], Sequence[T]]


@dataclass
class ReorderResult(Generic[T]):
    """Applied position changes of one logical operation.

    The caller persists :attr:`changed` (or :meth:`write_set`) as a single
    batch together with the created, deleted or moved item.
    """

    changes: List[PositionChange[T]] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.changes)

    @property
    def is_noop(self) -> bool:
        return not self.changes

    @property
    def changed(self) -> List[T]:
        return [change.item for change in self.changes]

    def write_set(self) -> List[tuple]:
        return [change.as_tuple() for change in self.changes]


class CardMoveCheck(Protocol):
    def check_card_move(self, card: Positioned, target_list_id: str, target_size: int) -> None:
        ...


def _collection(container_key: str, siblings: Siblings) -> PositionedCollection:
    if isinstance(siblings, PositionedCollection):
        if siblings.container_key != container_key:
            raise ContainerMismatch(
                f"snapshot of {siblings.container_key} supplied for {container_key}"
            )
        return siblings
    return PositionedCollection(container_key, siblings)


class _ReorderOperation(Generic[T]):
    kind = "item"
    container = "container"

    def _snapshot(self, container_key: str, siblings: Siblings) -> PositionedCollection:
        collection = _collection(container_key, siblings)
        if not collection.is_dense():
            logger.warning(
                "%s snapshot of %s %s is not dense: %s",
                self.kind, self.container, container_key, collection.positions(),
            )
        return collection

    def _member(self, item: T, collection: PositionedCollection) -> T:
        """Return the snapshot's copy of ``item``, checking it is current."""
        found = collection.find(item.id)
        if found is None or found.position != item.position:
            raise ContainerMismatch(
                f"{self.kind} {item.id} at {item.position} is not part of the "
                f"snapshot of {self.container} {collection.container_key}"
            )
        return found

    def _require_unique(self, collection: PositionedCollection) -> None:
        # shifting by position is ambiguous once two siblings share a slot
        if collection.has_duplicates():
            raise ContainerMismatch(
                f"{self.container} {collection.container_key} has colliding "
                f"{self.kind} positions {collection.positions()}; normalize it first"
            )

    def _apply(self, changes: List[PositionChange[T]]) -> ReorderResult[T]:
        for change in changes:
            change.apply()
        return ReorderResult(changes)

    def on_create(self, container_key: str, siblings: Siblings) -> int:
        collection = self._snapshot(container_key, siblings)
        position = compute_insert_position(collection)
        logger.debug("new %s in %s %s gets position %d", self.kind, self.container, container_key, position)
        return position

    def on_delete(self, deleted: T, siblings: Siblings) -> ReorderResult[T]:
        collection = self._snapshot(deleted.container_key, siblings)
        changes = compute_removal_shift(collection.without(deleted), deleted.position)
        logger.debug(
            "deleting %s %s at %d shifts %d siblings",
            self.kind, deleted.id, deleted.position, len(changes),
        )
        return self._apply(changes)

    def _on_move(self, moved: T, siblings: Siblings, new_position: int) -> ReorderResult[T]:
        collection = self._snapshot(moved.container_key, siblings)
        if not 0 <= new_position < len(collection):
            raise PositionOutOfRange(new_position, len(collection))
        moved = self._member(moved, collection)
        if new_position == moved.position:
            logger.debug("%s %s already at %d", self.kind, moved.id, new_position)
            return ReorderResult()
        self._require_unique(collection)
        changes = compute_move_within_container(
            collection, moved.position, new_position, mover=moved
        )
        logger.debug(
            "moving %s %s from %d to %d shifts %d siblings",
            self.kind, moved.id, moved.position, new_position, len(changes) - 1,
        )
        return self._apply(changes)

    def on_reindex(self, container_key: str, siblings: Siblings) -> ReorderResult[T]:
        collection = _collection(container_key, siblings)
        changes = compute_reindex(collection)
        if changes:
            logger.info(
                "renumbering %d %ss in %s %s", len(changes), self.kind, self.container, container_key
            )
        return self._apply(changes)


class ListReorderOperation(_ReorderOperation[T]):
    """Ordering of the lists on one board."""

    kind = "list"
    container = "board"

    def on_move(self, moved_list: T, siblings: Siblings, new_position: int) -> ReorderResult[T]:
        return self._on_move(moved_list, siblings, new_position)


class CardReorderOperation(_ReorderOperation[T]):
    """Ordering of the cards in a list, including moves between lists."""

    kind = "card"
    container = "list"

    def __init__(self, move_policy: Optional[CardMoveCheck] = None) -> None:
        self.move_policy = move_policy

    def on_move_within_list(self, card: T, siblings: Siblings, new_position: int) -> ReorderResult[T]:
        return self._on_move(card, siblings, new_position)

    def on_move_across_lists(
        self,
        card: T,
        source_siblings: Siblings,
        target_list_id: str,
        target_siblings: Siblings,
        new_position: Optional[int] = None,
    ) -> ReorderResult[T]:
        if target_list_id == card.container_key:
            position = len(source_siblings) - 1 if new_position is None else new_position
            return self.on_move_within_list(card, source_siblings, position)

        source = self._snapshot(card.container_key, source_siblings)
        target = self._snapshot(target_list_id, target_siblings)
        if self.move_policy is not None:
            self.move_policy.check_card_move(card, target_list_id, len(target))

        if new_position is None:
            new_position = compute_insert_position(target)
        if not 0 <= new_position <= len(target):
            raise PositionOutOfRange(new_position, len(target), upper=len(target))
        card = self._member(card, source)
        self._require_unique(source)
        self._require_unique(target)

        changes = compute_cross_container_move(
            source, card.position, target, new_position, target_list_id, mover=card
        )
        logger.debug(
            "moving card %s from list %s@%d to list %s@%d shifts %d siblings",
            card.id, card.container_key, card.position, target_list_id, new_position,
            len(changes) - 1,
        )
        return self._apply(changes)
