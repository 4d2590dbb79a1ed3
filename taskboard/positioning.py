from __future__ import annotations

from typing import Generic, Iterable, Iterator, List, Optional, Protocol, TypeVar

from .errors import ContainerMismatch


class Positioned(Protocol):
    """Capability set the engine needs from a list or a card."""

    id: str
    position: int
    container_key: str


T = TypeVar("T", bound=Positioned)


def sort_key(item: Positioned) -> tuple[int, str]:
    return (item.position, item.id)


class PositionedCollection(Generic[T]):
    """Siblings sharing one container, ordered ascending by position.

    The collection is a snapshot. It never reorders or renumbers its items;
    position changes are computed by :mod:`taskboard.reindexer` and applied by
    the operations.
    """

    def __init__(self, container_key: str, items: Iterable[T]) -> None:
        self.container_key = container_key
        self.items: List[T] = sorted(items, key=sort_key)
        for item in self.items:
            if item.container_key != container_key:
                raise ContainerMismatch(
                    f"{item.id} belongs to {item.container_key}, expected {container_key}"
                )

    @classmethod
    def of(cls, items: Iterable[T], container_key: Optional[str] = None) -> "PositionedCollection[T]":
        items = list(items)
        if container_key is None:
            if not items:
                raise ContainerMismatch("cannot infer the container of an empty snapshot")
            container_key = items[0].container_key
        return cls(container_key, items)

    def __len__(self) -> int:
        return len(self.items)

    def __iter__(self) -> Iterator[T]:
        return iter(self.items)

    def __getitem__(self, index: int) -> T:
        return self.items[index]

    def __contains__(self, item: object) -> bool:
        return any(sibling is item for sibling in self.items)

    def __repr__(self) -> str:
        return f"PositionedCollection({self.container_key!r}, size={len(self.items)})"

    def find(self, item_id: str) -> Optional[T]:
        for item in self.items:
            if item.id == item_id:
                return item
        return None

    def at(self, position: int) -> Optional[T]:
        for item in self.items:
            if item.position == position:
                return item
        return None

    def positions(self) -> List[int]:
        return [item.position for item in self.items]

    def is_dense(self) -> bool:
        return self.positions() == list(range(len(self.items)))

    def has_duplicates(self) -> bool:
        return len(set(self.positions())) != len(self.items)

    def without(self, item: Positioned) -> "PositionedCollection[T]":
        return PositionedCollection(
            self.container_key, [s for s in self.items if s.id != item.id]
        )
