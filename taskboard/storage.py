from __future__ import annotations

import logging
import threading
from contextlib import contextmanager
from dataclasses import replace
from typing import Any, Callable, Dict, Iterator, List, Set, Tuple

from .errors import NotFound
from .models import Board, BoardList, Card
from .positioning import sort_key
from .utils import now_utc

logger = logging.getLogger("taskboard.storage")

KINDS = {Board: "board", BoardList: "list", Card: "card"}


class UnitOfWork:
    """Staged view of :class:`Storage` for one logical operation.

    Entities are handed out as copies and tracked by id, so the same row is
    the same object for the whole unit. Nothing reaches the store until
    :meth:`commit`.
    """

    def __init__(self, storage: "Storage") -> None:
        self._storage = storage
        self._loaded: Dict[Tuple[str, str], Any] = {}
        self._removed: Set[Tuple[str, str]] = set()
        self._touched: Set[Tuple[str, str]] = set()

    def _table(self, kind: str) -> Dict[str, Any]:
        return {
            "board": self._storage.boards,
            "list": self._storage.lists,
            "card": self._storage.cards,
        }[kind]

    def _track(self, kind: str, entity: Any) -> Any:
        key = (kind, entity.id)
        if key not in self._loaded:
            self._loaded[key] = replace(entity)
        return self._loaded[key]

    def _get(self, kind: str, entity_id: str) -> Any:
        key = (kind, entity_id)
        if key in self._removed:
            raise NotFound(f"{kind} {entity_id} not found")
        if key in self._loaded:
            return self._loaded[key]
        entity = self._table(kind).get(entity_id)
        if entity is None:
            raise NotFound(f"{kind} {entity_id} not found")
        return self._track(kind, entity)

    def _select(self, kind: str, predicate: Callable[[Any], bool]) -> List[Any]:
        candidates = {eid for eid, row in self._table(kind).items() if predicate(row)}
        candidates.update(eid for (k, eid), row in self._loaded.items() if k == kind and predicate(row))
        rows = (self._get(kind, eid) for eid in candidates if (kind, eid) not in self._removed)
        # a tracked copy may have left the container within this unit
        return [row for row in rows if predicate(row)]

    # === Lookups ===
    def get_board(self, board_id: str) -> Board:
        return self._get("board", board_id)

    def get_list(self, list_id: str) -> BoardList:
        return self._get("list", list_id)

    def get_card(self, card_id: str) -> Card:
        return self._get("card", card_id)

    def boards_for_owner(self, owner: str) -> List[Board]:
        return sorted(
            self._select("board", lambda b: b.owner == owner),
            key=lambda b: (b.created_at, b.id),
        )

    def lists_for_board(self, board_id: str) -> List[BoardList]:
        return sorted(self._select("list", lambda l: l.board_id == board_id), key=sort_key)

    def cards_for_list(self, list_id: str) -> List[Card]:
        return sorted(self._select("card", lambda c: c.list_id == list_id), key=sort_key)

    # === Staging ===
    def new_board(self, **fields: Any) -> Board:
        return self._add(Board(**fields))

    def new_list(self, **fields: Any) -> BoardList:
        return self._add(BoardList(**fields))

    def new_card(self, **fields: Any) -> Card:
        return self._add(Card(**fields))

    def _add(self, entity: Any) -> Any:
        self._loaded[(KINDS[type(entity)], entity.id)] = entity
        return entity

    def remove(self, entity: Any) -> None:
        self._removed.add((KINDS[type(entity)], entity.id))

    def save_all(self, entities: List[Any]) -> None:
        # tracked copies are written back on commit; this only adopts strays
        for entity in entities:
            key = (KINDS[type(entity)], entity.id)
            if self._loaded.get(key) is not entity:
                self._loaded[key] = entity

    def touch(self, entity: Any) -> None:
        """Bump ``entity``'s version on commit even if no field changed."""
        self._touched.add((KINDS[type(entity)], entity.id))

    def commit(self) -> int:
        now = now_utc()
        written = 0
        for (kind, entity_id), entity in self._loaded.items():
            table = self._table(kind)
            if (kind, entity_id) in self._removed:
                table.pop(entity_id, None)
                written += 1
                continue
            stored = table.get(entity_id)
            if stored is None:
                entity.version = 1
            elif stored != entity or (kind, entity_id) in self._touched:
                entity.version = stored.version + 1
                entity.updated_at = now
            else:
                continue
            table[entity_id] = replace(entity)
            written += 1
        for kind, entity_id in self._removed - set(self._loaded):
            self._table(kind).pop(entity_id, None)
            written += 1
        return written


class Storage:
    """In-memory store for boards, lists and cards.

    One lock guards the whole store, so units of work run one at a time and
    readers never observe a half-applied reorder.
    """

    def __init__(self) -> None:
        self.boards: Dict[str, Board] = {}
        self.lists: Dict[str, BoardList] = {}
        self.cards: Dict[str, Card] = {}
        self._lock = threading.RLock()

    @contextmanager
    def begin(self) -> Iterator[UnitOfWork]:
        with self._lock:
            uow = UnitOfWork(self)
            yield uow
            written = uow.commit()
            logger.debug("committed %d rows", written)
