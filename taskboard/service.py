from __future__ import annotations

import logging
from typing import Any, Callable, List, Optional, TypeVar

from .config import PolicyConfig
from .errors import ConcurrentModification
from .models import BoardCreate, CardClone, CardCreate, CardMove, ListCreate, ListMove
from .operations import CardReorderOperation, ListReorderOperation, ReorderResult
from .policy import (
    CardCreationPolicy,
    CardMovePolicy,
    ListCountStatus,
    ListCreationPolicy,
    ListMovePolicy,
)
from .positioning import PositionedCollection
from .utils import new_uuid, now_utc

logger = logging.getLogger("taskboard.service")

R = TypeVar("R")


class BoardService:
    """Board, list and card management on top of a store.

    Every mutation runs in one unit of work: fresh snapshots are loaded, the
    reorder engine computes the write set, and the store commits it together
    with the primary change. The container's parent row (the board for lists,
    the list for cards) is touched as part of the same commit, so two units of
    work that read the same siblings cannot both succeed. The loser's
    conflicting commit is retried from a new snapshot.
    """

    def __init__(self, store: Any, config: Optional[PolicyConfig] = None) -> None:
        self.store = store
        self.config = config or PolicyConfig.from_env()
        self.list_ops: ListReorderOperation = ListReorderOperation()
        self.list_creation = ListCreationPolicy(self.config)
        self.list_moves = ListMovePolicy()
        self.card_creation = CardCreationPolicy(self.config)

    def _run(self, action: str, work: Callable[[Any], R]) -> R:
        attempts = self.config.max_retries + 1
        for attempt in range(1, attempts + 1):
            try:
                with self.store.begin() as uow:
                    return work(uow)
            except ConcurrentModification:
                if attempt == attempts:
                    logger.error("%s failed after %d attempts", action, attempts)
                    raise
                logger.warning("%s conflicted with a concurrent write, retrying (%d/%d)",
                               action, attempt, attempts - 1)
        raise AssertionError("unreachable")

    # === Boards ===
    def create_board(self, owner: str, payload: BoardCreate) -> Any:
        def work(uow):
            now = now_utc()
            board = uow.new_board(
                id=new_uuid(), title=payload.title.strip(), owner=owner,
                created_at=now, updated_at=now,
            )
            logger.info("created board %s for %s", board.id, owner)
            return board

        return self._run("create_board", work)

    def get_board(self, board_id: str) -> Any:
        return self._run("get_board", lambda uow: uow.get_board(board_id))

    def boards_for_owner(self, owner: str) -> List[Any]:
        return self._run("boards_for_owner", lambda uow: uow.boards_for_owner(owner))

    def _set_archived(self, board_id: str, archived: bool) -> Any:
        def work(uow):
            board = uow.get_board(board_id)
            if board.archived != archived:
                board.archived = archived
                uow.save_all([board])
                logger.info("board %s archived=%s", board_id, archived)
            return board

        return self._run("archive_board", work)

    def archive_board(self, board_id: str) -> Any:
        return self._set_archived(board_id, True)

    def unarchive_board(self, board_id: str) -> Any:
        return self._set_archived(board_id, False)

    def delete_board(self, board_id: str) -> None:
        def work(uow):
            board = uow.get_board(board_id)
            for board_list in uow.lists_for_board(board_id):
                for card in uow.cards_for_list(board_list.id):
                    uow.remove(card)
                uow.remove(board_list)
            uow.remove(board)
            logger.info("deleted board %s", board_id)

        self._run("delete_board", work)

    # === Lists ===
    def get_lists(self, board_id: str) -> List[Any]:
        def work(uow):
            uow.get_board(board_id)
            return uow.lists_for_board(board_id)

        return self._run("get_lists", work)

    def list_count_status(self, board_id: str) -> ListCountStatus:
        return self.list_creation.status(len(self.get_lists(board_id)))

    def create_list(self, board_id: str, payload: ListCreate) -> Any:
        def work(uow):
            board = uow.get_board(board_id)
            siblings = PositionedCollection(board_id, uow.lists_for_board(board_id))
            self.list_creation.check(board, len(siblings))
            now = now_utc()
            board_list = uow.new_list(
                id=new_uuid(), board_id=board_id, title=payload.title.strip(),
                color=payload.color, position=self.list_ops.on_create(board_id, siblings),
                created_at=now, updated_at=now,
            )
            uow.touch(board)
            logger.info("created list %s on board %s at %d", board_list.id, board_id, board_list.position)
            return board_list

        return self._run("create_list", work)

    def move_list(self, list_id: str, payload: ListMove) -> ReorderResult:
        def work(uow):
            board_list = uow.get_list(list_id)
            board = uow.get_board(board_list.board_id)
            self.list_moves.check(board)
            siblings = uow.lists_for_board(board_list.board_id)
            result = self.list_ops.on_move(board_list, siblings, payload.position)
            uow.save_all(result.changed)
            if not result.is_noop:
                uow.touch(board)
                logger.info("moved list %s to %d (%d rows)", list_id, payload.position, len(result))
            return result

        return self._run("move_list", work)

    def delete_list(self, list_id: str) -> ReorderResult:
        def work(uow):
            board_list = uow.get_list(list_id)
            siblings = uow.lists_for_board(board_list.board_id)
            result = self.list_ops.on_delete(board_list, siblings)
            for card in uow.cards_for_list(list_id):
                uow.remove(card)
            uow.remove(board_list)
            uow.save_all(result.changed)
            uow.touch(uow.get_board(board_list.board_id))
            logger.info("deleted list %s, compacted %d siblings", list_id, len(result))
            return result

        return self._run("delete_list", work)

    # === Cards ===
    def get_cards(self, list_id: str) -> List[Any]:
        def work(uow):
            uow.get_list(list_id)
            return uow.cards_for_list(list_id)

        return self._run("get_cards", work)

    def _card_ops(self, uow: Any) -> CardReorderOperation:
        return CardReorderOperation(move_policy=CardMovePolicy(self.config, uow))

    def create_card(self, list_id: str, payload: CardCreate) -> Any:
        def work(uow):
            board_list = uow.get_list(list_id)
            siblings = PositionedCollection(list_id, uow.cards_for_list(list_id))
            self.card_creation.check(uow.get_board(board_list.board_id), len(siblings))
            now = now_utc()
            card = uow.new_card(
                id=new_uuid(), list_id=list_id, title=payload.title.strip(),
                description=payload.description.strip() if payload.description else None,
                position=self._card_ops(uow).on_create(list_id, siblings),
                created_at=now, updated_at=now,
            )
            uow.touch(board_list)
            logger.info("created card %s in list %s at %d", card.id, list_id, card.position)
            return card

        return self._run("create_card", work)

    def move_card(self, card_id: str, payload: CardMove) -> ReorderResult:
        def work(uow):
            card = uow.get_card(card_id)
            target_list_id = payload.targetListId or card.list_id
            source_list = uow.get_list(card.list_id)
            source = uow.cards_for_list(card.list_id)
            ops = self._card_ops(uow)
            if target_list_id == card.list_id:
                self.list_moves.check(uow.get_board(source_list.board_id))
                position = len(source) - 1 if payload.position is None else payload.position
                result = ops.on_move_within_list(card, source, position)
                touched = [source_list]
            else:
                target_list = uow.get_list(target_list_id)
                target = uow.cards_for_list(target_list.id)
                result = ops.on_move_across_lists(
                    card, source, target_list_id, target, payload.position
                )
                touched = [source_list, target_list]
            uow.save_all(result.changed)
            if not result.is_noop:
                for board_list in touched:
                    uow.touch(board_list)
                logger.info("moved card %s to list %s (%d rows)", card_id, target_list_id, len(result))
            return result

        return self._run("move_card", work)

    def delete_card(self, card_id: str) -> ReorderResult:
        def work(uow):
            card = uow.get_card(card_id)
            result = self._card_ops(uow).on_delete(card, uow.cards_for_list(card.list_id))
            uow.remove(card)
            uow.save_all(result.changed)
            uow.touch(uow.get_list(card.list_id))
            logger.info("deleted card %s, compacted %d siblings", card_id, len(result))
            return result

        return self._run("delete_card", work)

    def clone_card(self, card_id: str, payload: CardClone) -> Any:
        def work(uow):
            original = uow.get_card(card_id)
            target_list_id = payload.targetListId or original.list_id
            target_list = uow.get_list(target_list_id)
            siblings = PositionedCollection(target_list_id, uow.cards_for_list(target_list_id))
            self.card_creation.check(uow.get_board(target_list.board_id), len(siblings))
            now = now_utc()
            card = uow.new_card(
                id=new_uuid(), list_id=target_list_id,
                title=payload.title.strip() if payload.title else original.title,
                description=original.description,
                position=self._card_ops(uow).on_create(target_list_id, siblings),
                created_at=now, updated_at=now,
            )
            uow.touch(target_list)
            logger.info("cloned card %s into %s at %d", card_id, card.id, card.position)
            return card

        return self._run("clone_card", work)

    # === Maintenance ===
    def normalize_board(self, board_id: str) -> ReorderResult:
        """Renumber the board's lists and every list's cards to ``0..N-1``."""

        def work(uow):
            board = uow.get_board(board_id)
            lists = uow.lists_for_board(board_id)
            result = self.list_ops.on_reindex(board_id, lists)
            card_ops = CardReorderOperation()
            for board_list in lists:
                cards = card_ops.on_reindex(board_list.id, uow.cards_for_list(board_list.id))
                if not cards.is_noop:
                    uow.touch(board_list)
                result.changes.extend(cards.changes)
            uow.save_all(result.changed)
            if not result.is_noop:
                uow.touch(board)
            return result

        return self._run("normalize_board", work)
