from __future__ import annotations

import logging
from enum import Enum
from typing import Any, Protocol

from .config import PolicyConfig
from .errors import LimitExceeded, MoveNotAllowed
from .positioning import Positioned

logger = logging.getLogger("taskboard.policy")


class BoardLookup(Protocol):
    def get_board(self, board_id: str) -> Any:
        ...

    def get_list(self, list_id: str) -> Any:
        ...


class ListCountStatus(str, Enum):
    NORMAL = "normal"
    ABOVE_RECOMMENDED = "above_recommended"
    WARNING = "warning"
    LIMIT_REACHED = "limit_reached"

    @property
    def can_create_list(self) -> bool:
        return self is not ListCountStatus.LIMIT_REACHED

    @property
    def requires_notification(self) -> bool:
        return self in (ListCountStatus.WARNING, ListCountStatus.LIMIT_REACHED)


def _check_active(board: Any, action: str) -> None:
    if board.archived:
        logger.warning("%s rejected: board %s is archived", action, board.id)
        raise MoveNotAllowed(f"board {board.id} is archived", code="archived_board")


class ListCreationPolicy:
    def __init__(self, config: PolicyConfig) -> None:
        self.config = config

    def check(self, board: Any, current_count: int) -> None:
        _check_active(board, "list creation")
        if current_count >= self.config.max_lists_per_board:
            logger.warning(
                "list creation rejected: board %s has %d lists (max %d)",
                board.id, current_count, self.config.max_lists_per_board,
            )
            raise LimitExceeded(
                f"a board holds at most {self.config.max_lists_per_board} lists",
                code="list_limit_exceeded",
            )

    def available_slots(self, current_count: int) -> int:
        return max(0, self.config.max_lists_per_board - current_count)

    def status(self, current_count: int) -> ListCountStatus:
        if current_count >= self.config.max_lists_per_board:
            return ListCountStatus.LIMIT_REACHED
        if current_count >= self.config.warning_threshold:
            return ListCountStatus.WARNING
        if current_count > self.config.recommended_lists_per_board:
            return ListCountStatus.ABOVE_RECOMMENDED
        return ListCountStatus.NORMAL


class CardCreationPolicy:
    def __init__(self, config: PolicyConfig) -> None:
        self.config = config

    def check(self, board: Any, current_count: int) -> None:
        _check_active(board, "card creation")
        if current_count >= self.config.max_cards_per_list:
            raise LimitExceeded(
                f"a list holds at most {self.config.max_cards_per_list} cards",
                code="list_card_limit_exceeded",
            )


class ListMovePolicy:
    def check(self, board: Any) -> None:
        _check_active(board, "list move")


class CardMovePolicy:
    """Vetoes card moves into another list.

    ``lookup`` resolves list and board ids, usually the caller's open unit of
    work.
    """

    def __init__(self, config: PolicyConfig, lookup: BoardLookup) -> None:
        self.config = config
        self.lookup = lookup

    def check_card_move(self, card: Positioned, target_list_id: str, target_size: int) -> None:
        source_list = self.lookup.get_list(card.container_key)
        target_list = self.lookup.get_list(target_list_id)
        _check_active(self.lookup.get_board(source_list.board_id), "card move")
        _check_active(self.lookup.get_board(target_list.board_id), "card move")

        if target_list.board_id != source_list.board_id and not self.config.allow_cross_board_moves:
            logger.warning(
                "card move rejected: %s to list %s on another board", card.id, target_list_id
            )
            raise MoveNotAllowed(
                f"list {target_list_id} belongs to another board", code="cross_board_move"
            )
        if target_size >= self.config.max_cards_per_list:
            logger.warning(
                "card move rejected: list %s has %d cards (max %d)",
                target_list_id, target_size, self.config.max_cards_per_list,
            )
            raise LimitExceeded(
                f"list {target_list_id} is full", code="list_card_limit_exceeded"
            )
