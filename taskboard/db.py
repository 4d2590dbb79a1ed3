from __future__ import annotations

import logging
import os
from contextlib import contextmanager
from datetime import datetime
from typing import Any, Iterator, List, Optional

from sqlalchemy import (
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    create_engine,
    select,
)
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.orm.attributes import flag_modified
from sqlalchemy.orm.exc import StaleDataError

from .errors import ConcurrentModification, NotFound
from .utils import now_utc

logger = logging.getLogger("taskboard.db")

DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./taskboard.db")


class Base(DeclarativeBase):
    pass


class Board(Base):
    __tablename__ = "boards"
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    title: Mapped[str] = mapped_column(String(140))
    owner: Mapped[str] = mapped_column(String(128), index=True)
    archived: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}


class BoardListModel(Base):
    __tablename__ = "board_lists"
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    board_id: Mapped[str] = mapped_column(String(36), ForeignKey("boards.id", ondelete="CASCADE"))
    title: Mapped[str] = mapped_column(String(100))
    color: Mapped[str | None] = mapped_column(String(7), nullable=True)
    position: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (Index("ix_board_lists_order", "board_id", "position"),)

    @property
    def container_key(self) -> str:
        return self.board_id

    @container_key.setter
    def container_key(self, value: str) -> None:
        self.board_id = value


class Card(Base):
    __tablename__ = "cards"
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    list_id: Mapped[str] = mapped_column(String(36), ForeignKey("board_lists.id", ondelete="CASCADE"))
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    position: Mapped[int] = mapped_column(Integer)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=now_utc, onupdate=now_utc)
    version: Mapped[int] = mapped_column(Integer, nullable=False)

    __mapper_args__ = {"version_id_col": version}
    __table_args__ = (Index("ix_cards_order", "list_id", "position"),)

    @property
    def container_key(self) -> str:
        return self.list_id

    @container_key.setter
    def container_key(self, value: str) -> None:
        self.list_id = value


class SqlUnitOfWork:
    """Session-backed unit of work; the surrounding transaction commits it."""

    def __init__(self, session: Session) -> None:
        self.session = session

    def _get(self, model: Any, entity_id: str) -> Any:
        entity = self.session.get(model, entity_id)
        if entity is None:
            raise NotFound(f"{model.__tablename__} {entity_id} not found")
        return entity

    def get_board(self, board_id: str) -> Board:
        return self._get(Board, board_id)

    def get_list(self, list_id: str) -> BoardListModel:
        return self._get(BoardListModel, list_id)

    def get_card(self, card_id: str) -> Card:
        return self._get(Card, card_id)

    def boards_for_owner(self, owner: str) -> List[Board]:
        stmt = select(Board).where(Board.owner == owner).order_by(Board.created_at, Board.id)
        return list(self.session.scalars(stmt))

    def lists_for_board(self, board_id: str) -> List[BoardListModel]:
        stmt = (
            select(BoardListModel)
            .where(BoardListModel.board_id == board_id)
            .order_by(BoardListModel.position, BoardListModel.id)
        )
        return list(self.session.scalars(stmt))

    def cards_for_list(self, list_id: str) -> List[Card]:
        stmt = select(Card).where(Card.list_id == list_id).order_by(Card.position, Card.id)
        return list(self.session.scalars(stmt))

    def new_board(self, **fields: Any) -> Board:
        fields.setdefault("archived", False)
        return self._add(Board(**fields))

    def new_list(self, **fields: Any) -> BoardListModel:
        return self._add(BoardListModel(**fields))

    def new_card(self, **fields: Any) -> Card:
        return self._add(Card(**fields))

    def _add(self, entity: Any) -> Any:
        self.session.add(entity)
        return entity

    def remove(self, entity: Any) -> None:
        self.session.delete(entity)

    def save_all(self, entities: List[Any]) -> None:
        self.session.add_all(entities)

    def touch(self, entity: Any) -> None:
        """Force an UPDATE of ``entity`` so its version check runs on flush.

        Parent rows are touched by every structural change to their
        children; a concurrent unit of work that read the same children then
        fails with :class:`StaleDataError`.
        """
        entity.updated_at = now_utc()
        flag_modified(entity, "updated_at")


class SqlStorage:
    """Relational store. Each unit of work is one transaction."""

    def __init__(self, url: Optional[str] = None, engine: Optional[Engine] = None) -> None:
        if engine is None:
            url = url or DATABASE_URL
            engine = create_engine(
                url,
                connect_args={"check_same_thread": False} if url.startswith("sqlite") else {},
            )
        self.engine = engine
        self.SessionLocal = sessionmaker(
            bind=engine, autoflush=False, expire_on_commit=False
        )

    def init_db(self) -> None:
        Base.metadata.create_all(bind=self.engine)

    @contextmanager
    def begin(self) -> Iterator[SqlUnitOfWork]:
        session = self.SessionLocal()
        try:
            with session.begin():
                yield SqlUnitOfWork(session)
        except StaleDataError as exc:
            logger.warning("optimistic version check failed: %s", exc)
            raise ConcurrentModification(str(exc)) from exc
        finally:
            session.close()
