from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


# === Domain objects used by the in-memory store ===


@dataclass
class Board:
    id: str
    title: str
    owner: str
    created_at: datetime
    updated_at: datetime
    archived: bool = False
    version: int = 0


@dataclass
class BoardList:
    id: str
    board_id: str
    title: str
    position: int
    created_at: datetime
    updated_at: datetime
    color: Optional[str] = None
    version: int = 0

    @property
    def container_key(self) -> str:
        return self.board_id

    @container_key.setter
    def container_key(self, value: str) -> None:
        self.board_id = value


@dataclass
class Card:
    id: str
    list_id: str
    title: str
    position: int
    created_at: datetime
    updated_at: datetime
    description: Optional[str] = None
    version: int = 0

    @property
    def container_key(self) -> str:
        return self.list_id

    @container_key.setter
    def container_key(self, value: str) -> None:
        self.list_id = value


# === Commands ===


class BoardCreate(BaseModel):
    title: str = Field(min_length=1, max_length=140)


class ListCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    color: Optional[str] = Field(default=None, pattern=r"^#[0-9a-fA-F]{6}$")


class ListMove(BaseModel):
    position: int


class CardCreate(BaseModel):
    title: str = Field(min_length=1, max_length=200)
    description: Optional[str] = Field(default=None, max_length=2000)


class CardMove(BaseModel):
    targetListId: Optional[str] = None
    position: Optional[int] = None  # None appends


class CardClone(BaseModel):
    title: Optional[str] = Field(default=None, min_length=1, max_length=200)
    targetListId: Optional[str] = None
