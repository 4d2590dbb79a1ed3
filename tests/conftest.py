from datetime import datetime, timezone

import pytest
from sqlalchemy import create_engine
from sqlalchemy.pool import StaticPool

from taskboard.config import PolicyConfig
from taskboard.db import SqlStorage
from taskboard.models import BoardList, Card
from taskboard.service import BoardService
from taskboard.storage import Storage

EPOCH = datetime(2024, 1, 1, tzinfo=timezone.utc)


def make_lists(count, board_id="b1"):
    return [
        BoardList(id=f"l{i}", board_id=board_id, title=f"List {i}", position=i,
                  created_at=EPOCH, updated_at=EPOCH)
        for i in range(count)
    ]


def make_cards(count, list_id="l1", prefix="c"):
    return [
        Card(id=f"{prefix}{i}", list_id=list_id, title=f"Card {i}", position=i,
             created_at=EPOCH, updated_at=EPOCH)
        for i in range(count)
    ]


def positions(items):
    return {item.id: item.position for item in items}


@pytest.fixture
def config():
    return PolicyConfig(max_lists_per_board=5, max_cards_per_list=4, max_retries=2)


@pytest.fixture
def service(config):
    return BoardService(Storage(), config)


@pytest.fixture
def sql_storage():
    engine = create_engine(
        "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
    )
    storage = SqlStorage(engine=engine)
    storage.init_db()
    yield storage
    engine.dispose()


@pytest.fixture
def sql_service(sql_storage, config):
    return BoardService(sql_storage, config)
