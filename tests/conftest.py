"""Shared fixtures for feed indexing tests."""

from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio

from feedindex.core.db import create_all, create_engine, create_session_factory, drop_all
from feedindex.core.models import User, Collection, CollectionItem

BASE_TIME = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_search_client(exists: bool = False, bulk_response=None):
    """Search client double exposing the calls the indexer makes."""
    return SimpleNamespace(
        indices=SimpleNamespace(
            exists=AsyncMock(return_value=exists),
            create=AsyncMock(return_value={"acknowledged": True}),
            put_mapping=AsyncMock(return_value={"acknowledged": True}),
        ),
        bulk=AsyncMock(return_value=bulk_response or {"errors": False, "items": []}),
        close=AsyncMock(),
    )


class FakeSessionFactory:
    """Stands in for an async_sessionmaker without a database."""
    
    def __init__(self):
        self.calls = 0
        self.session = MagicMock()
    
    def __call__(self):
        self.calls += 1
        return self
    
    async def __aenter__(self):
        return self.session
    
    async def __aexit__(self, exc_type, exc, tb):
        return False


def make_user(user_id, email="user@example.com", follows=None):
    return User(
        id=user_id,
        email=email,
        follow_collections=[{"collectionId": cid} for cid in follows] if follows is not None else None,
    )


def make_collection(collection_id, item_offsets, first_item_id=None, title=None):
    """Collection whose items were added ``offset`` minutes after BASE_TIME, in array order."""
    first_item_id = first_item_id if first_item_id is not None else collection_id * 1000
    collection = Collection(
        id=collection_id,
        title=title or f"Collection {collection_id}",
        description=f"Description {collection_id}",
        user_data={"name": f"owner-{collection_id}"},
    )
    for position, offset in enumerate(item_offsets):
        collection.items.append(CollectionItem(
            id=first_item_id + position,
            position=position,
            added=BASE_TIME + timedelta(minutes=offset),
            author_name=f"Author {position}",
            item_id=f"item-{first_item_id + position}",
            description=f"Item {first_item_id + position}",
            source="https://example.com",
            type="link",
            user="owner",
        ))
    return collection


@pytest.fixture
def search_client():
    return make_search_client()


@pytest.fixture
def fake_session_factory():
    return FakeSessionFactory()


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine(url=f"sqlite+aiosqlite:///{tmp_path / 'feed.db'}")
    await create_all(engine)
    yield engine
    await drop_all(engine)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return create_session_factory(engine)


@pytest_asyncio.fixture
async def seed(session_factory):
    """Insert users and collections into the test database."""
    async def _seed(*objects):
        async with session_factory() as session:
            session.add_all(objects)
            await session.commit()
    return _seed
