"""Tests for the feed datastore queries."""

import pytest

from feedindex.core.models import User
from feedindex.core.repositories import (
    find_eligible_users,
    aggregate_collection_items,
    FEED_ITEM_LIMIT
)
from tests.conftest import make_user, make_collection


class TestFindEligibleUsers:
    """Tests for eligible user selection."""
    
    @pytest.mark.asyncio
    async def test_requires_email_and_follows(self, session_factory, seed):
        await seed(
            make_user(1, "a@example.com", follows=[1]),
            make_user(2, None, follows=[1]),
            make_user(3, "c@example.com", follows=None),
            make_user(4, "d@example.com", follows=[]),
        )
        
        async with session_factory() as session:
            users = await find_eligible_users(session)
        
        # An empty follow list is present, so user 4 is eligible
        assert [u.id for u in users] == [4, 1]
    
    @pytest.mark.asyncio
    async def test_ordered_by_id_descending(self, session_factory, seed):
        await seed(*[make_user(i, f"u{i}@example.com", follows=[1]) for i in (3, 10, 7)])
        
        async with session_factory() as session:
            users = await find_eligible_users(session)
        
        assert [u.id for u in users] == [10, 7, 3]
    
    @pytest.mark.asyncio
    async def test_follow_list_stored_as_sql_null(self, session_factory, seed):
        await seed(User(id=1, email="a@example.com", follow_collections=None))
        
        async with session_factory() as session:
            assert await find_eligible_users(session) == []


class TestAggregateCollectionItems:
    """Tests for the flattened newest-first item listing."""
    
    @pytest.mark.asyncio
    async def test_flattens_and_sorts_newest_first(self, session_factory, seed):
        await seed(
            make_collection(1, [0, 20, 10]),
            make_collection(2, [15, 5]),
        )
        
        async with session_factory() as session:
            records = await aggregate_collection_items(session, [1, 2])
        
        ids = [r["item"]["_id"] for r in records]
        assert ids == [1001, 2000, 1002, 2001, 1000]
    
    @pytest.mark.asyncio
    async def test_attaches_collection_metadata(self, session_factory, seed):
        await seed(make_collection(1, [0], title="Reading list"))
        
        async with session_factory() as session:
            records = await aggregate_collection_items(session, [1])
        
        assert records[0]["collection"] == {
            "id": 1,
            "title": "Reading list",
            "description": "Description 1",
            "owner": {"name": "owner-1"},
        }
        item = records[0]["item"]
        assert item["authorName"] == "Author 0"
        assert item["itemId"] == "item-1000"
        assert "added" in item
        # Unset columns are not part of the record
        assert "idInt" not in item
    
    @pytest.mark.asyncio
    async def test_ignores_unfollowed_and_missing_collections(self, session_factory, seed):
        await seed(make_collection(1, [0]), make_collection(2, [5]))
        
        async with session_factory() as session:
            records = await aggregate_collection_items(session, [2, 99])
        
        assert [r["collection"]["id"] for r in records] == [2]
    
    @pytest.mark.asyncio
    async def test_equal_timestamps_break_by_collection_then_position(self, session_factory, seed):
        await seed(
            make_collection(2, [0, 0]),
            make_collection(1, [0, 0]),
        )
        
        async with session_factory() as session:
            first = await aggregate_collection_items(session, [2, 1])
            second = await aggregate_collection_items(session, [1, 2])
        
        expected = [1000, 1001, 2000, 2001]
        assert [r["item"]["_id"] for r in first] == expected
        assert [r["item"]["_id"] for r in second] == expected
    
    @pytest.mark.asyncio
    async def test_limit(self, session_factory, seed):
        await seed(make_collection(1, list(range(600))))
        
        async with session_factory() as session:
            records = await aggregate_collection_items(session, [1])
        
        assert len(records) == FEED_ITEM_LIMIT
        # The newest items survive the cut
        assert records[0]["item"]["_id"] == 1599
        assert records[-1]["item"]["_id"] == 1000 + 600 - FEED_ITEM_LIMIT
    
    @pytest.mark.asyncio
    async def test_payload_fields_are_kept(self, session_factory, seed):
        collection = make_collection(1, [0])
        collection.items[0].payload = {"title": "Extra title", "thumbnail": "t.png"}
        await seed(collection)
        
        async with session_factory() as session:
            records = await aggregate_collection_items(session, [1])
        
        assert records[0]["item"]["title"] == "Extra title"
        assert records[0]["item"]["thumbnail"] == "t.png"
    
    @pytest.mark.asyncio
    async def test_no_ids(self, session_factory):
        async with session_factory() as session:
            assert await aggregate_collection_items(session, []) == []
