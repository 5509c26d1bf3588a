"""Tests for per-user feed aggregation."""

from unittest.mock import AsyncMock, patch

import pytest

from feedindex.core.repositories import FEED_ITEM_LIMIT
from feedindex.indexer.aggregator import FeedAggregator
from feedindex.indexer.errors import AggregationError
from tests.conftest import make_user, make_collection


@pytest.mark.asyncio
@pytest.mark.parametrize("follows", [None, []])
async def test_no_follows_skips_storage(fake_session_factory, follows):
    aggregator = FeedAggregator(fake_session_factory)
    
    with patch("feedindex.indexer.aggregator.aggregate_collection_items", new=AsyncMock()) as query:
        items = await aggregator.fetch(make_user(1, "a@example.com", follows=follows))
    
    assert items == []
    assert fake_session_factory.calls == 0
    query.assert_not_awaited()


@pytest.mark.asyncio
async def test_malformed_follow_entries_are_skipped(fake_session_factory):
    user = make_user(1, "a@example.com")
    user.follow_collections = [{"other": 1}, {"collectionId": None}]
    
    assert await FeedAggregator(fake_session_factory).fetch(user) == []
    assert fake_session_factory.calls == 0


@pytest.mark.asyncio
async def test_items_are_enriched_and_newest_first(session_factory, seed):
    await seed(make_collection(1, [0, 30]), make_collection(2, [10]))
    user = make_user(7, "reader@example.com", follows=[1, 2])
    
    items = await FeedAggregator(session_factory).fetch(user)
    
    assert [item["_id"] for item in items] == [1001, 2000, 1000]
    added = [item["added"] for item in items]
    assert added == sorted(added, reverse=True)
    for item in items:
        assert item["feedOwner"] == "reader@example.com"
        assert set(item["collection"]) == {"id", "title", "description", "owner"}
    assert items[1]["collection"]["id"] == 2


@pytest.mark.asyncio
async def test_followed_collections_without_items(session_factory, seed):
    await seed(make_collection(1, []))
    
    items = await FeedAggregator(session_factory).fetch(make_user(1, "a@example.com", follows=[1]))
    
    assert items == []


@pytest.mark.asyncio
async def test_feed_is_capped(session_factory, seed):
    await seed(make_collection(1, list(range(300))), make_collection(2, list(range(300))))
    
    items = await FeedAggregator(session_factory).fetch(make_user(1, "a@example.com", follows=[1, 2]))
    
    assert len(items) == FEED_ITEM_LIMIT
    added = [item["added"] for item in items]
    assert added == sorted(added, reverse=True)


@pytest.mark.asyncio
async def test_each_pass_returns_fresh_copies(session_factory, seed):
    await seed(make_collection(1, [0]))
    aggregator = FeedAggregator(session_factory)
    
    first = await aggregator.fetch(make_user(1, "first@example.com", follows=[1]))
    second = await aggregator.fetch(make_user(2, "second@example.com", follows=[1]))
    
    assert first[0] is not second[0]
    assert first[0]["feedOwner"] == "first@example.com"
    assert second[0]["feedOwner"] == "second@example.com"


@pytest.mark.asyncio
async def test_query_failure_is_aggregation_error(fake_session_factory):
    aggregator = FeedAggregator(fake_session_factory)
    failing = AsyncMock(side_effect=RuntimeError("connection lost"))
    
    with patch("feedindex.indexer.aggregator.aggregate_collection_items", new=failing):
        with pytest.raises(AggregationError) as exc_info:
            await aggregator.fetch(make_user(5, "a@example.com", follows=[1]))
    
    assert exc_info.value.user_id == 5
    assert "connection lost" in str(exc_info.value)
