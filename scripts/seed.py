#!/usr/bin/env python3
"""Database seeding script for local feed indexing runs.

Creates all tables and loads users and collections from a YAML file
(default: config/seed.example.yaml).
"""

import asyncio
import sys
from pathlib import Path
from typing import Any, Dict

import yaml

from feedindex.core.db import create_all, create_engine, create_session_factory
from feedindex.core.models import User, Collection, CollectionItem
from feedindex.core.repositories import find_eligible_users
from feedindex.core.settings import get_settings

project_root = Path(__file__).parent.parent
settings = get_settings()

ITEM_FIELDS = {
    "_id": "id",
    "added": "added",
    "authorName": "author_name",
    "itemId": "item_id",
    "idInt": "id_int",
    "created": "created",
    "date": "date",
    "description": "description",
    "source": "source",
    "type": "type",
    "user": "user",
    "userData": "user_data",
}


def load_yaml_config(file_path: Path) -> dict:
    """Load YAML seed file."""
    if not file_path.exists():
        print(f"Warning: {file_path} not found, skipping...")
        return {}
    
    with open(file_path, 'r', encoding='utf-8') as f:
        config = yaml.safe_load(f) or {}
    print(f"✅ Loaded seed data from {file_path}")
    return config


def collection_from_record(record: Dict[str, Any]) -> Collection:
    """Build a collection and its items from a seed record.

    Every item needs an ``_id`` so that re-running the seed merges items
    instead of inserting them again.
    """
    collection = Collection(
        id=record["id"],
        title=record.get("title"),
        description=record.get("description"),
        user_data=record.get("owner"),
    )

    for position, raw in enumerate(record.get("items", [])):
        if raw.get("_id") is None:
            raise ValueError(f"Item {position} of collection {record['id']} has no _id")
        columns = {column: raw[key] for key, column in ITEM_FIELDS.items() if key in raw}
        extra = {key: value for key, value in raw.items() if key not in ITEM_FIELDS}
        collection.items.append(
            CollectionItem(position=position, payload=extra or None, **columns)
        )
    
    return collection


def user_from_record(record: Dict[str, Any]) -> User:
    follows = record.get("followCollections")
    return User(
        id=record["id"],
        email=record.get("email"),
        follow_collections=[{"collectionId": cid} for cid in follows] if follows is not None else None,
    )


async def main(seed_path: Path) -> int:
    """Main seeding function."""
    print("🌱 Starting feed datastore seeding...")
    
    engine = create_engine(settings)
    session_factory = create_session_factory(engine)
    
    try:
        print("\n📊 Creating database tables...")
        await create_all(engine)
        print("✅ Database tables ready")
        
        config = load_yaml_config(seed_path)
        collections = config.get("collections", [])
        users = config.get("users", [])
        
        async with session_factory() as session:
            for record in collections:
                await session.merge(collection_from_record(record))
            for record in users:
                await session.merge(user_from_record(record))
            await session.commit()
            
            eligible = await find_eligible_users(session)
        
        print("\n" + "="*60)
        print("🎉 SEEDING COMPLETE!")
        print("="*60)
        print(f"📚 Collections loaded: {len(collections)}")
        print(f"👤 Users loaded: {len(users)}")
        print(f"📈 Users eligible for a feed: {len(eligible)}")
        print("="*60)
        return 0
        
    except Exception as e:
        print(f"❌ Error during seeding: {e}")
        import traceback
        traceback.print_exc()
        return 1
    finally:
        await engine.dispose()


if __name__ == "__main__":
    path = Path(sys.argv[1]) if len(sys.argv) > 1 else project_root / "config" / "seed.example.yaml"
    sys.exit(asyncio.run(main(path)))
