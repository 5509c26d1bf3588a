"""Database models for the feed datastore.

Users and collections are owned by the application that writes them; the
indexing pipeline only reads them.
"""
from typing import Any, Dict, List

from sqlalchemy import (
    String, DateTime, Text, Integer, ForeignKey, JSON, Index
)
from sqlalchemy.orm import mapped_column, relationship

from .db import Base


class User(Base):
    """Users table."""
    __tablename__ = "users"
    
    id = mapped_column(Integer, primary_key=True)
    email = mapped_column(String(320), nullable=True, index=True)
    # Ordered [{"collectionId": <id>}, ...]; SQL NULL when the user never followed anything
    follow_collections = mapped_column(JSON(none_as_null=True), nullable=True)
    
    def followed_collection_ids(self) -> List[int]:
        """Collection ids in follow order, skipping malformed entries."""
        follows = self.follow_collections or []
        return [f["collectionId"] for f in follows if isinstance(f, dict) and f.get("collectionId") is not None]


class Collection(Base):
    """Collections of items that users can follow."""
    __tablename__ = "collections"
    
    id = mapped_column(Integer, primary_key=True)
    title = mapped_column(String(500), nullable=True)
    description = mapped_column(Text, nullable=True)
    user_data = mapped_column(JSON, nullable=True)  # owner blob
    
    items = relationship(
        "CollectionItem",
        back_populates="collection",
        order_by="CollectionItem.position",
    )
    
    def to_metadata(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "title": self.title,
            "description": self.description,
            "owner": self.user_data,
        }


class CollectionItem(Base):
    """Items stored inside a collection, one row per array element."""
    __tablename__ = "collection_items"
    
    id = mapped_column(Integer, primary_key=True)
    collection_id = mapped_column(ForeignKey("collections.id"), index=True, nullable=False)
    position = mapped_column(Integer, default=0, nullable=False)  # index in the collection's item array
    added = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    author_name = mapped_column(String(255), nullable=True)
    item_id = mapped_column(String(255), nullable=True)
    id_int = mapped_column(String(64), nullable=True)
    created = mapped_column(DateTime(timezone=True), nullable=True)
    date = mapped_column(DateTime(timezone=True), nullable=True)
    description = mapped_column(Text, nullable=True)
    source = mapped_column(String(1500), nullable=True)
    type = mapped_column(String(64), nullable=True)
    user = mapped_column(String(255), nullable=True)
    user_data = mapped_column(JSON, nullable=True)
    payload = mapped_column(JSON, nullable=True)  # remaining raw fields
    
    collection = relationship("Collection", back_populates="items")
    
    def to_record(self) -> Dict[str, Any]:
        """Raw item record as stored upstream, keyed by ``_id``."""
        record = dict(self.payload or {})
        fields = {
            "_id": self.id,
            "added": self.added,
            "authorName": self.author_name,
            "itemId": self.item_id,
            "idInt": self.id_int,
            "created": self.created,
            "date": self.date,
            "description": self.description,
            "source": self.source,
            "type": self.type,
            "user": self.user,
            "userData": self.user_data,
        }
        record.update({key: value for key, value in fields.items() if value is not None})
        return record


# Feed aggregation orders by recency, then by array position
Index('idx_collection_items_collection_added', CollectionItem.collection_id, CollectionItem.added.desc())
