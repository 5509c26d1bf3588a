"""Index name and document mapping of the feed index.

Full-text fields: authorName, description, source.
Exact-match fields: itemId, idInt, type, user, feedOwner.
Stored but never searched: userData and the collection metadata.
"""

DEFAULT_INDEX_NAME = "feeds"

DATE_FORMAT = "date_optional_time"

FEED_MAPPING = {
    "properties": {
        "authorName": {
            "type": "text"
        },
        "itemId": {
            "type": "keyword"
        },
        "idInt": {
            "type": "keyword",
            "store": False
        },
        "created": {
            "type": "date",
            "format": DATE_FORMAT
        },
        "date": {
            "type": "date",
            "format": DATE_FORMAT
        },
        "description": {
            "type": "text"
        },
        "source": {
            "type": "text"
        },
        "type": {
            "type": "keyword"
        },
        "user": {
            "type": "keyword"
        },
        "feedOwner": {
            "type": "keyword"
        },
        "userData": {
            "type": "object",
            "enabled": False
        },
        "collection": {
            "type": "object",
            "properties": {
                "title": {
                    "type": "text",
                    "index": False
                },
                "description": {
                    "type": "text",
                    "index": False
                },
                "owner": {
                    "type": "object",
                    "enabled": False
                }
            }
        }
    }
}
