from app.services.store.base import (
    DEFAULT_PAGE_SIZE,
    AuthorQuery,
    BulkResult,
    EntityStore,
    MessageFilter,
    MessageQuery,
    RoomQuery,
)
from app.services.store.sql import SQLEntityStore

__all__ = [
    "DEFAULT_PAGE_SIZE",
    "AuthorQuery",
    "RoomQuery",
    "MessageQuery",
    "MessageFilter",
    "BulkResult",
    "EntityStore",
    "SQLEntityStore",
]
