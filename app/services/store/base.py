from dataclasses import dataclass
from datetime import datetime
from typing import Protocol

from app.schemas.author import AuthorCreate, AuthorRead, AuthorUpdate
from app.schemas.message import MessageCreate, MessageRead, MessageUpdate
from app.schemas.room import MemberRead, RoomCreate, RoomRead, RoomUpdate

DEFAULT_PAGE_SIZE = 10


@dataclass(slots=True)
class AuthorQuery:
    include_archived: bool = False
    created_before: datetime | None = None
    limit: int | None = DEFAULT_PAGE_SIZE


@dataclass(slots=True)
class RoomQuery:
    author_id: str | None = None
    # only rooms where author_id is an active member
    only_active: bool = True
    include_archived: bool = False
    updated_before: datetime | None = None
    limit: int | None = DEFAULT_PAGE_SIZE


@dataclass(slots=True)
class MessageQuery:
    room_id: str | None = None
    author_id: str | None = None
    include_archived: bool = False
    created_before: datetime | None = None
    limit: int | None = DEFAULT_PAGE_SIZE


@dataclass(slots=True, frozen=True)
class MessageFilter:
    room_id: str | None = None
    author_id: str | None = None

    def is_empty(self) -> bool:
        return self.room_id is None and self.author_id is None


@dataclass(slots=True, frozen=True)
class BulkResult:
    matched: int


class EntityStore(Protocol):
    """Persistence contract the cascade, membership and notification code relies on."""

    async def create_author(self, data: AuthorCreate) -> AuthorRead: ...

    async def get_author_by_id(self, author_id: str) -> AuthorRead | None: ...

    async def query_authors(self, query: AuthorQuery) -> list[AuthorRead]: ...

    async def update_author_by_id(self, author_id: str, patch: AuthorUpdate) -> AuthorRead | None: ...

    async def archive_author_by_id(self, author_id: str) -> AuthorRead | None: ...

    async def delete_author_by_id(self, author_id: str) -> AuthorRead | None: ...

    async def create_room(self, data: RoomCreate) -> RoomRead: ...

    async def get_room_by_id(self, room_id: str) -> RoomRead | None: ...

    async def query_rooms(self, query: RoomQuery) -> list[RoomRead]: ...

    async def update_room_by_id(self, room_id: str, patch: RoomUpdate) -> RoomRead | None: ...

    async def replace_room_members(
        self, room_id: str, members: list[MemberRead], is_archived: bool | None = None
    ) -> RoomRead | None: ...

    async def archive_room_by_id(self, room_id: str) -> RoomRead | None: ...

    async def delete_room_by_id(self, room_id: str) -> RoomRead | None: ...

    async def create_message(self, data: MessageCreate) -> MessageRead: ...

    async def get_message_by_id(self, message_id: str) -> MessageRead | None: ...

    async def query_messages(self, query: MessageQuery) -> list[MessageRead]: ...

    async def latest_message(self, room_id: str) -> MessageRead | None: ...

    async def update_message_by_id(self, message_id: str, patch: MessageUpdate) -> MessageRead | None: ...

    async def archive_message_by_id(self, message_id: str) -> MessageRead | None: ...

    async def delete_message_by_id(self, message_id: str) -> MessageRead | None: ...

    async def bulk_archive_messages(self, where: MessageFilter) -> BulkResult: ...

    async def bulk_delete_messages(self, where: MessageFilter) -> BulkResult: ...
