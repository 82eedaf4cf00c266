import asyncio
from datetime import datetime

from app.core.errors import NotFoundError
from app.schemas.author import AuthorCreate, AuthorRead, AuthorUpdate
from app.schemas.message import MessageCreate, MessageRead, MessageUpdate
from app.schemas.room import RoomCreate, RoomRead, RoomSummary, RoomUpdate
from app.services.cascade import CascadeEngine
from app.services.locks import KeyedLock
from app.services.membership import MembershipResolver
from app.services.notifications import ChannelPublisher, EventType, NotificationRouter
from app.services.store.base import DEFAULT_PAGE_SIZE, AuthorQuery, EntityStore, MessageQuery, RoomQuery


class ChatService:
    """Entry point shared by the REST routers and the realtime commands.

    `origin` identifies the realtime connection that issued a mutation so it is
    left out of the resulting broadcast; REST callers pass None.
    """

    def __init__(
        self,
        store: EntityStore,
        publisher: ChannelPublisher,
        page_size: int = DEFAULT_PAGE_SIZE,
        locking: bool = True,
    ) -> None:
        self.store = store
        self.page_size = page_size
        self.locks = KeyedLock(enabled=locking)
        self.membership = MembershipResolver(store, self.locks)
        self.cascade = CascadeEngine(store, self.membership, self.locks)
        self.notifications = NotificationRouter(publisher, store)

    def _page(self, limit: int | None) -> int | None:
        if limit is None:
            return self.page_size
        return limit or None

    # ---------------------- AUTHORS ----------------------

    async def create_author(self, data: AuthorCreate) -> AuthorRead:
        return await self.store.create_author(data)

    async def list_authors(
        self, include_archived: bool = False, created_before: datetime | None = None, limit: int | None = None
    ) -> list[AuthorRead]:
        return await self.store.query_authors(
            AuthorQuery(include_archived=include_archived, created_before=created_before, limit=self._page(limit))
        )

    async def get_author(self, author_id: str) -> AuthorRead:
        author = await self.store.get_author_by_id(author_id)
        if author is None:
            raise NotFoundError("Author not found.")
        return author

    async def update_author(self, author_id: str, patch: AuthorUpdate, origin: str | None = None) -> AuthorRead:
        author = await self.store.update_author_by_id(author_id, patch)
        if author is None:
            raise NotFoundError("Author not found.")
        channels = await self.notifications.author_channels(author_id)
        await self.notifications.author_changed(EventType.AUTHOR_UPDATED, author, channels, exclude=origin)
        return author

    async def archive_author(self, author_id: str, origin: str | None = None) -> AuthorRead:
        # rooms are resolved before the cascade rewrites their rosters
        channels = await self.notifications.author_channels(author_id)
        result = await self.cascade.archive_author(author_id)
        await self.notifications.author_changed(EventType.AUTHOR_ARCHIVED, result.record, channels, exclude=origin)
        return result.record

    async def delete_author(self, author_id: str, origin: str | None = None) -> AuthorRead:
        channels = await self.notifications.author_channels(author_id)
        result = await self.cascade.delete_author(author_id)
        await self.notifications.author_changed(EventType.AUTHOR_DELETED, result.record, channels, exclude=origin)
        return result.record

    # ---------------------- ROOMS ----------------------

    async def create_room(self, data: RoomCreate, origin: str | None = None) -> RoomRead:
        room = await self.store.create_room(data)
        await self.notifications.room_created(room, exclude=origin)
        return room

    async def list_rooms(
        self,
        author_id: str | None = None,
        only_active: bool = True,
        include_archived: bool = False,
        updated_before: datetime | None = None,
        limit: int | None = None,
    ) -> list[RoomSummary]:
        rooms = await self.store.query_rooms(
            RoomQuery(
                author_id=author_id,
                only_active=only_active,
                include_archived=include_archived,
                updated_before=updated_before,
                limit=self._page(limit),
            )
        )
        latest = await asyncio.gather(*(self.store.latest_message(room.id) for room in rooms))
        return [
            RoomSummary(**room.model_dump(), most_recent_message=message) for room, message in zip(rooms, latest)
        ]

    async def get_room(self, room_id: str) -> RoomRead:
        room = await self.store.get_room_by_id(room_id)
        if room is None:
            raise NotFoundError("Room not found.")
        return room

    async def update_room(self, room_id: str, patch: RoomUpdate, origin: str | None = None) -> RoomRead:
        async with self.locks.hold(room_id):
            room = await self.store.update_room_by_id(room_id, patch)
        if room is None:
            raise NotFoundError("Room not found.")
        await self.notifications.room_changed(EventType.ROOM_UPDATED, room, exclude=origin)
        return room

    async def archive_room(self, room_id: str, origin: str | None = None) -> RoomRead:
        result = await self.cascade.archive_room(room_id)
        await self.notifications.room_changed(EventType.ROOM_ARCHIVED, result.record, exclude=origin)
        return result.record

    async def delete_room(self, room_id: str, origin: str | None = None) -> RoomRead:
        result = await self.cascade.delete_room(room_id)
        await self.notifications.room_changed(EventType.ROOM_DELETED, result.record, exclude=origin)
        return result.record

    # ---------------------- MESSAGES ----------------------

    async def create_message(self, data: MessageCreate, origin: str | None = None) -> MessageRead:
        message = await self.store.create_message(data)
        await self.notifications.message_created(message, exclude=origin)
        return message

    async def list_messages(
        self,
        room_id: str | None = None,
        author_id: str | None = None,
        include_archived: bool = False,
        created_before: datetime | None = None,
        limit: int | None = None,
    ) -> list[MessageRead]:
        return await self.store.query_messages(
            MessageQuery(
                room_id=room_id,
                author_id=author_id,
                include_archived=include_archived,
                created_before=created_before,
                limit=self._page(limit),
            )
        )

    async def get_message(self, message_id: str) -> MessageRead:
        message = await self.store.get_message_by_id(message_id)
        if message is None:
            raise NotFoundError("Message not found.")
        return message

    async def update_message(self, message_id: str, patch: MessageUpdate, origin: str | None = None) -> MessageRead:
        message = await self.store.update_message_by_id(message_id, patch)
        if message is None:
            raise NotFoundError("Message not found.")
        await self.notifications.message_changed(EventType.MESSAGE_UPDATED, message, exclude=origin)
        return message

    async def archive_message(self, message_id: str, origin: str | None = None) -> MessageRead:
        result = await self.cascade.archive_message(message_id)
        await self.notifications.message_changed(EventType.MESSAGE_ARCHIVED, result.record, exclude=origin)
        return result.record

    async def delete_message(self, message_id: str, origin: str | None = None) -> MessageRead:
        result = await self.cascade.delete_message(message_id)
        await self.notifications.message_changed(EventType.MESSAGE_DELETED, result.record, exclude=origin)
        return result.record
