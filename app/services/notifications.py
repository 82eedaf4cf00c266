import logging
from collections.abc import Iterable
from enum import Enum
from typing import Any, Protocol

from app.schemas.author import AuthorRead
from app.schemas.common import ApiModel
from app.schemas.message import MessageRead
from app.schemas.room import RoomRead
from app.services.store.base import EntityStore, RoomQuery

logger = logging.getLogger(__name__)


class EventType(str, Enum):
    AUTHOR_UPDATED = "authorUpdated"
    AUTHOR_ARCHIVED = "authorArchived"
    AUTHOR_DELETED = "authorDeleted"
    ROOM_CREATED = "roomCreated"
    ROOM_UPDATED = "roomUpdated"
    ROOM_ARCHIVED = "roomArchived"
    ROOM_DELETED = "roomDeleted"
    ROOM_JOINED = "roomJoined"
    ROOMS_JOINED = "roomsJoined"
    ROOM_LEFT = "roomLeft"
    ROOMS_LEFT = "roomsLeft"
    MESSAGE_CREATED = "messageCreated"
    MESSAGE_UPDATED = "messageUpdated"
    MESSAGE_ARCHIVED = "messageArchived"
    MESSAGE_DELETED = "messageDeleted"


class ChannelPublisher(Protocol):
    async def publish(
        self, channels: Iterable[str], event: str, payload: dict[str, Any], *, exclude: str | None = None
    ) -> int:
        """Deliver once to every live connection subscribed to any of channels; returns the delivery count."""
        ...


def envelope(name: str, record: ApiModel) -> dict[str, Any]:
    return {name: record.model_dump(mode="json", by_alias=True)}


class NotificationRouter:
    """Decides who hears about a mutation and emits one event per target channel.

    `exclude` is the originating connection id; it never receives its own
    broadcast (it gets an acknowledgement instead).
    """

    def __init__(self, publisher: ChannelPublisher, store: EntityStore) -> None:
        self._publisher = publisher
        self._store = store

    async def author_channels(self, author_id: str) -> list[str]:
        rooms = await self._store.query_rooms(
            RoomQuery(author_id=author_id, only_active=False, include_archived=True, limit=None)
        )
        return [room.id for room in rooms]

    async def author_changed(
        self, event: EventType, author: AuthorRead, channels: list[str], exclude: str | None = None
    ) -> int:
        if not channels:
            return 0
        return await self._emit(channels, event, envelope("author", author), exclude)

    async def room_created(self, room: RoomRead, exclude: str | None = None) -> int:
        payload = envelope("room", room)
        delivered = 0
        for member in room.members:
            delivered += await self._emit([member.author_id], EventType.ROOM_CREATED, payload, exclude)
        return delivered

    async def room_changed(self, event: EventType, room: RoomRead, exclude: str | None = None) -> int:
        return await self._emit([room.id], event, envelope("room", room), exclude)

    async def message_created(self, message: MessageRead, exclude: str | None = None) -> int:
        room = await self._store.get_room_by_id(message.room_id)
        if room is None:
            return 0
        payload = envelope("message", message)
        delivered = 0
        for member in room.active_members():
            delivered += await self._emit([member.author_id], EventType.MESSAGE_CREATED, payload, exclude)
        return delivered

    async def message_changed(self, event: EventType, message: MessageRead, exclude: str | None = None) -> int:
        return await self._emit([message.room_id], event, envelope("message", message), exclude)

    async def _emit(self, channels: list[str], event: EventType, payload: dict[str, Any], exclude: str | None) -> int:
        delivered = await self._publisher.publish(channels, event.value, payload, exclude=exclude)
        logger.debug("event_published", extra={"event": event.value, "channels": len(channels), "delivered": delivered})
        return delivered
