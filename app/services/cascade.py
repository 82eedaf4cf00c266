import logging
from dataclasses import dataclass, field
from typing import Generic, TypeVar

from app.core.errors import NotFoundError
from app.schemas.author import AuthorRead
from app.schemas.message import MessageRead
from app.schemas.room import RoomRead
from app.services.lifecycle import EntityState, state_of
from app.services.locks import KeyedLock
from app.services.membership import MembershipResolver, RoomOutcome
from app.services.store.base import EntityStore, MessageFilter

logger = logging.getLogger(__name__)

RecordT = TypeVar("RecordT", AuthorRead, RoomRead, MessageRead)


@dataclass(slots=True)
class CascadeResult(Generic[RecordT]):
    record: RecordT
    state: EntityState
    messages: int = 0
    rooms: list[RoomOutcome] = field(default_factory=list)


class CascadeEngine:
    """Archive/delete with referential cascades.

    The parent's own transition always commits before any dependent write. A
    failing cascade step propagates and leaves the parent change in place.
    """

    def __init__(self, store: EntityStore, membership: MembershipResolver, locks: KeyedLock | None = None) -> None:
        self._store = store
        self._membership = membership
        self._locks = locks if locks is not None else KeyedLock(enabled=False)

    async def archive_author(self, author_id: str) -> CascadeResult[AuthorRead]:
        async with self._locks.hold(author_id):
            author = await self._store.archive_author_by_id(author_id)
            if author is None:
                raise NotFoundError("Author not found.")
            messages = await self._store.bulk_archive_messages(MessageFilter(author_id=author_id))
            rooms = await self._membership.deactivate_member(author_id)

        logger.info(
            "author_archived",
            extra={"author_id": author_id, "messages": messages.matched, "rooms": _summarize(rooms)},
        )
        return CascadeResult(author, EntityState.ARCHIVED, messages.matched, rooms)

    async def delete_author(self, author_id: str) -> CascadeResult[AuthorRead]:
        async with self._locks.hold(author_id):
            author = await self._store.delete_author_by_id(author_id)
            if author is None:
                raise NotFoundError("Author not found.")
            messages = await self._store.bulk_delete_messages(MessageFilter(author_id=author_id))
            rooms = await self._membership.remove_member(author_id)

        logger.info(
            "author_deleted",
            extra={"author_id": author_id, "messages": messages.matched, "rooms": _summarize(rooms)},
        )
        return CascadeResult(author, EntityState.DELETED, messages.matched, rooms)

    async def archive_room(self, room_id: str) -> CascadeResult[RoomRead]:
        async with self._locks.hold(room_id):
            room = await self._store.archive_room_by_id(room_id)
            if room is None:
                raise NotFoundError("Room not found.")
            messages = await self._store.bulk_archive_messages(MessageFilter(room_id=room_id))

        logger.info("room_archived", extra={"room_id": room_id, "messages": messages.matched})
        return CascadeResult(room, EntityState.ARCHIVED, messages.matched)

    async def delete_room(self, room_id: str) -> CascadeResult[RoomRead]:
        async with self._locks.hold(room_id):
            room = await self._store.delete_room_by_id(room_id)
            if room is None:
                raise NotFoundError("Room not found.")
            messages = await self._store.bulk_delete_messages(MessageFilter(room_id=room_id))

        logger.info("room_deleted", extra={"room_id": room_id, "messages": messages.matched})
        return CascadeResult(room, EntityState.DELETED, messages.matched)

    async def archive_message(self, message_id: str) -> CascadeResult[MessageRead]:
        message = await self._store.archive_message_by_id(message_id)
        if message is None:
            raise NotFoundError("Message not found.")
        return CascadeResult(message, state_of(message))

    async def delete_message(self, message_id: str) -> CascadeResult[MessageRead]:
        message = await self._store.delete_message_by_id(message_id)
        if message is None:
            raise NotFoundError("Message not found.")
        return CascadeResult(message, EntityState.DELETED)


def _summarize(outcomes: list[RoomOutcome]) -> dict[str, int]:
    summary: dict[str, int] = {}
    for outcome in outcomes:
        if outcome.applied:
            summary[outcome.directive.value] = summary.get(outcome.directive.value, 0) + 1
    return summary
