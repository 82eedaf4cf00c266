import asyncio
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum

from app.schemas.room import MemberRead
from app.services.locks import KeyedLock
from app.services.store.base import EntityStore, MessageFilter, RoomQuery

logger = logging.getLogger(__name__)


class RoomDirective(str, Enum):
    KEEP = "keep"
    ARCHIVE = "archive"
    DELETE = "delete"


@dataclass(slots=True, frozen=True)
class MembershipChange:
    members: list[MemberRead]
    active_count: int
    directive: RoomDirective
    changed: bool


@dataclass(slots=True, frozen=True)
class RoomOutcome:
    room_id: str
    directive: RoomDirective
    applied: bool


def _count_active(members: list[MemberRead]) -> int:
    return sum(1 for member in members if member.is_active)


def resolve_deactivation(members: list[MemberRead], author_id: str, is_archived: bool = False) -> MembershipChange:
    active_count = _count_active(members)
    if all(member.author_id != author_id for member in members):
        return MembershipChange(list(members), active_count, RoomDirective.KEEP, changed=False)

    updated = []
    roster_changed = False
    for member in members:
        if member.author_id == author_id and member.is_active:
            active_count -= 1
            roster_changed = True
            updated.append(member.model_copy(update={"is_active": False}))
        else:
            updated.append(member)

    # a negative count archives too
    if active_count <= 0:
        return MembershipChange(updated, active_count, RoomDirective.ARCHIVE, changed=roster_changed or not is_archived)
    return MembershipChange(updated, active_count, RoomDirective.KEEP, changed=roster_changed)


def resolve_removal(members: list[MemberRead], author_id: str) -> MembershipChange:
    active_count = _count_active(members)
    remaining = []
    removed = False
    for member in members:
        if member.author_id == author_id:
            removed = True
            if member.is_active:
                active_count -= 1
            continue
        remaining.append(member)

    if not removed:
        return MembershipChange(remaining, active_count, RoomDirective.KEEP, changed=False)
    if active_count <= 0:
        return MembershipChange(remaining, active_count, RoomDirective.DELETE, changed=True)
    return MembershipChange(remaining, active_count, RoomDirective.KEEP, changed=True)


class MembershipResolver:
    def __init__(self, store: EntityStore, locks: KeyedLock | None = None) -> None:
        self._store = store
        self._locks = locks if locks is not None else KeyedLock(enabled=False)

    async def rooms_of(self, author_id: str) -> list[str]:
        rooms = await self._store.query_rooms(
            RoomQuery(author_id=author_id, only_active=False, include_archived=True, limit=None)
        )
        return [room.id for room in rooms]

    async def deactivate_member(self, author_id: str) -> list[RoomOutcome]:
        """Mark author_id inactive in every room it belongs to, archiving rooms left without active members."""
        return await self._fan_out(await self.rooms_of(author_id), author_id, self._deactivate_in_room)

    async def remove_member(self, author_id: str) -> list[RoomOutcome]:
        """Drop author_id from every room it belongs to, deleting rooms left without active members."""
        return await self._fan_out(await self.rooms_of(author_id), author_id, self._remove_from_room)

    async def _fan_out(
        self,
        room_ids: list[str],
        author_id: str,
        apply: Callable[[str, str], Awaitable[RoomOutcome]],
    ) -> list[RoomOutcome]:
        # no ordering between rooms; every subtask finishes before the first failure is raised
        results = await asyncio.gather(*(apply(room_id, author_id) for room_id in room_ids), return_exceptions=True)
        failures = [result for result in results if isinstance(result, BaseException)]
        if failures:
            logger.error(
                "membership_cascade_failed",
                extra={"author_id": author_id, "rooms": len(room_ids), "failures": len(failures)},
            )
            raise failures[0]
        return list(results)

    async def _deactivate_in_room(self, room_id: str, author_id: str) -> RoomOutcome:
        async with self._locks.hold(room_id):
            room = await self._store.get_room_by_id(room_id)
            if room is None:
                return RoomOutcome(room_id, RoomDirective.KEEP, applied=False)
            change = resolve_deactivation(room.members, author_id, is_archived=room.is_archived)
            if not change.changed:
                return RoomOutcome(room_id, change.directive, applied=False)

            archive = change.directive is RoomDirective.ARCHIVE
            await self._store.replace_room_members(room_id, change.members, is_archived=room.is_archived or archive)
            if archive:
                await self._store.bulk_archive_messages(MessageFilter(room_id=room_id))
                logger.info("room_auto_archived", extra={"room_id": room_id, "author_id": author_id})
            return RoomOutcome(room_id, change.directive, applied=True)

    async def _remove_from_room(self, room_id: str, author_id: str) -> RoomOutcome:
        async with self._locks.hold(room_id):
            room = await self._store.get_room_by_id(room_id)
            if room is None:
                return RoomOutcome(room_id, RoomDirective.KEEP, applied=False)
            change = resolve_removal(room.members, author_id)
            if not change.changed:
                return RoomOutcome(room_id, change.directive, applied=False)

            if change.directive is RoomDirective.DELETE:
                await self._store.delete_room_by_id(room_id)
                await self._store.bulk_delete_messages(MessageFilter(room_id=room_id))
                logger.info("room_auto_deleted", extra={"room_id": room_id, "author_id": author_id})
            else:
                await self._store.replace_room_members(room_id, change.members)
            return RoomOutcome(room_id, change.directive, applied=True)
