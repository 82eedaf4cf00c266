import logging
from datetime import datetime, timezone

from sqlalchemy import and_, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.core.errors import FieldErrors, ValidationError
from app.core.ids import has_duplicates, is_uuid4
from app.models.author import Author
from app.models.common import utcnow
from app.models.message import Message
from app.models.room import Room, RoomMember
from app.schemas.author import AuthorCreate, AuthorRead, AuthorUpdate
from app.schemas.message import MessageCreate, MessageRead, MessageUpdate
from app.schemas.room import MemberIn, MemberRead, RoomCreate, RoomRead, RoomUpdate
from app.services.store.base import AuthorQuery, BulkResult, MessageFilter, MessageQuery, RoomQuery

logger = logging.getLogger(__name__)


def _as_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _require_text(errors: FieldErrors, path: str, value: str | None) -> None:
    if value is None or not value.strip():
        errors.add(path, "required")


class SQLEntityStore:
    """EntityStore backed by SQLAlchemy's asyncio extension.

    Every operation runs in its own session, so independent calls may run
    concurrently (the membership fan-out relies on this).
    """

    def __init__(self, sessionmaker: async_sessionmaker[AsyncSession]) -> None:
        self._sessionmaker = sessionmaker

    # ---------------------- AUTHORS ----------------------

    async def create_author(self, data: AuthorCreate) -> AuthorRead:
        errors = FieldErrors()
        if not data.id:
            errors.add("id", "required")
        elif not is_uuid4(data.id):
            errors.add("id", "invalid")
        _require_text(errors, "firstName", data.first_name)
        _require_text(errors, "lastName", data.last_name)

        async with self._sessionmaker() as session:
            if data.id and "id" not in errors and await session.get(Author, data.id) is not None:
                errors.add("id", "duplicate")
            errors.raise_if_any()

            author = Author(id=data.id, first_name=data.first_name, last_name=data.last_name)
            session.add(author)
            try:
                await session.commit()
            except IntegrityError as exc:
                await session.rollback()
                raise ValidationError({"id": "duplicate"}) from exc
            return AuthorRead.model_validate(author)

    async def get_author_by_id(self, author_id: str) -> AuthorRead | None:
        async with self._sessionmaker() as session:
            author = await session.get(Author, author_id)
            return AuthorRead.model_validate(author) if author else None

    async def query_authors(self, query: AuthorQuery) -> list[AuthorRead]:
        stmt = select(Author)
        if not query.include_archived:
            stmt = stmt.where(Author.is_archived.is_(False))
        if query.created_before is not None:
            stmt = stmt.where(Author.created_at < _as_utc(query.created_before))
        stmt = stmt.order_by(Author.created_at.desc())
        if query.limit:
            stmt = stmt.limit(query.limit)
        async with self._sessionmaker() as session:
            rows = (await session.scalars(stmt)).all()
            return [AuthorRead.model_validate(row) for row in rows]

    async def update_author_by_id(self, author_id: str, patch: AuthorUpdate) -> AuthorRead | None:
        async with self._sessionmaker() as session:
            author = await session.get(Author, author_id)
            if author is None:
                return None
            first_name = patch.first_name if patch.first_name is not None else author.first_name
            last_name = patch.last_name if patch.last_name is not None else author.last_name

            errors = FieldErrors()
            _require_text(errors, "firstName", first_name)
            _require_text(errors, "lastName", last_name)
            errors.raise_if_any()

            author.first_name = first_name
            author.last_name = last_name
            author.updated_at = utcnow()
            await session.commit()
            return AuthorRead.model_validate(author)

    async def archive_author_by_id(self, author_id: str) -> AuthorRead | None:
        async with self._sessionmaker() as session:
            author = await session.get(Author, author_id)
            if author is None:
                return None
            author.is_archived = True
            author.updated_at = utcnow()
            await session.commit()
            return AuthorRead.model_validate(author)

    async def delete_author_by_id(self, author_id: str) -> AuthorRead | None:
        async with self._sessionmaker() as session:
            author = await session.get(Author, author_id)
            if author is None:
                return None
            deleted = AuthorRead.model_validate(author)
            await session.delete(author)
            await session.commit()
            return deleted

    # ---------------------- ROOMS ----------------------

    async def _validate_members(self, session: AsyncSession, members: list[MemberIn], errors: FieldErrors) -> None:
        author_ids = [member.author_id for member in members if member.author_id]
        if has_duplicates(author_ids):
            errors.add("members", "duplicate")

        candidates = [author_id for author_id in author_ids if is_uuid4(author_id)]
        existing: set[str] = set()
        if candidates:
            existing = set((await session.scalars(select(Author.id).where(Author.id.in_(candidates)))).all())

        for index, member in enumerate(members):
            path = f"members.{index}.authorId"
            if not member.author_id:
                errors.add(path, "required")
            elif member.author_id not in existing:
                errors.add(path, "invalid")

    @staticmethod
    def _sync_members(room: Room, members: list[MemberIn] | list[MemberRead]) -> None:
        # reuse rows per author so the (room_id, author_id) constraint holds mid-flush
        current = {row.author_id: row for row in room.members}
        rows = []
        for position, member in enumerate(members):
            row = current.get(member.author_id)
            if row is None:
                row = RoomMember(author_id=member.author_id)
            row.position = position
            row.is_active = member.is_active
            rows.append(row)
        room.members = rows

    async def create_room(self, data: RoomCreate) -> RoomRead:
        errors = FieldErrors()
        _require_text(errors, "name", data.name)
        async with self._sessionmaker() as session:
            await self._validate_members(session, data.members, errors)
            errors.raise_if_any()

            room = Room(name=data.name, members=[])
            self._sync_members(room, data.members)
            session.add(room)
            await session.commit()
            return RoomRead.model_validate(room)

    async def get_room_by_id(self, room_id: str) -> RoomRead | None:
        async with self._sessionmaker() as session:
            room = await session.get(Room, room_id)
            return RoomRead.model_validate(room) if room else None

    async def query_rooms(self, query: RoomQuery) -> list[RoomRead]:
        stmt = select(Room)
        if query.author_id:
            condition = RoomMember.author_id == query.author_id
            if query.only_active:
                condition = and_(condition, RoomMember.is_active.is_(True))
            stmt = stmt.where(Room.members.any(condition))
        if not query.include_archived:
            stmt = stmt.where(Room.is_archived.is_(False))
        if query.updated_before is not None:
            stmt = stmt.where(Room.updated_at < _as_utc(query.updated_before))
        stmt = stmt.order_by(Room.updated_at.desc())
        if query.limit:
            stmt = stmt.limit(query.limit)
        async with self._sessionmaker() as session:
            rows = (await session.scalars(stmt)).all()
            return [RoomRead.model_validate(row) for row in rows]

    async def update_room_by_id(self, room_id: str, patch: RoomUpdate) -> RoomRead | None:
        async with self._sessionmaker() as session:
            room = await session.get(Room, room_id)
            if room is None:
                return None
            name = patch.name if patch.name is not None else room.name

            errors = FieldErrors()
            _require_text(errors, "name", name)
            if patch.members is not None:
                await self._validate_members(session, patch.members, errors)
            errors.raise_if_any()

            room.name = name
            if patch.members is not None:
                self._sync_members(room, patch.members)
            room.updated_at = utcnow()
            await session.commit()
            return RoomRead.model_validate(room)

    async def replace_room_members(
        self, room_id: str, members: list[MemberRead], is_archived: bool | None = None
    ) -> RoomRead | None:
        async with self._sessionmaker() as session:
            room = await session.get(Room, room_id)
            if room is None:
                return None
            self._sync_members(room, members)
            if is_archived is not None:
                room.is_archived = is_archived
            room.updated_at = utcnow()
            await session.commit()
            return RoomRead.model_validate(room)

    async def archive_room_by_id(self, room_id: str) -> RoomRead | None:
        async with self._sessionmaker() as session:
            room = await session.get(Room, room_id)
            if room is None:
                return None
            room.is_archived = True
            room.updated_at = utcnow()
            await session.commit()
            return RoomRead.model_validate(room)

    async def delete_room_by_id(self, room_id: str) -> RoomRead | None:
        async with self._sessionmaker() as session:
            room = await session.get(Room, room_id)
            if room is None:
                return None
            deleted = RoomRead.model_validate(room)
            await session.delete(room)
            await session.commit()
            return deleted

    # ---------------------- MESSAGES ----------------------

    async def create_message(self, data: MessageCreate) -> MessageRead:
        errors = FieldErrors()
        _require_text(errors, "text", data.text)
        async with self._sessionmaker() as session:
            room = None
            if not data.room_id:
                errors.add("roomId", "required")
            elif is_uuid4(data.room_id):
                room = await session.get(Room, data.room_id)
            if data.room_id and room is None:
                errors.add("roomId", "invalid")

            if not data.author_id:
                errors.add("authorId", "required")
            elif not is_uuid4(data.author_id) or await session.get(Author, data.author_id) is None:
                errors.add("authorId", "invalid")
            elif room is not None and all(row.author_id != data.author_id for row in room.members):
                errors.add("authorId", "invalid")
            errors.raise_if_any()

            message = Message(room_id=data.room_id, author_id=data.author_id, text=data.text)
            session.add(message)
            await session.commit()
            return MessageRead.model_validate(message)

    async def get_message_by_id(self, message_id: str) -> MessageRead | None:
        async with self._sessionmaker() as session:
            message = await session.get(Message, message_id)
            return MessageRead.model_validate(message) if message else None

    async def query_messages(self, query: MessageQuery) -> list[MessageRead]:
        stmt = select(Message)
        if query.room_id:
            stmt = stmt.where(Message.room_id == query.room_id)
        if query.author_id:
            stmt = stmt.where(Message.author_id == query.author_id)
        if not query.include_archived:
            stmt = stmt.where(Message.is_archived.is_(False))
        if query.created_before is not None:
            stmt = stmt.where(Message.created_at < _as_utc(query.created_before))
        stmt = stmt.order_by(Message.created_at.desc())
        if query.limit:
            stmt = stmt.limit(query.limit)
        async with self._sessionmaker() as session:
            rows = (await session.scalars(stmt)).all()
            return [MessageRead.model_validate(row) for row in rows]

    async def latest_message(self, room_id: str) -> MessageRead | None:
        stmt = (
            select(Message)
            .where(Message.room_id == room_id, Message.is_archived.is_(False))
            .order_by(Message.created_at.desc())
            .limit(1)
        )
        async with self._sessionmaker() as session:
            message = await session.scalar(stmt)
            return MessageRead.model_validate(message) if message else None

    async def update_message_by_id(self, message_id: str, patch: MessageUpdate) -> MessageRead | None:
        async with self._sessionmaker() as session:
            message = await session.get(Message, message_id)
            if message is None:
                return None
            text = patch.text if patch.text is not None else message.text

            errors = FieldErrors()
            _require_text(errors, "text", text)
            errors.raise_if_any()

            message.text = text
            message.updated_at = utcnow()
            await session.commit()
            return MessageRead.model_validate(message)

    async def archive_message_by_id(self, message_id: str) -> MessageRead | None:
        async with self._sessionmaker() as session:
            message = await session.get(Message, message_id)
            if message is None:
                return None
            message.is_archived = True
            message.updated_at = utcnow()
            await session.commit()
            return MessageRead.model_validate(message)

    async def delete_message_by_id(self, message_id: str) -> MessageRead | None:
        async with self._sessionmaker() as session:
            message = await session.get(Message, message_id)
            if message is None:
                return None
            deleted = MessageRead.model_validate(message)
            await session.delete(message)
            await session.commit()
            return deleted

    @staticmethod
    def _message_conditions(where: MessageFilter) -> list:
        if where.is_empty():
            raise ValueError("Bulk message operations need a room_id or author_id filter")
        conditions = []
        if where.room_id is not None:
            conditions.append(Message.room_id == where.room_id)
        if where.author_id is not None:
            conditions.append(Message.author_id == where.author_id)
        return conditions

    async def bulk_archive_messages(self, where: MessageFilter) -> BulkResult:
        stmt = (
            update(Message)
            .where(*self._message_conditions(where))
            .values(is_archived=True, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        async with self._sessionmaker() as session:
            result = await session.execute(stmt)
            matched = result.rowcount or 0
            await session.commit()
        logger.debug("messages_bulk_archived", extra={"room_id": where.room_id, "author_id": where.author_id})
        return BulkResult(matched=matched)

    async def bulk_delete_messages(self, where: MessageFilter) -> BulkResult:
        stmt = delete(Message).where(*self._message_conditions(where)).execution_options(synchronize_session=False)
        async with self._sessionmaker() as session:
            result = await session.execute(stmt)
            matched = result.rowcount or 0
            await session.commit()
        logger.debug("messages_bulk_deleted", extra={"room_id": where.room_id, "author_id": where.author_id})
        return BulkResult(matched=matched)
