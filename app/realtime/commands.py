import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any

from app.core.errors import ApplicationError, ValidationError, format_error
from app.realtime.hub import Connection
from app.schemas.author import AuthorUpdate
from app.schemas.common import parse_payload
from app.schemas.message import MessageCreate, MessageUpdate
from app.schemas.realtime import CommandFrame
from app.schemas.room import RoomCreate, RoomUpdate
from app.services.chat import ChatService
from app.services.notifications import EventType, envelope

logger = logging.getLogger(__name__)


class CommandKind(str, Enum):
    UPDATE_AUTHOR = "updateAuthor"
    ARCHIVE_AUTHOR = "archiveAuthor"
    DELETE_AUTHOR = "deleteAuthor"
    CREATE_ROOM = "createRoom"
    UPDATE_ROOM = "updateRoom"
    ARCHIVE_ROOM = "archiveRoom"
    DELETE_ROOM = "deleteRoom"
    JOIN_ROOM = "joinRoom"
    JOIN_ROOMS = "joinRooms"
    LEAVE_ROOM = "leaveRoom"
    LEAVE_ROOMS = "leaveRooms"
    CREATE_MESSAGE = "createMessage"
    UPDATE_MESSAGE = "updateMessage"
    ARCHIVE_MESSAGE = "archiveMessage"
    DELETE_MESSAGE = "deleteMessage"


Handler = Callable[[Connection, Any, ChatService], Awaitable[dict[str, Any] | None]]


@dataclass(slots=True, frozen=True)
class Command:
    handler: Handler
    # subscription commands answer with their own event instead of an ack
    acknowledges: bool = True


def _target_id(data: Any) -> str:
    if not isinstance(data, dict) or not data.get("id"):
        raise ValidationError({"id": "required"})
    if not isinstance(data["id"], str):
        raise ValidationError({"id": "invalid"})
    return data["id"]


def _update_values(data: Any) -> Any:
    return data.get("updateValues") if isinstance(data, dict) else None


def _channel(data: Any) -> str:
    if not isinstance(data, str) or not data:
        raise ValidationError({"data": "invalid"})
    return data


def _channels(data: Any) -> list[str]:
    if not isinstance(data, list):
        raise ValidationError({"data": "invalid"})
    return [_channel(item) for item in data]


# ---------------------- AUTHORS ----------------------

async def update_author(conn: Connection, data: Any, service: ChatService) -> dict[str, Any]:
    patch = parse_payload(AuthorUpdate, _update_values(data))
    author = await service.update_author(_target_id(data), patch, origin=conn.id)
    return envelope("author", author)


async def archive_author(conn: Connection, data: Any, service: ChatService) -> dict[str, Any]:
    author = await service.archive_author(_target_id(data), origin=conn.id)
    return envelope("author", author)


async def delete_author(conn: Connection, data: Any, service: ChatService) -> dict[str, Any]:
    author = await service.delete_author(_target_id(data), origin=conn.id)
    return envelope("author", author)


# ---------------------- ROOMS ----------------------

async def create_room(conn: Connection, data: Any, service: ChatService) -> dict[str, Any]:
    room = await service.create_room(parse_payload(RoomCreate, data), origin=conn.id)
    return envelope("room", room)


async def update_room(conn: Connection, data: Any, service: ChatService) -> dict[str, Any]:
    patch = parse_payload(RoomUpdate, _update_values(data))
    room = await service.update_room(_target_id(data), patch, origin=conn.id)
    return envelope("room", room)


async def archive_room(conn: Connection, data: Any, service: ChatService) -> dict[str, Any]:
    room = await service.archive_room(_target_id(data), origin=conn.id)
    return envelope("room", room)


async def delete_room(conn: Connection, data: Any, service: ChatService) -> dict[str, Any]:
    room = await service.delete_room(_target_id(data), origin=conn.id)
    return envelope("room", room)


async def join_room(conn: Connection, data: Any, service: ChatService) -> None:
    channel = _channel(data)
    conn.subscribe(channel)
    await conn.emit(EventType.ROOM_JOINED.value, channel)


async def join_rooms(conn: Connection, data: Any, service: ChatService) -> None:
    channels = _channels(data)
    for channel in channels:
        conn.subscribe(channel)
    await conn.emit(EventType.ROOMS_JOINED.value, channels)


async def leave_room(conn: Connection, data: Any, service: ChatService) -> None:
    channel = _channel(data)
    conn.unsubscribe(channel)
    await conn.emit(EventType.ROOM_LEFT.value, channel)


async def leave_rooms(conn: Connection, data: Any, service: ChatService) -> None:
    channels = _channels(data)
    for channel in channels:
        conn.unsubscribe(channel)
    await conn.emit(EventType.ROOMS_LEFT.value, channels)


# ---------------------- MESSAGES ----------------------

async def create_message(conn: Connection, data: Any, service: ChatService) -> dict[str, Any]:
    message = await service.create_message(parse_payload(MessageCreate, data), origin=conn.id)
    return envelope("message", message)


async def update_message(conn: Connection, data: Any, service: ChatService) -> dict[str, Any]:
    patch = parse_payload(MessageUpdate, _update_values(data))
    message = await service.update_message(_target_id(data), patch, origin=conn.id)
    return envelope("message", message)


async def archive_message(conn: Connection, data: Any, service: ChatService) -> dict[str, Any]:
    message = await service.archive_message(_target_id(data), origin=conn.id)
    return envelope("message", message)


async def delete_message(conn: Connection, data: Any, service: ChatService) -> dict[str, Any]:
    message = await service.delete_message(_target_id(data), origin=conn.id)
    return envelope("message", message)


def build_registry() -> dict[CommandKind, Command]:
    registry = {
        CommandKind.UPDATE_AUTHOR: Command(update_author),
        CommandKind.ARCHIVE_AUTHOR: Command(archive_author),
        CommandKind.DELETE_AUTHOR: Command(delete_author),
        CommandKind.CREATE_ROOM: Command(create_room),
        CommandKind.UPDATE_ROOM: Command(update_room),
        CommandKind.ARCHIVE_ROOM: Command(archive_room),
        CommandKind.DELETE_ROOM: Command(delete_room),
        CommandKind.JOIN_ROOM: Command(join_room, acknowledges=False),
        CommandKind.JOIN_ROOMS: Command(join_rooms, acknowledges=False),
        CommandKind.LEAVE_ROOM: Command(leave_room, acknowledges=False),
        CommandKind.LEAVE_ROOMS: Command(leave_rooms, acknowledges=False),
        CommandKind.CREATE_MESSAGE: Command(create_message),
        CommandKind.UPDATE_MESSAGE: Command(update_message),
        CommandKind.ARCHIVE_MESSAGE: Command(archive_message),
        CommandKind.DELETE_MESSAGE: Command(delete_message),
    }
    missing = set(CommandKind) - set(registry)
    if missing:
        raise RuntimeError(f"No handler registered for: {sorted(kind.value for kind in missing)}")
    return registry


class CommandDispatcher:
    def __init__(self, service: ChatService, registry: dict[CommandKind, Command] | None = None) -> None:
        self._service = service
        self._registry = registry if registry is not None else build_registry()

    async def dispatch(self, conn: Connection, raw: Any) -> None:
        """Run one inbound frame; the originator hears back exactly once."""
        frame = CommandFrame.from_raw(raw)
        logger.debug("command_received", extra={"event": frame.event, "connection_id": conn.id})
        try:
            command = self._lookup(frame.event)
            data = await command.handler(conn, frame.data, self._service)
        except Exception as exc:  # noqa: BLE001
            error, _ = format_error(exc)
            await conn.ack(frame.id, error=error)
            return
        if command.acknowledges:
            await conn.ack(frame.id, data=data)

    def _lookup(self, event: str | None) -> Command:
        try:
            kind = CommandKind(event)
        except ValueError:
            raise ApplicationError(f"Unknown event: {event}", status_code=400) from None
        return self._registry[kind]
