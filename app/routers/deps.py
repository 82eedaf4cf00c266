from datetime import datetime, timezone

from fastapi import Request, WebSocket

from app.core.errors import ValidationError
from app.realtime.commands import CommandDispatcher
from app.realtime.hub import ChannelHub
from app.services.chat import ChatService


def get_chat_service(request: Request) -> ChatService:
    return request.app.state.chat


def get_hub(websocket: WebSocket) -> ChannelHub:
    return websocket.app.state.hub


def get_dispatcher(websocket: WebSocket) -> CommandDispatcher:
    return websocket.app.state.dispatcher


def from_millis(value: int | None, field: str) -> datetime | None:
    """Milliseconds since the epoch, as clients send them, to an aware datetime."""
    if value is None:
        return None
    try:
        return datetime.fromtimestamp(value / 1000, tz=timezone.utc)
    except (OverflowError, OSError, ValueError):
        raise ValidationError({field: "invalid"}) from None
