from app.schemas.author import AuthorCreate, AuthorListResponse, AuthorRead, AuthorResponse, AuthorUpdate
from app.schemas.message import MessageCreate, MessageListResponse, MessageRead, MessageResponse, MessageUpdate
from app.schemas.room import (
    MemberIn,
    MemberRead,
    RoomCreate,
    RoomListResponse,
    RoomRead,
    RoomResponse,
    RoomSummary,
    RoomUpdate,
)

__all__ = [
    "AuthorCreate",
    "AuthorUpdate",
    "AuthorRead",
    "AuthorResponse",
    "AuthorListResponse",
    "RoomCreate",
    "RoomUpdate",
    "RoomRead",
    "RoomSummary",
    "RoomResponse",
    "RoomListResponse",
    "MemberIn",
    "MemberRead",
    "MessageCreate",
    "MessageUpdate",
    "MessageRead",
    "MessageResponse",
    "MessageListResponse",
]
