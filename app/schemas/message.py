from pydantic import Field

from app.schemas.common import ApiModel, TimestampedRead


class MessageCreate(ApiModel):
    room_id: str | None = None
    author_id: str | None = None
    text: str | None = None


class MessageUpdate(ApiModel):
    text: str | None = None


class MessageRead(TimestampedRead):
    id: str
    room_id: str
    author_id: str
    text: str
    is_archived: bool = False


class MessageResponse(ApiModel):
    message: MessageRead


class MessageListResponse(ApiModel):
    messages: list[MessageRead] = Field(default_factory=list)
