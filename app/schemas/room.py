from pydantic import Field

from app.schemas.common import ApiModel, TimestampedRead
from app.schemas.message import MessageRead


class MemberIn(ApiModel):
    author_id: str | None = None
    is_active: bool = True


class MemberRead(ApiModel):
    author_id: str
    is_active: bool = True


class RoomCreate(ApiModel):
    name: str | None = None
    members: list[MemberIn] = Field(default_factory=list)


class RoomUpdate(ApiModel):
    name: str | None = None
    members: list[MemberIn] | None = None


class RoomRead(TimestampedRead):
    id: str
    name: str
    members: list[MemberRead] = Field(default_factory=list)
    is_archived: bool = False

    def active_members(self) -> list[MemberRead]:
        return [member for member in self.members if member.is_active]


class RoomSummary(RoomRead):
    most_recent_message: MessageRead | None = None


class RoomResponse(ApiModel):
    room: RoomRead


class RoomListResponse(ApiModel):
    rooms: list[RoomSummary] = Field(default_factory=list)
