from pydantic import Field

from app.schemas.common import ApiModel, TimestampedRead


class AuthorCreate(ApiModel):
    id: str | None = None
    first_name: str | None = None
    last_name: str | None = None


class AuthorUpdate(ApiModel):
    first_name: str | None = None
    last_name: str | None = None


class AuthorRead(TimestampedRead):
    id: str
    first_name: str
    last_name: str
    is_archived: bool = False


class AuthorResponse(ApiModel):
    author: AuthorRead


class AuthorListResponse(ApiModel):
    authors: list[AuthorRead] = Field(default_factory=list)
