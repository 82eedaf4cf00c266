import os
import uuid
from dataclasses import dataclass, field
from typing import Any

import pytest
from fastapi.testclient import TestClient

os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///./test.db"
os.environ["AUTO_CREATE_TABLES"] = "true"
os.environ["ENVIRONMENT"] = "test"

from app.core.config import Settings
from app.db.session import create_engine, create_sessionmaker, drop_db, init_db
from app.main import create_app
from app.schemas.author import AuthorCreate, AuthorRead
from app.schemas.message import MessageCreate, MessageRead
from app.schemas.room import MemberIn, RoomCreate, RoomRead
from app.services.chat import ChatService
from app.services.store import SQLEntityStore


@dataclass
class Published:
    channels: list[str]
    event: str
    payload: dict[str, Any]
    exclude: str | None = None


@dataclass
class RecordingPublisher:
    events: list[Published] = field(default_factory=list)

    async def publish(self, channels, event, payload, *, exclude=None) -> int:
        channels = list(channels)
        self.events.append(Published(channels, event, payload, exclude))
        return len(channels)

    def of(self, event: str) -> list[Published]:
        return [published for published in self.events if published.event == event]


class Seeder:
    def __init__(self, store: SQLEntityStore) -> None:
        self.store = store

    async def author(self, first_name: str = "Ada", last_name: str = "Lovelace") -> AuthorRead:
        return await self.store.create_author(
            AuthorCreate(id=str(uuid.uuid4()), first_name=first_name, last_name=last_name)
        )

    async def room(self, *authors: AuthorRead, name: str = "general") -> RoomRead:
        members = [MemberIn(author_id=author.id) for author in authors]
        return await self.store.create_room(RoomCreate(name=name, members=members))

    async def message(self, room: RoomRead, author: AuthorRead, text: str = "hello") -> MessageRead:
        return await self.store.create_message(MessageCreate(room_id=room.id, author_id=author.id, text=text))


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'test.db'}",
        environment="test",
        auto_create_tables=True,
    )


@pytest.fixture
async def store(settings):
    engine = create_engine(settings)
    await init_db(engine)
    try:
        yield SQLEntityStore(create_sessionmaker(engine))
    finally:
        await drop_db(engine)
        await engine.dispose()


@pytest.fixture
def seed(store) -> Seeder:
    return Seeder(store)


@pytest.fixture
def publisher() -> RecordingPublisher:
    return RecordingPublisher()


@pytest.fixture
def chat(store, publisher) -> ChatService:
    return ChatService(store, publisher)


@pytest.fixture()
def client(settings):
    app = create_app(settings)
    with TestClient(app) as test_client:
        yield test_client
