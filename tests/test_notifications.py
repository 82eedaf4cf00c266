import pytest

from app.schemas.author import AuthorUpdate
from app.schemas.message import MessageCreate, MessageUpdate
from app.schemas.room import MemberIn, RoomCreate, RoomUpdate

pytestmark = pytest.mark.anyio


async def test_message_created_reaches_each_active_member_once(chat, seed, publisher):
    a1 = await seed.author()
    a2 = await seed.author("Grace", "Hopper")
    a3 = await seed.author("Alan", "Turing")
    room = await chat.create_room(
        RoomCreate(
            name="team",
            members=[MemberIn(author_id=a1.id), MemberIn(author_id=a2.id), MemberIn(author_id=a3.id, is_active=False)],
        )
    )
    publisher.events.clear()

    message = await chat.create_message(MessageCreate(room_id=room.id, author_id=a1.id, text="hi"), origin="conn-1")

    created = publisher.of("messageCreated")
    assert sorted(channel for event in created for channel in event.channels) == sorted([a1.id, a2.id])
    assert all(event.exclude == "conn-1" for event in created)
    assert created[0].payload == {"message": message.model_dump(mode="json", by_alias=True)}


async def test_room_created_notifies_every_listed_member(chat, seed, publisher):
    a1 = await seed.author()
    a2 = await seed.author("Grace", "Hopper")

    await chat.create_room(
        RoomCreate(name="team", members=[MemberIn(author_id=a1.id), MemberIn(author_id=a2.id, is_active=False)])
    )

    assert [event.channels for event in publisher.of("roomCreated")] == [[a1.id], [a2.id]]


async def test_room_changes_go_to_the_room_channel(chat, seed, publisher):
    a1 = await seed.author()
    room = await seed.room(a1)

    await chat.update_room(room.id, RoomUpdate(name="renamed"), origin="conn-1")
    await chat.archive_room(room.id)
    await chat.delete_room(room.id)

    assert [(event.event, event.channels) for event in publisher.events] == [
        ("roomUpdated", [room.id]),
        ("roomArchived", [room.id]),
        ("roomDeleted", [room.id]),
    ]
    assert publisher.events[0].exclude == "conn-1"
    assert publisher.events[1].exclude is None
    assert publisher.events[0].payload["room"]["name"] == "renamed"


async def test_message_changes_go_to_the_room_channel(chat, seed, publisher):
    a1 = await seed.author()
    room = await seed.room(a1)
    message = await seed.message(room, a1)

    await chat.update_message(message.id, MessageUpdate(text="edited"))
    await chat.archive_message(message.id)
    await chat.delete_message(message.id)

    assert [(event.event, event.channels) for event in publisher.events] == [
        ("messageUpdated", [room.id]),
        ("messageArchived", [room.id]),
        ("messageDeleted", [room.id]),
    ]


async def test_author_events_cover_every_room_including_archived(chat, store, seed, publisher):
    a1 = await seed.author()
    a2 = await seed.author("Grace", "Hopper")
    open_room = await seed.room(a1, a2, name="open")
    closed_room = await seed.room(a1, name="closed")
    await store.archive_room_by_id(closed_room.id)
    await seed.room(a2, name="unrelated")

    await chat.update_author(a1.id, AuthorUpdate(first_name="Augusta"))

    (event,) = publisher.of("authorUpdated")
    assert set(event.channels) == {open_room.id, closed_room.id}
    assert event.payload["author"]["firstName"] == "Augusta"


async def test_author_delete_targets_rooms_resolved_before_cascade(chat, store, seed, publisher):
    a1 = await seed.author()
    solo = await seed.room(a1, name="solo")

    await chat.delete_author(a1.id, origin="conn-9")

    assert await store.get_room_by_id(solo.id) is None
    (event,) = publisher.of("authorDeleted")
    assert event.channels == [solo.id]
    assert event.exclude == "conn-9"


async def test_author_without_rooms_publishes_nothing(chat, seed, publisher):
    a1 = await seed.author()
    await chat.archive_author(a1.id)
    assert publisher.events == []


async def test_list_rooms_attaches_most_recent_message(chat, seed):
    a1 = await seed.author()
    busy = await seed.room(a1, name="busy")
    quiet = await seed.room(a1, name="quiet")
    await seed.message(busy, a1, text="old")
    newest = await seed.message(busy, a1, text="new")

    summaries = {room.id: room for room in await chat.list_rooms(author_id=a1.id)}

    assert summaries[busy.id].most_recent_message.id == newest.id
    assert summaries[quiet.id].most_recent_message is None


async def test_zero_limit_means_unlimited(chat, seed):
    for index in range(12):
        await seed.author(first_name=f"Author{index}")

    assert len(await chat.list_authors()) == 10
    assert len(await chat.list_authors(limit=0)) == 12
    assert len(await chat.list_authors(limit=3)) == 3
