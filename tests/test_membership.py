import pytest

from app.schemas.room import MemberRead
from app.services.locks import KeyedLock
from app.services.membership import MembershipResolver, RoomDirective, resolve_deactivation, resolve_removal


def _members(*pairs):
    return [MemberRead(author_id=author_id, is_active=active) for author_id, active in pairs]


def test_deactivation_keeps_room_with_other_active_members():
    change = resolve_deactivation(_members(("a1", True), ("a2", True)), "a1")

    assert change.directive is RoomDirective.KEEP
    assert change.changed
    assert change.active_count == 1
    assert [(m.author_id, m.is_active) for m in change.members] == [("a1", False), ("a2", True)]


def test_deactivation_of_last_active_member_archives():
    change = resolve_deactivation(_members(("a1", True), ("a2", False)), "a1")

    assert change.directive is RoomDirective.ARCHIVE
    assert change.active_count == 0
    assert all(not member.is_active for member in change.members)


def test_deactivation_of_inactive_member_in_dead_room_still_archives():
    change = resolve_deactivation(_members(("a1", False)), "a1", is_archived=False)

    assert change.directive is RoomDirective.ARCHIVE
    assert change.changed


def test_deactivation_of_inactive_member_in_archived_room_is_noop():
    change = resolve_deactivation(_members(("a1", False)), "a1", is_archived=True)

    assert change.directive is RoomDirective.ARCHIVE
    assert not change.changed


def test_deactivation_ignores_rooms_without_the_author():
    members = _members(("a2", True))
    change = resolve_deactivation(members, "a1")

    assert change.directive is RoomDirective.KEEP
    assert not change.changed
    assert change.members == members


def test_deactivation_never_mutates_input():
    members = _members(("a1", True))
    resolve_deactivation(members, "a1")
    assert members[0].is_active


def test_removal_drops_member_and_keeps_room():
    change = resolve_removal(_members(("a1", True), ("a2", True)), "a1")

    assert change.directive is RoomDirective.KEEP
    assert change.changed
    assert [m.author_id for m in change.members] == ["a2"]


def test_removal_of_last_active_member_deletes():
    change = resolve_removal(_members(("a1", True), ("a2", False)), "a1")

    assert change.directive is RoomDirective.DELETE
    assert change.active_count == 0
    assert [m.author_id for m in change.members] == ["a2"]


def test_removal_of_inactive_member_from_dead_room_deletes():
    change = resolve_removal(_members(("a1", False)), "a1")
    assert change.directive is RoomDirective.DELETE


def test_removal_ignores_rooms_without_the_author():
    change = resolve_removal([], "a1")

    assert change.directive is RoomDirective.KEEP
    assert not change.changed


@pytest.mark.anyio
async def test_rooms_of_includes_archived_and_inactive_memberships(store, seed):
    author = await seed.author()
    other = await seed.author("Grace", "Hopper")
    live = await seed.room(author, other, name="live")
    archived = await seed.room(author, name="archived")
    await store.archive_room_by_id(archived.id)
    await seed.room(other, name="elsewhere")

    resolver = MembershipResolver(store, KeyedLock())
    assert set(await resolver.rooms_of(author.id)) == {live.id, archived.id}


@pytest.mark.anyio
async def test_deactivate_member_reports_outcome_per_room(store, seed):
    a1 = await seed.author()
    a2 = await seed.author("Grace", "Hopper")
    shared = await seed.room(a1, a2, name="shared")
    solo = await seed.room(a1, name="solo")

    outcomes = await MembershipResolver(store, KeyedLock()).deactivate_member(a1.id)

    by_room = {outcome.room_id: outcome for outcome in outcomes}
    assert by_room[shared.id].directive is RoomDirective.KEEP
    assert by_room[solo.id].directive is RoomDirective.ARCHIVE
    assert all(outcome.applied for outcome in outcomes)


@pytest.mark.anyio
async def test_fan_out_raises_first_failure_after_all_rooms_finish(store, seed):
    a1 = await seed.author()
    first = await seed.room(a1, name="first")
    second = await seed.room(a1, name="second")

    class FlakyStore:
        def __init__(self, inner):
            self._inner = inner
            self.written = []

        def __getattr__(self, name):
            return getattr(self._inner, name)

        async def replace_room_members(self, room_id, members, is_archived=None):
            if room_id == first.id:
                raise RuntimeError("store unavailable")
            self.written.append(room_id)
            return await self._inner.replace_room_members(room_id, members, is_archived=is_archived)

    flaky = FlakyStore(store)
    with pytest.raises(RuntimeError, match="store unavailable"):
        await MembershipResolver(flaky, KeyedLock()).deactivate_member(a1.id)

    assert flaky.written == [second.id]
    assert (await store.get_room_by_id(second.id)).is_archived
