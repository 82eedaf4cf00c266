from enum import Enum
from typing import Protocol


class Archivable(Protocol):
    is_archived: bool


class EntityState(str, Enum):
    """Lifecycle of an Author, Room or Message.

    Only ACTIVE and ARCHIVED are persisted; DELETED is the absence of a record.
    """

    ACTIVE = "active"
    ARCHIVED = "archived"
    DELETED = "deleted"


def state_of(record: Archivable | None) -> EntityState:
    if record is None:
        return EntityState.DELETED
    return EntityState.ARCHIVED if record.is_archived else EntityState.ACTIVE
