from typing import Any

from pydantic import BaseModel


class CommandFrame(BaseModel):
    """Inbound realtime frame: {"event": ..., "id": ..., "data": ...}."""

    event: str | None = None
    id: Any = None
    data: Any = None

    @classmethod
    def from_raw(cls, raw: Any) -> "CommandFrame":
        if not isinstance(raw, dict):
            return cls()
        event = raw.get("event")
        return cls(event=event if isinstance(event, str) else None, id=raw.get("id"), data=raw.get("data"))
