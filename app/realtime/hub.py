import asyncio
import logging
from collections import defaultdict
from collections.abc import Iterable
from typing import Any, Protocol

from app.core.ids import generate_id

logger = logging.getLogger(__name__)


class FrameSocket(Protocol):
    async def send_json(self, data: Any, mode: str = "text") -> None: ...


class Connection:
    """One live realtime client and the channels it listens on."""

    def __init__(self, socket: FrameSocket, hub: "ChannelHub") -> None:
        self.id = generate_id()
        self.socket = socket
        self.channels: set[str] = set()
        self.closed = False
        self._hub = hub
        self._send_lock = asyncio.Lock()

    def subscribe(self, channel: str) -> None:
        self._hub.subscribe(self, channel)

    def unsubscribe(self, channel: str) -> None:
        self._hub.unsubscribe(self, channel)

    async def send(self, frame: dict[str, Any]) -> bool:
        if self.closed:
            return False
        try:
            async with self._send_lock:
                await self.socket.send_json(frame)
        except Exception as exc:  # noqa: BLE001
            self.closed = True
            logger.warning("connection_send_failed", extra={"connection_id": self.id, "error": str(exc)})
            return False
        return True

    async def emit(self, event: str, data: Any) -> bool:
        return await self.send({"event": event, "data": data})

    async def ack(self, ack_id: Any, data: Any = None, error: dict[str, Any] | None = None) -> bool:
        frame: dict[str, Any] = {"event": "ack", "id": ack_id}
        if error is not None:
            frame["error"] = error
        else:
            frame["data"] = data
        return await self.send(frame)


class ChannelHub:
    """In-memory channel subscriptions for the connections of this process."""

    def __init__(self) -> None:
        self._channels: dict[str, dict[str, Connection]] = defaultdict(dict)
        self._connections: dict[str, Connection] = {}

    def register(self, connection: Connection) -> None:
        self._connections[connection.id] = connection
        logger.info("connection_opened", extra={"connection_id": connection.id})

    def unregister(self, connection: Connection) -> None:
        for channel in list(connection.channels):
            self.unsubscribe(connection, channel)
        if self._connections.pop(connection.id, None) is not None:
            logger.info("connection_closed", extra={"connection_id": connection.id})

    def subscribe(self, connection: Connection, channel: str) -> None:
        self._channels[channel][connection.id] = connection
        connection.channels.add(channel)

    def unsubscribe(self, connection: Connection, channel: str) -> None:
        connection.channels.discard(channel)
        members = self._channels.get(channel)
        if members is None:
            return
        members.pop(connection.id, None)
        if not members:
            self._channels.pop(channel, None)

    def subscribers(self, channel: str) -> list[Connection]:
        return list(self._channels.get(channel, {}).values())

    @property
    def connection_count(self) -> int:
        return len(self._connections)

    async def publish(
        self, channels: Iterable[str], event: str, payload: dict[str, Any], *, exclude: str | None = None
    ) -> int:
        targets: dict[str, Connection] = {}
        for channel in channels:
            for connection_id, connection in self._channels.get(channel, {}).items():
                if connection_id != exclude:
                    targets[connection_id] = connection
        if not targets:
            return 0

        frame = {"event": event, "data": payload}
        results = await asyncio.gather(*(connection.send(frame) for connection in targets.values()))
        for connection, sent in zip(targets.values(), results):
            if not sent:
                self.unregister(connection)
        return sum(1 for sent in results if sent)
