import asyncio
import json
import logging

from fastapi import APIRouter, Depends, Query, WebSocket

from app.realtime.commands import CommandDispatcher
from app.realtime.hub import ChannelHub, Connection
from app.routers.deps import get_dispatcher, get_hub

router = APIRouter(tags=["realtime"])
logger = logging.getLogger(__name__)

MALFORMED_FRAME = {"message": "Malformed frame."}


@router.websocket("/ws")
async def realtime(
    websocket: WebSocket,
    author_id: str | None = Query(None, alias="authorId"),
    hub: ChannelHub = Depends(get_hub),
    dispatcher: CommandDispatcher = Depends(get_dispatcher),
) -> None:
    await websocket.accept()
    conn = Connection(websocket, hub)
    hub.register(conn)
    if author_id:
        # push notifications (roomCreated, messageCreated) arrive on the author's own channel
        conn.subscribe(author_id)

    pending: set[asyncio.Task] = set()
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            try:
                frame = json.loads(message["text"]) if message.get("text") is not None else None
            except json.JSONDecodeError:
                frame = None
            if frame is None:
                await conn.ack(None, error=MALFORMED_FRAME)
                continue
            # frames are dispatched as independent tasks
            task = asyncio.create_task(dispatcher.dispatch(conn, frame))
            pending.add(task)
            task.add_done_callback(pending.discard)
    finally:
        hub.unregister(conn)
        if pending:
            results = await asyncio.gather(*pending, return_exceptions=True)
            for result in results:
                if isinstance(result, Exception):
                    logger.warning("command_aborted", extra={"connection_id": conn.id, "error": str(result)})
