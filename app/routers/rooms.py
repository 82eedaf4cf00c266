from fastapi import APIRouter, Depends, Query, Request, Response, status

from app.routers.deps import from_millis, get_chat_service
from app.schemas.room import RoomCreate, RoomListResponse, RoomResponse, RoomUpdate
from app.services.chat import ChatService

router = APIRouter(prefix="/rooms", tags=["rooms"])


@router.post("", response_model=RoomResponse, status_code=status.HTTP_201_CREATED)
async def create_room(
    payload: RoomCreate,
    request: Request,
    response: Response,
    chat: ChatService = Depends(get_chat_service),
) -> RoomResponse:
    room = await chat.create_room(payload)
    response.headers["Location"] = f"{request.url.path.rstrip('/')}/{room.id}"
    return RoomResponse(room=room)


@router.get("", response_model=RoomListResponse)
async def list_rooms(
    author_id: str | None = Query(None, alias="authorId"),
    only_active: bool = Query(True, alias="onlyActive"),
    include_archived: bool = Query(False, alias="includeArchived"),
    updated_before: int | None = Query(None, alias="updatedBefore"),
    limit: int | None = Query(None, ge=0),
    chat: ChatService = Depends(get_chat_service),
) -> RoomListResponse:
    rooms = await chat.list_rooms(
        author_id=author_id,
        only_active=only_active,
        include_archived=include_archived,
        updated_before=from_millis(updated_before, "updatedBefore"),
        limit=limit,
    )
    return RoomListResponse(rooms=rooms)


@router.get("/{room_id}", response_model=RoomResponse)
async def get_room(room_id: str, chat: ChatService = Depends(get_chat_service)) -> RoomResponse:
    return RoomResponse(room=await chat.get_room(room_id))


@router.put("/{room_id}", response_model=RoomResponse)
async def update_room(room_id: str, payload: RoomUpdate, chat: ChatService = Depends(get_chat_service)) -> RoomResponse:
    return RoomResponse(room=await chat.update_room(room_id, payload))


@router.put("/{room_id}/archive", response_model=RoomResponse)
async def archive_room(room_id: str, chat: ChatService = Depends(get_chat_service)) -> RoomResponse:
    return RoomResponse(room=await chat.archive_room(room_id))


@router.delete("/{room_id}", response_model=RoomResponse)
async def delete_room(room_id: str, chat: ChatService = Depends(get_chat_service)) -> RoomResponse:
    return RoomResponse(room=await chat.delete_room(room_id))
