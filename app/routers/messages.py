from fastapi import APIRouter, Depends, Query, Request, Response, status

from app.routers.deps import from_millis, get_chat_service
from app.schemas.message import MessageCreate, MessageListResponse, MessageResponse, MessageUpdate
from app.services.chat import ChatService

router = APIRouter(prefix="/messages", tags=["messages"])


@router.post("", response_model=MessageResponse, status_code=status.HTTP_201_CREATED)
async def create_message(
    payload: MessageCreate,
    request: Request,
    response: Response,
    chat: ChatService = Depends(get_chat_service),
) -> MessageResponse:
    message = await chat.create_message(payload)
    response.headers["Location"] = f"{request.url.path.rstrip('/')}/{message.id}"
    return MessageResponse(message=message)


@router.get("", response_model=MessageListResponse)
async def list_messages(
    room_id: str | None = Query(None, alias="roomId"),
    author_id: str | None = Query(None, alias="authorId"),
    include_archived: bool = Query(False, alias="includeArchived"),
    created_before: int | None = Query(None, alias="createdBefore"),
    limit: int | None = Query(None, ge=0),
    chat: ChatService = Depends(get_chat_service),
) -> MessageListResponse:
    messages = await chat.list_messages(
        room_id=room_id,
        author_id=author_id,
        include_archived=include_archived,
        created_before=from_millis(created_before, "createdBefore"),
        limit=limit,
    )
    return MessageListResponse(messages=messages)


@router.get("/{message_id}", response_model=MessageResponse)
async def get_message(message_id: str, chat: ChatService = Depends(get_chat_service)) -> MessageResponse:
    return MessageResponse(message=await chat.get_message(message_id))


@router.put("/{message_id}", response_model=MessageResponse)
async def update_message(
    message_id: str, payload: MessageUpdate, chat: ChatService = Depends(get_chat_service)
) -> MessageResponse:
    return MessageResponse(message=await chat.update_message(message_id, payload))


@router.put("/{message_id}/archive", response_model=MessageResponse)
async def archive_message(message_id: str, chat: ChatService = Depends(get_chat_service)) -> MessageResponse:
    return MessageResponse(message=await chat.archive_message(message_id))


@router.delete("/{message_id}", response_model=MessageResponse)
async def delete_message(message_id: str, chat: ChatService = Depends(get_chat_service)) -> MessageResponse:
    return MessageResponse(message=await chat.delete_message(message_id))
