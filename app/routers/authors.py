from fastapi import APIRouter, Depends, Query, Request, Response, status

from app.routers.deps import from_millis, get_chat_service
from app.schemas.author import AuthorCreate, AuthorListResponse, AuthorResponse, AuthorUpdate
from app.services.chat import ChatService

router = APIRouter(prefix="/authors", tags=["authors"])


@router.post("", response_model=AuthorResponse, status_code=status.HTTP_201_CREATED)
async def create_author(
    payload: AuthorCreate,
    request: Request,
    response: Response,
    chat: ChatService = Depends(get_chat_service),
) -> AuthorResponse:
    author = await chat.create_author(payload)
    response.headers["Location"] = f"{request.url.path.rstrip('/')}/{author.id}"
    return AuthorResponse(author=author)


@router.get("", response_model=AuthorListResponse)
async def list_authors(
    include_archived: bool = Query(False, alias="includeArchived"),
    created_before: int | None = Query(None, alias="createdBefore"),
    limit: int | None = Query(None, ge=0),
    chat: ChatService = Depends(get_chat_service),
) -> AuthorListResponse:
    authors = await chat.list_authors(
        include_archived=include_archived,
        created_before=from_millis(created_before, "createdBefore"),
        limit=limit,
    )
    return AuthorListResponse(authors=authors)


@router.get("/{author_id}", response_model=AuthorResponse)
async def get_author(author_id: str, chat: ChatService = Depends(get_chat_service)) -> AuthorResponse:
    return AuthorResponse(author=await chat.get_author(author_id))


@router.put("/{author_id}", response_model=AuthorResponse)
async def update_author(
    author_id: str, payload: AuthorUpdate, chat: ChatService = Depends(get_chat_service)
) -> AuthorResponse:
    return AuthorResponse(author=await chat.update_author(author_id, payload))


@router.put("/{author_id}/archive", response_model=AuthorResponse)
async def archive_author(author_id: str, chat: ChatService = Depends(get_chat_service)) -> AuthorResponse:
    return AuthorResponse(author=await chat.archive_author(author_id))


@router.delete("/{author_id}", response_model=AuthorResponse)
async def delete_author(author_id: str, chat: ChatService = Depends(get_chat_service)) -> AuthorResponse:
    return AuthorResponse(author=await chat.delete_author(author_id))
