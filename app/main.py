from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from app.core.config import Settings, get_settings
from app.core.errors import ApplicationError, ValidationError, format_error
from app.core.logging import configure_logging
from app.db.session import create_engine, create_sessionmaker, init_db
from app.realtime.commands import CommandDispatcher
from app.realtime.hub import ChannelHub
from app.routers import authors, messages, realtime, rooms
from app.schemas.common import collect_violations
from app.services.chat import ChatService
from app.services.store import SQLEntityStore


def _error_response(exc: Exception) -> JSONResponse:
    error, status_code = format_error(exc)
    return JSONResponse({"error": error}, status_code=status_code)


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings.log_level)
    app = FastAPI(title=settings.app_name, debug=settings.debug)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    engine = create_engine(settings)
    hub = ChannelHub()
    chat = ChatService(
        SQLEntityStore(create_sessionmaker(engine)),
        hub,
        page_size=settings.default_page_size,
        locking=settings.entity_locking,
    )
    app.state.engine = engine
    app.state.hub = hub
    app.state.chat = chat
    app.state.dispatcher = CommandDispatcher(chat)

    @app.exception_handler(ApplicationError)
    async def application_error_handler(request: Request, exc: ApplicationError) -> JSONResponse:
        return _error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
        violations = collect_violations(list(exc.errors()), skip=("body", "query", "path"))
        return _error_response(ValidationError(violations.fields or {"payload": "invalid"}))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
        return _error_response(exc)

    app.include_router(authors.router, prefix=settings.api_prefix)
    app.include_router(rooms.router, prefix=settings.api_prefix)
    app.include_router(messages.router, prefix=settings.api_prefix)
    app.include_router(realtime.router)

    @app.on_event("startup")
    async def startup() -> None:
        if settings.auto_create_tables:
            await init_db(engine)

    @app.on_event("shutdown")
    async def shutdown() -> None:
        await engine.dispose()

    @app.get("/health")
    async def health() -> dict:
        return {"status": "ok", "connections": hub.connection_count}

    return app


app = create_app()
