import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from marketchat.core.config import get_settings
from marketchat.database.connection import close_mongo_connection, connect_to_mongo, get_database
from marketchat.repositories.conversation_repository import ConversationRepository
from marketchat.repositories.device_repository import DeviceRepository
from marketchat.repositories.message_repository import MessageRepository
from marketchat.repositories.notification_repository import NotificationRepository
from marketchat.routers.chat import router as chat_router
from marketchat.routers.conversations import router as conversations_router
from marketchat.routers.devices import router as devices_router
from marketchat.routers.presence import router as presence_router
from marketchat.services.notification_service import NotificationDispatcher
from marketchat.services.realtime_gateway import RealtimeGateway
from marketchat.utils.errors import ChatError, ValidationFailed, error_response, field_errors
from marketchat.utils.notifications import build_push

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):

    settings = get_settings()
    await connect_to_mongo()
    db = get_database()
    if settings.MONGO_ENSURE_INDEXES:
        await ConversationRepository(db).ensure_indexes()
        await MessageRepository(db).ensure_indexes()
    app.state.notifier = NotificationDispatcher(NotificationRepository(db), DeviceRepository(db), build_push(settings))
    try:
        yield
    finally:
        await app.state.notifier.drain()
        await close_mongo_connection()


async def chat_error_handler(request: Request, exc: ChatError):
    return error_response(exc)


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = exc.errors()
    logger.warning("Validation error at %s: %s", request.url.path, errors)
    return error_response(ValidationFailed(details=field_errors(errors)))


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled error at %s %s", request.method, request.url.path)
    return JSONResponse(status_code=500, content={"error": "Server error"})


def create_app() -> FastAPI:
    settings = get_settings()
    logging.basicConfig(
        level=settings.LOG_LEVEL,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    app = FastAPI(title=settings.APP_NAME, lifespan=lifespan)
    # one gateway per process; handlers reach it through get_gateway
    app.state.gateway = RealtimeGateway()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(ChatError, chat_error_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)

    app.include_router(conversations_router)
    app.include_router(chat_router)
    app.include_router(presence_router)
    app.include_router(devices_router)

    @app.get("/")
    async def root():
        return {"status": "ok", "app": settings.APP_NAME}

    return app


app = create_app()
