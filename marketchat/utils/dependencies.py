from typing import Any, Dict, Optional

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from motor.motor_asyncio import AsyncIOMotorDatabase
from starlette.requests import HTTPConnection

from marketchat.database.connection import mongo_db_dependency, run_in_transaction
from marketchat.repositories.conversation_repository import ConversationRepository
from marketchat.repositories.device_repository import DeviceRepository
from marketchat.repositories.message_repository import MessageRepository
from marketchat.repositories.user_repository import UserRepository
from marketchat.services.chat_service import ChatService
from marketchat.services.notification_service import NotificationDispatcher
from marketchat.services.realtime_gateway import RealtimeGateway
from marketchat.utils.errors import Unauthenticated
from marketchat.utils.security import verify_token

bearer_scheme = HTTPBearer(auto_error=False)


async def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)) -> Dict[str, Any]:
    payload = verify_token(credentials.credentials if credentials else None)
    if payload is None:
        raise Unauthenticated()
    return {"_id": payload.sub, "name": payload.name}


def get_gateway(connection: HTTPConnection) -> RealtimeGateway:
    return connection.app.state.gateway


def get_notifier(connection: HTTPConnection) -> NotificationDispatcher:
    return connection.app.state.notifier


def get_chat_service(
    db: AsyncIOMotorDatabase = Depends(mongo_db_dependency),
    notifier: NotificationDispatcher = Depends(get_notifier),
) -> ChatService:
    return ChatService(
        MessageRepository(db),
        ConversationRepository(db),
        UserRepository(db),
        notifier,
        run_in_transaction,
    )


def get_device_repository(db: AsyncIOMotorDatabase = Depends(mongo_db_dependency)) -> DeviceRepository:
    return DeviceRepository(db)
