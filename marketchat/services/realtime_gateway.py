import json
import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Union

from fastapi import WebSocket
from pydantic import ValidationError

from marketchat.schemas.chat import ConversationRef, MessageOut, SocketSendMessage
from marketchat.services.chat_service import ChatService
from marketchat.utils.errors import ChatError, Forbidden, ValidationFailed, field_errors
from marketchat.utils.websocket_manager import ConnectionManager, SocketConnection

logger = logging.getLogger(__name__)

Handler = Callable[[SocketConnection, ChatService, Any], Awaitable[None]]

FAILURE_MESSAGES = {
    "join_conversation": "Failed to join conversation",
    "send_message": "Failed to send message",
    "mark_read": "Failed to mark messages as read",
}


def _conversation_id(data: Any) -> str:
    if isinstance(data, str) and data:
        return data
    if isinstance(data, dict):
        return ConversationRef.model_validate(data).conversation_id
    raise ValidationFailed(details={"conversationId": "Field required"})


class RealtimeGateway:
    """Socket-side state and event handling for live messaging.

    Holds the only cross-connection mutable state of the process: the
    connection registry (presence), room membership and who is typing where.
    All of it is touched from the event loop only, so no locking is needed.
    One instance per process; state is not shared between processes.
    """

    def __init__(self, manager: Optional[ConnectionManager] = None) -> None:
        self.manager = manager or ConnectionManager()
        # conversation id -> connections currently typing there
        self._typing: Dict[str, Set[SocketConnection]] = {}
        self._handlers: Dict[str, Handler] = {
            "join_conversation": self._join_conversation,
            "leave_conversation": self._leave_conversation,
            "send_message": self._send_message,
            "typing_start": self._typing_start,
            "typing_stop": self._typing_stop,
            "mark_read": self._mark_read,
        }

    @property
    def online_users(self) -> Set[str]:
        return set(self.manager.active_connections)

    @property
    def typing(self) -> Dict[str, Set[str]]:
        """Users typing per conversation."""
        return {cid: {conn.user_id for conn in conns} for cid, conns in self._typing.items()}

    def is_online(self, user_id: str) -> bool:
        return self.manager.is_online(user_id)

    async def connect(self, websocket: WebSocket, user_id: str, username: Optional[str] = None) -> SocketConnection:
        connection = SocketConnection(websocket, user_id, username)
        await self.manager.connect(connection)
        logger.info("User connected: %s (%s)", user_id, connection.id)
        await self.manager.broadcast("user_online", {"userId": user_id})
        return connection

    async def disconnect(self, connection: SocketConnection) -> None:
        user_id = connection.user_id
        went_offline = self.manager.disconnect(connection)
        logger.info("User disconnected: %s (%s)", user_id, connection.id)
        if went_offline:
            await self.manager.broadcast("user_offline", {"userId": user_id})
        for conversation_id in list(self._typing):
            if self._clear_typing(conversation_id, connection):
                await self.manager.emit_to_room(conversation_id, "user_stopped_typing", {"userId": user_id})

    async def handle_frame(self, connection: SocketConnection, service: ChatService, raw: Union[str, bytes]) -> None:
        # binary frames carry the same JSON, UTF-8 encoded
        try:
            frame = json.loads(raw)
        except (json.JSONDecodeError, UnicodeDecodeError):
            frame = None
        if not isinstance(frame, dict) or not isinstance(frame.get("event"), str):
            await self.manager.emit(connection, "error", {"message": "Invalid payload"})
            return
        await self.handle(connection, service, frame["event"], frame.get("data"))

    async def handle(self, connection: SocketConnection, service: ChatService, event: str, data: Any) -> None:
        handler = self._handlers.get(event)
        if handler is None:
            await self.manager.emit(connection, "error", {"message": f"Unknown event: {event}"})
            return
        try:
            await handler(connection, service, data)
        except ChatError as exc:
            payload: Dict[str, Any] = {"message": exc.message}
            if exc.details:
                payload["details"] = exc.details
            await self.manager.emit(connection, "error", payload)
        except ValidationError as exc:
            await self.manager.emit(
                connection, "error", {"message": "Validation failed", "details": field_errors(exc.errors())}
            )
        except Exception:
            logger.exception("Socket event %s from user %s failed", event, connection.user_id)
            message = FAILURE_MESSAGES.get(event, "Server error")
            await self.manager.emit(connection, "error", {"message": message})

    async def publish_new_message(self, message: MessageOut, temp_id: Optional[str] = None) -> None:
        data = {"message": message.model_dump(mode="json", by_alias=True), "tempId": temp_id}
        await self.manager.emit_to_room(message.conversation_id, "new_message", data)

    async def publish_messages_read(
        self, conversation_id: str, reader_id: str, skip: Optional[SocketConnection] = None
    ) -> None:
        data = {"conversationId": conversation_id, "readBy": reader_id}
        await self.manager.emit_to_room(conversation_id, "messages_read", data, skip=skip)

    async def _join_conversation(self, connection: SocketConnection, service: ChatService, data: Any) -> None:
        conversation_id = _conversation_id(data)
        if not await service.guard.is_participant(connection.user_id, conversation_id):
            logger.warning("User %s refused join of conversation %s", connection.user_id, conversation_id)
            await self.manager.emit(connection, "error", {"message": "Not a participant"})
            return
        self.manager.join(conversation_id, connection)
        logger.info("User %s joined conversation %s", connection.user_id, conversation_id)
        await self.manager.emit(connection, "joined_conversation", {"conversationId": conversation_id})

    async def _leave_conversation(self, connection: SocketConnection, service: ChatService, data: Any) -> None:
        conversation_id = _conversation_id(data)
        self.manager.leave(conversation_id, connection)
        logger.info("User %s left conversation %s", connection.user_id, conversation_id)
        if self._clear_typing(conversation_id, connection):
            await self.manager.emit_to_room(conversation_id, "user_stopped_typing", {"userId": connection.user_id})

    async def _send_message(self, connection: SocketConnection, service: ChatService, data: Any) -> None:
        payload = SocketSendMessage.model_validate(data if isinstance(data, dict) else {})
        message = await service.send_message(
            connection.user_id,
            connection.username,
            payload.conversation_id,
            payload.content,
            payload.image_url,
        )
        await self.publish_new_message(message, payload.temp_id)
        await self.manager.emit(
            connection,
            "message_sent",
            {"tempId": payload.temp_id, "message": message.model_dump(mode="json", by_alias=True)},
        )

    def _require_room(self, connection: SocketConnection, conversation_id: str) -> None:
        if not self.manager.in_room(conversation_id, connection):
            raise Forbidden("Not a participant")

    def _still_typing(self, conversation_id: str, user_id: str) -> bool:
        return any(conn.user_id == user_id for conn in self._typing.get(conversation_id, ()))

    def _clear_typing(self, conversation_id: str, connection: SocketConnection) -> bool:
        """Drop the connection's typing mark; True when its user stopped typing there."""
        typing = self._typing.get(conversation_id)
        if typing is None or connection not in typing:
            return False
        typing.discard(connection)
        if not typing:
            del self._typing[conversation_id]
        return not self._still_typing(conversation_id, connection.user_id)

    async def _typing_start(self, connection: SocketConnection, service: ChatService, data: Any) -> None:
        conversation_id = _conversation_id(data)
        self._require_room(connection, conversation_id)
        self._typing.setdefault(conversation_id, set()).add(connection)
        await self.manager.emit_to_room(
            conversation_id,
            "user_typing",
            {"userId": connection.user_id, "username": connection.username or "User"},
            skip=connection,
        )

    async def _typing_stop(self, connection: SocketConnection, service: ChatService, data: Any) -> None:
        conversation_id = _conversation_id(data)
        self._require_room(connection, conversation_id)
        self._clear_typing(conversation_id, connection)
        # another tab of the same user may still be typing
        if self._still_typing(conversation_id, connection.user_id):
            return
        await self.manager.emit_to_room(
            conversation_id, "user_stopped_typing", {"userId": connection.user_id}, skip=connection
        )

    async def _mark_read(self, connection: SocketConnection, service: ChatService, data: Any) -> None:
        conversation_id = _conversation_id(data)
        await service.mark_read(connection.user_id, conversation_id)
        await self.publish_messages_read(conversation_id, connection.user_id, skip=connection)
