import logging
from typing import Optional

from fastapi import APIRouter, Depends, WebSocket, WebSocketDisconnect

from marketchat.schemas.chat import ConversationRef, MarkReadResult, MessageOut, SendMessageRequest
from marketchat.services.chat_service import ChatService
from marketchat.services.realtime_gateway import RealtimeGateway
from marketchat.utils.dependencies import get_chat_service, get_current_user, get_gateway
from marketchat.utils.security import verify_token

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["chat"])

WS_4401_UNAUTHORIZED = 4401


def _handshake_token(websocket: WebSocket) -> Optional[str]:
    token = websocket.query_params.get("token")
    if token:
        return token
    auth = websocket.headers.get("authorization", "")
    scheme, _, credentials = auth.partition(" ")
    if scheme.lower() == "bearer" and credentials:
        return credentials.strip()
    return None


@router.post("", response_model=MessageOut)
async def send_message(
    body: SendMessageRequest,
    current_user: dict = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
    gateway: RealtimeGateway = Depends(get_gateway),
):
    message = await service.send_message(
        current_user["_id"],
        current_user.get("name"),
        body.conversation_id,
        body.content,
        body.image_url,
    )
    await gateway.publish_new_message(message)
    return message


@router.post("/mark_read", response_model=MarkReadResult)
async def mark_read(
    body: ConversationRef,
    current_user: dict = Depends(get_current_user),
    service: ChatService = Depends(get_chat_service),
    gateway: RealtimeGateway = Depends(get_gateway),
):
    count = await service.mark_read(current_user["_id"], body.conversation_id)
    await gateway.publish_messages_read(body.conversation_id, current_user["_id"])
    return MarkReadResult(updated=count)


@router.websocket("/ws")
async def chat_socket(
    websocket: WebSocket,
    service: ChatService = Depends(get_chat_service),
    gateway: RealtimeGateway = Depends(get_gateway),
):
    # token via ?token=... or Authorization header, checked before accept
    payload = verify_token(_handshake_token(websocket))
    if payload is None:
        logger.warning("Socket handshake rejected for %s", websocket.client)
        await websocket.close(code=WS_4401_UNAUTHORIZED)
        return

    connection = await gateway.connect(websocket, payload.sub, payload.name)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            raw = message.get("text")
            if raw is None:
                raw = message.get("bytes") or b""
            await gateway.handle_frame(connection, service, raw)
    except WebSocketDisconnect:
        pass
    finally:
        await gateway.disconnect(connection)
