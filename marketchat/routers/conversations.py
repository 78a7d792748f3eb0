from typing import List

from fastapi import APIRouter, Depends

from marketchat.schemas.chat import ConversationCreated, ConversationSummary, CreateConversationRequest, MessageOut, UnreadCount
from marketchat.services.chat_service import ChatService
from marketchat.utils.dependencies import get_chat_service, get_current_user


router = APIRouter(prefix="/conversations", tags=["chat"])


@router.get("", response_model=List[ConversationSummary])
async def list_conversations(current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    return await service.list_conversations(current_user["_id"])


@router.post("", response_model=ConversationCreated)
async def start_conversation(body: CreateConversationRequest, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    conversation_id = await service.start_conversation(current_user["_id"], body.participant_id)
    return ConversationCreated(id=conversation_id)


@router.get("/unread-count", response_model=UnreadCount)
async def unread_count(current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    return UnreadCount(count=await service.unread_count(current_user["_id"]))


@router.get("/{conversation_id}/messages", response_model=List[MessageOut])
async def list_messages(conversation_id: str, current_user: dict = Depends(get_current_user), service: ChatService = Depends(get_chat_service)):
    return await service.get_messages(current_user["_id"], conversation_id)
