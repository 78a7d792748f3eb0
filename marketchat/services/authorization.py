import logging
from typing import Any, Dict, Optional

from marketchat.repositories.conversation_repository import ConversationRepository
from marketchat.utils.errors import Forbidden, NotFound

logger = logging.getLogger(__name__)


def _has_participant(conversation: Optional[Dict[str, Any]], user_id: str) -> bool:
    return bool(conversation) and user_id in conversation.get("participants", [])


class ConversationGuard:
    """Decides whether a user may see and write to a conversation.

    Both the HTTP routers and the realtime gateway go through this class, so a
    user refused over one path is refused over the other.
    """

    def __init__(self, conversation_repo: ConversationRepository) -> None:
        self._conversation_repo = conversation_repo

    async def is_participant(self, user_id: Optional[str], conversation_id: str) -> bool:
        if not user_id:
            return False
        conversation = await self._conversation_repo.get_by_id(conversation_id)
        return _has_participant(conversation, user_id)

    async def authorize(self, user_id: str, conversation_id: str) -> Dict[str, Any]:
        conversation = await self._conversation_repo.get_by_id(conversation_id)
        if conversation is None:
            raise NotFound("Conversation not found")
        if not _has_participant(conversation, user_id):
            logger.warning("User %s refused access to conversation %s", user_id, conversation_id)
            raise Forbidden()
        return conversation
