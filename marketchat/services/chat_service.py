import logging
from typing import Any, Awaitable, Callable, Dict, List, Optional

from marketchat.core.config import get_settings
from marketchat.database.utils import utcnow
from marketchat.repositories.conversation_repository import ConversationRepository
from marketchat.repositories.message_repository import MessageRepository
from marketchat.repositories.user_repository import UserRepository
from marketchat.schemas.chat import ConversationSummary, MessageOut
from marketchat.schemas.user import UserSummary
from marketchat.services.authorization import ConversationGuard
from marketchat.services.notification_service import NotificationDispatcher
from marketchat.utils.errors import NotFound, ValidationFailed

logger = logging.getLogger(__name__)

IMAGE_PREVIEW = "📷 Görsel"
MESSAGE_NOTIFICATION_TITLE = "Yeni Mesaj"


def other_participant(participants: List[str], user_id: str) -> Optional[str]:
    for participant in participants:
        if participant != user_id:
            return participant
    return participants[0] if participants else None


def message_preview(content: str, image_url: Optional[str]) -> str:
    if image_url:
        return IMAGE_PREVIEW
    return content[: get_settings().PREVIEW_MAX_LENGTH]


def _summary(summaries: Dict[str, Dict[str, Any]], user_id: str) -> UserSummary:
    return UserSummary(**summaries.get(user_id, {"id": user_id}))


def _message_out(doc: Dict[str, Any], sender: UserSummary) -> MessageOut:
    return MessageOut(
        id=doc["_id"],
        conversation_id=doc["conversation_id"],
        sender_id=doc["sender_id"],
        content=doc.get("content", ""),
        image_url=doc.get("image_url"),
        is_read=doc.get("is_read", False),
        created_at=doc["created_at"],
        sender=sender,
    )


class ChatService:
    """Conversation and message operations shared by HTTP and socket callers."""

    def __init__(
        self,
        message_repo: MessageRepository,
        conversation_repo: ConversationRepository,
        user_repo: UserRepository,
        notifier: NotificationDispatcher,
        run_in_transaction: Callable[[Callable[[Any], Awaitable[Any]]], Awaitable[Any]],
    ) -> None:
        self._message_repo = message_repo
        self._conversation_repo = conversation_repo
        self._user_repo = user_repo
        self._notifier = notifier
        self._run_in_transaction = run_in_transaction
        self.guard = ConversationGuard(conversation_repo)

    async def list_conversations(self, user_id: str) -> List[ConversationSummary]:
        conversations = await self._conversation_repo.list_for_user(user_id)
        others = {c["_id"]: other_participant(c.get("participants", []), user_id) for c in conversations}
        summaries = await self._user_repo.get_summaries(o for o in others.values() if o)
        return [
            ConversationSummary(
                id=c["_id"],
                other_user=_summary(summaries, others[c["_id"]] or user_id),
                last_message=c.get("last_message"),
                last_message_at=c.get("last_message_at"),
            )
            for c in conversations
        ]

    async def start_conversation(self, user_id: str, other_id: str) -> str:
        if other_id == user_id:
            raise ValidationFailed("Cannot message yourself", {"participantId": "Cannot message yourself"})
        if not await self._user_repo.exists(other_id):
            raise NotFound("User not found")
        conversation, created = await self._conversation_repo.get_or_create_one_to_one(user_id, other_id)
        if created:
            logger.info("Conversation %s created between %s and %s", conversation["_id"], user_id, other_id)
        return conversation["_id"]

    async def get_messages(self, user_id: str, conversation_id: str) -> List[MessageOut]:
        """Return the conversation's messages oldest first.

        Viewing counts as reading: messages from the other participant are
        marked read before the list is loaded.
        """
        await self.guard.authorize(user_id, conversation_id)
        await self._message_repo.mark_read_for_recipient(conversation_id, user_id)
        messages = await self._message_repo.list_for_conversation(conversation_id)
        summaries = await self._user_repo.get_summaries(m["sender_id"] for m in messages)
        return [_message_out(m, _summary(summaries, m["sender_id"])) for m in messages]

    async def send_message(
        self,
        user_id: str,
        username: Optional[str],
        conversation_id: str,
        content: Optional[str] = None,
        image_url: Optional[str] = None,
    ) -> MessageOut:
        conversation = await self.guard.authorize(user_id, conversation_id)
        text = (content or "").strip()
        if not text and not image_url:
            raise ValidationFailed(details={"content": "Message content cannot be empty"})

        now = utcnow()

        async def write(session) -> Dict[str, Any]:
            # re-run as a whole when a concurrent sender wins the write conflict
            saved = await self._message_repo.create(
                conversation_id=conversation_id,
                sender_id=user_id,
                content=text,
                image_url=image_url,
                created_at=now,
                session=session,
            )
            await self._conversation_repo.touch_last_message(
                conversation_id, message_preview(text, image_url), now, session=session
            )
            return saved

        saved = await self._run_in_transaction(write)

        summaries = await self._user_repo.get_summaries([user_id])
        message = _message_out(saved, _summary(summaries, user_id))

        recipient_id = other_participant(conversation["participants"], user_id)
        if recipient_id and recipient_id != user_id:
            sender_name = username or message.sender.name or "Bir kullanıcı"
            self._notifier.notify(
                recipient_id,
                "MESSAGE",
                MESSAGE_NOTIFICATION_TITLE,
                f"{sender_name} size mesaj gönderdi",
                f"/messages?conversationId={conversation_id}",
            )
        return message

    async def mark_read(self, user_id: str, conversation_id: str) -> int:
        await self.guard.authorize(user_id, conversation_id)
        return await self._message_repo.mark_read_for_recipient(conversation_id, user_id)

    async def unread_count(self, user_id: str) -> int:
        conversation_ids = await self._conversation_repo.ids_for_user(user_id)
        return await self._message_repo.count_unread(conversation_ids, user_id)
