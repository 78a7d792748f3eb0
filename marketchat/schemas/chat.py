from datetime import datetime
from typing import Annotated, Optional

from pydantic import AfterValidator, AliasChoices, BaseModel, ConfigDict, Field, HttpUrl, TypeAdapter, ValidationError
from pydantic.alias_generators import to_camel

from marketchat.schemas.user import UserSummary


_http_url = TypeAdapter(HttpUrl)


def _check_http_url(value: str) -> str:
    # validated as a URL, stored as the client sent it
    try:
        _http_url.validate_python(value)
    except ValidationError as exc:
        raise ValueError(exc.errors()[0]["msg"]) from exc
    return value


ImageUrl = Annotated[str, AfterValidator(_check_http_url)]


class CamelModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class CreateConversationRequest(CamelModel):

    participant_id: str = Field(
        min_length=1,
        validation_alias=AliasChoices("participantId", "receiverId", "participant_id"),
    )


class ConversationCreated(CamelModel):

    id: str


class ConversationRef(CamelModel):
    """Payload of events that only name a conversation."""

    conversation_id: str = Field(min_length=1)


class SendMessageRequest(ConversationRef):

    content: Optional[str] = Field(default=None, max_length=5000)
    image_url: Optional[ImageUrl] = None


class SocketSendMessage(SendMessageRequest):

    temp_id: Optional[str] = None


class MessageOut(CamelModel):

    id: str
    conversation_id: str
    sender_id: str
    content: str
    image_url: Optional[str] = None
    is_read: bool
    created_at: datetime
    sender: UserSummary


class ConversationSummary(CamelModel):

    id: str
    other_user: UserSummary
    last_message: Optional[str] = None
    last_message_at: Optional[datetime] = None


class UnreadCount(CamelModel):

    count: int


class MarkReadResult(CamelModel):

    updated: int


