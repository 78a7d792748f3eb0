from datetime import datetime
from typing import Optional, TypedDict


class MessageDocument(TypedDict, total=False):
    _id: str
    conversation_id: str
    sender_id: str
    # empty only when image_url is set
    content: str
    image_url: Optional[str]
    is_read: bool
    created_at: datetime
