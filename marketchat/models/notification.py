from datetime import datetime
from typing import Literal, Optional, TypedDict


NotificationType = Literal["MESSAGE"]


class NotificationDocument(TypedDict, total=False):
    _id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    link: Optional[str]
    is_read: bool
    created_at: datetime
