from datetime import datetime
from typing import List, Optional, TypedDict


class ConversationDocument(TypedDict, total=False):
    _id: str
    # [creator, other]; semantically an unordered pair
    participants: List[str]
    # "<lower id>:<higher id>", unique across the collection
    participant_key: str
    last_message: Optional[str]
    last_message_at: datetime
    created_at: datetime
