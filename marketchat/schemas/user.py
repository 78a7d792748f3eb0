from typing import Optional

from pydantic import BaseModel


class UserSummary(BaseModel):

    id: str
    name: Optional[str] = None
    avatar: Optional[str] = None


class TokenPayload(BaseModel):

    sub: str
    name: Optional[str] = None
    exp: int
