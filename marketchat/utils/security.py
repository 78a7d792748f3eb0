import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import JWTError, jwt
from pydantic import ValidationError

from marketchat.core.config import get_settings
from marketchat.schemas.user import TokenPayload

logger = logging.getLogger(__name__)


def create_access_token(user_id: str, name: Optional[str] = None, expires_minutes: Optional[int] = None) -> str:
    settings = get_settings()
    minutes = expires_minutes if expires_minutes is not None else settings.ACCESS_TOKEN_EXPIRE_MINUTES
    expire = datetime.now(timezone.utc) + timedelta(minutes=minutes)
    to_encode: Dict[str, Any] = {"sub": user_id, "exp": expire}
    if name:
        to_encode["name"] = name
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    settings = get_settings()
    return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])


def verify_token(token: Optional[str]) -> Optional[TokenPayload]:
    """Return the token's claims, or None when it is missing or unusable."""
    if not token:
        return None
    try:
        return TokenPayload.model_validate(decode_access_token(token))
    except (JWTError, ValidationError) as exc:
        logger.warning("Rejected access token: %s", exc)
        return None
