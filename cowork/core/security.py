from datetime import datetime, timedelta, timezone
from typing import Any, Dict

from jose import jwt

from ..config import get_settings

ALGORITHM = "HS256"


def create_access_token(data: Dict[str, Any], expires_delta: timedelta | None = None) -> str:
    """Issue a token the API accepts.

    The engine never logs anyone in; this is the issuing half for the auth
    service sharing ``JWT_SECRET`` (claims ``sub``, ``nft_holder``,
    ``member``, ``role``).
    """
    settings = get_settings()
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=15))
    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.jwt_secret, algorithm=ALGORITHM)


def decode_access_token(token: str) -> Dict[str, Any]:
    """Raises ``jose.JWTError`` when the token is invalid or expired."""
    settings = get_settings()
    return jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM])
