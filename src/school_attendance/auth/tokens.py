from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import Optional

from jose import JWTError, jwt

from ..core.constants import DEFAULT_JWT_EXPIRE_MINUTES, JWT_ALGORITHM
from ..core.enums import Role
from ..core.exceptions import AuthenticationError


class TokenCodec:
    """Signs and verifies HS256 bearer tokens."""

    def __init__(self, secret_key: str, *, expire_minutes: int = DEFAULT_JWT_EXPIRE_MINUTES):
        if not secret_key:
            raise ValueError("JWT secret key must not be empty")
        self._secret_key = secret_key
        self._expire_minutes = int(expire_minutes)

    def create_access_token(
        self,
        *,
        user_id: int,
        role: Role,
        school_id: int,
        expires_delta: Optional[timedelta] = None,
    ) -> str:
        expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=self._expire_minutes))
        claims = {
            "sub": str(user_id),
            "role": role.value,
            "school_id": int(school_id),
            "exp": expire,
        }
        return jwt.encode(claims, self._secret_key, algorithm=JWT_ALGORITHM)

    def decode_token(self, token: str) -> dict:
        try:
            payload = jwt.decode(token, self._secret_key, algorithms=[JWT_ALGORITHM])
        except JWTError:
            raise AuthenticationError("Invalid or expired token")
        if not payload.get("sub") or not payload.get("role"):
            raise AuthenticationError("Token is missing required fields")
        return payload
