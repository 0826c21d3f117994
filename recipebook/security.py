"""Password hashing and signed tokens."""

from __future__ import annotations

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict

import bcrypt
import jwt

from .errors import ForbiddenError, UnauthorizedError

BCRYPT_ROUNDS = 12

ACCESS = "access"
REFRESH = "refresh"


def hash_password(password: str) -> str:
    salt = bcrypt.gensalt(rounds=BCRYPT_ROUNDS)
    return bcrypt.hashpw(password.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain_password: str, hashed_password: str) -> bool:
    if not hashed_password.startswith(("$2a$", "$2b$", "$2y$")):
        return False
    return bcrypt.checkpw(plain_password.encode("utf-8"), hashed_password.encode("utf-8"))


@dataclass(frozen=True)
class AccessGrant:
    access_token: str
    refresh_token: str


class TokenIssuer:
    """Signs and verifies access and refresh tokens bound to a user id."""

    def __init__(
        self,
        secret_key: str,
        *,
        algorithm: str = "HS256",
        access_ttl: timedelta = timedelta(minutes=15),
        refresh_ttl: timedelta = timedelta(days=7),
    ) -> None:
        self._secret_key = secret_key
        self._algorithm = algorithm
        self._access_ttl = access_ttl
        self._refresh_ttl = refresh_ttl

    def issue_access_token(self, user_id: str) -> str:
        return self._encode(user_id, ACCESS, self._access_ttl)

    def issue_refresh_token(self, user_id: str) -> str:
        return self._encode(user_id, REFRESH, self._refresh_ttl)

    def issue_grant(self, user_id: str) -> AccessGrant:
        return AccessGrant(
            access_token=self.issue_access_token(user_id),
            refresh_token=self.issue_refresh_token(user_id),
        )

    def verify_access_token(self, token: str) -> Dict[str, Any]:
        try:
            claims = self._decode(token)
        except jwt.ExpiredSignatureError as exc:
            raise UnauthorizedError("Access Token is expired") from exc
        except jwt.InvalidTokenError as exc:
            raise UnauthorizedError("Access Token is invalid") from exc

        if claims.get("type") != ACCESS:
            raise UnauthorizedError("Access Token is invalid")
        return claims

    def refresh_access_token(self, refresh_token: str) -> str:
        try:
            claims = self._decode(refresh_token)
        except jwt.ExpiredSignatureError as exc:
            raise ForbiddenError("Refresh Token is expired") from exc
        except jwt.InvalidTokenError as exc:
            raise UnauthorizedError("Refresh Token is invalid") from exc

        if claims.get("type") != REFRESH:
            raise UnauthorizedError("Refresh Token is invalid")
        return self.issue_access_token(claims["sub"])

    def _encode(self, user_id: str, token_type: str, ttl: timedelta) -> str:
        now = datetime.now(timezone.utc)
        payload = {
            "sub": user_id,
            "type": token_type,
            "iat": now,
            "exp": now + ttl,
            "jti": uuid.uuid4().hex,
        }
        return jwt.encode(payload, self._secret_key, algorithm=self._algorithm)

    def _decode(self, token: str) -> Dict[str, Any]:
        return jwt.decode(
            token,
            self._secret_key,
            algorithms=[self._algorithm],
            options={"require": ["sub", "exp", "type"]},
        )


__all__ = ["AccessGrant", "TokenIssuer", "hash_password", "verify_password"]
