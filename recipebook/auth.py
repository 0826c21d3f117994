"""User login, token refresh and the bearer-token guard for recipe routes."""

from __future__ import annotations

from functools import wraps
from typing import Any, Callable, Dict, Mapping, TypeVar, cast

from flask import Flask, current_app, g, jsonify, request
from loguru import logger

from .errors import InvalidPasswordError, UnauthorizedError, UserNotFoundError
from .models import User
from .schemas import LoginRequest, RefreshRequest, parse_body
from .security import AccessGrant, TokenIssuer, hash_password, verify_password
from .storage import UserRepository

F = TypeVar("F", bound=Callable[..., Any])


class UserService:
    def __init__(self, users: UserRepository, issuer: TokenIssuer) -> None:
        self._users = users
        self._issuer = issuer

    def seed_user(self, seed: Mapping[str, str]) -> User:
        return self._users.add_user(
            user_id=seed.get("id"),
            name=seed["name"],
            email=seed["email"],
            password_hash=hash_password(seed["password"]),
        )

    def login(self, email: str, password: str) -> tuple[User, AccessGrant]:
        user = self._users.get_user_by_email(email)
        if user is None:
            logger.info("Login attempt for unknown email {}", email)
            raise UserNotFoundError(email)

        if not verify_password(password, user.password_hash):
            logger.info("Wrong password for user {}", user.id)
            raise InvalidPasswordError()

        return user, self._issuer.issue_grant(user.id)

    def refresh(self, refresh_token: str | None) -> str:
        if not refresh_token:
            raise UnauthorizedError("Refresh Token is required")
        return self._issuer.refresh_access_token(refresh_token)


def bearer_token(header: str | None) -> str:
    if not header:
        raise UnauthorizedError("Authorization header is required")

    parts = header.split(" ")
    token = parts[1] if len(parts) > 1 else ""
    if not token:
        raise UnauthorizedError("Access Token is required")
    return token


def login_required(view: F) -> F:
    """Verify the bearer token and expose its claims as ``g.user``."""

    @wraps(view)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        issuer: TokenIssuer = current_app.config["TOKEN_ISSUER"]
        token = bearer_token(request.headers.get("Authorization"))
        g.user = issuer.verify_access_token(token)
        return view(*args, **kwargs)

    return cast(F, wrapper)


def register_user_routes(app: Flask) -> None:
    @app.post("/api/users/seed")
    def seed_user():
        service: UserService = app.config["USER_SERVICE"]
        user = service.seed_user(app.config["SEED_USER"])
        return jsonify({"message": "User seeded successfully", "user": user.to_public_dict()}), 201

    @app.post("/api/users/login")
    def login():
        service: UserService = app.config["USER_SERVICE"]
        body = parse_body(LoginRequest, request.get_json(silent=True) or {})
        user, grant = service.login(body.email, body.password)
        return jsonify(
            {
                "accessToken": grant.access_token,
                "refreshToken": grant.refresh_token,
                "message": "Logged in successfully",
                "user": user.to_public_dict(),
            }
        )

    @app.post("/api/users/refresh")
    def refresh():
        service: UserService = app.config["USER_SERVICE"]
        body = parse_body(RefreshRequest, request.get_json(silent=True) or {})
        return jsonify({"accessToken": service.refresh(body.refreshToken)})

    @app.get("/api/users/verify")
    @login_required
    def verify():
        claims: Dict[str, Any] = g.user
        return jsonify({"message": "Token is valid", "userId": claims["sub"]})


__all__ = ["UserService", "bearer_token", "login_required", "register_user_routes"]
