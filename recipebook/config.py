from __future__ import annotations

import os
from dataclasses import dataclass, field
from datetime import timedelta
from typing import Mapping, Optional, Tuple

from dotenv import load_dotenv


def _split_origins(raw: str) -> Tuple[str, ...]:
    return tuple(origin.strip() for origin in raw.split(",") if origin.strip())


def _flag(raw: Optional[str]) -> bool:
    return (raw or "").strip().lower() in {"1", "true", "yes", "on"}


@dataclass(frozen=True)
class Settings:
    """Runtime configuration handed to :func:`recipebook.create_app`."""

    secret_key: str = "development-secret-change-me"
    jwt_secret_key: str = "development-jwt-secret-change-me"
    jwt_algorithm: str = "HS256"
    access_token_ttl: timedelta = timedelta(minutes=15)
    refresh_token_ttl: timedelta = timedelta(days=7)
    cors_allowed_origins: Tuple[str, ...] = ()
    upload_folder: str = "uploads"
    gcp_project: Optional[str] = None
    recipes_collection: str = "recipes"
    users_collection: str = "users"
    gcs_bucket: Optional[str] = None
    max_content_length: int = 16 * 1024 * 1024
    page_size_limit: int = 100
    log_level: str = "INFO"
    log_json: bool = False
    seed_user: Mapping[str, str] = field(
        default_factory=lambda: {
            "id": "123456123456123456123456",
            "name": "testuser",
            "email": "test@test.com",
            "password": "test@test.com",
        }
    )

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "Settings":
        """Build settings from environment variables, reading ``.env`` first."""

        if environ is None:
            load_dotenv()
            environ = os.environ

        defaults = cls()
        seed_user = dict(defaults.seed_user)
        for key in ("name", "email", "password"):
            value = environ.get(f"SEED_USER_{key.upper()}")
            if value:
                seed_user[key] = value

        return cls(
            secret_key=environ.get("FLASK_SECRET_KEY", defaults.secret_key),
            jwt_secret_key=environ.get("JWT_SECRET_KEY", defaults.jwt_secret_key),
            access_token_ttl=timedelta(
                minutes=int(environ.get("JWT_ACCESS_EXPIRES_MINUTES", "15"))
            ),
            refresh_token_ttl=timedelta(days=int(environ.get("JWT_REFRESH_EXPIRES_DAYS", "7"))),
            cors_allowed_origins=_split_origins(environ.get("CORS_ALLOWED_ORIGINS", "")),
            upload_folder=environ.get("UPLOAD_FOLDER", defaults.upload_folder),
            gcp_project=environ.get("GCP_PROJECT") or None,
            recipes_collection=environ.get("RECIPES_COLLECTION", defaults.recipes_collection),
            users_collection=environ.get("USERS_COLLECTION", defaults.users_collection),
            gcs_bucket=environ.get("GCS_BUCKET") or None,
            max_content_length=int(
                environ.get("MAX_CONTENT_LENGTH", str(defaults.max_content_length))
            ),
            page_size_limit=int(environ.get("PAGE_SIZE_LIMIT", str(defaults.page_size_limit))),
            log_level=environ.get("LOG_LEVEL", defaults.log_level).upper(),
            log_json=_flag(environ.get("LOG_JSON")),
            seed_user=seed_user,
        )


__all__ = ["Settings"]
