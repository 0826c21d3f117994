from __future__ import annotations

import io
import re
import sys
import uuid
from datetime import datetime, timedelta
from pathlib import Path
from typing import Mapping

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from recipebook import create_app
from recipebook.assets import AssetJanitor, LocalAssetStore
from recipebook.config import Settings
from recipebook.errors import DuplicateNameError, InvalidIdError, NotFoundError, UserExistsError
from recipebook.models import NewRecipe, Recipe, User
from recipebook.search import RecipeQuery
from recipebook.security import TokenIssuer, hash_password
from recipebook.service import RecipeService

_ID = re.compile(r"^[A-Za-z0-9]{20}$")


class InMemoryRecipeStorage:
    """Simple storage backend used for tests."""

    def __init__(self) -> None:
        self._recipes: dict[str, Recipe] = {}
        self._clock = datetime(2024, 1, 1)
        self.writes = 0

    def _now(self) -> datetime:
        self._clock += timedelta(seconds=1)
        return self._clock

    def _check(self, recipe_id: str) -> Recipe:
        if not _ID.match(recipe_id or ""):
            raise InvalidIdError(recipe_id)
        try:
            return self._recipes[recipe_id]
        except KeyError:
            raise NotFoundError(recipe_id) from None

    def _name_taken(self, name: str, exclude: str | None = None) -> bool:
        return any(r.name == name and r.id != exclude for r in self._recipes.values())

    def add_recipe(self, recipe: NewRecipe) -> Recipe:
        if self._name_taken(recipe.name):
            raise DuplicateNameError(recipe.name)

        now = self._now()
        stored = Recipe(
            id=uuid.uuid4().hex[:20],
            name=recipe.name,
            description=recipe.description,
            ingredients=list(recipe.ingredients),
            instructions=recipe.instructions,
            image=recipe.image,
            created_at=now,
            updated_at=now,
        )
        self._recipes[stored.id] = stored
        self.writes += 1
        return _copy(stored)

    def get_recipe(self, recipe_id: str) -> Recipe:
        return _copy(self._check(recipe_id))

    def list_recipes(self, *, offset: int, limit: int) -> list[Recipe]:
        ordered = sorted(self._recipes.values(), key=lambda r: r.created_at, reverse=True)
        return [_copy(r) for r in ordered[offset : offset + limit]]

    def count_recipes(self) -> int:
        return len(self._recipes)

    def find_recipes(self, query: RecipeQuery) -> list[Recipe]:
        return [_copy(r) for r in self._recipes.values() if query.matches(r)]

    def update_recipe(self, recipe_id: str, fields: Mapping[str, object]) -> Recipe:
        stored = self._check(recipe_id)
        name = fields.get("name")
        if isinstance(name, str) and self._name_taken(name, exclude=recipe_id):
            raise DuplicateNameError(name)

        for key, value in fields.items():
            setattr(stored, key, list(value) if key == "ingredients" else value)
        stored.updated_at = self._now()
        self.writes += 1
        return _copy(stored)

    def delete_recipe(self, recipe_id: str) -> None:
        self._check(recipe_id)
        del self._recipes[recipe_id]
        self.writes += 1


class InMemoryUserStorage:
    def __init__(self) -> None:
        self._users: dict[str, User] = {}

    def add_user(self, *, name: str, email: str, password_hash: str, user_id: str | None = None) -> User:
        user_id = user_id or uuid.uuid4().hex
        if user_id in self._users or self.get_user_by_email(email):
            raise UserExistsError(f"User with id '{user_id}' already exists")
        user = User(id=user_id, name=name, email=email, password_hash=password_hash)
        self._users[user_id] = user
        return user

    def get_user_by_email(self, email: str) -> User | None:
        return next((u for u in self._users.values() if u.email == email), None)


def _copy(recipe: Recipe) -> Recipe:
    return Recipe(**{**recipe.__dict__, "ingredients": list(recipe.ingredients)})


def image_upload(name: str = "cake.png", content: bytes = b"\x89PNG fake image"):
    return (io.BytesIO(content), name)


@pytest.fixture
def settings(tmp_path: Path) -> Settings:
    return Settings(
        jwt_secret_key="test-secret",
        upload_folder=str(tmp_path / "uploads"),
        cors_allowed_origins=("http://localhost:4200",),
    )


@pytest.fixture
def repository() -> InMemoryRecipeStorage:
    return InMemoryRecipeStorage()


@pytest.fixture
def user_storage() -> InMemoryUserStorage:
    return InMemoryUserStorage()


@pytest.fixture
def assets(tmp_path: Path) -> LocalAssetStore:
    return LocalAssetStore(tmp_path / "uploads")


@pytest.fixture
def service(repository: InMemoryRecipeStorage, assets: LocalAssetStore):
    janitor = AssetJanitor(assets)
    yield RecipeService(repository, janitor)
    janitor.shutdown()


@pytest.fixture
def app(settings, repository, user_storage, assets):
    app = create_app(settings, storage=repository, users=user_storage, assets=assets)
    app.config.update(TESTING=True)
    yield app
    app.config["RECIPE_SERVICE"].janitor.shutdown()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def auth_headers(settings: Settings) -> dict[str, str]:
    issuer = TokenIssuer(settings.jwt_secret_key)
    return {"Authorization": f"Bearer {issuer.issue_access_token('user-1')}"}


@pytest.fixture
def seeded_user(user_storage: InMemoryUserStorage) -> User:
    return user_storage.add_user(
        name="testuser", email="cook@example.com", password_hash=hash_password("s3cret!")
    )


def write_asset(assets: LocalAssetStore, name: str) -> str:
    (assets.directory / name).write_bytes(b"image")
    return f"uploads/{name}"
