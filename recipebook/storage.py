from __future__ import annotations

from typing import Iterable, List, Mapping, Protocol

from werkzeug.datastructures import FileStorage

from .models import NewRecipe, Recipe, User
from .search import RecipeQuery


class RecipeRepository(Protocol):
    """Protocol describing the behaviour required from the record store.

    Implementations translate their driver errors into
    :mod:`recipebook.errors`: malformed identifiers raise
    :class:`~recipebook.errors.InvalidIdError`, unknown records
    :class:`~recipebook.errors.NotFoundError`, name collisions
    :class:`~recipebook.errors.DuplicateNameError` and every other fault
    :class:`~recipebook.errors.StorageFailureError`.
    """

    def add_recipe(self, recipe: NewRecipe) -> Recipe:
        """Persist a new recipe and return the stored instance."""

    def get_recipe(self, recipe_id: str) -> Recipe:
        """Return a single recipe."""

    def list_recipes(self, *, offset: int, limit: int) -> List[Recipe]:
        """Return one page of recipes ordered newest first."""

    def count_recipes(self) -> int:
        """Return the number of stored recipes."""

    def find_recipes(self, query: RecipeQuery) -> Iterable[Recipe]:
        """Return every recipe matching ``query``."""

    def update_recipe(self, recipe_id: str, fields: Mapping[str, object]) -> Recipe:
        """Replace the given fields and return the post-update recipe."""

    def delete_recipe(self, recipe_id: str) -> None:
        """Remove a recipe record."""


class UserRepository(Protocol):
    def add_user(self, *, name: str, email: str, password_hash: str, user_id: str | None = None) -> User:
        """Persist a user. Raises :class:`~recipebook.errors.UserExistsError` on a taken email or id."""

    def get_user_by_email(self, email: str) -> User | None:
        """Return the user registered with ``email`` or ``None``."""


class AssetStore(Protocol):
    """Storage for uploaded recipe images, addressed by path."""

    def save(self, upload: FileStorage) -> str:
        """Store ``upload`` under a fresh unique path and return that path."""

    def exists(self, path: str) -> bool:
        """Return whether ``path`` refers to a stored asset."""

    def delete(self, path: str) -> None:
        """Remove the asset at ``path``. A missing asset is not an error."""


__all__ = ["AssetStore", "RecipeRepository", "UserRepository"]
