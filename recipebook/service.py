"""Recipe workflows coordinating the record store and the asset store.

The record store is the source of truth. Asset files are only retired after
the record write that stops referencing them has succeeded, and their
removal never changes the outcome reported to the caller. Uploads that end
up unreferenced because the record write failed are left in place.
"""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import replace
from typing import Iterator, List, Optional

from loguru import logger

from .assets import AssetJanitor
from .diff import has_changes
from .errors import NoMatchError, RecipeBookError, StorageFailureError, ValidationFailedError
from .models import NewRecipe, Page, Recipe, RecipeChanges, UpdateResult, UpdateStatus
from .search import PageRequest, RecipeQuery
from .storage import RecipeRepository


class RecipeService:
    def __init__(self, repository: RecipeRepository, janitor: AssetJanitor) -> None:
        self._repository = repository
        self._janitor = janitor

    @property
    def janitor(self) -> AssetJanitor:
        return self._janitor

    def create_recipe(self, recipe: NewRecipe, image_path: Optional[str] = None) -> Recipe:
        if image_path:
            self._require_asset(image_path)
            recipe = replace(recipe, image=image_path)

        with _storage_boundary("create recipe"):
            created = self._repository.add_recipe(recipe)

        logger.info("Created recipe {} ({})", created.id, created.name)
        return created

    def get_recipe(self, recipe_id: str) -> Recipe:
        with _storage_boundary("read recipe"):
            return self._repository.get_recipe(recipe_id)

    def list_recipes(self, request: PageRequest) -> Page:
        with _storage_boundary("list recipes"):
            recipes = self._repository.list_recipes(offset=request.offset, limit=request.limit)
            total = self._repository.count_recipes()

        return Page(
            recipes=recipes,
            total=total,
            total_pages=request.total_pages(total),
            current_page=request.page,
        )

    def update_recipe(
        self, recipe_id: str, changes: RecipeChanges, image_path: Optional[str] = None
    ) -> UpdateResult:
        with _storage_boundary("read recipe"):
            current = self._repository.get_recipe(recipe_id)

        superseded: Optional[str] = None
        if image_path:
            self._require_asset(image_path)
            changes = replace(changes, image=image_path)
            superseded = current.image
        else:
            changes = replace(changes, image=None)

        if not has_changes(current, changes):
            logger.info("No changes submitted for recipe {}", recipe_id)
            return UpdateResult(recipe=current, status=UpdateStatus.UNCHANGED)

        with _storage_boundary("update recipe"):
            updated = self._repository.update_recipe(recipe_id, changes.supplied())

        if superseded and superseded != updated.image:
            self._janitor.retire(superseded)

        logger.info("Updated recipe {}", recipe_id)
        return UpdateResult(recipe=updated, status=UpdateStatus.UPDATED)

    def delete_recipe(self, recipe_id: str) -> None:
        with _storage_boundary("read recipe"):
            current = self._repository.get_recipe(recipe_id)

        with _storage_boundary("delete recipe"):
            self._repository.delete_recipe(recipe_id)

        self._janitor.retire(current.image)
        logger.info("Deleted recipe {}", recipe_id)

    def search_recipes(self, query: RecipeQuery) -> List[Recipe]:
        with _storage_boundary("search recipes"):
            matches = list(self._repository.find_recipes(query))

        if not matches:
            raise NoMatchError()
        return matches

    def _require_asset(self, path: str) -> None:
        with _storage_boundary("look up image"):
            found = self._janitor.store.exists(path)
        if not found:
            raise ValidationFailedError(f"Image '{path}' has not been uploaded")


@contextmanager
def _storage_boundary(action: str) -> Iterator[None]:
    """Let taxonomy errors through and classify anything else as a storage failure."""

    try:
        yield
    except RecipeBookError:
        raise
    except Exception as exc:
        logger.exception("Failed to {}", action)
        raise StorageFailureError(f"Failed to {action}") from exc


__all__ = ["RecipeService"]
