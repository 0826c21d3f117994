"""Search criteria and pagination arithmetic for recipe listings."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from typing import List, Optional

from .models import Recipe

DEFAULT_PAGE = 1
DEFAULT_PAGE_SIZE = 5


def parse_ingredient_list(raw: Optional[str]) -> List[str]:
    """Split a comma separated ingredient list, dropping blanks."""

    if not raw:
        return []
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass(frozen=True)
class RecipeQuery:
    """Conjunctive search predicate.

    A recipe matches when its name contains ``name`` (case-insensitive) and
    its ingredient list contains every entry of ``ingredients``. Empty
    criteria match everything.
    """

    name: Optional[str] = None
    ingredients: List[str] = field(default_factory=list)

    @classmethod
    def from_params(cls, name: Optional[str], ingredients: Optional[str]) -> "RecipeQuery":
        name = (name or "").strip() or None
        return cls(name=name, ingredients=parse_ingredient_list(ingredients))

    def matches(self, recipe: Recipe) -> bool:
        if self.name and self.name.casefold() not in recipe.name.casefold():
            return False
        return all(ingredient in recipe.ingredients for ingredient in self.ingredients)


@dataclass(frozen=True)
class PageRequest:
    page: int = DEFAULT_PAGE
    limit: int = DEFAULT_PAGE_SIZE

    @classmethod
    def from_params(
        cls, page: Optional[str], limit: Optional[str], *, max_limit: int = 100
    ) -> "PageRequest":
        """Parse query-string values, falling back to defaults like the API always has."""

        page_number = _positive_int(page) or DEFAULT_PAGE
        page_size = _positive_int(limit) or DEFAULT_PAGE_SIZE
        return cls(page=page_number, limit=min(page_size, max_limit))

    @property
    def offset(self) -> int:
        return (self.page - 1) * self.limit

    def total_pages(self, total: int) -> int:
        return math.ceil(total / self.limit)


def _positive_int(value: Optional[str]) -> Optional[int]:
    try:
        number = int(value)  # type: ignore[arg-type]
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


__all__ = ["PageRequest", "RecipeQuery", "parse_ingredient_list"]
