from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional


@dataclass
class Recipe:
    """Domain object representing a stored recipe."""

    id: str
    name: str
    description: str
    ingredients: List[str]
    instructions: str
    image: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, object]:
        return {
            "_id": self.id,
            "name": self.name,
            "description": self.description,
            "ingredients": list(self.ingredients),
            "instructions": self.instructions,
            "image": self.image,
            "createdAt": _isoformat(self.created_at),
            "updatedAt": _isoformat(self.updated_at),
        }


@dataclass
class NewRecipe:
    """Fields required to create a recipe."""

    name: str
    description: str
    ingredients: List[str]
    instructions: str
    image: Optional[str] = None


@dataclass
class RecipeChanges:
    """A partial update. ``None`` means the caller did not send the field."""

    name: Optional[str] = None
    description: Optional[str] = None
    ingredients: Optional[List[str]] = None
    instructions: Optional[str] = None
    image: Optional[str] = None

    def supplied(self) -> Dict[str, object]:
        return {key: value for key, value in self.__dict__.items() if value is not None}


class UpdateStatus(str, Enum):
    UPDATED = "updated"
    UNCHANGED = "unchanged"


@dataclass
class UpdateResult:
    recipe: Recipe
    status: UpdateStatus

    @property
    def changed(self) -> bool:
        return self.status is UpdateStatus.UPDATED


@dataclass
class Page:
    recipes: List[Recipe]
    total: int
    total_pages: int
    current_page: int

    def to_dict(self) -> Dict[str, object]:
        return {
            "totalRecipes": self.total,
            "totalPages": self.total_pages,
            "currentPage": self.current_page,
            "recipes": [recipe.to_dict() for recipe in self.recipes],
        }


@dataclass
class User:
    id: str
    name: str
    email: str
    password_hash: str = field(repr=False)
    created_at: Optional[datetime] = None

    def to_public_dict(self) -> Dict[str, object]:
        return {"_id": self.id, "name": self.name, "email": self.email}


def _isoformat(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


__all__ = [
    "NewRecipe",
    "Page",
    "Recipe",
    "RecipeChanges",
    "UpdateResult",
    "UpdateStatus",
    "User",
]
