"""Request body shapes checked before any workflow runs."""

from __future__ import annotations

from typing import Annotated, Any, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from .errors import ValidationFailedError
from .models import NewRecipe, RecipeChanges

ModelT = TypeVar("ModelT", bound=BaseModel)

Ingredient = Annotated[str, Field(min_length=1)]


class _Body(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)


class RecipeCreate(_Body):
    name: str = Field(min_length=1)
    description: str = Field(min_length=1)
    ingredients: List[Ingredient]
    instructions: str = Field(min_length=1)

    def to_new_recipe(self) -> NewRecipe:
        return NewRecipe(
            name=self.name,
            description=self.description,
            ingredients=list(self.ingredients),
            instructions=self.instructions,
        )


class RecipeUpdate(BaseModel):
    # Keys outside the editable fields (image, _id, timestamps) are dropped.
    model_config = ConfigDict(extra="ignore", str_strip_whitespace=True)

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = Field(default=None, min_length=1)
    ingredients: Optional[List[Ingredient]] = None
    instructions: Optional[str] = Field(default=None, min_length=1)

    def to_changes(self) -> RecipeChanges:
        return RecipeChanges(
            name=self.name,
            description=self.description,
            ingredients=list(self.ingredients) if self.ingredients is not None else None,
            instructions=self.instructions,
        )


class LoginRequest(BaseModel):
    model_config = ConfigDict(extra="ignore")

    email: str = Field(min_length=1)
    password: str = Field(min_length=1)


class RefreshRequest(BaseModel):
    refreshToken: Optional[str] = None


def parse_body(model: Type[ModelT], data: Mapping[str, Any]) -> ModelT:
    """Validate ``data`` against ``model`` or raise :class:`ValidationFailedError`."""

    try:
        return model.model_validate(dict(data))
    except ValidationError as exc:
        raise ValidationFailedError(_describe(exc)) from exc


def _describe(exc: ValidationError) -> str:
    error = exc.errors()[0]
    field = ".".join(str(part) for part in error["loc"]) or "body"
    return f'"{field}" {error["msg"][0].lower()}{error["msg"][1:]}'


__all__ = [
    "LoginRequest",
    "RecipeCreate",
    "RecipeUpdate",
    "RefreshRequest",
    "parse_body",
]
