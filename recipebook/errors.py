"""Errors raised by the recipe catalog.

Every error carries the HTTP status and title the web layer renders, so the
storage adapters and the service never need to know about Flask.
"""

from __future__ import annotations


class RecipeBookError(Exception):
    """Base class for errors that map to a stable API response."""

    status_code = 500
    title = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.title
        super().__init__(self.message)

    def to_dict(self) -> dict:
        return {"error": self.title, "message": self.message}


class InvalidIdError(RecipeBookError):
    """The identifier does not have the store's identifier format."""

    status_code = 400
    title = "Invalid recipe ID"

    def __init__(self, recipe_id: str) -> None:
        self.recipe_id = recipe_id
        super().__init__(f"The provided ID '{recipe_id}' is not a valid recipe ID")


class NotFoundError(RecipeBookError):
    status_code = 404
    title = "Recipe not found"

    def __init__(self, recipe_id: str) -> None:
        self.recipe_id = recipe_id
        super().__init__(f"Recipe with ID '{recipe_id}' doesn't exist")


class DuplicateNameError(RecipeBookError):
    status_code = 409
    title = "Duplicate recipe name"

    def __init__(self, name: str) -> None:
        self.name = name
        super().__init__(f"A recipe with the name '{name}' already exists")


class StorageFailureError(RecipeBookError):
    """Any persistence fault that is not part of the taxonomy above."""

    status_code = 500
    title = "Internal server error"

    def to_dict(self) -> dict:
        return {"error": self.title}


class NoMatchError(RecipeBookError):
    """A search completed but matched nothing."""

    status_code = 404
    title = "No recipes found"

    def __init__(self) -> None:
        super().__init__("No recipes found with the provided search criteria")


class ValidationFailedError(RecipeBookError):
    status_code = 400
    title = "Validation failed"


class UnauthorizedError(RecipeBookError):
    status_code = 401
    title = "Unauthorized"


class ForbiddenError(RecipeBookError):
    status_code = 403
    title = "Forbidden"


class UserNotFoundError(RecipeBookError):
    status_code = 404
    title = "User not found"

    def __init__(self, email: str) -> None:
        self.email = email
        super().__init__(f'User with email "{email}" doesn\'t exist')


class InvalidPasswordError(RecipeBookError):
    status_code = 400
    title = "Invalid password"

    def __init__(self) -> None:
        super().__init__("The password you've entered is incorrect")


class UserExistsError(RecipeBookError):
    status_code = 409
    title = "User already exists"


__all__ = [
    "DuplicateNameError",
    "ForbiddenError",
    "InvalidIdError",
    "InvalidPasswordError",
    "NoMatchError",
    "NotFoundError",
    "RecipeBookError",
    "StorageFailureError",
    "UnauthorizedError",
    "UserExistsError",
    "UserNotFoundError",
    "ValidationFailedError",
]
