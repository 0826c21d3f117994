from __future__ import annotations

import hashlib
import re
from contextlib import contextmanager
from datetime import datetime
from typing import Iterable, Iterator, List, Mapping, Optional

from google.api_core import exceptions as gcloud_exceptions
from google.auth import exceptions as auth_exceptions
from google.cloud import firestore, storage
from google.cloud.firestore_v1.base_query import FieldFilter
from loguru import logger
from werkzeug.datastructures import FileStorage

from .assets import unique_filename
from .config import Settings
from .errors import (
    DuplicateNameError,
    InvalidIdError,
    NotFoundError,
    StorageFailureError,
    UserExistsError,
)
from .models import NewRecipe, Recipe, User
from .search import RecipeQuery
from .storage import AssetStore, RecipeRepository, UserRepository

# Firestore auto-generated document ids.
_DOCUMENT_ID = re.compile(r"^[A-Za-z0-9]{20}$")

_DRIVER_ERRORS = (gcloud_exceptions.GoogleAPIError, auth_exceptions.GoogleAuthError)


def _index_key(value: str) -> str:
    return hashlib.sha256(value.encode("utf-8")).hexdigest()


@contextmanager
def _driver_errors(action: str) -> Iterator[None]:
    try:
        yield
    except _DRIVER_ERRORS as exc:
        logger.error("Firestore failed to {}: {}", action, exc)
        raise StorageFailureError(f"Failed to {action}") from exc


class FirestoreRecipeStorage(RecipeRepository):
    """Recipe records in Firestore.

    Names are kept unique through a companion collection whose document ids
    are hashes of the recipe names. A recipe and its name document are always
    written in the same transaction.
    """

    def __init__(
        self,
        *,
        project: Optional[str] = None,
        collection_name: str = "recipes",
        client: Optional[firestore.Client] = None,
    ) -> None:
        self._client = client or firestore.Client(project=project)
        self._collection = self._client.collection(collection_name)
        self._names = self._client.collection(f"{collection_name}_names")

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirestoreRecipeStorage":
        return cls(project=settings.gcp_project, collection_name=settings.recipes_collection)

    def add_recipe(self, recipe: NewRecipe) -> Recipe:
        doc_ref = self._collection.document()
        name_ref = self._names.document(_index_key(recipe.name))
        doc = {
            "name": recipe.name,
            "description": recipe.description,
            "ingredients": list(recipe.ingredients),
            "instructions": recipe.instructions,
            "image": recipe.image,
            "created_at": firestore.SERVER_TIMESTAMP,
            "updated_at": firestore.SERVER_TIMESTAMP,
        }

        @firestore.transactional
        def insert(transaction: firestore.Transaction) -> None:
            if name_ref.get(transaction=transaction).exists:
                raise DuplicateNameError(recipe.name)
            transaction.create(name_ref, {"recipe_id": doc_ref.id})
            transaction.create(doc_ref, doc)

        with _driver_errors("create recipe"):
            try:
                insert(self._client.transaction())
            except gcloud_exceptions.AlreadyExists as exc:
                raise DuplicateNameError(recipe.name) from exc
            return self._snapshot_to_recipe(doc_ref.get())

    def get_recipe(self, recipe_id: str) -> Recipe:
        doc_ref = self._document(recipe_id)
        with _driver_errors("read recipe"):
            snapshot = doc_ref.get()

        if not snapshot.exists:
            raise NotFoundError(recipe_id)
        return self._snapshot_to_recipe(snapshot)

    def list_recipes(self, *, offset: int, limit: int) -> List[Recipe]:
        query = (
            self._collection.order_by("created_at", direction=firestore.Query.DESCENDING)
            .offset(offset)
            .limit(limit)
        )
        with _driver_errors("list recipes"):
            return [self._snapshot_to_recipe(doc) for doc in query.stream()]

    def count_recipes(self) -> int:
        with _driver_errors("count recipes"):
            results = self._collection.count().get()
        return int(results[0][0].value)

    def find_recipes(self, query: RecipeQuery) -> Iterable[Recipe]:
        # Firestore has no substring operator and array_contains_any is a
        # disjunction, so only the first ingredient narrows the server query.
        firestore_query = self._collection
        if query.ingredients:
            firestore_query = firestore_query.where(
                filter=FieldFilter("ingredients", "array_contains", query.ingredients[0])
            )

        with _driver_errors("search recipes"):
            snapshots = list(firestore_query.stream())

        recipes = (self._snapshot_to_recipe(doc) for doc in snapshots)
        return [recipe for recipe in recipes if query.matches(recipe)]

    def update_recipe(self, recipe_id: str, fields: Mapping[str, object]) -> Recipe:
        doc_ref = self._document(recipe_id)
        update_doc = dict(fields)
        update_doc["updated_at"] = firestore.SERVER_TIMESTAMP
        new_name = fields.get("name")

        @firestore.transactional
        def apply(transaction: firestore.Transaction) -> None:
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError(recipe_id)

            current_name = (snapshot.to_dict() or {}).get("name")
            if isinstance(new_name, str) and new_name != current_name:
                new_name_ref = self._names.document(_index_key(new_name))
                if new_name_ref.get(transaction=transaction).exists:
                    raise DuplicateNameError(new_name)
                transaction.create(new_name_ref, {"recipe_id": recipe_id})
                if current_name:
                    transaction.delete(self._names.document(_index_key(current_name)))

            transaction.update(doc_ref, update_doc)

        with _driver_errors("update recipe"):
            try:
                apply(self._client.transaction())
            except gcloud_exceptions.AlreadyExists as exc:
                raise DuplicateNameError(str(new_name)) from exc
            return self._snapshot_to_recipe(doc_ref.get())

    def delete_recipe(self, recipe_id: str) -> None:
        doc_ref = self._document(recipe_id)

        @firestore.transactional
        def remove(transaction: firestore.Transaction) -> None:
            snapshot = doc_ref.get(transaction=transaction)
            if not snapshot.exists:
                raise NotFoundError(recipe_id)

            name = (snapshot.to_dict() or {}).get("name")
            if name:
                transaction.delete(self._names.document(_index_key(name)))
            transaction.delete(doc_ref)

        with _driver_errors("delete recipe"):
            remove(self._client.transaction())

    def _document(self, recipe_id: str) -> firestore.DocumentReference:
        if not _DOCUMENT_ID.match(recipe_id or ""):
            raise InvalidIdError(recipe_id)
        return self._collection.document(recipe_id)

    def _snapshot_to_recipe(self, snapshot: firestore.DocumentSnapshot) -> Recipe:
        data = snapshot.to_dict() or {}

        ingredients = data.get("ingredients")
        if not isinstance(ingredients, list):
            ingredients = []

        return Recipe(
            id=snapshot.id,
            name=data.get("name", ""),
            description=data.get("description", ""),
            ingredients=ingredients,
            instructions=data.get("instructions", ""),
            image=data.get("image"),
            created_at=_timestamp(data.get("created_at")),
            updated_at=_timestamp(data.get("updated_at")),
        )


class FirestoreUserStorage(UserRepository):
    """User accounts in Firestore with unique e-mail addresses."""

    def __init__(
        self,
        *,
        project: Optional[str] = None,
        collection_name: str = "users",
        client: Optional[firestore.Client] = None,
    ) -> None:
        self._client = client or firestore.Client(project=project)
        self._collection = self._client.collection(collection_name)
        self._emails = self._client.collection(f"{collection_name}_emails")

    @classmethod
    def from_settings(cls, settings: Settings) -> "FirestoreUserStorage":
        return cls(project=settings.gcp_project, collection_name=settings.users_collection)

    def add_user(
        self, *, name: str, email: str, password_hash: str, user_id: Optional[str] = None
    ) -> User:
        doc_ref = self._collection.document(user_id) if user_id else self._collection.document()
        email_ref = self._emails.document(_index_key(email))
        doc = {
            "name": name,
            "email": email,
            "password": password_hash,
            "created_at": firestore.SERVER_TIMESTAMP,
        }

        @firestore.transactional
        def insert(transaction: firestore.Transaction) -> None:
            if email_ref.get(transaction=transaction).exists:
                raise UserExistsError(f"User with email '{email}' already exists")
            transaction.create(email_ref, {"user_id": doc_ref.id})
            transaction.create(doc_ref, doc)

        with _driver_errors("create user"):
            try:
                insert(self._client.transaction())
            except gcloud_exceptions.AlreadyExists as exc:
                raise UserExistsError(f"User with id '{doc_ref.id}' already exists") from exc
            return self._snapshot_to_user(doc_ref.get())

    def get_user_by_email(self, email: str) -> Optional[User]:
        query = self._collection.where(filter=FieldFilter("email", "==", email)).limit(1)
        with _driver_errors("read user"):
            snapshots = list(query.stream())
        return self._snapshot_to_user(snapshots[0]) if snapshots else None

    def _snapshot_to_user(self, snapshot: firestore.DocumentSnapshot) -> User:
        data = snapshot.to_dict() or {}
        return User(
            id=snapshot.id,
            name=data.get("name", ""),
            email=data.get("email", ""),
            password_hash=data.get("password", ""),
            created_at=_timestamp(data.get("created_at")),
        )


class CloudStorageAssetStore(AssetStore):
    """Recipe images kept as Cloud Storage blobs; the path is the blob name."""

    def __init__(
        self,
        bucket_name: str,
        *,
        project: Optional[str] = None,
        prefix: str = "recipes",
        client: Optional[storage.Client] = None,
    ) -> None:
        self._client = client or storage.Client(project=project)
        self._bucket = self._client.bucket(bucket_name)
        self._prefix = prefix

    @classmethod
    def from_settings(cls, settings: Settings) -> "CloudStorageAssetStore":
        if not settings.gcs_bucket:
            raise RuntimeError("A Cloud Storage bucket must be configured to upload images.")
        return cls(settings.gcs_bucket, project=settings.gcp_project)

    def save(self, upload: FileStorage) -> str:
        blob_name = f"{self._prefix}/{unique_filename(upload.filename or '')}"
        blob = self._bucket.blob(blob_name)

        upload.stream.seek(0)
        with _driver_errors("upload image"):
            blob.upload_from_file(upload.stream, content_type=upload.mimetype)
        return blob_name

    def exists(self, path: str) -> bool:
        with _driver_errors("look up image"):
            return self._bucket.blob(path).exists()

    def delete(self, path: str) -> None:
        blob = self._bucket.blob(path)
        try:
            blob.delete()
        except gcloud_exceptions.NotFound:
            # The blob may already have been removed manually; ignore.
            pass


def _timestamp(value: object) -> Optional[datetime]:
    return value if isinstance(value, datetime) else None


__all__ = ["CloudStorageAssetStore", "FirestoreRecipeStorage", "FirestoreUserStorage"]
