from __future__ import annotations

import io
from datetime import datetime, timezone
from unittest.mock import MagicMock

import pytest
from google.api_core import exceptions as gcloud_exceptions
from werkzeug.datastructures import FileStorage

from recipebook import gcp_storage
from recipebook.errors import (
    DuplicateNameError,
    InvalidIdError,
    NotFoundError,
    StorageFailureError,
    UserExistsError,
)
from recipebook.gcp_storage import CloudStorageAssetStore, FirestoreRecipeStorage, FirestoreUserStorage
from recipebook.models import NewRecipe
from recipebook.search import RecipeQuery

RECIPE_ID = "AbCdEfGhIjKlMnOpQrSt"


def snapshot(doc_id: str, data: dict | None, exists: bool = True) -> MagicMock:
    snap = MagicMock()
    snap.id = doc_id
    snap.exists = exists
    snap.to_dict.return_value = data
    return snap


def recipe_data(**overrides) -> dict:
    data = {
        "name": "Lemon Cake",
        "description": "Zesty",
        "ingredients": ["flour", "sugar", "lemon"],
        "instructions": "Bake.",
        "image": None,
        "created_at": datetime(2024, 1, 1, tzinfo=timezone.utc),
        "updated_at": datetime(2024, 1, 2, tzinfo=timezone.utc),
    }
    data.update(overrides)
    return data


@pytest.fixture
def collections():
    return {"recipes": MagicMock(), "recipes_names": MagicMock()}


@pytest.fixture
def client(collections):
    client = MagicMock()
    client.collection.side_effect = lambda name: collections[name]
    return client


@pytest.fixture
def storage(client, monkeypatch):
    monkeypatch.setattr(gcp_storage.firestore, "transactional", lambda fn: fn)
    return FirestoreRecipeStorage(client=client)


def test_malformed_ids_never_reach_firestore(storage, collections):
    for bad in ("", "short", "has/slash/in/it/abcd", "x" * 21):
        with pytest.raises(InvalidIdError):
            storage.get_recipe(bad)

    collections["recipes"].document.assert_not_called()


def test_get_recipe_maps_snapshot(storage, collections):
    collections["recipes"].document.return_value.get.return_value = snapshot(RECIPE_ID, recipe_data())

    recipe = storage.get_recipe(RECIPE_ID)

    assert recipe.id == RECIPE_ID
    assert recipe.name == "Lemon Cake"
    assert recipe.ingredients == ["flour", "sugar", "lemon"]
    assert recipe.updated_at == datetime(2024, 1, 2, tzinfo=timezone.utc)


def test_get_missing_recipe(storage, collections):
    collections["recipes"].document.return_value.get.return_value = snapshot(RECIPE_ID, None, exists=False)

    with pytest.raises(NotFoundError):
        storage.get_recipe(RECIPE_ID)


def test_driver_errors_become_storage_failures(storage, collections):
    collections["recipes"].document.return_value.get.side_effect = gcloud_exceptions.ServiceUnavailable(
        "firestore down"
    )

    with pytest.raises(StorageFailureError):
        storage.get_recipe(RECIPE_ID)


def test_add_recipe_writes_record_and_name_index(storage, client, collections):
    doc_ref = collections["recipes"].document.return_value
    doc_ref.id = RECIPE_ID
    doc_ref.get.return_value = snapshot(RECIPE_ID, recipe_data())
    name_ref = collections["recipes_names"].document.return_value
    name_ref.get.return_value = snapshot("hash", None, exists=False)

    recipe = storage.add_recipe(
        NewRecipe(name="Lemon Cake", description="Zesty", ingredients=["flour"], instructions="Bake.")
    )

    transaction = client.transaction.return_value
    assert recipe.id == RECIPE_ID
    transaction.create.assert_any_call(name_ref, {"recipe_id": RECIPE_ID})
    written = transaction.create.call_args_list[-1].args[1]
    assert written["name"] == "Lemon Cake"
    assert written["created_at"] is gcp_storage.firestore.SERVER_TIMESTAMP


def test_add_recipe_with_taken_name(storage, client, collections):
    collections["recipes_names"].document.return_value.get.return_value = snapshot("hash", {}, exists=True)

    with pytest.raises(DuplicateNameError):
        storage.add_recipe(
            NewRecipe(name="Lemon Cake", description="Zesty", ingredients=[], instructions="Bake.")
        )

    client.transaction.return_value.create.assert_not_called()


def test_add_recipe_losing_a_race_is_a_duplicate(storage, client, collections):
    collections["recipes_names"].document.return_value.get.return_value = snapshot("hash", None, exists=False)
    client.transaction.return_value.create.side_effect = gcloud_exceptions.AlreadyExists("taken")

    with pytest.raises(DuplicateNameError):
        storage.add_recipe(
            NewRecipe(name="Lemon Cake", description="Zesty", ingredients=[], instructions="Bake.")
        )


def test_rename_moves_name_index(storage, client, collections):
    doc_ref = collections["recipes"].document.return_value
    doc_ref.get.return_value = snapshot(RECIPE_ID, recipe_data())
    collections["recipes_names"].document.return_value.get.return_value = snapshot("hash", None, exists=False)

    storage.update_recipe(RECIPE_ID, {"name": "Orange Cake"})

    transaction = client.transaction.return_value
    transaction.create.assert_called_once()
    transaction.delete.assert_called_once()
    update_doc = transaction.update.call_args.args[1]
    assert update_doc["name"] == "Orange Cake"
    assert update_doc["updated_at"] is gcp_storage.firestore.SERVER_TIMESTAMP


def test_rename_losing_a_race_is_a_duplicate(storage, client, collections):
    collections["recipes"].document.return_value.get.return_value = snapshot(RECIPE_ID, recipe_data())
    collections["recipes_names"].document.return_value.get.return_value = snapshot("hash", None, exists=False)
    client.transaction.return_value.create.side_effect = gcloud_exceptions.AlreadyExists("taken")

    with pytest.raises(DuplicateNameError) as excinfo:
        storage.update_recipe(RECIPE_ID, {"name": "Orange Cake"})

    assert excinfo.value.name == "Orange Cake"
    client.transaction.return_value.update.assert_not_called()


def test_update_without_rename_leaves_name_index(storage, client, collections):
    doc_ref = collections["recipes"].document.return_value
    doc_ref.get.return_value = snapshot(RECIPE_ID, recipe_data())

    storage.update_recipe(RECIPE_ID, {"ingredients": ["sugar", "flour"]})

    transaction = client.transaction.return_value
    transaction.create.assert_not_called()
    transaction.delete.assert_not_called()


def test_delete_removes_record_and_name_index(storage, client, collections):
    collections["recipes"].document.return_value.get.return_value = snapshot(RECIPE_ID, recipe_data())

    storage.delete_recipe(RECIPE_ID)

    assert client.transaction.return_value.delete.call_count == 2


def test_count_recipes(storage, collections):
    aggregate = MagicMock()
    aggregate.value = 12
    collections["recipes"].count.return_value.get.return_value = [[aggregate]]

    assert storage.count_recipes() == 12


def test_find_recipes_narrows_by_first_ingredient(storage, collections):
    query = collections["recipes"].where.return_value
    query.stream.return_value = [
        snapshot("a" * 20, recipe_data(name="Lemon Cake")),
        snapshot("b" * 20, recipe_data(name="Lemon Bars", ingredients=["flour"])),
    ]

    found = storage.find_recipes(RecipeQuery.from_params("cake", "flour,sugar"))

    field_filter = collections["recipes"].where.call_args.kwargs["filter"]
    assert field_filter.field_path == "ingredients"
    assert field_filter.value == "flour"
    assert [recipe.name for recipe in found] == ["Lemon Cake"]


def test_cloud_asset_store_upload_and_delete():
    client = MagicMock()
    bucket = client.bucket.return_value
    store = CloudStorageAssetStore("recipe-images", client=client)

    path = store.save(FileStorage(stream=io.BytesIO(b"img"), filename="pie.png", content_type="image/png"))
    bucket.blob.return_value.delete.side_effect = gcloud_exceptions.NotFound("gone")
    store.delete(path)

    assert path.startswith("recipes/")
    assert path.endswith("_pie.png")
    bucket.blob.return_value.upload_from_file.assert_called_once()


def test_user_lookup_by_email():
    client = MagicMock()
    users = MagicMock()
    client.collection.side_effect = lambda name: users
    query = users.where.return_value.limit.return_value
    query.stream.return_value = [
        snapshot("u1", {"name": "testuser", "email": "test@test.com", "password": "$2b$12$hash"})
    ]

    user = FirestoreUserStorage(client=client).get_user_by_email("test@test.com")

    assert user.id == "u1"
    assert user.password_hash == "$2b$12$hash"


def test_user_with_taken_email(client, monkeypatch):
    monkeypatch.setattr(gcp_storage.firestore, "transactional", lambda fn: fn)
    emails = MagicMock()
    emails.document.return_value.get.return_value = snapshot("hash", {}, exists=True)
    client.collection.side_effect = lambda name: emails if name == "users_emails" else MagicMock()

    with pytest.raises(UserExistsError):
        FirestoreUserStorage(client=client).add_user(
            name="testuser", email="test@test.com", password_hash="$2b$12$hash"
        )
