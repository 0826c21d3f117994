from pathlib import Path
from typing import Any, Dict, Optional

from flask import Flask, jsonify, request, send_from_directory
from flask_cors import CORS
from loguru import logger
from werkzeug.exceptions import HTTPException

from .assets import AssetJanitor, LocalAssetStore, allowed_image
from .auth import UserService, login_required, register_user_routes
from .config import Settings
from .errors import RecipeBookError, ValidationFailedError
from .models import Recipe
from .observability import configure_logging
from .schemas import RecipeCreate, RecipeUpdate, parse_body
from .search import PageRequest, RecipeQuery
from .security import TokenIssuer
from .service import RecipeService
from .storage import AssetStore, RecipeRepository, UserRepository


def create_app(
    settings: Optional[Settings] = None,
    *,
    storage: Optional[RecipeRepository] = None,
    users: Optional[UserRepository] = None,
    assets: Optional[AssetStore] = None,
) -> Flask:
    """Create and configure the Flask application.

    Parameters
    ----------
    settings:
        Runtime configuration. Defaults to :meth:`Settings.from_env`.
    storage, users:
        Optional record repositories. When ``None`` the application uses the
        Firestore backends configured through ``settings``.
    assets:
        Optional image store. When ``None`` images go to Cloud Storage if a
        bucket is configured and to ``settings.upload_folder`` otherwise.
    """

    if settings is None:
        settings = Settings.from_env()

    configure_logging(settings.log_level, json_logs=settings.log_json)

    app = Flask(__name__)
    app.config["MAX_CONTENT_LENGTH"] = settings.max_content_length
    app.secret_key = settings.secret_key

    if storage is None or users is None:
        from .gcp_storage import FirestoreRecipeStorage, FirestoreUserStorage

        storage = storage or FirestoreRecipeStorage.from_settings(settings)
        users = users or FirestoreUserStorage.from_settings(settings)

    if assets is None:
        if settings.gcs_bucket:
            from .gcp_storage import CloudStorageAssetStore

            assets = CloudStorageAssetStore.from_settings(settings)
        else:
            assets = LocalAssetStore(Path(settings.upload_folder).resolve())

    issuer = TokenIssuer(
        settings.jwt_secret_key,
        algorithm=settings.jwt_algorithm,
        access_ttl=settings.access_token_ttl,
        refresh_ttl=settings.refresh_token_ttl,
    )

    app.config["SETTINGS"] = settings
    app.config["SEED_USER"] = dict(settings.seed_user)
    app.config["TOKEN_ISSUER"] = issuer
    app.config["ASSET_STORE"] = assets
    app.config["RECIPE_SERVICE"] = RecipeService(storage, AssetJanitor(assets))
    app.config["USER_SERVICE"] = UserService(users, issuer)

    CORS(app, resources={r"/api/*": {"origins": list(settings.cors_allowed_origins)}})
    logger.info("CORS allowlist: {}", ", ".join(settings.cors_allowed_origins) or "<empty>")

    _register_error_handlers(app)
    register_user_routes(app)

    @app.get("/")
    def health():
        return jsonify({"status": "ok"})

    @app.post("/api/recipes")
    @login_required
    def create_recipe():
        service: RecipeService = app.config["RECIPE_SERVICE"]
        body = parse_body(RecipeCreate, _request_data())
        image_path = _store_upload(app.config["ASSET_STORE"])

        recipe = service.create_recipe(body.to_new_recipe(), image_path)
        return jsonify({"message": "Recipe created successfully", "recipe": recipe.to_dict()}), 201

    @app.get("/api/recipes")
    @login_required
    def list_recipes():
        service: RecipeService = app.config["RECIPE_SERVICE"]
        page_request = PageRequest.from_params(
            request.args.get("page"),
            request.args.get("limit"),
            max_limit=settings.page_size_limit,
        )
        return jsonify(service.list_recipes(page_request).to_dict())

    @app.get("/api/recipes/<recipe_id>")
    @login_required
    def get_recipe(recipe_id: str):
        service: RecipeService = app.config["RECIPE_SERVICE"]
        return jsonify(service.get_recipe(recipe_id).to_dict())

    @app.put("/api/recipes/<recipe_id>")
    @login_required
    def update_recipe(recipe_id: str):
        service: RecipeService = app.config["RECIPE_SERVICE"]
        body = parse_body(RecipeUpdate, _request_data())
        image_path = _store_upload(app.config["ASSET_STORE"])

        result = service.update_recipe(recipe_id, body.to_changes(), image_path)
        message = "Recipe updated successfully" if result.changed else "No changes were made to the recipe"
        return jsonify({"message": message, "recipe": result.recipe.to_dict()})

    @app.delete("/api/recipes/<recipe_id>")
    @login_required
    def delete_recipe(recipe_id: str):
        service: RecipeService = app.config["RECIPE_SERVICE"]
        service.delete_recipe(recipe_id)
        return jsonify({"message": "Recipe deleted successfully"})

    @app.get("/api/recipes/advanced/search")
    @login_required
    def search_recipes():
        service: RecipeService = app.config["RECIPE_SERVICE"]
        query = RecipeQuery.from_params(request.args.get("name"), request.args.get("ingredients"))
        recipes = service.search_recipes(query)
        return jsonify({"recipes": [recipe.to_dict() for recipe in recipes]})

    if isinstance(assets, LocalAssetStore):
        upload_directory = assets.directory

        @app.get("/uploads/<path:filename>")
        def uploaded_file(filename: str):
            return send_from_directory(upload_directory, filename)

    return app


def _register_error_handlers(app: Flask) -> None:
    @app.errorhandler(RecipeBookError)
    def handle_recipe_book_error(exc: RecipeBookError):
        return jsonify(exc.to_dict()), exc.status_code

    @app.errorhandler(HTTPException)
    def handle_http_exception(exc: HTTPException):
        return jsonify({"error": exc.name, "message": exc.description}), exc.code

    @app.errorhandler(Exception)
    def handle_unexpected(exc: Exception):
        logger.opt(exception=exc).error("Unhandled exception on {} {}", request.method, request.path)
        return jsonify({"error": "Internal server error"}), 500


def _request_data() -> Dict[str, Any]:
    if request.is_json:
        data = request.get_json(silent=True)
        if not isinstance(data, dict):
            raise ValidationFailedError('"body" must be an object')
        return data

    form_data: Dict[str, Any] = {key: request.form.get(key) for key in request.form if key != "image"}
    if "ingredients" in request.form:
        form_data["ingredients"] = _parse_ingredients(request.form.getlist("ingredients"))
    return form_data


def _parse_ingredients(values: list) -> list:
    if len(values) == 1 and "\n" in values[0]:
        return [line.strip() for line in values[0].splitlines() if line.strip()]
    return values


def _store_upload(assets: AssetStore) -> Optional[str]:
    image = request.files.get("image")
    if not image or not image.filename:
        return None

    if not allowed_image(image.filename):
        raise ValidationFailedError(
            "Unsupported image format. Allowed formats: PNG, JPG, JPEG, GIF, WEBP."
        )
    return assets.save(image)


__all__ = ["create_app", "Recipe", "Settings"]
