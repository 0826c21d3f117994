"""Uploaded image storage on the local filesystem and detached asset cleanup."""

from __future__ import annotations

import threading
import uuid
from concurrent.futures import Future, ThreadPoolExecutor, wait
from pathlib import Path
from typing import Optional, Set

from loguru import logger
from werkzeug.datastructures import FileStorage
from werkzeug.utils import secure_filename

from .storage import AssetStore

ALLOWED_IMAGE_EXTENSIONS = {"png", "jpg", "jpeg", "gif", "webp"}
PUBLIC_PREFIX = "uploads"


def allowed_image(filename: Optional[str]) -> bool:
    if not filename or "." not in filename:
        return False
    ext = filename.rsplit(".", 1)[1].lower()
    return ext in ALLOWED_IMAGE_EXTENSIONS


def unique_filename(filename: str) -> str:
    safe = secure_filename(filename) or "upload"
    return f"{uuid.uuid4().hex}_{safe}"


class LocalAssetStore(AssetStore):
    """Keeps uploads in a single directory.

    Stored paths are relative to the public ``uploads/`` route, so they never
    reveal where the directory lives on the server.
    """

    def __init__(self, directory: Path | str) -> None:
        self._directory = Path(directory)
        self._directory.mkdir(parents=True, exist_ok=True)

    @property
    def directory(self) -> Path:
        return self._directory

    def save(self, upload: FileStorage) -> str:
        filename = unique_filename(upload.filename or "")
        target = self._directory / filename
        upload.stream.seek(0)
        upload.save(target)
        logger.debug("Stored upload {} at {}", upload.filename, target)
        return f"{PUBLIC_PREFIX}/{filename}"

    def exists(self, path: str) -> bool:
        located = self.locate(path)
        return located is not None and located.is_file()

    def delete(self, path: str) -> None:
        located = self.locate(path)
        if located is None:
            raise ValueError(f"Refusing to delete '{path}' outside {PUBLIC_PREFIX}/")
        located.unlink(missing_ok=True)

    def locate(self, path: str) -> Optional[Path]:
        """Map a stored ``uploads/<name>`` path to its file, or ``None`` if it is not one."""

        prefix, _, name = path.partition("/")
        if prefix != PUBLIC_PREFIX or not name or name != Path(name).name or name in (".", ".."):
            return None
        return self._directory / name


class AssetJanitor:
    """Retires superseded assets in the background.

    Deletions are submitted to a small thread pool and never awaited by the
    request that triggered them; failures are logged and not retried.
    """

    def __init__(self, store: AssetStore, *, max_workers: int = 2) -> None:
        self._store = store
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="asset-janitor")
        self._pending: Set[Future] = set()
        self._lock = threading.Lock()

    @property
    def store(self) -> AssetStore:
        return self._store

    def retire(self, path: Optional[str]) -> Optional[Future]:
        if not path:
            return None

        future = self._executor.submit(self._delete, path)
        with self._lock:
            self._pending.add(future)
        future.add_done_callback(self._forget)
        return future

    def drain(self, timeout: Optional[float] = None) -> None:
        """Block until every submitted deletion has finished."""

        with self._lock:
            pending = set(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def shutdown(self) -> None:
        self._executor.shutdown(wait=True)

    def _delete(self, path: str) -> bool:
        try:
            self._store.delete(path)
        except Exception as exc:
            logger.warning("Failed to delete asset {}: {}", path, exc)
            return False
        logger.info("Deleted asset {}", path)
        return True

    def _forget(self, future: Future) -> None:
        with self._lock:
            self._pending.discard(future)


__all__ = [
    "ALLOWED_IMAGE_EXTENSIONS",
    "PUBLIC_PREFIX",
    "AssetJanitor",
    "LocalAssetStore",
    "allowed_image",
    "unique_filename",
]
