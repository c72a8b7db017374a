"""Object storage for uploaded audio and generated export archives.

Services depend only on the ObjectStorage interface. LocalObjectStorage keeps
objects as plain files under a root directory; a cloud backend only needs to
implement the same four methods.

Keys are relative, slash-separated paths (``exports/12/react-vite.zip``).
A key that resolves outside the root is rejected.
"""

from __future__ import annotations

import logging
import os
from abc import ABC, abstractmethod

from flask import current_app

from app.core.exceptions import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


class ObjectStorage(ABC):
    @abstractmethod
    def put(self, key: str, data: bytes, content_type: str | None = None) -> str:
        """Store ``data`` under ``key`` and return the key."""

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Return the object bytes. Raises NotFoundError when absent."""

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Remove the object. Returns False when it did not exist."""

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...


class LocalObjectStorage(ObjectStorage):
    """Filesystem-backed storage rooted at ``root``."""

    def __init__(self, root: str) -> None:
        self.root = os.path.realpath(root)

    def _path(self, key: str) -> str:
        if not key or key.startswith(("/", "\\")):
            raise ValidationError("Invalid storage key", details={"key": key})
        path = os.path.realpath(os.path.join(self.root, key))
        if os.path.commonpath([self.root, path]) != self.root or path == self.root:
            raise ValidationError("Invalid storage key", details={"key": key})
        return path

    def put(self, key, data, content_type=None):
        path = self._path(key)
        os.makedirs(os.path.dirname(path), exist_ok=True)
        with open(path, "wb") as fh:
            fh.write(data)
        logger.debug("Stored object key=%s bytes=%d type=%s", key, len(data), content_type)
        return key

    def get(self, key):
        path = self._path(key)
        if not os.path.isfile(path):
            raise NotFoundError(resource="Object", resource_id=key)
        with open(path, "rb") as fh:
            return fh.read()

    def delete(self, key):
        path = self._path(key)
        if not os.path.isfile(path):
            return False
        os.remove(path)
        logger.debug("Deleted object key=%s", key)
        return True

    def exists(self, key):
        return os.path.isfile(self._path(key))


def get_storage() -> ObjectStorage:
    """Storage configured for the current app (OBJECT_STORAGE_ROOT)."""
    root = current_app.config.get("OBJECT_STORAGE_ROOT") or os.path.join(current_app.instance_path, "storage")
    return LocalObjectStorage(root)
