"""
Blob Storage
============

Uploaded document bytes live outside the database. The store hands back a
public URL and a storage key; the Document record keeps both so the blob
can be removed when the document is deleted.
"""

import hashlib
import logging
import os
import re
import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from .config import get_settings

logger = logging.getLogger(__name__)

_SAFE_NAME = re.compile(r"[^A-Za-z0-9._-]+")


@dataclass
class StorageMeta:
    key: str
    url: str
    size_bytes: int
    sha256: str


class BlobStorage(ABC):
    """Storage backend interface"""

    @abstractmethod
    def put(self, key: str, data: bytes, mime_type: Optional[str] = None) -> StorageMeta:
        ...

    @abstractmethod
    def get(self, key: str) -> bytes:
        ...

    @abstractmethod
    def exists(self, key: str) -> bool:
        ...

    @abstractmethod
    def delete(self, key: str) -> bool:
        ...

    @staticmethod
    def generate_key(owner_id: str, folder: str, filename: str) -> str:
        """documents/<owner>/<folder>/<uuid>_<sanitized filename>"""
        safe = _SAFE_NAME.sub("_", os.path.basename(filename or "file")).strip("._") or "file"
        return f"documents/{owner_id}/{folder}/{uuid.uuid4().hex}_{safe}"


class LocalStorage(BlobStorage):
    """Filesystem storage under a base directory"""

    def __init__(self, base_path: str, base_url: str = "/files"):
        self.base_path = Path(base_path)
        self.base_url = base_url.rstrip("/")
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        path = (self.base_path / key).resolve()
        if self.base_path.resolve() not in path.parents:
            raise ValueError(f"Storage key escapes base path: {key}")
        return path

    def put(self, key: str, data: bytes, mime_type: Optional[str] = None) -> StorageMeta:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_bytes(data)
        return StorageMeta(
            key=key,
            url=f"{self.base_url}/{key}",
            size_bytes=len(data),
            sha256=hashlib.sha256(data).hexdigest(),
        )

    def get(self, key: str) -> bytes:
        return self._path(key).read_bytes()

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def delete(self, key: str) -> bool:
        path = self._path(key)
        if not path.is_file():
            return False
        path.unlink()
        return True


_storage: Optional[BlobStorage] = None


def get_storage() -> BlobStorage:
    """Get the configured storage backend (singleton)."""
    global _storage
    if _storage is None:
        settings = get_settings()
        _storage = LocalStorage(settings.blob_storage_dir, settings.blob_base_url)
        logger.info(f"Using local blob storage at {settings.blob_storage_dir}")
    return _storage
