"""
Blob storage for uploaded records and generated datasets.

file://   local filesystem
memory:// process-local dictionary (tests, ephemeral deployments)

Storage is addressed by URI, so adding an object-store backend does not
change the services that use it.
"""
from __future__ import annotations

import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path, PurePosixPath
from typing import Any, Dict, List, Optional
from urllib.parse import urlparse

from .errors import StorageError

logger = logging.getLogger(__name__)


def normalize_key(key: str) -> str:
    """Normalize a storage key and refuse keys that escape the root."""
    parts = [p for p in PurePosixPath(key.replace("\\", "/")).parts if p not in ("", "/", ".")]
    if not parts:
        raise StorageError(f"Invalid storage key: {key!r}")
    if ".." in parts:
        raise StorageError(f"Storage key may not contain '..': {key!r}")
    return "/".join(parts)


def normalize_prefix(prefix: str) -> str:
    """Normalize a listing prefix; a trailing slash is kept."""
    if not prefix.strip("./\\"):
        return ""
    normalized = normalize_key(prefix)
    return normalized + "/" if prefix.endswith(("/", "\\")) else normalized


class StorageProvider(ABC):
    """Abstract base class for blob storage."""

    name: str = "abstract"

    @abstractmethod
    def put(self, key: str, content: bytes, content_type: str = "application/octet-stream") -> str:
        """Store bytes under a key and return the normalized key."""
        pass

    @abstractmethod
    def get(self, key: str) -> bytes:
        """Return the bytes stored under a key.

        Raises:
            StorageError: If the key does not exist
        """
        pass

    @abstractmethod
    def delete(self, key: str) -> bool:
        """Delete a key. Returns False if it did not exist."""
        pass

    @abstractmethod
    def exists(self, key: str) -> bool:
        pass

    @abstractmethod
    def list(self, prefix: str = "") -> List[str]:
        """List keys beginning with prefix, sorted."""
        pass

    @abstractmethod
    def get_uri(self, key: str) -> str:
        pass

    def put_json(self, key: str, data: Any) -> str:
        return self.put(
            key,
            json.dumps(data, default=str).encode("utf-8"),
            content_type="application/json",
        )

    def get_json(self, key: str) -> Any:
        return json.loads(self.get(key).decode("utf-8"))


class LocalStorageProvider(StorageProvider):
    """Local filesystem storage (file:// URIs)."""

    name = "local"

    def __init__(self, base_path: Path):
        self.base_path = base_path
        self.base_path.mkdir(parents=True, exist_ok=True)

    def _path(self, key: str) -> Path:
        return self.base_path / normalize_key(key)

    def put(self, key: str, content: bytes, content_type: str = "application/octet-stream") -> str:
        normalized = normalize_key(key)
        full_path = self.base_path / normalized
        full_path.parent.mkdir(parents=True, exist_ok=True)
        full_path.write_bytes(content)
        logger.debug("Stored %d bytes at %s", len(content), full_path)
        return normalized

    def get(self, key: str) -> bytes:
        full_path = self._path(key)
        if not full_path.is_file():
            raise StorageError(f"Storage key not found: {key}")
        return full_path.read_bytes()

    def delete(self, key: str) -> bool:
        full_path = self._path(key)
        if not full_path.is_file():
            return False
        full_path.unlink()
        return True

    def exists(self, key: str) -> bool:
        return self._path(key).is_file()

    def list(self, prefix: str = "") -> List[str]:
        keys = [
            p.relative_to(self.base_path).as_posix()
            for p in self.base_path.rglob("*")
            if p.is_file()
        ]
        prefix = normalize_prefix(prefix)
        return sorted(k for k in keys if k.startswith(prefix))

    def get_uri(self, key: str) -> str:
        return f"file://{self._path(key)}"


class MemoryStorageProvider(StorageProvider):
    """In-process storage (memory:// URIs)."""

    name = "memory"

    def __init__(self) -> None:
        self._blobs: Dict[str, bytes] = {}
        self._content_types: Dict[str, str] = {}

    def put(self, key: str, content: bytes, content_type: str = "application/octet-stream") -> str:
        normalized = normalize_key(key)
        self._blobs[normalized] = bytes(content)
        self._content_types[normalized] = content_type
        return normalized

    def get(self, key: str) -> bytes:
        normalized = normalize_key(key)
        if normalized not in self._blobs:
            raise StorageError(f"Storage key not found: {key}")
        return self._blobs[normalized]

    def delete(self, key: str) -> bool:
        normalized = normalize_key(key)
        self._content_types.pop(normalized, None)
        return self._blobs.pop(normalized, None) is not None

    def exists(self, key: str) -> bool:
        return normalize_key(key) in self._blobs

    def list(self, prefix: str = "") -> List[str]:
        prefix = normalize_prefix(prefix)
        return sorted(k for k in self._blobs if k.startswith(prefix))

    def get_uri(self, key: str) -> str:
        return f"memory://{normalize_key(key)}"


def create_storage(uri: str) -> StorageProvider:
    """Factory function to create a StorageProvider from a URI.

    Args:
        uri: Base URI (e.g., "file:///var/lib/dataprep" or "memory://")

    Raises:
        ValueError: If URI scheme is not supported
    """
    parsed = urlparse(uri)

    if parsed.scheme == "file":
        # file://./data -> relative path "./data"; file:///srv/data -> "/srv/data"
        raw_path = f"{parsed.netloc}{parsed.path}" if parsed.netloc else parsed.path
        return LocalStorageProvider(Path(raw_path))

    if parsed.scheme == "memory":
        return MemoryStorageProvider()

    raise ValueError(
        f"Unsupported storage scheme: {parsed.scheme}. Supported: file://, memory://"
    )


_storage: Optional[StorageProvider] = None


def get_storage() -> StorageProvider:
    """FastAPI dependency returning the configured storage provider."""
    global _storage
    if _storage is None:
        from .config import get_settings

        _storage = create_storage(get_settings().storage_uri)
    return _storage
