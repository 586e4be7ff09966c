from __future__ import annotations

import os
from pathlib import Path
from typing import Optional, Protocol

DEFAULT_SNAPSHOT_DIR = "data/storage"
KEY_VALUE_STORE_DIR = "key_value_stores"

_EXTENSIONS = {
    "text/html": ".html",
    "application/json": ".json",
    "text/plain": ".txt",
}


class SnapshotLocator(Protocol):
    def locate(self, key: str, extension: str = ".html") -> str: ...


class LocalSnapshotLocator:
    def __init__(self, storage_dir: Path):
        self.storage_dir = Path(storage_dir)

    def locate(self, key: str, extension: str = ".html") -> str:
        return str(self.storage_dir / KEY_VALUE_STORE_DIR / f"{key}{extension}")


class UrlSnapshotLocator:
    def __init__(self, base_url: str):
        self.base_url = base_url.rstrip("/")

    def locate(self, key: str, extension: str = ".html") -> str:
        return f"{self.base_url}/{key}{extension}"


class FileSnapshotStore:
    """Key-value store for page snapshots, one file per key."""

    def __init__(self, storage_dir: Path, locator: Optional[SnapshotLocator] = None):
        self.storage_dir = Path(storage_dir)
        self.locator = locator or LocalSnapshotLocator(self.storage_dir)

    @property
    def records_dir(self) -> Path:
        return self.storage_dir / KEY_VALUE_STORE_DIR

    def put(self, key: str, content: str, content_type: str = "text/html") -> str:
        extension = _EXTENSIONS.get(content_type, "")
        self.records_dir.mkdir(parents=True, exist_ok=True)
        (self.records_dir / f"{key}{extension}").write_text(content, encoding="utf-8")
        return self.locator.locate(key, extension)


def snapshot_store_from_env() -> FileSnapshotStore:
    storage_dir = Path(os.getenv("SNAPSHOT_DIR", DEFAULT_SNAPSHOT_DIR))
    base_url = os.getenv("SNAPSHOT_PUBLIC_BASE_URL", "").strip()
    locator: SnapshotLocator
    if base_url:
        locator = UrlSnapshotLocator(base_url)
    else:
        locator = LocalSnapshotLocator(storage_dir)
    return FileSnapshotStore(storage_dir, locator)
