"""Single-document persistence.

The whole engine state lives in one JSON blob under one fixed key of a small
key-value backend. Reads never fail: a missing or corrupt value reads as the
empty document. Writes replace the blob in one step or raise StorageWriteError.

A blob that could not be read is never overwritten: after a failed read, writes
raise StorageWriteError until clear() or a later successful read.
"""
from __future__ import annotations

import json
import logging
import threading
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol

from .errors import StorageReadError, StorageWriteError
from .types import StorageDocument
from .utils import slugify, write_text_atomic

logger = logging.getLogger(__name__)

DEFAULT_STORAGE_KEY = "@memo_for_dex_data"


class KeyValueBackend(Protocol):
    def get(self, key: str) -> str | None: ...

    def set(self, key: str, value: str) -> None: ...

    def remove(self, key: str) -> None: ...


@dataclass
class MemoryBackend:
    """In-process backend for tests and embedding."""

    values: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value

    def remove(self, key: str) -> None:
        self.values.pop(key, None)


@dataclass
class FileBackend:
    """One JSON file per key under root_dir, replaced atomically on write."""

    root_dir: Path

    def __post_init__(self) -> None:
        self.root_dir = Path(self.root_dir)

    def path_for(self, key: str) -> Path:
        return self.root_dir / f"{slugify(key)}.json"

    def get(self, key: str) -> str | None:
        path = self.path_for(key)
        if not path.exists():
            return None
        return path.read_text(encoding="utf-8")

    def set(self, key: str, value: str) -> None:
        write_text_atomic(self.path_for(key), value)

    def remove(self, key: str) -> None:
        self.path_for(key).unlink(missing_ok=True)


class DocumentStore:
    def __init__(self, backend: KeyValueBackend, key: str = DEFAULT_STORAGE_KEY):
        self.backend = backend
        self.key = key
        self._lock = threading.Lock()
        self._unreadable = False

    def _load(self) -> StorageDocument:
        try:
            raw = self.backend.get(self.key)
        except Exception as e:
            raise StorageReadError(f"backend read failed for {self.key}: {e}") from e
        if raw is None:
            return StorageDocument()
        try:
            return StorageDocument.from_dict(json.loads(raw))
        except (ValueError, KeyError, TypeError, AttributeError) as e:
            raise StorageReadError(f"corrupt document under {self.key}: {e}") from e

    def read_document(self) -> StorageDocument:
        """Return the stored document, or an empty one if absent or unreadable."""
        with self._lock:
            try:
                doc = self._load()
            except StorageReadError as e:
                logger.warning("falling back to empty document: %s", e)
                self._unreadable = True
                return StorageDocument()
            self._unreadable = False
            return doc

    def write_document(self, doc: StorageDocument) -> None:
        try:
            payload = json.dumps(doc.to_dict(), ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise StorageWriteError(f"document is not serializable: {e}") from e
        with self._lock:
            if self._unreadable:
                raise StorageWriteError(
                    f"refusing to overwrite unreadable document under {self.key}; clear() it first"
                )
            try:
                self.backend.set(self.key, payload)
            except Exception as e:
                raise StorageWriteError(f"backend write failed for {self.key}: {e}") from e

    def clear(self) -> None:
        with self._lock:
            try:
                self.backend.remove(self.key)
            except Exception as e:
                raise StorageWriteError(f"backend remove failed for {self.key}: {e}") from e
            self._unreadable = False


def open_file_store(data_dir: str | Path, key: str = DEFAULT_STORAGE_KEY) -> DocumentStore:
    return DocumentStore(FileBackend(Path(data_dir)), key=key)
