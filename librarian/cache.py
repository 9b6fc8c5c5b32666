"""Key/value caches for stage outputs: in-memory and filesystem-backed."""

from __future__ import annotations

import os
import threading
from pathlib import Path
from typing import Optional, Union


class MemCache:
    """Thread-safe in-memory cache."""

    def __init__(self) -> None:
        self._items: dict[str, bytes] = {}
        self._lock = threading.Lock()

    def get(self, key: str) -> Optional[bytes]:
        with self._lock:
            return self._items.get(key)

    def put(self, key: str, value: bytes) -> None:
        with self._lock:
            self._items[key] = bytes(value)


class FsCache:
    """Filesystem cache; writes are atomic via temp file, fsync and rename."""

    def __init__(self, root: Union[str, os.PathLike]) -> None:
        self.root = Path(root)
        self.root.mkdir(parents=True, exist_ok=True)

    def path_for(self, key: str) -> Path:
        """Shard keys by their first two characters."""
        if len(key) >= 2:
            shard, rest = key[:2], key[2:]
        else:
            shard, rest = "__", key
        return self.root / shard / rest

    def get(self, key: str) -> Optional[bytes]:
        try:
            return self.path_for(key).read_bytes()
        except FileNotFoundError:
            return None

    def put(self, key: str, value: bytes) -> None:
        final_path = self.path_for(key)
        final_path.parent.mkdir(parents=True, exist_ok=True)
        tmp = tmp_sibling(final_path)
        with open(tmp, "wb") as f:
            f.write(value)
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, final_path)


def tmp_sibling(path: Union[str, os.PathLike]) -> Path:
    """Temporary file name next to ``path``, unique to this process."""
    path = Path(path)
    if not path.name:
        raise ValueError("path has no file name")
    return path.with_name(f"{path.name}.tmp.{os.getpid()}")