"""Durable local key-value storage for working copies and the sync queue."""

from __future__ import annotations

import copy
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any

logger = logging.getLogger(__name__)


class MemoryStore:
    """In-process store. Survives nothing; used for tests and ephemeral sessions."""

    def __init__(self) -> None:
        self._data: dict[str, Any] = {}

    def load(self, key: str) -> Any:
        return copy.deepcopy(self._data.get(key))

    def save(self, key: str, value: Any) -> None:
        self._data[key] = copy.deepcopy(value)

    def delete(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self, prefix: str = "") -> list[str]:
        return sorted(k for k in self._data if k.startswith(prefix))

    def clear(self) -> None:
        self._data.clear()


class JsonFileStore:
    """One JSON file per key under a root directory.

    Keys may contain "/" to group records (``documents/<id>``). Writes go
    to a temp file in the same directory and are moved into place, so a
    crash never leaves a half-written record behind.
    """

    SUFFIX = ".json"

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root)

    def _path(self, key: str) -> Path:
        parts = [p for p in key.split("/") if p not in ("", ".", "..")]
        if not parts:
            raise ValueError(f"invalid key: {key!r}")
        return self.root.joinpath(*parts).with_suffix(self.SUFFIX)

    def load(self, key: str) -> Any:
        path = self._path(key)
        try:
            text = path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        try:
            return json.loads(text)
        except json.JSONDecodeError:
            logger.error("corrupt record %s in %s", key, path)
            raise

    def save(self, key: str, value: Any) -> None:
        path = self._path(key)
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp = tempfile.mkstemp(prefix=".syncban_", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(value, fh, indent=2, sort_keys=True)
                fh.write("\n")
            os.replace(tmp, path)
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def delete(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass

    def keys(self, prefix: str = "") -> list[str]:
        if not self.root.exists():
            return []
        found = []
        for path in self.root.rglob(f"*{self.SUFFIX}"):
            if path.name.startswith("."):
                continue
            key = path.relative_to(self.root).with_suffix("").as_posix()
            if key.startswith(prefix):
                found.append(key)
        return sorted(found)

    def clear(self) -> None:
        for key in self.keys():
            self.delete(key)
