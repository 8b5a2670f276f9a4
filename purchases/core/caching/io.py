from __future__ import annotations

import json
import os
import shutil
import tempfile
import threading
from typing import Any, Dict, Iterable, List, Optional, Tuple


def read_json(path: str) -> Tuple[bool, Dict[str, Any], Optional[str]]:
    if not os.path.exists(path):
        return False, {}, "missing"
    try:
        with open(path, "r", encoding="utf-8") as f:
            obj = json.load(f)
        if not isinstance(obj, dict):
            return False, {}, "not_object"
        return True, obj, None
    except json.JSONDecodeError as e:
        return False, {}, f"corrupt_json:{e}"


def atomic_write_json(path: str, obj: Dict[str, Any]) -> None:
    parent = os.path.dirname(path) or "."
    os.makedirs(parent, exist_ok=True)
    fd, tmp = tempfile.mkstemp(prefix=".tmp_cache_", suffix=".json", dir=parent)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            json.dump(obj, f, indent=2, ensure_ascii=False, sort_keys=True)
            f.write("\n")
            f.flush()
            os.fsync(f.fileno())
        os.replace(tmp, path)
    finally:
        try:
            if os.path.exists(tmp):
                os.remove(tmp)
        except OSError:
            pass


class JsonFileStore:
    """
    Small key-value store persisted as one JSON object.

    Every mutation rewrites the file atomically. With `path=None` the store
    lives in memory only. A corrupt file is moved to `<path>.corrupt` and the
    store starts empty.
    """

    def __init__(self, path: Optional[str] = None, *, logger: Any = None):
        self.path = path
        self.logger = logger
        self._lock = threading.RLock()
        self._data: Dict[str, Any] = self._load()

    def _load(self) -> Dict[str, Any]:
        if not self.path:
            return {}
        ok, data, err = read_json(self.path)
        if ok:
            return data
        if err and err != "missing":
            dst = self.path + ".corrupt"
            try:
                shutil.move(self.path, dst)
            except OSError:
                dst = None
            if self.logger:
                self.logger.warning(f"Cache file unreadable ({err}); starting empty. Moved to: {dst}")
        return {}

    def _flush_locked(self) -> None:
        if self.path:
            atomic_write_json(self.path, self._data)

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._data.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            self._data[key] = value
            self._flush_locked()

    def remove(self, *keys: str) -> None:
        with self._lock:
            changed = False
            for k in keys:
                if k in self._data:
                    del self._data[k]
                    changed = True
            if changed:
                self._flush_locked()

    def keys(self) -> List[str]:
        with self._lock:
            return list(self._data.keys())

    def keys_with_prefix(self, prefix: str) -> Iterable[str]:
        return [k for k in self.keys() if k.startswith(prefix)]

    def __contains__(self, key: str) -> bool:
        with self._lock:
            return key in self._data
