import json
import os
from pathlib import Path
from typing import Any, Optional
from uuid import uuid4

from thinkly_core.config.settings import settings
from thinkly_core.domain.conversation import KeyValueStore
from thinkly_core.domain.exceptions import PersistenceReadError, PersistenceWriteError


class JsonKeyValueStore(KeyValueStore):
    """每个键一个 JSON 文件的本地存储，写入走临时文件 + os.replace。"""

    def __init__(self, root: str | Path | None = None):
        self._root = Path(root or settings.storage_root).resolve()
        self._state_root = self._root / "state"
        self._state_root.mkdir(parents=True, exist_ok=True)

    @property
    def root(self) -> Path:
        return self._state_root

    def get(self, key: str) -> Optional[Any]:
        path = self._path(key)
        if not path.exists():
            return None
        try:
            return json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise PersistenceReadError(code="STORE_READ_ERROR", message=str(e), key=key)

    def set(self, key: str, value: Any) -> None:
        path = self._path(key)
        tmp_path = self._state_root / f"{key}.{uuid4().hex}.json.tmp"
        try:
            tmp_path.write_text(json.dumps(value, ensure_ascii=False), encoding="utf-8")
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError) as e:
            tmp_path.unlink(missing_ok=True)
            raise PersistenceWriteError(code="STORE_WRITE_ERROR", message=str(e), key=key)

    def remove(self, key: str) -> None:
        try:
            self._path(key).unlink(missing_ok=True)
        except OSError as e:
            raise PersistenceWriteError(code="STORE_DELETE_ERROR", message=str(e), key=key)

    def contains(self, key: str) -> bool:
        return self._path(key).exists()

    def _path(self, key: str) -> Path:
        if not key or "/" in key or "\\" in key or key.startswith("."):
            raise PersistenceWriteError(code="STORE_BAD_KEY", message=f"Invalid storage key: {key!r}")
        return self._state_root / f"{key}.json"
