"""
Durable key/value storage for client-local state.

Mirrors a browser's localStorage: string keys, JSON values, whole-record
writes. There is a single writer, so the last write wins.
"""

from typing import Any, Dict, Optional
from pathlib import Path
from abc import ABC, abstractmethod
import json
import os
import tempfile

import structlog

logger = structlog.get_logger(__name__)


class KeyValueStore(ABC):
    """Minimal persistent record store"""

    @abstractmethod
    def get_item(self, key: str) -> Optional[Any]:
        """Return the stored value or None when missing"""
        pass

    @abstractmethod
    def set_item(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under ``key``"""
        pass

    @abstractmethod
    def remove_item(self, key: str) -> None:
        pass


class InMemoryStore(KeyValueStore):
    """Process-local store holding serialized values"""

    def __init__(self):
        self.records: Dict[str, str] = {}

    def get_item(self, key: str) -> Optional[Any]:
        raw = self.records.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set_item(self, key: str, value: Any) -> None:
        # Serialize so callers never share structure with the stored copy
        self.records[key] = json.dumps(value)

    def remove_item(self, key: str) -> None:
        self.records.pop(key, None)


class JsonFileStore(KeyValueStore):
    """Key/value records kept in one JSON file, rewritten atomically"""

    def __init__(self, path: Path):
        self.path = Path(path)

    def _read_all(self) -> Dict[str, Any]:
        if not self.path.exists():
            return {}
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            logger.warning("Unreadable storage file, starting empty", path=str(self.path), error=str(e))
            return {}
        if not isinstance(data, dict):
            return {}
        return data

    def _write_all(self, data: Dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=self.path.parent, prefix=self.path.name, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(data, handle, ensure_ascii=False, indent=2)
            os.replace(tmp_name, self.path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise

    def get_item(self, key: str) -> Optional[Any]:
        return self._read_all().get(key)

    def set_item(self, key: str, value: Any) -> None:
        data = self._read_all()
        data[key] = value
        self._write_all(data)

    def remove_item(self, key: str) -> None:
        data = self._read_all()
        if key in data:
            del data[key]
            self._write_all(data)
