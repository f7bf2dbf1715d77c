"""Durable string key-value storage."""
import json
import logging
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Dict, List, Optional

logger = logging.getLogger(__name__)


class PropertyStore(ABC):
    """Long-lived properties that survive cache expiry and restarts."""

    @abstractmethod
    def get_property(self, key: str) -> Optional[str]:
        ...

    @abstractmethod
    def set_property(self, key: str, value: str) -> None:
        ...

    @abstractmethod
    def delete_property(self, key: str) -> None:
        ...

    @abstractmethod
    def keys(self) -> List[str]:
        ...


class InMemoryPropertyStore(PropertyStore):

    def __init__(self):
        self._data: Dict[str, str] = {}

    def get_property(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_property(self, key: str, value: str) -> None:
        self._data[key] = value

    def delete_property(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class JsonFilePropertyStore(PropertyStore):
    """Properties kept in a single JSON object file, rewritten on every change."""

    def __init__(self, file_path: str):
        self.file_path = Path(file_path)
        self.file_path.parent.mkdir(parents=True, exist_ok=True)
        self._data = self._load()
        logger.info(f"JsonFilePropertyStore loaded {len(self._data)} properties from {self.file_path}")

    def get_property(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_property(self, key: str, value: str) -> None:
        self._data[key] = value
        self._dump()

    def delete_property(self, key: str) -> None:
        if self._data.pop(key, None) is not None:
            self._dump()

    def keys(self) -> List[str]:
        return list(self._data)

    def _load(self) -> Dict[str, str]:
        if not self.file_path.exists():
            return {}
        with open(self.file_path, "r", encoding="utf-8") as f:
            return json.load(f)

    def _dump(self) -> None:
        tmp_path = self.file_path.with_suffix(self.file_path.suffix + ".tmp")
        with open(tmp_path, "w", encoding="utf-8") as f:
            json.dump(self._data, f, ensure_ascii=False, indent=2)
        tmp_path.replace(self.file_path)
