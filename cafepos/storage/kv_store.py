import abc
import os
from pathlib import Path
from typing import Dict, List, Optional

from cafepos.core.exceptions import StorageError


class KeyValueStore(abc.ABC):
    """String-to-string store with localStorage-like semantics."""

    @abc.abstractmethod
    def get_item(self, key: str) -> Optional[str]:
        ...

    @abc.abstractmethod
    def set_item(self, key: str, value: str) -> None:
        ...

    @abc.abstractmethod
    def remove_item(self, key: str) -> None:
        ...

    @abc.abstractmethod
    def keys(self) -> List[str]:
        ...


class MemoryStore(KeyValueStore):
    """Process-local store, used by tests and by throwaway sessions."""

    def __init__(self, initial: Optional[Dict[str, str]] = None):
        self._data: Dict[str, str] = dict(initial or {})

    def get_item(self, key: str) -> Optional[str]:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)

    def keys(self) -> List[str]:
        return list(self._data)


class JsonFileStore(KeyValueStore):
    """One file per key under a directory. Writes replace the whole file."""

    def __init__(self, directory: str):
        self.directory = Path(directory)

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def get_item(self, key: str) -> Optional[str]:
        path = self._path(key)
        try:
            return path.read_text(encoding="utf-8")
        except FileNotFoundError:
            return None
        except OSError as e:
            raise StorageError(f"Could not read {path}: {e}") from e

    def set_item(self, key: str, value: str) -> None:
        path = self._path(key)
        tmp = path.with_suffix(".json.tmp")
        try:
            self.directory.mkdir(parents=True, exist_ok=True)
            tmp.write_text(value, encoding="utf-8")
            os.replace(tmp, path)
        except OSError as e:
            raise StorageError(f"Could not write {path}: {e}") from e

    def remove_item(self, key: str) -> None:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            pass
        except OSError as e:
            raise StorageError(f"Could not remove {key}: {e}") from e

    def keys(self) -> List[str]:
        if not self.directory.exists():
            return []
        return [p.stem for p in self.directory.glob("*.json")]
