import json
import threading
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, List

import requests

STANDARD_JSON_FORMAT = {"indent": 4, "separators": (",", ": ")}
INDEX_DOCUMENT = "index.json"


class ArtifactStore(ABC):
    """Key/value store of JSON documents, keyed by slash separated paths."""

    class NotFound(Exception):
        """Raised when a document does not exist"""

    @abstractmethod
    def read(self, key: str) -> Any:
        raise NotImplementedError

    @abstractmethod
    def write(self, key: str, document: Any) -> str:
        raise NotImplementedError

    @abstractmethod
    def list(self, prefix: str) -> List[str]:
        """Returns the keys stored directly under a prefix."""
        raise NotImplementedError


class FilesystemStore(ArtifactStore):
    def __init__(self, root: Path):
        self.root = Path(root)

    def __repr__(self):
        return f"FilesystemStore({self.root})"

    def read(self, key: str) -> Any:
        filepath = self.root / key
        if not filepath.exists():
            raise self.NotFound(f"No artifact at {filepath}")
        with open(filepath, "r") as file:
            return json.load(file)

    def write(self, key: str, document: Any) -> str:
        filepath = self.root / key
        filepath.parent.mkdir(parents=True, exist_ok=True)
        with open(filepath, "w") as file:
            json.dump(document, file, **STANDARD_JSON_FORMAT)
        return str(filepath)

    def list(self, prefix: str) -> List[str]:
        directory = self.root / prefix
        if not directory.is_dir():
            return list()
        return sorted(f"{prefix}/{p.name}" for p in directory.glob("*.json"))


class HttpStore(ArtifactStore):
    """
    Stores documents on a plain HTTP endpoint accepting PUT and GET.
    Each prefix keeps an index document listing its keys, since listing
    is not part of the protocol.

    Uploads run from worker threads, so unless a session is given each
    thread opens its own requests.Session.
    """

    def __init__(self, base_url: str, session: requests.Session = None, timeout: int = 30):
        self.base_url = base_url.rstrip("/")
        self._shared_session = session
        self._local = threading.local()
        self.timeout = timeout
        self._index_lock = threading.Lock()

    def __repr__(self):
        return f"HttpStore({self.base_url})"

    @property
    def session(self) -> requests.Session:
        if self._shared_session is not None:
            return self._shared_session
        if not hasattr(self._local, "session"):
            self._local.session = requests.Session()
        return self._local.session

    def _url(self, key: str) -> str:
        return f"{self.base_url}/{key}"

    def read(self, key: str) -> Any:
        response = self.session.get(self._url(key), timeout=self.timeout)
        if response.status_code == 404:
            raise self.NotFound(f"No artifact at {self._url(key)}")
        response.raise_for_status()
        return response.json()

    def _put(self, key: str, document: Any) -> None:
        response = self.session.put(self._url(key), json=document, timeout=self.timeout)
        response.raise_for_status()

    def write(self, key: str, document: Any) -> str:
        self._put(key, document)
        prefix, _, _ = key.rpartition("/")
        index_key = f"{prefix}/{INDEX_DOCUMENT}" if prefix else INDEX_DOCUMENT
        with self._index_lock:
            keys = self._read_index(index_key)
            if key not in keys:
                self._put(index_key, sorted(keys + [key]))
        return self._url(key)

    def _read_index(self, index_key: str) -> List[str]:
        try:
            return list(self.read(index_key))
        except self.NotFound:
            return list()

    def list(self, prefix: str) -> List[str]:
        return self._read_index(f"{prefix}/{INDEX_DOCUMENT}")
