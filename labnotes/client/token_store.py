"""Persistent client storage for the bearer token (the browser's localStorage)."""

import json
import os
import tempfile
import threading
from typing import Optional

TOKEN_KEY = 'auth-token'


class TokenStore:
    def get(self) -> Optional[str]:
        raise NotImplementedError

    def set(self, token: str) -> None:
        raise NotImplementedError

    def clear(self) -> None:
        raise NotImplementedError


class MemoryTokenStore(TokenStore):
    def __init__(self, token: Optional[str] = None):
        self._token = token

    def get(self) -> Optional[str]:
        return self._token

    def set(self, token: str) -> None:
        self._token = token

    def clear(self) -> None:
        self._token = None


class FileTokenStore(TokenStore):
    """JSON file holding ``{"auth-token": "..."}``; writes are atomic renames."""

    def __init__(self, path: str):
        self.path = os.path.abspath(os.path.expanduser(path))
        self._lock = threading.Lock()

    def _read(self) -> dict:
        try:
            with open(self.path, 'r', encoding='utf-8') as handle:
                data = json.load(handle)
        except FileNotFoundError:
            return {}
        except ValueError:
            # Corrupt file: behave as if nothing was persisted
            return {}
        return data if isinstance(data, dict) else {}

    def _write(self, data: dict) -> None:
        directory = os.path.dirname(self.path)
        os.makedirs(directory, exist_ok=True)
        fd, tmp_path = tempfile.mkstemp(dir=directory, prefix='.token-')
        try:
            with os.fdopen(fd, 'w', encoding='utf-8') as handle:
                json.dump(data, handle)
            os.chmod(tmp_path, 0o600)
            os.replace(tmp_path, self.path)
        except BaseException:
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    def get(self) -> Optional[str]:
        with self._lock:
            token = self._read().get(TOKEN_KEY)
        return token if isinstance(token, str) and token else None

    def set(self, token: str) -> None:
        with self._lock:
            data = self._read()
            data[TOKEN_KEY] = token
            self._write(data)

    def clear(self) -> None:
        with self._lock:
            data = self._read()
            if TOKEN_KEY in data:
                data.pop(TOKEN_KEY)
                self._write(data)
