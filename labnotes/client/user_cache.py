"""Client-side cache of data that belongs to the signed-in user."""

import threading
from typing import Any, Callable, Dict, Optional


class UserScopedCache:
    """Entries are keyed per user; switching or clearing the user drops them all."""

    def __init__(self):
        self._lock = threading.Lock()
        self._owner: Optional[int] = None
        self._entries: Dict[str, Any] = {}

    @property
    def owner(self) -> Optional[int]:
        return self._owner

    def bind(self, user_id: Optional[int]) -> None:
        with self._lock:
            if user_id != self._owner:
                self._entries.clear()
                self._owner = user_id

    def get(self, key: str, default: Any = None) -> Any:
        with self._lock:
            return self._entries.get(key, default)

    def set(self, key: str, value: Any) -> None:
        with self._lock:
            if self._owner is None:
                return
            self._entries[key] = value

    def get_or_load(self, key: str, loader: Callable[[], Any]) -> Any:
        with self._lock:
            if key in self._entries:
                return self._entries[key]
            owner = self._owner
        value = loader()
        with self._lock:
            # Owner changed while loading: the value belongs to someone else
            if owner is not None and owner == self._owner:
                self._entries[key] = value
        return value

    def invalidate(self, key: str) -> None:
        with self._lock:
            self._entries.pop(key, None)

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._owner = None

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
