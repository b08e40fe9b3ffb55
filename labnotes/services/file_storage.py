"""Local disk storage used when a user has not enabled object storage."""

import os
import time
from typing import Optional

from werkzeug.utils import secure_filename

from config.logging_config import LogCategory, get_smart_logger
from utils.errors import NotFound

logger = get_smart_logger(__name__, LogCategory.STORAGE)


class LocalFileStore:
    def __init__(self, root: str):
        self.root = os.path.abspath(root)

    def _directory(self, namespace: str) -> str:
        path = os.path.join(self.root, secure_filename(namespace) or 'misc')
        os.makedirs(path, exist_ok=True)
        return path

    def save(self, namespace: str, data: bytes, filename: str) -> str:
        """Write ``data`` and return the stored file name."""
        stored_name = f"{int(time.time() * 1000)}-{secure_filename(filename) or 'file'}"
        with open(os.path.join(self._directory(namespace), stored_name), 'wb') as handle:
            handle.write(data)
        logger.info(f"Stored {len(data)} bytes locally as {namespace}/{stored_name}")
        return stored_name

    def path_for(self, namespace: str, stored_name: str) -> str:
        safe_name = secure_filename(stored_name)
        path = os.path.join(self._directory(namespace), safe_name)
        if not safe_name or not os.path.isfile(path):
            raise NotFound('File not found')
        return path

    def delete(self, namespace: str, stored_name: Optional[str]) -> bool:
        if not stored_name:
            return False
        try:
            os.remove(self.path_for(namespace, stored_name))
        except (NotFound, OSError):
            return False
        return True
