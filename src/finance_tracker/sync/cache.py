import asyncio
import json
import os
import re
import tempfile
from typing import Any

from finance_tracker.errors import PersistenceError
from finance_tracker.logger import get_logger

logger = get_logger(__name__)

TRANSACTIONS_KEY = "ft_transactions_v1"
QUEUE_KEY = "ft_sync_queue_v1"
SETTINGS_KEY = "ft_settings_v1"

_SAFE_KEY = re.compile(r"^[A-Za-z0-9_.\-]+$")


class DurableCache:
    """
    Key/value store that survives restarts: one JSON document per key.

    Writes go to a temporary file that is then renamed over the target, so a
    crash mid-write leaves the previous value intact.
    """

    def __init__(self, directory: str) -> None:
        self.directory = directory
        os.makedirs(directory, exist_ok=True)

    def _path(self, key: str) -> str:
        if not _SAFE_KEY.match(key):
            raise ValueError(f"Invalid cache key: {key!r}")
        return os.path.join(self.directory, f"{key}.json")

    def _read(self, key: str) -> Any | None:
        path = self._path(key)
        if not os.path.exists(path):
            return None
        try:
            with open(path, encoding="utf-8") as handle:
                return json.load(handle)
        except (OSError, json.JSONDecodeError) as exc:
            logger.warning("[CACHE] Could not read '%s' (%s); treating as absent.", key, exc)
            return None

    def _write(self, key: str, value: Any) -> None:
        path = self._path(key)
        fd, tmp_path = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                json.dump(value, handle, indent=2)
            os.replace(tmp_path, path)
        except (OSError, TypeError, ValueError):
            if os.path.exists(tmp_path):
                os.remove(tmp_path)
            raise

    async def get(self, key: str) -> Any | None:
        return await asyncio.to_thread(self._read, key)

    async def set(self, key: str, value: Any) -> None:
        try:
            await asyncio.to_thread(self._write, key, value)
        except (OSError, TypeError, ValueError) as exc:
            raise PersistenceError(f"Could not persist '{key}': {exc}") from exc
