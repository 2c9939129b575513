"""JSON-file cache with per-entry expiry, shared by all renders in a process."""

import json
import logging
import os
import threading
import time
from datetime import datetime, timedelta
from pathlib import Path
from typing import Any

from pytz import timezone as pytz_timezone

log = logging.getLogger(__name__)


def midnight_expiry_ms(tz_name: str, now: datetime | None = None) -> int:
    """Epoch milliseconds of the last millisecond of today in ``tz_name``.

    Args:
        tz_name: IANA timezone name.
        now: Reference instant (timezone-aware). Defaults to the current time.

    Returns:
        Expiry timestamp usable with ``ExpiringCache.set``.
    """
    tz = pytz_timezone(tz_name)
    local_now = (now or datetime.now(tz)).astimezone(tz)
    next_midnight = tz.localize(
        datetime.combine(local_now.date() + timedelta(days=1), datetime.min.time())
    )
    return int(next_midnight.timestamp() * 1000) - 1


class ExpiringCache:
    """Thread-safe key/value store persisted to a JSON file.

    Entries are stored as ``{"value": ..., "expires": epoch_ms}``. Expired
    entries are dropped on read.
    """

    def __init__(self, path: Path | str):
        self._path = Path(path)
        self._lock = threading.Lock()
        self._entries: dict[str, dict[str, Any]] = self._load()

    def _load(self) -> dict[str, dict[str, Any]]:
        if not self._path.exists():
            return {}
        try:
            with self._path.open(encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            log.warning("Cache file %s unreadable, starting empty: %s", self._path, e)
            return {}
        if not isinstance(data, dict):
            log.warning("Cache file %s has an unexpected layout", self._path)
            return {}
        now_ms = int(time.time() * 1000)
        return {
            key: entry
            for key, entry in data.items()
            if isinstance(entry, dict) and entry.get("expires", 0) > now_ms
        }

    def _prune(self, now_ms: int) -> None:
        expired = [
            key
            for key, entry in self._entries.items()
            if entry.get("expires", 0) <= now_ms
        ]
        for key in expired:
            del self._entries[key]
        if expired:
            log.debug("Dropped %d expired cache entries", len(expired))

    def _flush(self) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        with tmp.open("w", encoding="utf-8") as f:
            json.dump(self._entries, f, indent=2)
        os.replace(tmp, self._path)

    def get(self, key: str, now_ms: int | None = None) -> Any | None:
        """Return the cached value, or None when missing or expired."""
        now_ms = int(time.time() * 1000) if now_ms is None else now_ms
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                return None
            if entry.get("expires", 0) <= now_ms:
                log.debug("Cache entry expired: %s", key)
                del self._entries[key]
                try:
                    self._flush()
                except OSError as e:
                    log.warning("Cache file %s not rewritten: %s", self._path, e)
                return None
            return entry.get("value")

    def set(
        self, key: str, value: Any, expires_ms: int, now_ms: int | None = None
    ) -> None:
        """Store ``value`` until ``expires_ms``, dropping any expired entries.

        Raises:
            OSError: The cache file could not be written.
        """
        now_ms = int(time.time() * 1000) if now_ms is None else now_ms
        with self._lock:
            self._prune(now_ms)
            self._entries[key] = {"value": value, "expires": expires_ms}
            self._flush()
