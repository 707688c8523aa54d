"""JSON-backed snapshot cache."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Protocol, Any

from publiccalendar.models import Snapshot, snapshot_from_dict, snapshot_to_dict
from publiccalendar.settings import JsonSettings

logger = logging.getLogger(__name__)

DEFAULT_CACHE_DIR = Path.home() / ".cache" / "publiccalendar"
SNAPSHOT_FILE = "holiday_events.json"
SETTINGS_FILE = "settings.json"
LAST_FETCH_KEY = "LastHolidayFetch"


class Settings(Protocol):
    def get(self, key: str, default: Any = None) -> Any: ...
    def set(self, key: str, value: Any) -> None: ...
    def delete(self, key: str) -> None: ...


class CacheStore:
    """Persists the latest snapshot and the time it was fetched.

    File layout:
        <cache_dir>/
            holiday_events.json  — category -> list of events
            settings.json        — LastHolidayFetch timestamp

    Nothing here raises on I/O trouble. Read failures look like an empty
    cache and write failures are logged, leaving the caller with whatever it
    holds in memory.
    """

    def __init__(self, cache_dir: Optional[Path] = None, settings: Optional[Settings] = None) -> None:
        self.cache_dir = cache_dir or DEFAULT_CACHE_DIR
        self._snapshot_path = self.cache_dir / SNAPSHOT_FILE
        self.settings: Settings = settings or JsonSettings(self.cache_dir / SETTINGS_FILE)

    @property
    def snapshot_path(self) -> Path:
        return self._snapshot_path

    # ------------------------------------------------------------------
    # Snapshot
    # ------------------------------------------------------------------

    def load(self) -> Optional[Snapshot]:
        """Load the cached snapshot, or None if there is no usable cache."""
        if not self._snapshot_path.exists():
            return None
        try:
            with open(self._snapshot_path, "r", encoding="utf-8") as f:
                raw = json.load(f)
            snapshot = snapshot_from_dict(raw)
        except (OSError, ValueError, KeyError, TypeError) as exc:
            logger.warning("Ignoring unreadable cache %s (%s)", self._snapshot_path, exc)
            return None
        return snapshot or None

    def save(self, snapshot: Snapshot) -> None:
        """Write the snapshot to disk, replacing the previous file atomically."""
        try:
            self.cache_dir.mkdir(parents=True, exist_ok=True)
            fd, tmp_name = tempfile.mkstemp(dir=self.cache_dir, prefix=".snapshot-", suffix=".json")
            try:
                with os.fdopen(fd, "w", encoding="utf-8") as f:
                    json.dump(snapshot_to_dict(snapshot), f, indent=2, ensure_ascii=False)
                os.replace(tmp_name, self._snapshot_path)
            except BaseException:
                Path(tmp_name).unlink(missing_ok=True)
                raise
        except OSError as exc:
            logger.warning("Could not save cache to %s (%s)", self._snapshot_path, exc)
            return
        logger.debug("Saved cache to %s", self._snapshot_path)

    def delete(self) -> None:
        """Remove the cached snapshot file."""
        try:
            self._snapshot_path.unlink(missing_ok=True)
        except OSError as exc:
            logger.warning("Could not delete cache %s (%s)", self._snapshot_path, exc)

    # ------------------------------------------------------------------
    # Last fetch timestamp
    # ------------------------------------------------------------------

    def last_fetch(self) -> Optional[datetime]:
        """When the last successful refresh finished, or None if never."""
        raw = self.settings.get(LAST_FETCH_KEY)
        if raw is None:
            return None
        try:
            value = datetime.fromisoformat(str(raw))
        except ValueError:
            logger.warning("Ignoring malformed %s value %r", LAST_FETCH_KEY, raw)
            return None
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value

    def set_last_fetch(self, when: datetime) -> None:
        self.settings.set(LAST_FETCH_KEY, when.isoformat())

    def clear_last_fetch(self) -> None:
        self.settings.delete(LAST_FETCH_KEY)

    # ------------------------------------------------------------------
    # Stats
    # ------------------------------------------------------------------

    def stats(self) -> dict:
        """Return summary information about the persisted cache."""
        snapshot = self.load() or {}
        last = self.last_fetch()
        return {
            "cache_file": str(self._snapshot_path),
            "last_fetch": last.isoformat() if last else None,
            "categories": {c.value: len(events) for c, events in snapshot.items()},
        }
