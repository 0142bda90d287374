"""Durable local key/value state for a quiz session."""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Union

from phrasedrill.config import settings

logger = logging.getLogger(__name__)

# Keys of the persisted session state
XP_KEY = "vocabularyXP"
PRACTICE_KEY = "practiceWords"
DAILY_STATS_KEY = "dailyStats"
AUTH_KEY = "auth"

Listener = Callable[[str, Any], None]


class LocalStore:
    """JSON key/value store with one file per key.

    Each key falls back to its default on its own when the file is missing or
    unparsable. Reads compare the file's modification time with the last one
    seen, so writes made by another process are picked up and reported to the
    listeners of that key.
    """

    def __init__(self, directory: Union[str, Path, None] = None):
        self.directory = Path(directory) if directory is not None else settings.paths.state_dir
        self.directory.mkdir(parents=True, exist_ok=True)
        self._values: Dict[str, Any] = {}
        self._mtimes: Dict[str, Optional[int]] = {}
        self._listeners: Dict[str, List[Listener]] = {}

    def _path(self, key: str) -> Path:
        return self.directory / f"{key}.json"

    def _mtime(self, key: str) -> Optional[int]:
        try:
            return self._path(key).stat().st_mtime_ns
        except FileNotFoundError:
            return None

    def _load(self, key: str) -> Any:
        path = self._path(key)
        try:
            with path.open(encoding="utf-8") as f:
                return json.load(f)
        except FileNotFoundError:
            return None
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable state file {path}: {e}")
            return None

    def get(self, key: str, default: Any = None) -> Any:
        """Current value of ``key``, or ``default`` when absent or unparsable."""
        mtime = self._mtime(key)
        if key not in self._mtimes or mtime != self._mtimes[key]:
            known = key in self._mtimes
            value = self._load(key)
            self._values[key] = value
            self._mtimes[key] = mtime
            if known:
                logger.info(f"State key '{key}' changed outside this session, reloaded")
                self._notify(key, value if value is not None else default)
        value = self._values.get(key)
        return default if value is None else value

    def set(self, key: str, value: Any) -> None:
        """Persist ``value`` under ``key`` atomically."""
        path = self._path(key)
        fd, tmp_name = tempfile.mkstemp(dir=self.directory, prefix=f".{key}.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                json.dump(value, f, ensure_ascii=False)
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise
        self._values[key] = value
        self._mtimes[key] = self._mtime(key)

    def delete(self, key: str) -> None:
        """Forget ``key``."""
        self._path(key).unlink(missing_ok=True)
        self._values.pop(key, None)
        self._mtimes[key] = None

    def subscribe(self, key: str, listener: Listener) -> None:
        """Call ``listener(key, value)`` when ``key`` is changed by someone else."""
        self._listeners.setdefault(key, []).append(listener)

    def refresh(self) -> None:
        """Re-check every key seen so far for outside changes."""
        for key in list(self._mtimes):
            self.get(key)

    def _notify(self, key: str, value: Any) -> None:
        for listener in self._listeners.get(key, []):
            listener(key, value)
