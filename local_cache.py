"""
Persistent local cache: one file per named entry under a directory shared by
every process of the store on this device.

Writes go to a temp file and are moved into place with os.replace, so a reader
sees either the old or the new value of an entry, never half of one. Nothing
here raises to the caller: read problems come back as "absent", write problems
are logged and dropped.
"""
import json
import logging
import os
import tempfile
from typing import Any, Dict, Optional

logger = logging.getLogger(__name__)

STORE_CACHE_DIR = os.getenv("STORE_CACHE_DIR", ".store-cache")


class LocalCache:
    def __init__(self, directory: Optional[str] = None):
        self.directory = directory or STORE_CACHE_DIR
        self._written: Dict[str, bytes] = {}
        try:
            os.makedirs(self.directory, exist_ok=True)
        except OSError as e:
            logger.error("Cannot create cache directory %s: %s", self.directory, e)

    def path(self, name: str) -> str:
        return os.path.join(self.directory, f"{name}.json")

    def get(self, name: str) -> Optional[bytes]:
        try:
            with open(self.path(name), "rb") as fh:
                return fh.read()
        except FileNotFoundError:
            return None
        except OSError as e:
            logger.error("Error loading local %s: %s", name, e)
            return None

    def set(self, name: str, raw: bytes) -> None:
        tmp = None
        try:
            fd, tmp = tempfile.mkstemp(dir=self.directory, prefix=f".{name}.", suffix=".tmp")
            with os.fdopen(fd, "wb") as fh:
                fh.write(raw)
            os.replace(tmp, self.path(name))
        except OSError as e:
            logger.error("Error saving local %s: %s", name, e)
            if tmp is not None:
                try:
                    os.remove(tmp)
                except FileNotFoundError:
                    pass
            return
        self._written[name] = raw

    def remove(self, name: str) -> None:
        try:
            os.remove(self.path(name))
        except FileNotFoundError:
            pass
        except OSError as e:
            logger.error("Error removing local %s: %s", name, e)
            return
        self._written.pop(name, None)

    def written_by_self(self, name: str, raw: Optional[bytes]) -> bool:
        """True when ``raw`` is what this process last wrote under ``name``."""
        return raw is not None and self._written.get(name) == raw

    # JSON helpers for the small local-only keys (admin flag, saved customer)

    def get_json(self, name: str, default: Any = None) -> Any:
        raw = self.get(name)
        if raw is None:
            return default
        try:
            return json.loads(raw)
        except ValueError:
            logger.warning("Ignoring malformed local %s", name)
            return default

    def set_json(self, name: str, value: Any) -> None:
        self.set(name, json.dumps(value).encode("utf-8"))
