"""
Cross-context change observer.

Other processes of the store on this device (a second window, the admin
console) share the local cache directory. This polls the collection entries
and reports every value that changed and was not written by us.
"""
import asyncio
import logging
import os
from typing import Callable, Dict, Iterable, List, Optional

from local_cache import LocalCache
from schemas import COLLECTION_NAMES

logger = logging.getLogger(__name__)

OBSERVER_INTERVAL = float(os.getenv("OBSERVER_INTERVAL", 0.5))

ChangeHandler = Callable[[str, Optional[bytes]], None]


class CrossContextObserver:
    def __init__(
        self,
        cache: LocalCache,
        on_change: ChangeHandler,
        names: Iterable[str] = COLLECTION_NAMES,
        interval: Optional[float] = None,
    ):
        self.cache = cache
        self.on_change = on_change
        self.names = tuple(names)
        self.interval = OBSERVER_INTERVAL if interval is None else interval
        self._seen: Dict[str, Optional[bytes]] = {}
        self.reset()

    def reset(self) -> None:
        """Take the current cache contents as the baseline."""
        self._seen = {name: self.cache.get(name) for name in self.names}

    def poll(self) -> List[str]:
        """Report external changes since the last poll; returns their names."""
        changed = []
        for name in self.names:
            raw = self.cache.get(name)
            if raw == self._seen.get(name):
                continue
            self._seen[name] = raw
            if self.cache.written_by_self(name, raw):
                continue
            self.on_change(name, raw)
            changed.append(name)
        return changed

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                self.poll()
            except Exception:
                logger.exception("Cross-context update failed")
