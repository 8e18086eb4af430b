"""
Remote reconciliation client.

Talks to the store API (see main.py). Nothing here raises to the caller: when
the server is down or answers garbage we log it and hand back the fallback, and
the app keeps running on its local copy.

The Reconciler interface is what the coordinator depends on, so the polling
client can be swapped for a push-based subscription later.
"""
import logging
import os
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import httpx
from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

STORE_API_URL = os.getenv("STORE_API_URL", "http://localhost:8000/api")


class Reconciler(ABC):
    @abstractmethod
    async def pull(self, name: str, fallback: Any = None) -> Any:
        """Current remote value of ``name``, or ``fallback`` if unavailable."""

    @abstractmethod
    async def push(self, name: str, value: Any) -> bool:
        """Replace the remote value of ``name``. Never raises."""

    async def aclose(self) -> None:
        pass


class RemoteClient(Reconciler):
    def __init__(self, base_url: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.base_url = (base_url or STORE_API_URL).rstrip("/")
        self._client = httpx.AsyncClient(base_url=self.base_url, transport=transport)

    async def pull(self, name: str, fallback: Any = None) -> Any:
        try:
            res = await self._client.get(f"/data/{name}")
            res.raise_for_status()
            data = res.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            # polled every few seconds; stay quiet while offline
            logger.debug("Server sync failed for %s, using local mode: %s", name, e)
            return fallback
        if data is None:
            return fallback
        return data

    async def push(self, name: str, value: Any) -> bool:
        try:
            res = await self._client.post(f"/data/{name}", json=value)
            res.raise_for_status()
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            logger.warning("Could not sync %s to server: %s", name, e)
            return False
        return True

    async def snapshot(self) -> Dict[str, Any]:
        try:
            res = await self._client.get("/full-sync")
            res.raise_for_status()
            data = res.json()
        except (httpx.HTTPError, httpx.InvalidURL, ValueError) as e:
            logger.warning("Full sync read failed: %s", e)
            return {}
        return data if isinstance(data, dict) else {}

    async def aclose(self) -> None:
        await self._client.aclose()
