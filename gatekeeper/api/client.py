"""
Backend HTTP Client

Thin wrapper around httpx.AsyncClient for the config, validate and
heartbeat contracts. Every call has a hard deadline and never raises:
network errors, timeouts, non-2xx responses and invalid JSON all yield
None.
"""

import asyncio
import logging
from typing import Any, Dict, Optional

import httpx

logger = logging.getLogger(__name__)

VERSION_HEADER = "X-Gatekeeper-Version"


class BackendClient:
    """Shared outbound client. One instance per process."""

    def __init__(
        self,
        base_url: str,
        version: str,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.version = version
        self._http = httpx.AsyncClient(
            base_url=self.base_url,
            headers={VERSION_HEADER: version},
            transport=transport,
        )

    async def safe_fetch(
        self,
        method: str,
        path: str,
        timeout_ms: float,
        params: Optional[Dict[str, str]] = None,
        json: Optional[Dict[str, Any]] = None,
    ) -> Optional[Any]:
        """Perform a request bounded by ``timeout_ms``; None on any failure."""
        timeout_s = max(timeout_ms, 1.0) / 1000.0
        try:
            response = await asyncio.wait_for(
                self._http.request(method, path, params=params, json=json, timeout=timeout_s),
                timeout=timeout_s,
            )
        except asyncio.TimeoutError:
            logger.info(f"{method} {path} timed out after {timeout_ms:.0f}ms")
            return None
        except httpx.HTTPError as e:
            logger.info(f"{method} {path} failed: {e.__class__.__name__}")
            return None

        if not response.is_success:
            logger.info(f"{method} {path} returned HTTP {response.status_code}")
            return None
        if not response.content:
            return {}
        try:
            return response.json()
        except ValueError:
            logger.info(f"{method} {path} returned invalid JSON")
            return None

    async def aclose(self) -> None:
        await self._http.aclose()
