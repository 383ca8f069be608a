"""
Shared plumbing for the provider clients: one aiohttp session per client and
rate limiting with aiolimiter.
"""
import asyncio
from typing import Any, Dict, Optional

from aiohttp import ClientError, ClientSession, ClientTimeout
from aiolimiter import AsyncLimiter
from loguru import logger

from restaurant_intel.config import CONCURRENCY
from restaurant_intel.errors import ProviderError


class HttpClient:
    """
    Singleton-per-subclass JSON-over-HTTP client.
    Each subclass must declare its own `_instance` and `_initialized`.
    """
    _instance = None
    _initialized = False

    name = "http"
    timeout = 10

    def __new__(cls, *args, **kwargs):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __init__(self):
        if not type(self)._initialized:
            # Token bucket: CONCURRENCY requests per second per provider
            self.rate_limiter = AsyncLimiter(max_rate=CONCURRENCY, time_period=1.0)
            self._session: Optional[ClientSession] = None
            type(self)._initialized = True

    async def _get_session(self) -> ClientSession:
        """Get or create the aiohttp session."""
        if self._session is None or self._session.closed:
            self._session = ClientSession(timeout=ClientTimeout(total=self.timeout))
        return self._session

    async def get_json(
        self,
        url: str,
        params: Optional[Dict[str, Any]] = None,
        headers: Optional[Dict[str, str]] = None,
    ) -> Dict[str, Any]:
        """
        Send a rate-limited GET request and return the parsed JSON body.

        Raises:
            ProviderError: HTTP_ERROR on a non-2xx status, TIMEOUT or
                           NETWORK_ERROR on transport failures.
        """
        async with self.rate_limiter:
            session = await self._get_session()
            try:
                async with session.get(url, params=params, headers=headers) as resp:
                    if resp.status >= 400:
                        text = await resp.text()
                        raise ProviderError(f"{self.name} HTTP error: {text}", "HTTP_ERROR", resp.status)
                    return await resp.json(content_type=None)
            except ProviderError:
                raise
            except asyncio.TimeoutError:
                logger.debug(f"⏱️ {self.name} request timed out: {url}")
                raise ProviderError(f"{self.name} request timeout", "TIMEOUT")
            except (ClientError, ValueError) as e:
                logger.debug(f"⚠️ {self.name} request failed: {e}")
                raise ProviderError(f"{self.name} network error: {e}", "NETWORK_ERROR")

    async def close(self):
        """Close the aiohttp session."""
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None
