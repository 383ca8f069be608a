"""
Singleton Food Safety Korea OpenAPI client.

Request URLs are path-encoded:
    {base}/{key}/{service}/json/{start}/{end}/{PARAM=value}/...
Every response carries a RESULT block; INFO-000 is success, INFO-200 means
"no data" and everything else is an error.
"""
import time
from typing import Any, Dict, List, Optional
from urllib.parse import quote

from loguru import logger

from restaurant_intel.clients.base_client import HttpClient
from restaurant_intel.config import (
    FOOD_API_KEY,
    FOOD_SAFETY_MAX_RESULTS,
    FOOD_SAFETY_TIMEOUT,
    FOOD_SAFETY_URL,
)
from restaurant_intel.errors import ProviderError

SUCCESS_CODE = "INFO-000"


class FoodSafetyClient(HttpClient):
    _instance = None
    _initialized = False

    name = "FoodSafety"
    timeout = FOOD_SAFETY_TIMEOUT

    def __init__(self):
        super().__init__()
        self.api_key = FOOD_API_KEY
        self.base_url = FOOD_SAFETY_URL

    def build_url(self, service_id: str, params: Optional[Dict[str, str]], start: int, end: int) -> str:
        url = f"{self.base_url}/{self.api_key}/{service_id}/json/{start}/{end}"
        for key, value in (params or {}).items():
            if value:
                url += f"/{key}={quote(str(value))}"
        return url

    async def fetch(
        self,
        service_id: str,
        params: Optional[Dict[str, str]] = None,
        start: int = 1,
        end: int = FOOD_SAFETY_MAX_RESULTS,
    ) -> Dict[str, Any]:
        """
        Call one registry service and return its body (`total_count`, `row`).

        Raises:
            ProviderError: NO_API_KEY without a key, the registry's own RESULT
                           code (e.g. INFO-200) on a non-success result, or a
                           transport error code.
        """
        if not self.api_key:
            logger.warning("FOOD_API_KEY is not set, registry lookups disabled")
            raise ProviderError("Food Safety API key is not configured", "NO_API_KEY")

        start_time = time.perf_counter()
        logger.debug(f"▶️ FoodSafety {service_id} {params or {}}")
        data = await self.get_json(self.build_url(service_id, params, start, end))

        body = data.get(service_id)
        if not isinstance(body, dict):
            # Auth failures come back as a bare RESULT block
            result = data.get("RESULT", {})
            raise ProviderError(result.get("MSG", "Invalid API response"), result.get("CODE", "API_ERROR"))

        result = body.get("RESULT", {})
        code = result.get("CODE", SUCCESS_CODE)
        if code != SUCCESS_CODE:
            raise ProviderError(result.get("MSG", "Food Safety API error"), code)

        rows: List[Dict[str, Any]] = body.get("row") or []
        duration = time.perf_counter() - start_time
        logger.debug(f"✅ FoodSafety {service_id} → {len(rows)} rows in {duration:.2f}s")
        return {"total_count": int(body.get("total_count", len(rows))), "row": rows}
