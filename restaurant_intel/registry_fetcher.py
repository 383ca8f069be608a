import time
from typing import Any, Dict, List, Optional

from loguru import logger

from restaurant_intel.cache import CacheService, build_cache_key, with_cache, with_cache_nullable
from restaurant_intel.clients import FoodSafetyClient
from restaurant_intel.config import (
    SERVICE_HYGIENE_GRADE,
    SERVICE_VIOLATION,
    TTL_HYGIENE_GRADE,
    TTL_VIOLATION,
    VIOLATION_RECENT_LIMIT,
)
from restaurant_intel.errors import is_no_data_error
from restaurant_intel.matchers.address_matcher import match_address, match_name
from restaurant_intel.models import (
    GRADE_LABELS,
    REGISTRY_GRADE_MAP,
    RegistryRecord,
    ViolationHistory,
    ViolationItem,
)


def format_date(value: Optional[str]) -> Optional[str]:
    """YYYYMMDD -> YYYY-MM-DD; anything else is returned unchanged."""
    if not value:
        return None
    value = str(value).strip()
    if len(value) == 8 and value.isdigit():
        return f"{value[:4]}-{value[4:6]}-{value[6:]}"
    return value


def parse_grade_row(row: Dict[str, Any]) -> RegistryRecord:
    """Convert one C004 (hygiene grade) row."""
    grade = REGISTRY_GRADE_MAP.get((row.get("HG_ASGN_LV") or "").strip())
    return RegistryRecord(
        name=row.get("BSSH_NM", ""),
        address=row.get("ADDR", ""),
        license_no=row.get("LCNS_NO", ""),
        business_type=row.get("INDUTY_NM", ""),
        grade=grade,
        grade_label=GRADE_LABELS.get(grade),
        grade_date=format_date(row.get("ASGN_FROM")),
        valid_until=format_date(row.get("ASGN_TO")),
    )


def parse_violation_row(row: Dict[str, Any]) -> ViolationItem:
    """Convert one I2630 (administrative action) row."""
    return ViolationItem(
        date=format_date(row.get("DSPS_DCSNDT")) or "",
        type=row.get("DSPS_TYPECD_NM", ""),
        content=row.get("DSPSCN") or row.get("DSPS_TYPECD_NM", ""),
        reason=row.get("VILTCN", ""),
        period_start=format_date(row.get("DSPS_BGNDT")),
        period_end=format_date(row.get("DSPS_ENDDT")),
    )


class FoodSafetyRegistry:
    """
    Hygiene grade lookups against the C004 service. "No data" answers from the
    registry become empty results; every other failure propagates as
    ProviderError.
    """

    def __init__(self, client: Optional[FoodSafetyClient] = None, cache: Optional[CacheService] = None):
        self.client = client or FoodSafetyClient()
        self.cache = cache

    async def _fetch_rows(self, name: str) -> List[Dict[str, Any]]:
        try:
            data = await self.client.fetch(SERVICE_HYGIENE_GRADE, {"UPSO_NM": name})
        except Exception as e:
            if is_no_data_error(e):
                logger.debug(f"📭 No hygiene grade rows for '{name}'")
                return []
            raise
        return data["row"]

    async def search_by_name(self, name: str, region: Optional[str] = None) -> List[RegistryRecord]:
        """All graded businesses whose registry name matches, optionally narrowed to a region."""

        async def fetch() -> List[RegistryRecord]:
            start = time.perf_counter()
            records = [parse_grade_row(row) for row in await self._fetch_rows(name)]
            if region:
                records = [r for r in records if match_address(r.address, region)]
            logger.debug(
                f"✅ Hygiene search '{name}' ({region or 'any region'}) → {len(records)} records "
                f"in {time.perf_counter() - start:.2f}s"
            )
            return records

        key = build_cache_key("hygiene", name, region)
        return await with_cache(self.cache, key, TTL_HYGIENE_GRADE, fetch)

    async def by_name_region(self, name: str, region: str) -> Optional[RegistryRecord]:
        """First record matching both the name and the region, or None."""

        async def fetch() -> Optional[RegistryRecord]:
            for record in await self.search_by_name(name, region):
                if match_name(record.name, name) and match_address(record.address, region):
                    return record
            return None

        key = build_cache_key("hygiene_exact", name, region)
        return await with_cache_nullable(self.cache, key, TTL_HYGIENE_GRADE, fetch)

    async def by_name(self, name: str) -> List[RegistryRecord]:
        return await self.search_by_name(name)


class FoodSafetyViolations:
    """Administrative action history from the I2630 service."""

    def __init__(self, client: Optional[FoodSafetyClient] = None, cache: Optional[CacheService] = None):
        self.client = client or FoodSafetyClient()
        self.cache = cache

    async def for_restaurant(self, name: str, region: str, limit: int = VIOLATION_RECENT_LIMIT) -> ViolationHistory:
        """
        Violation history of one restaurant, newest first.

        Args:
            name (str): Restaurant name.
            region (str): Region the restaurant's address must match.
            limit (int): Number of recent items to keep.

        Returns:
            ViolationHistory: total_count counts every matching action;
            has_more is set when items were cut by `limit`.
        """

        async def fetch() -> ViolationHistory:
            try:
                data = await self.client.fetch(SERVICE_VIOLATION, {"PRCSCITYPOINT_BSSHNM": name})
            except Exception as e:
                if is_no_data_error(e):
                    logger.debug(f"📭 No violation rows for '{name}'")
                    return ViolationHistory.empty()
                raise

            matching = [
                row for row in data["row"]
                if match_name(row.get("PRCSCITYPOINT_BSSHNM", ""), name)
                and match_address(row.get("ADDR", ""), region)
            ]
            items = sorted((parse_violation_row(row) for row in matching), key=lambda i: i.date, reverse=True)
            logger.debug(f"✅ Violations for '{name}' ({region}) → {len(items)}")
            return ViolationHistory(
                total_count=len(items),
                recent_items=tuple(items[:limit]),
                has_more=len(items) > limit,
            )

        key = build_cache_key("violation", name, region, str(limit))
        return await with_cache(self.cache, key, TTL_VIOLATION, fetch)
