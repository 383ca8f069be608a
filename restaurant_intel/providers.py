"""
Narrow interfaces of the external data providers.

The resolver, ranker and comparator only depend on these protocols; the
adapters in `restaurant_intel.clients` and `restaurant_intel.registry_fetcher`
implement them against the real services.
"""
from typing import List, Optional, Protocol

from restaurant_intel.models import (
    AreaSearchResult,
    DirectoryPlace,
    RatingMatch,
    RegistryRecord,
    ViolationHistory,
)


class DirectorySearch(Protocol):
    async def search_by_text(self, query: str, category_group: str) -> List[DirectoryPlace]:
        ...

    async def search_area(self, area: str, category: str = "restaurant") -> AreaSearchResult:
        ...


class RegistrySearch(Protocol):
    async def by_name_region(self, name: str, region: str) -> Optional[RegistryRecord]:
        ...

    async def by_name(self, name: str) -> List[RegistryRecord]:
        ...


class ViolationRegistry(Protocol):
    async def for_restaurant(self, name: str, region: str, limit: int = 5) -> ViolationHistory:
        ...


class RatingsProvider(Protocol):
    async def search(self, name: str, address: str) -> Optional[RatingMatch]:
        ...
