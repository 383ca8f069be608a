import asyncio
import sys
from typing import List

import pandas as pd
from loguru import logger

from restaurant_intel.bulk_hygiene import BulkHygieneService
from restaurant_intel.cache import CacheService
from restaurant_intel.clients import FoodSafetyClient
from restaurant_intel.config import BULK_FILTER, INPUT_CSV, LOG_LEVEL, OUTPUT_CSV
from restaurant_intel.models import BulkHygieneResult, DirectoryPlace
from restaurant_intel.registry_fetcher import FoodSafetyRegistry, FoodSafetyViolations

REPORT_COLUMNS = [
    "name", "address", "grade", "grade_label", "valid_until",
    "violation_count", "latest_violation", "match_reason",
]


def load_places_from_csv(file_path: str, nrows: int = None) -> List[DirectoryPlace]:
    """Load `name,address[,road_address]` rows and convert them to DirectoryPlace objects."""
    df = pd.read_csv(file_path, nrows=nrows)
    places = []
    for idx, row in df.iterrows():
        def safe_get(col):
            if col not in row.index or pd.isna(row[col]):
                return ""
            return str(row[col]).strip()

        name = safe_get("name")
        if not name:
            continue
        places.append(DirectoryPlace(
            id=str(idx),
            name=name,
            address=safe_get("address"),
            road_address=safe_get("road_address"),
        ))
    return places


def result_to_frame(result: BulkHygieneResult) -> pd.DataFrame:
    rows = []
    for entry in result.results:
        grade = entry.hygiene_grade
        violations = entry.violations
        latest = violations.recent_items[0] if violations and violations.recent_items else None
        rows.append({
            "name": entry.place.name,
            "address": entry.place.address or entry.place.road_address,
            "grade": grade.grade if grade else None,
            "grade_label": grade.grade_label if grade else None,
            "valid_until": grade.valid_until if grade else None,
            "violation_count": violations.total_count if violations else None,
            "latest_violation": f"{latest.date} {latest.type}" if latest else None,
            "match_reason": entry.match_reason,
        })
    return pd.DataFrame(rows, columns=REPORT_COLUMNS)


async def main():
    """
    Run the bulk hygiene lookup over INPUT_CSV and write the report to OUTPUT_CSV.
    """
    logger.remove()  # Remove default handler
    logger.add(sys.stderr, level=LOG_LEVEL, format="<green>{time:HH:mm:ss}</green> | <level>{message}</level>")

    places = load_places_from_csv(INPUT_CSV)
    logger.info(f"Loaded {len(places)} restaurants from {INPUT_CSV}")

    cache = CacheService()
    client = FoodSafetyClient()
    service = BulkHygieneService(
        registry=FoodSafetyRegistry(client, cache),
        violations=FoodSafetyViolations(client, cache),
    )

    try:
        result = await service.get_bulk_hygiene_info(places, hygiene_filter=BULK_FILTER, limit=len(places))
        result_to_frame(result).to_csv(OUTPUT_CSV, index=False)
        logger.info(
            f"Checked {result.total_checked} restaurants, {result.matched_count} matched '{BULK_FILTER}' → {OUTPUT_CSV}"
        )
        logger.debug(f"Cache stats: {cache.stats()}")
    except Exception as e:
        logger.error(f"Bulk hygiene run failed: {e}")
        raise
    finally:
        # Close the client session to prevent unclosed connector warnings
        await client.close()


if __name__ == "__main__":
    asyncio.run(main())
