"""Analytics rollup: normalize dates, fetch everything, aggregate."""

import logging
from dataclasses import dataclass, field
from typing import Any

from ppe_console.config import get_settings
from ppe_console.services.aggregation import AggregateSnapshot, aggregate
from ppe_console.services.api_client import PPEApiClient
from ppe_console.services.date_range import DateRange, normalize_date_range, to_api_instant
from ppe_console.services.log_service import get_log_service
from ppe_console.services.paged_fetcher import fetch_all

logger = logging.getLogger(__name__)

ANALYTICS_FAILURE_MESSAGE = (
    "Failed to load analytics data. Please check your connection and try again."
)


@dataclass
class AnalyticsReport:
    """Snapshot for one date window plus how it was obtained."""

    snapshot: AggregateSnapshot = field(default_factory=AggregateSnapshot)
    date_range: DateRange = field(default_factory=DateRange)
    truncated: bool = False
    pages: int = 0
    error: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            **self.snapshot.to_dict(),
            "from": to_api_instant(self.date_range.start) if self.date_range.start else None,
            "to": to_api_instant(self.date_range.end) if self.date_range.end else None,
            "truncated": self.truncated,
            "pages": self.pages,
            "error": self.error or None,
        }


def load_analytics(
    api: PPEApiClient,
    date_from: str | None,
    date_to: str | None,
) -> AnalyticsReport:
    """Build the analytics report for a local calendar date range.

    Raises:
        ValueError: If a date is malformed; fetch failures are reported in the result
    """
    settings = get_settings()
    date_range = normalize_date_range(date_from, date_to, settings.timezone)
    log = get_log_service()

    try:
        fetched = fetch_all(
            api.get_images,
            page_size=settings.analytics_page_size,
            date_range=date_range,
            safety_bound=settings.fetch_safety_bound,
        )
    except Exception as e:
        log.error(
            "analytics",
            "analytics_failed",
            f"Failed to load analytics: {e}",
            {"from": date_from, "to": date_to, "error": str(e)},
        )
        return AnalyticsReport(date_range=date_range, error=ANALYTICS_FAILURE_MESSAGE)

    snapshot = aggregate(fetched.items, recent_limit=settings.recent_activity_limit)
    logger.debug(
        "Analytics window %s..%s: %d images, %d detections",
        date_from,
        date_to,
        snapshot.total_images,
        snapshot.total_detections,
    )
    log.info(
        "analytics",
        "analytics_loaded",
        f"Aggregated {snapshot.total_images} images",
        {
            "from": date_from,
            "to": date_to,
            "total_images": snapshot.total_images,
            "total_detections": snapshot.total_detections,
            "pages": fetched.pages,
            "truncated": fetched.truncated,
        },
    )
    return AnalyticsReport(
        snapshot=snapshot,
        date_range=date_range,
        truncated=fetched.truncated,
        pages=fetched.pages,
    )
