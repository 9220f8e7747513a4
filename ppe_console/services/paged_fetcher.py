"""Exhaustive pagination over the image collection."""

import logging
from collections.abc import Callable
from dataclasses import dataclass, field, replace
from typing import Any

from ppe_console.services.date_range import DateRange
from ppe_console.services.log_service import get_log_service

logger = logging.getLogger(__name__)

DEFAULT_PAGE_SIZE = 100
DEFAULT_SAFETY_BOUND = 10000

PageFetcher = Callable[[dict[str, Any]], dict[str, Any]]


@dataclass(frozen=True)
class PageWindow:
    """One page request: limit, offset and filters."""

    limit: int
    offset: int = 0
    label: str | None = None
    date_range: DateRange = field(default_factory=DateRange)

    def to_params(self) -> dict[str, Any]:
        """Query parameters for GET /images, omitting absent filters."""
        params: dict[str, Any] = {"limit": self.limit, "offset": self.offset}
        if self.label:
            params["label"] = self.label
        params.update(self.date_range.to_params())
        return params

    def at(self, offset: int) -> "PageWindow":
        return replace(self, offset=offset)


@dataclass
class FetchResult:
    """Items accumulated by an exhaustive fetch."""

    items: list[dict[str, Any]] = field(default_factory=list)
    pages: int = 0
    truncated: bool = False


def fetch_all(
    fetch_page: PageFetcher,
    page_size: int = DEFAULT_PAGE_SIZE,
    label: str | None = None,
    date_range: DateRange | None = None,
    safety_bound: int = DEFAULT_SAFETY_BOUND,
) -> FetchResult:
    """Request pages from offset 0 until the collection is exhausted.

    Stops when next_offset is null/absent, a page comes back shorter than
    page_size, or a page is malformed. If the next offset would pass
    safety_bound the loop stops early, logs a warning and returns what it
    has with truncated=True. Pages are fetched one after another since
    each offset comes from the previous response.

    Args:
        fetch_page: Takes query params, returns the decoded page body
        page_size: Constant limit for every page
        label: Optional label filter
        date_range: Optional instant range filter
        safety_bound: Highest offset that may be requested

    Returns:
        FetchResult with the accumulated items
    """
    if page_size <= 0:
        raise ValueError("page_size must be positive")

    window = PageWindow(limit=page_size, label=label, date_range=date_range or DateRange())
    result = FetchResult()

    while True:
        page = fetch_page(window.to_params())
        result.pages += 1

        items = page.get("items") if isinstance(page, dict) else None
        if not isinstance(items, list):
            logger.warning("Page at offset %d had no items list; stopping", window.offset)
            break

        result.items.extend(items)

        next_offset = page.get("next_offset")
        if next_offset is None or len(items) < page_size:
            break

        try:
            next_offset = int(next_offset)
        except (TypeError, ValueError):
            logger.warning("Unusable next_offset %r; stopping", next_offset)
            break

        if next_offset <= window.offset:
            logger.warning(
                "next_offset %d does not advance past %d; stopping", next_offset, window.offset
            )
            break

        if next_offset > safety_bound:
            result.truncated = True
            logger.warning(
                "Stopped paged fetch at offset %d (safety bound %d)", next_offset, safety_bound
            )
            get_log_service().warning(
                "fetch",
                "fetch_safety_bound_reached",
                f"Stopped after {len(result.items)} items at the safety bound of {safety_bound}",
                {
                    "items": len(result.items),
                    "pages": result.pages,
                    "next_offset": next_offset,
                    "safety_bound": safety_bound,
                },
            )
            break

        window = window.at(next_offset)

    return result
