"""History view: one server-side page at a time."""

from dataclasses import dataclass, field
from typing import Any

from ppe_console.config import get_settings
from ppe_console.services.api_client import PPEApiClient
from ppe_console.services.date_range import normalize_date_range
from ppe_console.services.log_service import get_log_service
from ppe_console.services.paged_fetcher import PageWindow

HISTORY_FAILURE_MESSAGE = "Failed to load images"
MAX_VISIBLE_PAGES = 5


@dataclass
class Pagination:
    current_page: int = 1
    total_pages: int = 1
    total_items: int = 0
    has_more: bool = False


@dataclass
class HistoryPage:
    """One page of the history listing with the server's pagination data."""

    items: list[dict[str, Any]] = field(default_factory=list)
    pagination: Pagination = field(default_factory=Pagination)
    limit: int = 8
    error: str = ""

    @property
    def first_index(self) -> int:
        """1-based index of the first item shown, 0 when empty."""
        if self.pagination.total_items == 0:
            return 0
        return (self.pagination.current_page - 1) * self.limit + 1

    @property
    def last_index(self) -> int:
        return min(self.pagination.current_page * self.limit, self.pagination.total_items)

    def to_dict(self) -> dict[str, Any]:
        p = self.pagination
        return {
            "items": self.items,
            "current_page": p.current_page,
            "total_pages": p.total_pages,
            "total_items": p.total_items,
            "has_more": p.has_more,
            "visible_pages": visible_pages(p.current_page, p.total_pages),
            "showing": {"from": self.first_index, "to": self.last_index},
            "error": self.error or None,
        }


def visible_pages(current: int, total: int, max_visible: int = MAX_VISIBLE_PAGES) -> list[int]:
    """Page numbers for the pager, centred on the current page where possible."""
    if total <= 1:
        return []
    start = max(1, current - max_visible // 2)
    end = min(total, start + max_visible - 1)
    if end - start < max_visible - 1:
        start = max(1, end - max_visible + 1)
    return list(range(start, end + 1))


def load_history_page(
    api: PPEApiClient,
    page: int = 1,
    label: str | None = None,
    date_from: str | None = None,
    date_to: str | None = None,
    limit: int | None = None,
) -> HistoryPage:
    """Fetch one page of the history listing.

    Raises:
        ValueError: If a date is malformed; fetch failures are reported in the result
    """
    settings = get_settings()
    limit = limit or settings.history_page_size
    page = max(1, page)
    window = PageWindow(
        limit=limit,
        offset=(page - 1) * limit,
        label=label or None,
        date_range=normalize_date_range(date_from, date_to, settings.timezone),
    )

    try:
        data = api.get_images(window.to_params())
    except Exception as e:
        get_log_service().error(
            "history",
            "history_load_failed",
            f"Failed to load images: {e}",
            {"page": page, "label": label, "error": str(e)},
        )
        return HistoryPage(limit=limit, error=HISTORY_FAILURE_MESSAGE)

    items = data.get("items")
    return HistoryPage(
        items=items if isinstance(items, list) else [],
        pagination=Pagination(
            current_page=int(data.get("current_page") or 1),
            total_pages=int(data.get("total_pages") or 1),
            total_items=int(data.get("total") or 0),
            has_more=data.get("next_offset") is not None,
        ),
        limit=limit,
    )


def load_labels(api: PPEApiClient) -> list[str]:
    """Known detection labels; empty when the call fails."""
    try:
        return api.get_labels()
    except Exception as e:
        get_log_service().warning(
            "history", "labels_load_failed", f"Failed to load labels: {e}", {"error": str(e)}
        )
        return []
