"""Tests for the history and analytics services."""

from unittest.mock import MagicMock

import pytest

from ppe_console.services.analytics_service import ANALYTICS_FAILURE_MESSAGE, load_analytics
from ppe_console.services.api_client import ApiError
from ppe_console.services.history_service import (
    HISTORY_FAILURE_MESSAGE,
    HistoryPage,
    Pagination,
    load_history_page,
    load_labels,
    visible_pages,
)
from tests.conftest import make_image


class TestVisiblePages:
    """Tests for visible_pages."""

    @pytest.mark.parametrize(
        ("current", "total", "expected"),
        [
            (1, 1, []),
            (1, 3, [1, 2, 3]),
            (1, 10, [1, 2, 3, 4, 5]),
            (5, 10, [3, 4, 5, 6, 7]),
            (10, 10, [6, 7, 8, 9, 10]),
        ],
    )
    def test_window(self, current: int, total: int, expected: list[int]) -> None:
        assert visible_pages(current, total) == expected


class TestLoadHistoryPage:
    """Tests for load_history_page."""

    def test_requests_page_window(self, fake_api: MagicMock) -> None:
        """Test that page 3 of 8 asks for offset 16 with the label filter."""
        fake_api.get_images.return_value = {
            "items": [make_image("a"), make_image("b")],
            "current_page": 3,
            "total_pages": 3,
            "total": 18,
            "next_offset": None,
        }

        page = load_history_page(fake_api, page=3, label="helmet", limit=8)

        params = fake_api.get_images.call_args.args[0]
        assert params == {"limit": 8, "offset": 16, "label": "helmet"}
        assert [i["_id"] for i in page.items] == ["a", "b"]
        assert page.pagination == Pagination(
            current_page=3, total_pages=3, total_items=18, has_more=False
        )
        assert (page.first_index, page.last_index) == (17, 18)

    def test_date_filters_forwarded(self, fake_api: MagicMock) -> None:
        """Test that date bounds are sent as instants."""
        fake_api.get_images.return_value = {"items": []}

        load_history_page(fake_api, date_from="2024-01-05", date_to="2024-01-06", limit=8)

        params = fake_api.get_images.call_args.args[0]
        assert params["from"].endswith("Z")
        assert params["to"].endswith("Z")
        assert params["from"] < params["to"]

    def test_failure_reports_message(self, fake_api: MagicMock) -> None:
        """Test that a failed fetch gives an empty page and the history error."""
        fake_api.get_images.side_effect = ApiError("boom", status_code=500)

        page = load_history_page(fake_api, page=2)

        assert page.items == []
        assert page.error == HISTORY_FAILURE_MESSAGE
        assert page.to_dict()["error"] == HISTORY_FAILURE_MESSAGE

    def test_bad_date_raises(self, fake_api: MagicMock) -> None:
        with pytest.raises(ValueError):
            load_history_page(fake_api, date_from="not-a-date")

    def test_empty_page_dict(self) -> None:
        data = HistoryPage().to_dict()
        assert data["showing"] == {"from": 0, "to": 0}
        assert data["visible_pages"] == []
        assert data["error"] is None


class TestLoadLabels:
    """Tests for load_labels."""

    def test_labels(self, fake_api: MagicMock) -> None:
        fake_api.get_labels.return_value = ["helmet", "vest"]
        assert load_labels(fake_api) == ["helmet", "vest"]

    def test_failure_gives_empty_list(self, fake_api: MagicMock) -> None:
        fake_api.get_labels.side_effect = ApiError("boom")
        assert load_labels(fake_api) == []


class TestLoadAnalytics:
    """Tests for load_analytics."""

    def test_aggregates_all_pages(self, fake_api: MagicMock) -> None:
        """Test that every page is fetched and rolled up."""
        first = [make_image(str(i), ["helmet"]) for i in range(100)]
        second = [make_image("last", ["vest", ""])]
        fake_api.get_images.side_effect = [
            {"items": first, "next_offset": 100},
            {"items": second, "next_offset": None},
        ]

        report = load_analytics(fake_api, "2024-01-01", "2024-01-31")

        assert fake_api.get_images.call_count == 2
        assert report.error == ""
        assert report.pages == 2
        assert report.snapshot.total_images == 101
        assert report.snapshot.total_detections == 102
        assert report.snapshot.detections_by_label == {"helmet": 100, "vest": 1}
        data = report.to_dict()
        assert data["from"] is not None and data["to"] is not None
        assert len(data["recent_activity"]) == 10

    def test_fetch_failure(self, fake_api: MagicMock) -> None:
        """Test that a failure leaves no numbers and reports the analytics error."""
        fake_api.get_images.side_effect = ApiError("boom")

        report = load_analytics(fake_api, "2024-01-01", "2024-01-31")

        assert report.error == ANALYTICS_FAILURE_MESSAGE
        assert report.snapshot.total_images == 0

    def test_bad_date_raises(self, fake_api: MagicMock) -> None:
        with pytest.raises(ValueError):
            load_analytics(fake_api, "2024-02-30", None)
        fake_api.get_images.assert_not_called()
