"""Statistics over a fetched set of analyzed images."""

from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import Any

DEFAULT_RECENT_LIMIT = 10


@dataclass(frozen=True)
class AggregateSnapshot:
    """Rollup for one filter window. Rebuilt on every filter change."""

    total_images: int = 0
    total_detections: int = 0
    detections_by_label: dict[str, int] = field(default_factory=dict)
    recent_activity: list[dict[str, Any]] = field(default_factory=list)

    @property
    def average_detections(self) -> float:
        if self.total_images == 0:
            return 0.0
        return round(self.total_detections / self.total_images, 1)

    def label_percentages(self) -> dict[str, float]:
        """Share of all detections per label, as a percentage to one decimal."""
        if self.total_detections == 0:
            return {label: 0.0 for label in self.detections_by_label}
        return {
            label: round(count / self.total_detections * 100, 1)
            for label, count in self.detections_by_label.items()
        }

    def to_dict(self) -> dict[str, Any]:
        return {
            "total_images": self.total_images,
            "total_detections": self.total_detections,
            "average_detections": self.average_detections,
            "detections_by_label": dict(self.detections_by_label),
            "label_percentages": self.label_percentages(),
            "recent_activity": list(self.recent_activity),
        }


def aggregate(
    items: Sequence[dict[str, Any]], recent_limit: int = DEFAULT_RECENT_LIMIT
) -> AggregateSnapshot:
    """Compute counts, the per-label histogram and the recent-activity slice.

    Every detection counts toward the total; only detections with a non-empty
    label enter the histogram. A missing or malformed detections list counts
    as zero. Recent activity is the first `recent_limit` items in the order
    given (the server returns newest first); nothing is re-sorted.
    """
    total_detections = 0
    by_label: dict[str, int] = {}

    for item in items:
        detections = item.get("detections") if isinstance(item, dict) else None
        if not isinstance(detections, list):
            continue
        total_detections += len(detections)
        for detection in detections:
            label = detection.get("label") if isinstance(detection, dict) else None
            if isinstance(label, str) and label:
                by_label[label] = by_label.get(label, 0) + 1

    return AggregateSnapshot(
        total_images=len(items),
        total_detections=total_detections,
        detections_by_label=by_label,
        recent_activity=list(items[: max(0, recent_limit)]),
    )
