"""Dashboard counters whose every mutation is mirrored into the activity log."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass, replace
from datetime import UTC, datetime

from custodian_portal.core.activity_log import ActivityLog
from custodian_portal.core.errors import ValidationError
from custodian_portal.core.persistence import PersistenceAdapter
from custodian_portal.domain.models import (
    ANONYMOUS_OWNER,
    METRIC_COUNTERS,
    ActivityItem,
    DashboardMetrics,
)

METRICS_COLLECTION = "metrics"
BRAND_SCORE_RANGE = (0.0, 100.0)

_COUNTER_LABELS: dict[str, str] = {
    "storiesAnalyzed": "Stories analyzed",
    "brandTestsActive": "Active brand tests",
    "contentItems": "Content items",
    "brandScore": "Brand score",
}
_COUNTER_ACTIVITY_TYPES: dict[str, str] = {
    "storiesAnalyzed": "content",
    "brandTestsActive": "brand",
    "contentItems": "content",
    "brandScore": "analytics",
}

logger = logging.getLogger(__name__)

Describe = Callable[[DashboardMetrics, DashboardMetrics], tuple[str, str]]


@dataclass(frozen=True)
class MetricChange:
    """Outcome of one metrics mutation and the activity it produced."""

    metrics: DashboardMetrics
    activity: ActivityItem
    persisted: bool


def _format_value(counter: str, value: float) -> str:
    if counter == "brandScore":
        return f"{value:g}%"
    return str(int(value))


def _direction(previous: float, current: float) -> str:
    if current > previous:
        return "increased"
    if current < previous:
        return "decreased"
    return "unchanged"


class MetricsAggregator:
    """Read, mutate, and persist dashboard counters per owner.

    Negative integer counters are clamped at zero; brand score is validated
    against 0..100 before anything is written.
    """

    def __init__(self, persistence: PersistenceAdapter, activity_log: ActivityLog) -> None:
        self._persistence = persistence
        self._activity_log = activity_log

    def get(self, owner_id: str | None = None) -> DashboardMetrics:
        """Load metrics, defaulting every counter to zero."""
        owner = owner_id or ANONYMOUS_OWNER
        document = self._persistence.get(METRICS_COLLECTION, owner)
        if not isinstance(document, dict):
            return DashboardMetrics(owner_id=owner)
        return DashboardMetrics.from_document(document, owner_id=owner)

    def record_metric_change(
        self,
        *,
        owner_id: str | None,
        apply: Callable[[DashboardMetrics], DashboardMetrics],
        describe: Describe,
    ) -> MetricChange:
        """Apply a change, persist it, then always append exactly one activity.

        Persistence and activity logging are independent best-effort steps; a
        failed metrics save never suppresses the activity record.
        """
        owner = owner_id or ANONYMOUS_OWNER
        previous = self.get(owner)
        updated = replace(
            apply(previous),
            owner_id=owner,
            last_updated_utc=datetime.now(UTC).isoformat(),
        )
        try:
            persisted = self._persistence.save(METRICS_COLLECTION, updated.to_document(), owner)
        except Exception:
            logger.exception("metrics.save_failed owner=%s", owner)
            persisted = False
        if not persisted:
            logger.error("metrics.not_persisted owner=%s", owner)
        activity_type, message = describe(previous, updated)
        activity = self._activity_log.record(activity_type, message, owner)
        return MetricChange(metrics=updated, activity=activity, persisted=persisted)

    def increment(
        self, counter: str, owner_id: str | None = None, amount: float = 1
    ) -> MetricChange:
        """Add `amount` (may be negative) to one counter."""
        self._require_counter(counter)
        current = self.get(owner_id).counter(counter)
        return self.set_value(counter, current + amount, owner_id)

    def set_value(self, counter: str, value: float, owner_id: str | None = None) -> MetricChange:
        """Overwrite one counter."""
        self._require_counter(counter)
        bounded = self._bounded(counter, value)
        attribute = METRIC_COUNTERS[counter]

        def apply(metrics: DashboardMetrics) -> DashboardMetrics:
            return replace(metrics, **{attribute: bounded})

        def describe(before: DashboardMetrics, after: DashboardMetrics) -> tuple[str, str]:
            label = _COUNTER_LABELS[counter]
            direction = _direction(before.counter(counter), after.counter(counter))
            rendered = _format_value(counter, after.counter(counter))
            return _COUNTER_ACTIVITY_TYPES[counter], f"{label} {direction} to {rendered}"

        return self.record_metric_change(owner_id=owner_id, apply=apply, describe=describe)

    def increment_stories_analyzed(self, owner_id: str | None = None) -> MetricChange:
        """Count one analyzed story; it also counts as a content item."""

        def apply(metrics: DashboardMetrics) -> DashboardMetrics:
            return replace(
                metrics,
                stories_analyzed=metrics.stories_analyzed + 1,
                content_items=metrics.content_items + 1,
            )

        def describe(_: DashboardMetrics, after: DashboardMetrics) -> tuple[str, str]:
            return "content", f"New story analyzed - Total: {after.stories_analyzed}"

        return self.record_metric_change(owner_id=owner_id, apply=apply, describe=describe)

    def update_brand_score(self, score: float, owner_id: str | None = None) -> MetricChange:
        """Set the brand score; logs whether it went up or down."""
        bounded = self._bounded("brandScore", score)

        def apply(metrics: DashboardMetrics) -> DashboardMetrics:
            return replace(metrics, brand_score=bounded)

        def describe(before: DashboardMetrics, after: DashboardMetrics) -> tuple[str, str]:
            direction = _direction(before.brand_score, after.brand_score)
            return "analytics", f"Brand score {direction} to {after.brand_score:g}%"

        return self.record_metric_change(owner_id=owner_id, apply=apply, describe=describe)

    def set_active_brand_tests(self, count: int, owner_id: str | None = None) -> MetricChange:
        """Record how many brand tests are running."""
        bounded = int(self._bounded("brandTestsActive", count))

        def apply(metrics: DashboardMetrics) -> DashboardMetrics:
            return replace(metrics, brand_tests_active=bounded)

        def describe(before: DashboardMetrics, after: DashboardMetrics) -> tuple[str, str]:
            if after.brand_tests_active > before.brand_tests_active:
                return "brand", f"New brand test started - Active tests: {after.brand_tests_active}"
            return "brand", f"Active brand tests set to {after.brand_tests_active}"

        return self.record_metric_change(owner_id=owner_id, apply=apply, describe=describe)

    @staticmethod
    def _require_counter(counter: str) -> None:
        if counter not in METRIC_COUNTERS:
            raise ValidationError(
                [f"counter must be one of {', '.join(sorted(METRIC_COUNTERS))}"]
            )

    @staticmethod
    def _bounded(counter: str, value: float) -> float | int:
        if counter == "brandScore":
            low, high = BRAND_SCORE_RANGE
            if not low <= value <= high:
                raise ValidationError([f"brandScore must be between {low:g} and {high:g}"])
            return float(value)
        return max(0, int(value))
