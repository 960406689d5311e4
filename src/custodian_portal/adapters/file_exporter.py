"""JSON and CSV exports of dashboard data written to a local directory."""

from __future__ import annotations

import csv
import json
import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path

from custodian_portal.core.activity_log import ActivityLog
from custodian_portal.core.brand_testing import BrandTestEngine
from custodian_portal.core.content import ContentCatalog
from custodian_portal.core.metrics import MetricsAggregator
from custodian_portal.core.validation import parse_timestamp
from custodian_portal.domain.models import ExportOptions, ExportResult

DEFAULT_EXPORT_DIR = Path("work/exports")
RANGE_DAYS = {"last_week": 7, "last_month": 30, "last_quarter": 90}
CSV_FIELDS = ("section", "id", "kind", "label", "timestamp", "value")

logger = logging.getLogger(__name__)


def export_filename(options: ExportOptions, *, today: datetime | None = None) -> str:
    stamp = (today or datetime.now(UTC)).strftime("%Y-%m-%d")
    return f"custodian-economy-export-{options.template}-{stamp}.{options.type}"


class FileExporter:
    """Build the selected report sections and write them to `export_dir`."""

    def __init__(
        self,
        *,
        export_dir: Path,
        metrics: MetricsAggregator,
        activity_log: ActivityLog,
        catalog: ContentCatalog,
        brand_tests: BrandTestEngine,
        url_prefix: str = "/exports",
    ) -> None:
        self._export_dir = export_dir
        self._metrics = metrics
        self._activity_log = activity_log
        self._catalog = catalog
        self._brand_tests = brand_tests
        self._url_prefix = url_prefix.rstrip("/")

    @property
    def export_dir(self) -> Path:
        return self._export_dir

    def export(self, options: ExportOptions, owner_id: str | None = None) -> ExportResult:
        filename = export_filename(options)
        if options.type not in ("json", "csv"):
            return ExportResult(
                success=False, filename="", error=f"Unsupported export format: {options.type}"
            )
        try:
            report = self.build_report(options, owner_id)
            self._export_dir.mkdir(parents=True, exist_ok=True)
            path = self._export_dir / filename
            if options.type == "json":
                path.write_text(json.dumps(report, indent=2, ensure_ascii=False), encoding="utf-8")
            else:
                self._write_csv(path, report)
        except OSError as exc:
            logger.error("export.failed filename=%s error=%s", filename, exc)
            return ExportResult(success=False, filename="", error=str(exc))
        logger.info("export.written filename=%s sections=%s", filename, ",".join(report))
        return ExportResult(
            success=True, filename=filename, download_url=f"{self._url_prefix}/{filename}"
        )

    def build_report(
        self, options: ExportOptions, owner_id: str | None = None
    ) -> dict[str, object]:
        report: dict[str, object] = {
            "template": options.template,
            "dateRange": options.date_range,
            "generatedAt": datetime.now(UTC).isoformat(),
        }
        if options.include_metrics:
            report["metrics"] = self._metrics.get(owner_id).to_document()
        if options.include_activities:
            cutoff = self._cutoff(options.date_range)
            activities = [item.to_document() for item in self._activity_log.list(owner_id)]
            if cutoff is not None:
                activities = [
                    item
                    for item in activities
                    if (stamp := parse_timestamp(item.get("timestamp"))) is not None
                    and stamp >= cutoff
                ]
            report["activities"] = activities
        if options.include_content:
            report["content"] = {
                "stories": self._catalog.list_stories(),
                "media": self._catalog.list_media(),
            }
        if options.include_test_results:
            report["testResults"] = self._brand_tests.history()
        return report

    @staticmethod
    def _cutoff(date_range: str) -> datetime | None:
        days = RANGE_DAYS.get(date_range)
        if days is None:
            return None
        return datetime.now(UTC) - timedelta(days=days)

    @staticmethod
    def _write_csv(path: Path, report: dict[str, object]) -> None:
        with path.open("w", encoding="utf-8", newline="") as handle:
            writer = csv.DictWriter(handle, fieldnames=CSV_FIELDS)
            writer.writeheader()
            metrics = report.get("metrics")
            if isinstance(metrics, dict):
                for name, value in metrics.items():
                    if name in ("userId", "lastUpdated"):
                        continue
                    writer.writerow(
                        {
                            "section": "metrics",
                            "kind": name,
                            "label": name,
                            "timestamp": metrics.get("lastUpdated", ""),
                            "value": value,
                        }
                    )
            for item in report.get("activities", []) or []:
                writer.writerow(
                    {
                        "section": "activities",
                        "id": item.get("id"),
                        "kind": item.get("type"),
                        "label": item.get("message"),
                        "timestamp": item.get("timestamp"),
                    }
                )
            content = report.get("content")
            if isinstance(content, dict):
                for story in content.get("stories", []):
                    writer.writerow(
                        {
                            "section": "stories",
                            "id": story.get("id"),
                            "kind": story.get("status"),
                            "label": story.get("title"),
                            "timestamp": story.get("createdAt"),
                            "value": story.get("brandScore"),
                        }
                    )
                for media in content.get("media", []):
                    writer.writerow(
                        {
                            "section": "media",
                            "id": media.get("id"),
                            "kind": media.get("mediaType"),
                            "label": media.get("name") or media.get("filename"),
                            "timestamp": media.get("uploadedAt"),
                            "value": media.get("size"),
                        }
                    )
            for result in report.get("testResults", []) or []:
                writer.writerow(
                    {
                        "section": "testResults",
                        "id": result.get("id"),
                        "kind": result.get("variantId"),
                        "label": "confidenceLevel",
                        "value": result.get("confidenceLevel"),
                    }
                )
