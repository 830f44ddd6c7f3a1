"""
Export Service

Bundles metrics, insights and stored reports into downloadable JSON or CSV
files.
"""

import csv
import json
import logging
from enum import Enum
from io import StringIO
from typing import Any

from portfolio_analytics.exceptions import ValidationError
from portfolio_analytics.services.insight_engine import InsightEngine
from portfolio_analytics.services.metrics_aggregator import MetricsAggregator
from portfolio_analytics.services.report_generator import ReportGenerator
from portfolio_analytics.utils.clock import Clock, utc_now
from portfolio_analytics.utils.sanitize import sanitize_csv_field

logger = logging.getLogger(__name__)


class ExportType(str, Enum):
    METRICS = "metrics"
    INSIGHTS = "insights"
    REPORTS = "reports"
    ALL = "all"


class ExportFormat(str, Enum):
    JSON = "json"
    CSV = "csv"


def _parse(enum_cls, value, field: str):
    try:
        return enum_cls(value)
    except ValueError as e:
        raise ValidationError(
            f"Invalid export {field} '{value}'",
            field=field,
            details={"allowed": [member.value for member in enum_cls]},
        ) from e


def flatten(value: Any, prefix: str = ""):
    """
    Yield ``(path, value)`` leaves of a nested structure.

    Dict keys are joined with dots and list positions appended in brackets,
    e.g. ``performance.slowest_endpoints[0].avg_time_ms``. Empty containers
    yield a single empty leaf so the path still shows up.
    """
    if isinstance(value, dict):
        if not value and prefix:
            yield prefix, ""
        for key, item in value.items():
            yield from flatten(item, f"{prefix}.{key}" if prefix else str(key))
    elif isinstance(value, (list, tuple)):
        if not value and prefix:
            yield prefix, ""
        for index, item in enumerate(value):
            yield from flatten(item, f"{prefix}[{index}]")
    else:
        yield prefix, value


class AnalyticsExporter:
    """Collects an export payload and renders it as a file body."""

    def __init__(
        self,
        metrics: MetricsAggregator,
        insights: InsightEngine,
        reports: ReportGenerator,
        clock: Clock | None = None,
    ):
        self._metrics = metrics
        self._insights = insights
        self._reports = reports
        self._clock = clock or utc_now

    async def collect(self, export_type: ExportType | str = ExportType.ALL) -> dict[str, Any]:
        """
        Gather the data for an export.

        Raises:
            ValidationError: If the export type is unknown
        """
        kind = _parse(ExportType, export_type, "type")

        if kind == ExportType.METRICS:
            data = await self._metrics.get_metrics()
        elif kind == ExportType.INSIGHTS:
            data = await self._insights.get_insights()
        elif kind == ExportType.REPORTS:
            data = {"reports": await self._reports.get_reports()}
        else:
            data = {
                "metrics": await self._metrics.get_metrics(),
                "insights": await self._insights.get_insights(),
                "reports": await self._reports.get_reports(),
            }

        return {"exported_at": self._clock().isoformat(), "type": kind.value, "data": data}

    async def export(
        self, export_type: ExportType | str = ExportType.ALL, export_format: ExportFormat | str = ExportFormat.JSON
    ) -> tuple[str, str, str]:
        """
        Build an export file.

        Returns:
            Tuple of (body, media type, filename)
        """
        fmt = _parse(ExportFormat, export_format, "format")
        payload = await self.collect(export_type)
        filename = f"analytics_{payload['type']}_{int(self._clock().timestamp() * 1000)}.{fmt.value}"

        if fmt == ExportFormat.CSV:
            body, media_type = self.to_csv(payload), "text/csv"
        else:
            body, media_type = self.to_json(payload), "application/json"

        logger.info("Exported %s analytics as %s (%d bytes)", payload["type"], fmt.value, len(body))
        return body, media_type, filename

    @staticmethod
    def to_json(payload: dict[str, Any]) -> str:
        return json.dumps(payload, indent=2, default=str)

    @staticmethod
    def to_csv(payload: dict[str, Any]) -> str:
        """One ``Field,Value`` row per leaf of the exported data."""
        output = StringIO()
        writer = csv.writer(output)
        writer.writerow(["Field", "Value"])
        for path, value in flatten(payload["data"]):
            writer.writerow([sanitize_csv_field(path), sanitize_csv_field(value)])
        return output.getvalue()
