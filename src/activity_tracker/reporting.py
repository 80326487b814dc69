"""Duration rollups by application, domain and title."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable, Iterable, Optional

from .models import ActivityRecord, Dimension, DimensionReport, DurationInstance, TimeWindow
from .normalization import extract_domain

logger = logging.getLogger(__name__)

MAX_ITEMS_PER_REPORT = 7


def _application_key(record: ActivityRecord) -> Optional[str]:
    return record.owner_name


def _domain_key(record: ActivityRecord) -> Optional[str]:
    return extract_domain(record.url)


def _title_key(record: ActivityRecord) -> Optional[str]:
    if not record.title or not record.title.strip():
        return None
    return record.title


_KEY_EXTRACTORS: dict[Dimension, Callable[[ActivityRecord], Optional[str]]] = {
    Dimension.APPLICATION: _application_key,
    Dimension.DOMAIN: _domain_key,
    Dimension.TITLE: _title_key,
}


def build_duration_report(
    records: Iterable[ActivityRecord],
    window: TimeWindow,
    dimension: Dimension | str,
    *,
    limit: Optional[int] = None,
) -> list[DimensionReport]:
    """Group records inside ``window`` by ``dimension`` and total their durations.

    Percentages are relative to the total of every group, so truncating with
    ``limit`` does not renormalize the remaining rows. Overlapping slices for
    the same key are summed rather than unioned.
    """
    dimension = Dimension(dimension)
    key_for = _KEY_EXTRACTORS[dimension]

    groups: dict[str, DimensionReport] = {}
    for record in records:
        if not window.contains(record.timestamp):
            continue
        key = key_for(record)
        if key is None:
            continue
        report = groups.get(key)
        if report is None:
            report = DimensionReport(dimension=dimension, name=key)
            groups[key] = report
        report.total_duration += record.duration
        report.instances.append(
            DurationInstance(
                start_time=record.timestamp,
                end_time=record.end_timestamp,
                duration=record.duration,
            )
        )

    grand_total = sum(report.total_duration for report in groups.values())
    for report in groups.values():
        report.percentage = (
            report.total_duration / grand_total * 100 if grand_total > 0 else 0.0
        )

    reports = sorted(groups.values(), key=lambda item: item.total_duration, reverse=True)
    logger.debug(
        "Built %s report with %d groups totalling %d seconds.",
        dimension.value,
        len(reports),
        grand_total,
    )
    if limit is not None:
        reports = reports[:limit]
    return reports


def build_duration_reports(
    records: Iterable[ActivityRecord],
    window: TimeWindow,
    *,
    limit: Optional[int] = None,
) -> dict[Dimension, list[DimensionReport]]:
    materialized = list(records)
    return {
        dimension: build_duration_report(materialized, window, dimension, limit=limit)
        for dimension in Dimension
    }


class ReportPrinter:
    """Render human-readable duration reports in the console."""

    def __init__(self, limit: Optional[int] = MAX_ITEMS_PER_REPORT) -> None:
        self.limit = limit

    def print_report(
        self, reports: list[DimensionReport], dimension: Dimension, window: TimeWindow
    ) -> None:
        if not reports:
            print("No activity recorded for the selected window.")
            return

        print(
            f"{dimension.value.capitalize()} report for "
            f"{_format_timestamp(window.start)} - {_format_timestamp(window.end)}"
        )
        print("-" * 60)
        shown = reports if self.limit is None else reports[: self.limit]
        for report in shown:
            print(
                f"  {report.name[:38]:<38} {format_duration(report.total_duration)}"
                f" {report.percentage:6.1f}%"
            )

        total = sum(report.total_duration for report in reports)
        print()
        print(f"Total tracked: {format_duration(total)}")


def format_duration(seconds: float) -> str:
    total_seconds = int(round(seconds))
    hours, remainder = divmod(total_seconds, 3600)
    minutes, secs = divmod(remainder, 60)
    return f"{hours:02d}:{minutes:02d}:{secs:02d}"


def _format_timestamp(timestamp_ms: int) -> str:
    return datetime.fromtimestamp(timestamp_ms / 1000).strftime("%Y-%m-%d %H:%M")
