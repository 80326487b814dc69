"""Configuration models and helpers for the activity engine."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Optional

from .categories import category_rule_from_dict, rule_set
from .errors import ValidationError
from .models import CategoryRule
from .reporting import MAX_ITEMS_PER_REPORT

logger = logging.getLogger(__name__)


@dataclass(slots=True)
class EngineSettings:
    """Runtime configuration for merging, reporting and categorization."""

    merge_gap: timedelta = timedelta(minutes=15)
    report_limit: Optional[int] = MAX_ITEMS_PER_REPORT
    custom_category_rules: tuple[CategoryRule, ...] = ()

    @property
    def merge_gap_ms(self) -> int:
        return int(self.merge_gap.total_seconds() * 1000)

    @property
    def category_rules(self) -> list[CategoryRule]:
        """Built-in category rules followed by the configured custom ones."""
        return rule_set(self.custom_category_rules)

    @classmethod
    def from_values(
        cls,
        merge_gap_minutes: float | None = None,
        report_limit: int | None = MAX_ITEMS_PER_REPORT,
        custom_category_rules: list[dict] | None = None,
    ) -> "EngineSettings":
        gap = merge_gap_minutes if merge_gap_minutes is not None else 15.0
        if gap < 0:
            raise ValidationError("merge gap must not be negative")
        return cls(
            merge_gap=timedelta(minutes=gap),
            report_limit=report_limit,
            custom_category_rules=tuple(
                category_rule_from_dict(item) for item in custom_category_rules or ()
            ),
        )

    @classmethod
    def load(cls, path: Optional[Path]) -> "EngineSettings":
        """Read settings from a JSON file; a missing file yields the defaults."""
        if path is None or not Path(path).exists():
            return cls()
        try:
            data = json.loads(Path(path).read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise ValidationError(f"{path} is not valid JSON: {exc}") from exc
        if not isinstance(data, dict):
            raise ValidationError(f"{path} must contain a JSON object")
        settings = cls.from_values(
            merge_gap_minutes=data.get("mergeGapMinutes"),
            report_limit=data.get("reportLimit", MAX_ITEMS_PER_REPORT),
            custom_category_rules=data.get("categoryRules"),
        )
        logger.debug(
            "Loaded settings from %s with %d custom category rules.",
            path,
            len(settings.custom_category_rules),
        )
        return settings
