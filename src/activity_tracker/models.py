"""Domain models for recorded activity, rules and reports."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional


@dataclass(slots=True)
class ActivityRecord:
    """One accounted slice of foreground-activity time.

    ``timestamp`` is the start of the slice in epoch milliseconds and
    ``duration`` is the number of seconds the slice accounts for.
    """

    platform: str
    activity_id: int
    title: str
    owner_path: str
    owner_process_id: int
    owner_name: str
    timestamp: int
    duration: int
    owner_bundle_id: Optional[str] = None
    url: Optional[str] = None
    rating: Optional[int] = None
    rule_id: Optional[str] = None

    @property
    def end_timestamp(self) -> int:
        return self.timestamp + self.duration * 1000

    def to_dict(self) -> dict[str, Any]:
        return {
            "platform": self.platform,
            "activityId": self.activity_id,
            "title": self.title,
            "ownerPath": self.owner_path,
            "ownerProcessId": self.owner_process_id,
            "ownerBundleId": self.owner_bundle_id,
            "ownerName": self.owner_name,
            "url": self.url,
            "timestamp": self.timestamp,
            "duration": self.duration,
            "rating": self.rating,
            "ruleId": self.rule_id,
        }


@dataclass(slots=True)
class DurationInstance:
    start_time: int
    end_time: int
    duration: int

    def to_dict(self) -> dict[str, int]:
        return {
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
        }


class Dimension(str, Enum):
    APPLICATION = "application"
    DOMAIN = "domain"
    TITLE = "title"


_DIMENSION_KEYS = {
    Dimension.APPLICATION: "applicationName",
    Dimension.DOMAIN: "domain",
    Dimension.TITLE: "title",
}


@dataclass(slots=True)
class TimeWindow:
    """Half-open ``[start, end)`` range in epoch milliseconds."""

    start: int
    end: int

    def contains(self, timestamp: int) -> bool:
        return self.start <= timestamp < self.end


@dataclass(slots=True)
class DimensionReport:
    """Duration rollup for one application, domain or title."""

    dimension: Dimension
    name: str
    total_duration: int = 0
    percentage: float = 0.0
    instances: list[DurationInstance] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            _DIMENSION_KEYS[self.dimension]: self.name,
            "totalDuration": self.total_duration,
            "percentage": self.percentage,
            "instances": [instance.to_dict() for instance in self.instances],
        }


@dataclass(slots=True)
class CategoryMatch:
    """Sub-conditions of a category rule; any one that holds is a match."""

    application: Optional[str] = None
    title: Optional[re.Pattern[str]] = None
    domain: Optional[str] = None


@dataclass(slots=True)
class CategoryRule:
    category: tuple[str, ...]
    matches: CategoryMatch


@dataclass(slots=True)
class CategoryDurationReport:
    """A node of the category tree."""

    category: list[str]
    total_duration: int = 0
    percentage: float = 0.0
    children: list["CategoryDurationReport"] = field(default_factory=list)
    instances: list[DurationInstance] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "category": list(self.category),
            "totalDuration": self.total_duration,
            "percentage": self.percentage,
            "children": [child.to_dict() for child in self.children],
            "instances": [instance.to_dict() for instance in self.instances],
        }


class RuleType(str, Enum):
    DURATION = "duration"
    APP_NAME = "app_name"
    DOMAIN = "domain"
    TITLE = "title"
    URL = "url"


class RuleCondition(str, Enum):
    GREATER = ">"
    LESS = "<"
    EQUAL = "="
    GREATER_EQUAL = ">="
    LESS_EQUAL = "<="
    CONTAINS = "contains"
    STARTS_WITH = "startsWith"
    ENDS_WITH = "endsWith"


DURATION_CONDITIONS = frozenset(
    {
        RuleCondition.GREATER,
        RuleCondition.LESS,
        RuleCondition.EQUAL,
        RuleCondition.GREATER_EQUAL,
        RuleCondition.LESS_EQUAL,
    }
)
STRING_CONDITIONS = frozenset(
    {
        RuleCondition.EQUAL,
        RuleCondition.CONTAINS,
        RuleCondition.STARTS_WITH,
        RuleCondition.ENDS_WITH,
    }
)


@dataclass(slots=True)
class ActivityRule:
    """A user-authored rule assigning a productivity rating (0 or 1)."""

    id: str
    name: str
    rule_type: RuleType
    condition: RuleCondition
    value: str
    rating: int
    active: bool = True
    description: Optional[str] = None
    created_at: Optional[int] = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "ruleType": self.rule_type.value,
            "condition": self.condition.value,
            "value": self.value,
            "rating": self.rating,
            "active": self.active,
            "createdAt": self.created_at,
        }


@dataclass(slots=True)
class RatingResult:
    activity_id: int
    timestamp: int
    rating: Optional[int]
    applied_rules: list[ActivityRule] = field(default_factory=list)


@dataclass(slots=True)
class RatingUpdate:
    timestamp: int
    rating: int
    rule_id: Optional[str] = None

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "rating": self.rating, "ruleId": self.rule_id}


@dataclass(slots=True)
class RatingFailure:
    timestamp: int
    error: str

    def to_dict(self) -> dict[str, Any]:
        return {"timestamp": self.timestamp, "error": self.error}


@dataclass(slots=True)
class RatingBatchResult:
    """Outcome of a bulk re-rating; updates already applied stay applied."""

    updated: list[RatingUpdate] = field(default_factory=list)
    failed: list[RatingFailure] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return not self.failed

    def to_dict(self) -> dict[str, Any]:
        return {
            "updated": [update.to_dict() for update in self.updated],
            "failed": [failure.to_dict() for failure in self.failed],
        }
