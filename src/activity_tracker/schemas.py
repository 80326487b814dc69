"""Pydantic payloads validating records and rules at the engine boundary."""

from __future__ import annotations

from typing import Any, Iterable, Mapping, Optional

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic import ValidationError as PydanticValidationError
from pydantic.alias_generators import to_camel

from .errors import ValidationError
from .models import (
    DURATION_CONDITIONS,
    STRING_CONDITIONS,
    ActivityRecord,
    RuleCondition,
    RuleType,
)
from .normalization import parse_int_prefix


class _CamelModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )


class ActivityRecordPayload(_CamelModel):
    platform: str
    activity_id: int
    title: str
    owner_path: str
    owner_process_id: int
    owner_bundle_id: Optional[str] = None
    owner_name: str
    url: Optional[str] = None
    timestamp: int = Field(ge=0)
    duration: int = Field(ge=0)
    rating: Optional[int] = Field(default=None, ge=0, le=1)
    rule_id: Optional[str] = None

    def to_record(self) -> ActivityRecord:
        return ActivityRecord(**self.model_dump())


class RuleFields(_CamelModel):
    """The user-editable part of an activity rule."""

    model_config = ConfigDict(extra="forbid")

    name: str = Field(min_length=1)
    description: Optional[str] = None
    rule_type: RuleType
    condition: RuleCondition
    value: str
    rating: int = Field(ge=0, le=1)
    active: bool = True

    @model_validator(mode="after")
    def check_condition(self) -> "RuleFields":
        check_rule_condition(self.rule_type, self.condition, self.value)
        return self


class RuleChanges(_CamelModel):
    """A partial update to an existing activity rule."""

    model_config = ConfigDict(extra="forbid")

    name: Optional[str] = Field(default=None, min_length=1)
    description: Optional[str] = None
    rule_type: Optional[RuleType] = None
    condition: Optional[RuleCondition] = None
    value: Optional[str] = None
    rating: Optional[int] = Field(default=None, ge=0, le=1)
    active: Optional[bool] = None

    @model_validator(mode="after")
    def check_not_null(self) -> "RuleChanges":
        cleared = sorted(
            name
            for name in self.model_fields_set
            if name != "description" and getattr(self, name) is None
        )
        if cleared:
            raise ValueError(f"{', '.join(cleared)} cannot be null")
        return self


def check_rule_condition(rule_type: RuleType, condition: RuleCondition, value: str) -> None:
    """Raise ``ValueError`` if ``condition``/``value`` do not suit ``rule_type``."""
    if rule_type is RuleType.DURATION:
        if condition not in DURATION_CONDITIONS:
            raise ValueError(f"condition {condition.value!r} is not valid for duration rules")
        if parse_int_prefix(value) is None:
            raise ValueError(f"duration value {value!r} is not a number")
    elif condition not in STRING_CONDITIONS:
        raise ValueError(
            f"condition {condition.value!r} is not valid for {rule_type.value} rules"
        )
    elif not value:
        raise ValueError("value must not be empty")


def parse_records(items: Iterable[Mapping[str, Any]]) -> list[ActivityRecord]:
    """Validate raw capture payloads, aborting on the first malformed record."""
    records: list[ActivityRecord] = []
    for index, item in enumerate(items):
        try:
            payload = ActivityRecordPayload.model_validate(item)
        except PydanticValidationError as exc:
            raise ValidationError(f"record {index}: {_describe(exc)}") from exc
        records.append(payload.to_record())
    return records


def parse_rule_fields(data: Mapping[str, Any] | RuleFields) -> RuleFields:
    if isinstance(data, RuleFields):
        return data
    try:
        return RuleFields.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(f"invalid rule: {_describe(exc)}") from exc


def parse_rule_changes(data: Mapping[str, Any] | RuleChanges) -> RuleChanges:
    if isinstance(data, RuleChanges):
        return data
    try:
        return RuleChanges.model_validate(data)
    except PydanticValidationError as exc:
        raise ValidationError(f"invalid rule update: {_describe(exc)}") from exc


def _describe(exc: PydanticValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(str(part) for part in error["loc"]) or "payload"
        parts.append(f"{location}: {error['msg']}")
    return "; ".join(parts)
