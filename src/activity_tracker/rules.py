"""Productivity rating rules: matching, bulk re-rating and rule maintenance."""

from __future__ import annotations

import logging
import operator
import time
import uuid
from dataclasses import dataclass, replace
from typing import Any, Callable, Iterable, Mapping, Optional, Protocol, Sequence

from .errors import ConflictError, NotFoundError, ValidationError
from .models import (
    ActivityRecord,
    ActivityRule,
    RatingBatchResult,
    RatingFailure,
    RatingResult,
    RatingUpdate,
    RuleCondition,
    RuleType,
)
from .normalization import extract_domain, parse_int_prefix
from .schemas import RuleChanges, RuleFields, check_rule_condition, parse_rule_changes, parse_rule_fields

logger = logging.getLogger(__name__)

PRODUCTIVE = 1
DISTRACTING = 0

_DURATION_OPERATORS: dict[RuleCondition, Callable[[int, int], bool]] = {
    RuleCondition.GREATER: operator.gt,
    RuleCondition.LESS: operator.lt,
    RuleCondition.EQUAL: operator.eq,
    RuleCondition.GREATER_EQUAL: operator.ge,
    RuleCondition.LESS_EQUAL: operator.le,
}

_STRING_OPERATORS: dict[RuleCondition, Callable[[str, str], bool]] = {
    RuleCondition.EQUAL: operator.eq,
    RuleCondition.CONTAINS: operator.contains,
    RuleCondition.STARTS_WITH: str.startswith,
    RuleCondition.ENDS_WITH: str.endswith,
}


class RuleStore(Protocol):
    """Storage collaborator for rules and per-activity ratings."""

    def get_rule(self, rule_id: str) -> Optional[ActivityRule]: ...

    def list_rules(self, *, active_only: bool = False) -> list[ActivityRule]: ...

    def save_rule(self, rule: ActivityRule) -> None: ...

    def delete_rule(self, rule_id: str) -> bool: ...

    def set_activity_rating(
        self, timestamp: int, rating: int, rule_id: Optional[str] = None
    ) -> None: ...


def _activity_text(activity: ActivityRecord, rule_type: RuleType) -> Optional[str]:
    """Return the lower-cased or as-is field a string rule compares against."""
    if rule_type is RuleType.APP_NAME:
        return activity.owner_name.lower()
    if rule_type is RuleType.DOMAIN:
        domain = extract_domain(activity.url)
        return domain.lower() if domain else None
    if rule_type is RuleType.TITLE:
        return activity.title
    if rule_type is RuleType.URL:
        return activity.url or None
    return None


def match_rule(activity: ActivityRecord, rule: ActivityRule) -> bool:
    if not rule.active:
        return False

    if rule.rule_type is RuleType.DURATION:
        threshold = parse_int_prefix(rule.value)
        compare = _DURATION_OPERATORS.get(rule.condition)
        if threshold is None or compare is None:
            return False
        return compare(activity.duration, threshold)

    compare_text = _STRING_OPERATORS.get(rule.condition)
    text = _activity_text(activity, rule.rule_type)
    if compare_text is None or text is None:
        return False
    value = rule.value
    if rule.rule_type in (RuleType.APP_NAME, RuleType.DOMAIN):
        value = value.lower()
    return compare_text(text, value)


def find_activities_matching_rule(
    activities: Iterable[ActivityRecord], rule: ActivityRule
) -> list[ActivityRecord]:
    return [activity for activity in activities if match_rule(activity, rule)]


def rate_activity(activity: ActivityRecord, rules: Sequence[ActivityRule]) -> RatingResult:
    """Rate ``activity`` with the first matching active rule.

    The result's ``rating`` is ``None`` when no rule applies.
    """
    applied = [rule for rule in rules if match_rule(activity, rule)]
    return RatingResult(
        activity_id=activity.activity_id,
        timestamp=activity.timestamp,
        rating=applied[0].rating if applied else None,
        applied_rules=applied,
    )


def apply_rule(
    rule: ActivityRule, activities: Iterable[ActivityRecord], store: RuleStore
) -> RatingBatchResult:
    """Rate every activity matching ``rule`` through ``store``.

    Each update is an independent call keyed by the activity timestamp.
    Failures are collected instead of aborting the batch and updates that
    succeeded stay applied, so a failed batch can simply be retried.
    """
    result = RatingBatchResult()
    for activity in find_activities_matching_rule(activities, rule):
        try:
            store.set_activity_rating(activity.timestamp, rule.rating, rule.id)
        except Exception as exc:
            logger.warning(
                "Failed to rate activity at %s with rule %s: %s",
                activity.timestamp,
                rule.id,
                exc,
            )
            result.failed.append(RatingFailure(timestamp=activity.timestamp, error=str(exc)))
            continue
        result.updated.append(
            RatingUpdate(timestamp=activity.timestamp, rating=rule.rating, rule_id=rule.id)
        )
    logger.info(
        "Rule %s rated %d activities (%d failed).",
        rule.id,
        len(result.updated),
        len(result.failed),
    )
    return result


@dataclass(slots=True)
class RatingChangeConfirmation:
    """The user's answer when asked to confirm a rating change."""

    apply_to_all: bool = False


@dataclass(slots=True)
class RuleMutationResult:
    rule: ActivityRule
    ratings: RatingBatchResult

    def to_dict(self) -> dict[str, Any]:
        return {"rule": self.rule.to_dict(), "ratings": self.ratings.to_dict()}


class RuleService:
    """Create and update rules, then re-rate the activities they match."""

    def __init__(self, store: RuleStore, clock: Callable[[], float] = time.time) -> None:
        self.store = store
        self._clock = clock

    def list_rules(self, *, active_only: bool = False) -> list[ActivityRule]:
        return self.store.list_rules(active_only=active_only)

    def get_rule(self, rule_id: str) -> ActivityRule:
        rule = self.store.get_rule(rule_id)
        if rule is None:
            raise NotFoundError(f"No rule found for id={rule_id}")
        return rule

    def create_rule(
        self,
        fields: Mapping[str, Any] | RuleFields,
        candidates: Iterable[ActivityRecord] = (),
        *,
        apply_to_all: bool = False,
    ) -> RuleMutationResult:
        parsed = parse_rule_fields(fields)
        rule = ActivityRule(
            id=uuid.uuid4().hex,
            name=parsed.name,
            description=parsed.description,
            rule_type=parsed.rule_type,
            condition=parsed.condition,
            value=parsed.value,
            rating=parsed.rating,
            active=parsed.active,
            created_at=int(self._clock() * 1000),
        )
        self.store.save_rule(rule)
        logger.info("Created rule %s (%s).", rule.id, rule.name)
        return RuleMutationResult(rule, self._rerate(rule, candidates, apply_to_all))

    def update_rule(
        self,
        rule_id: str,
        changes: Mapping[str, Any] | RuleChanges,
        candidates: Iterable[ActivityRecord] = (),
        *,
        confirmation: Optional[RatingChangeConfirmation] = None,
    ) -> RuleMutationResult:
        """Apply ``changes`` to a rule.

        Changing the rating of an existing rule requires ``confirmation``;
        without it a :class:`ConflictError` is raised and nothing is written.
        """
        existing = self.get_rule(rule_id)
        parsed = parse_rule_changes(changes)
        updates = parsed.model_dump(exclude_unset=True)
        updated = replace(existing, **updates)
        try:
            check_rule_condition(updated.rule_type, updated.condition, updated.value)
        except ValueError as exc:
            raise ValidationError(f"invalid rule update: {exc}") from exc

        rating_changed = updated.rating != existing.rating
        if rating_changed and confirmation is None:
            raise ConflictError(
                f"Changing the rating of rule {rule_id} requires confirmation"
            )

        self.store.save_rule(updated)
        logger.info("Updated rule %s (%s).", updated.id, ", ".join(sorted(updates)) or "no changes")
        apply_to_all = confirmation.apply_to_all if confirmation else False
        return RuleMutationResult(updated, self._rerate(updated, candidates, apply_to_all))

    def delete_rule(self, rule_id: str) -> None:
        if not self.store.delete_rule(rule_id):
            raise NotFoundError(f"No rule found for id={rule_id}")
        logger.info("Deleted rule %s.", rule_id)

    def toggle_rule(self, rule_id: str, active: bool) -> ActivityRule:
        rule = replace(self.get_rule(rule_id), active=active)
        self.store.save_rule(rule)
        return rule

    def install_default_rules(self) -> list[ActivityRule]:
        return [self.create_rule(fields).rule for fields in DEFAULT_ACTIVITY_RULES]

    def _rerate(
        self, rule: ActivityRule, candidates: Iterable[ActivityRecord], apply_to_all: bool
    ) -> RatingBatchResult:
        if not apply_to_all:
            candidates = (activity for activity in candidates if activity.rating is None)
        return apply_rule(rule, candidates, self.store)


DEFAULT_ACTIVITY_RULES: tuple[RuleFields, ...] = (
    RuleFields(
        name="Long activity",
        description="Activities lasting over 25 minutes are productive",
        rule_type=RuleType.DURATION,
        condition=RuleCondition.GREATER,
        value="1500",
        rating=PRODUCTIVE,
    ),
    RuleFields(
        name="Very short activity",
        description="Activities under 30 seconds are likely distractions",
        rule_type=RuleType.DURATION,
        condition=RuleCondition.LESS,
        value="30",
        rating=DISTRACTING,
    ),
)


def _verdict(rating: int) -> str:
    return "productive" if rating == PRODUCTIVE else "distracting"


def _shorten(text: str, length: int = 30) -> str:
    return text[:length] + ("..." if len(text) > length else "")


def suggest_rules(activity: ActivityRecord, rating: int) -> list[RuleFields]:
    """Suggest rules that would reproduce a manual rating of ``activity``."""
    verdict = _verdict(rating)
    suggestions: list[RuleFields] = []

    if activity.owner_name:
        suggestions.append(
            RuleFields(
                name=f"App: {activity.owner_name}",
                description=f"Activities in {activity.owner_name} are {verdict}",
                rule_type=RuleType.APP_NAME,
                condition=RuleCondition.EQUAL,
                value=activity.owner_name,
                rating=rating,
            )
        )

    domain = extract_domain(activity.url)
    if domain:
        suggestions.append(
            RuleFields(
                name=f"Domain: {domain}",
                description=f"Activities on {domain} are {verdict}",
                rule_type=RuleType.DOMAIN,
                condition=RuleCondition.EQUAL,
                value=domain,
                rating=rating,
            )
        )

    # Short titles are too generic to be useful.
    if activity.title and len(activity.title) > 5:
        snippet = _shorten(activity.title)
        suggestions.append(
            RuleFields(
                name=f"Title contains: {snippet}",
                description=f'Activities with "{snippet}" in the title are {verdict}',
                rule_type=RuleType.TITLE,
                condition=RuleCondition.CONTAINS,
                value=activity.title[:50],
                rating=rating,
            )
        )

    if activity.duration:
        minutes = round(activity.duration / 60)
        condition = RuleCondition.GREATER if rating == PRODUCTIVE else RuleCondition.LESS
        comparison = "longer than" if condition is RuleCondition.GREATER else "shorter than"
        suggestions.append(
            RuleFields(
                name=f"Duration {condition.value} {minutes} minutes",
                description=f"Activities {comparison} {minutes} minutes are {verdict}",
                rule_type=RuleType.DURATION,
                condition=condition,
                value=str(activity.duration),
                rating=rating,
            )
        )

    return suggestions


_SUGGESTION_PRIORITY = (RuleType.DOMAIN, RuleType.APP_NAME, RuleType.TITLE)


def best_rule_suggestion(activity: ActivityRecord, rating: int) -> Optional[RuleFields]:
    suggestions = suggest_rules(activity, rating)
    if not suggestions:
        return None
    for rule_type in _SUGGESTION_PRIORITY:
        for suggestion in suggestions:
            if suggestion.rule_type is rule_type:
                return suggestion
    return suggestions[0]
