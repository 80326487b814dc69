"""Hierarchical category classification and category duration trees."""

from __future__ import annotations

import logging
import re
from typing import Any, Iterable, Mapping, Sequence

from .errors import ValidationError
from .models import ActivityRecord, CategoryDurationReport, CategoryMatch, CategoryRule, DurationInstance

logger = logging.getLogger(__name__)

UNCATEGORIZED = ("Uncategorized",)

# Every node along a record's path is credited this many milliseconds,
# regardless of the record's own duration.
NODE_INSTANCE_MS = 1000

DEFAULT_CATEGORY_RULES: tuple[CategoryRule, ...] = (
    CategoryRule(
        category=("Work", "Programming", "ActivityWatch"),
        matches=CategoryMatch(
            application="vim",
            title=re.compile(r"activitywatch|aw-server", re.IGNORECASE),
        ),
    ),
    CategoryRule(category=("Work", "Programming"), matches=CategoryMatch(domain="github.com")),
    CategoryRule(
        category=("Comms", "Video Conferencing"), matches=CategoryMatch(application="zoom")
    ),
    CategoryRule(category=("Comms", "Email"), matches=CategoryMatch(domain="mail.google.com")),
    CategoryRule(category=("Media", "Games"), matches=CategoryMatch(application="Minecraft")),
    CategoryRule(category=("Media", "Social Media"), matches=CategoryMatch(domain="reddit.com")),
    CategoryRule(category=("Media", "Video"), matches=CategoryMatch(domain="youtube.com")),
    CategoryRule(category=("Media", "Music"), matches=CategoryMatch(application="Spotify")),
)


def rule_set(custom_rules: Iterable[CategoryRule] = ()) -> list[CategoryRule]:
    """Return the built-in rules followed by ``custom_rules``."""
    return [*DEFAULT_CATEGORY_RULES, *custom_rules]


def matches_rule(record: ActivityRecord, rule: CategoryRule) -> bool:
    # Sub-conditions are OR-ed: any single one is enough.
    matches = rule.matches
    if matches.application and matches.application.lower() in record.owner_name.lower():
        return True
    if matches.title is not None and matches.title.search(record.title or ""):
        return True
    if matches.domain and record.url and matches.domain in record.url:
        return True
    return False


def classify(record: ActivityRecord, rules: Sequence[CategoryRule]) -> list[str]:
    """Return the category path of the first rule matching ``record``."""
    for rule in rules:
        if matches_rule(record, rule):
            return list(rule.category)
    return list(UNCATEGORIZED)


def build_category_tree(
    records: Iterable[ActivityRecord], rules: Sequence[CategoryRule]
) -> list[CategoryDurationReport]:
    """Fold classified records into percentage-normalized category trees."""
    nodes: dict[str, CategoryDurationReport] = {}
    for record in records:
        _add_to_tree(nodes, classify(record, rules), record)

    roots = [node for node in nodes.values() if len(node.category) == 1]
    _assign_percentages(roots, sum(node.total_duration for node in roots))
    logger.debug("Built category tree with %d nodes and %d roots.", len(nodes), len(roots))
    return roots


def _add_to_tree(
    nodes: dict[str, CategoryDurationReport], path: list[str], record: ActivityRecord
) -> None:
    parent: CategoryDurationReport | None = None
    for depth in range(1, len(path) + 1):
        key = "/".join(path[:depth])
        node = nodes.get(key)
        if node is None:
            node = CategoryDurationReport(category=path[:depth])
            nodes[key] = node
        node.instances.append(
            DurationInstance(
                start_time=record.timestamp,
                end_time=record.timestamp + NODE_INSTANCE_MS,
                duration=NODE_INSTANCE_MS,
            )
        )
        node.total_duration += NODE_INSTANCE_MS
        if parent is not None and not any(child is node for child in parent.children):
            parent.children.append(node)
        parent = node


def _assign_percentages(nodes: list[CategoryDurationReport], total: float) -> None:
    for node in nodes:
        node.percentage = node.total_duration / total * 100 if total > 0 else 0.0
        if node.children:
            _assign_percentages(node.children, node.total_duration)


def category_rule_from_dict(data: Mapping[str, Any]) -> CategoryRule:
    """Build a rule from ``{"category": [...], "matches": {...}}`` config data."""
    category = data.get("category")
    if not category or not isinstance(category, (list, tuple)):
        raise ValidationError("category rule requires a non-empty 'category' list")
    if not all(isinstance(label, str) and label.strip() for label in category):
        raise ValidationError("category labels must be non-empty strings")

    raw_matches = data.get("matches") or {}
    if not isinstance(raw_matches, Mapping):
        raise ValidationError("'matches' must be an object")
    unknown = set(raw_matches) - {"application", "title", "domain"}
    if unknown:
        raise ValidationError(f"unknown match keys: {', '.join(sorted(unknown))}")

    title = raw_matches.get("title")
    try:
        pattern = re.compile(title, re.IGNORECASE) if title else None
    except re.error as exc:
        raise ValidationError(f"invalid title pattern {title!r}: {exc}") from exc

    matches = CategoryMatch(
        application=raw_matches.get("application") or None,
        title=pattern,
        domain=raw_matches.get("domain") or None,
    )
    if matches.application is None and matches.title is None and matches.domain is None:
        raise ValidationError("category rule must define at least one match condition")
    return CategoryRule(category=tuple(category), matches=matches)
