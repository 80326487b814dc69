"""Consolidate a raw stream of activity samples into merged records."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from functools import reduce
from typing import Iterable, Optional

from .models import ActivityRecord

logger = logging.getLogger(__name__)

MERGE_GAP_MS = 15 * 60 * 1000


@dataclass(slots=True)
class MergeState:
    """Accumulator threaded through the merge fold."""

    merged: list[ActivityRecord] = field(default_factory=list)
    current: Optional[ActivityRecord] = None


def merge_records(
    records: Iterable[ActivityRecord], gap_ms: int = MERGE_GAP_MS
) -> list[ActivityRecord]:
    """Fold same-activity samples that start within ``gap_ms`` of a run.

    Records must arrive in non-decreasing timestamp order per stream; the
    input is never re-sorted. The gap is measured against the first
    timestamp of the current run rather than the most recently merged
    sample, so a run of close samples can account for well over ``gap_ms``
    in total. The title and owner fields of a run are those of its first
    record, and the input records are left untouched.
    """
    state = reduce(
        lambda acc, record: _step(acc, record, gap_ms),
        records,
        MergeState(),
    )
    if state.current is not None:
        state.merged.append(state.current)
    logger.debug("Merged activity stream into %d records.", len(state.merged))
    return state.merged


def _step(state: MergeState, record: ActivityRecord, gap_ms: int) -> MergeState:
    current = state.current
    if current is not None and _continues(current, record, gap_ms):
        current.duration += record.duration
        return state

    if current is not None:
        state.merged.append(current)
    state.current = replace(record)
    return state


def _continues(current: ActivityRecord, record: ActivityRecord, gap_ms: int) -> bool:
    return (
        record.activity_id == current.activity_id
        and record.timestamp - current.timestamp <= gap_ms
    )


def total_duration(records: Iterable[ActivityRecord]) -> int:
    return sum(record.duration for record in records)
