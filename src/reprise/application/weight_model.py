"""
Weight model for revisit urgency.

This is a pure computation module with no I/O.

Philosophy:
    - Older items gain priority, with diminishing returns (sqrt curve).
    - The longer since the last revisit, the more urgent (linear).
    - Items with many revisits slowly fade but never disappear.
    - Recently added items get a short cooldown so they don't surface immediately.
    - Minimum weight is always 1.0: no item is ever fully silenced.
"""

import math
from collections.abc import Iterable
from datetime import datetime

from reprise.domain.constants import (
    DEFAULT_MIN_REVISIT_DAYS,
    HIGH_PRIORITY_WEIGHT,
    MEDIUM_PRIORITY_WEIGHT,
    MIN_WEIGHT,
    NEVER_REVISITED_URGENCY_BOOST,
    NEWNESS_MIN_FACTOR,
    NEWNESS_WINDOW_DAYS,
    REVISIT_DECAY_RATE,
    SECONDS_PER_DAY,
)
from reprise.domain.models import Item, Priority, WeightResult


def _days_between(later: datetime, earlier: datetime) -> float:
    return max(0.0, (later - earlier).total_seconds() / SECONDS_PER_DAY)


def days_since_added(item: Item, now: datetime) -> float:
    return _days_between(now, item.added_at)


def days_since_last_revisit(item: Item, now: datetime) -> float:
    """
    Days since the last revisit.

    Never-revisited items are treated as 1.5x their age, which gives them an
    urgency boost proportional to how long they have been waiting.
    """
    if item.last_revisited_at is not None:
        return _days_between(now, item.last_revisited_at)
    return days_since_added(item, now) * NEVER_REVISITED_URGENCY_BOOST


def revisit_decay(times_revisited: int) -> float:
    """
    Fade factor for repeated revisits, approaching but never reaching 0.

    At 0 revisits: 1.0, at 1: 0.77, at 3: 0.53, at 10: 0.25, at 20: 0.14
    """
    return 1.0 / (1.0 + REVISIT_DECAY_RATE * times_revisited)


def newness_factor(age_days: float) -> float:
    """Cooldown for fresh items. Day 0: 0.3, day 1: 0.65, day 2+: 1.0"""
    if age_days < NEWNESS_WINDOW_DAYS:
        return NEWNESS_MIN_FACTOR + (age_days / NEWNESS_WINDOW_DAYS) * (1.0 - NEWNESS_MIN_FACTOR)
    return 1.0


def compute_weight(item: Item, now: datetime) -> float:
    """
    Compute the selection weight of an item at the given instant.

    weight = (sqrt(age + 1) + days_since_last_revisit) * decay * newness,
    floored at 1.0.
    """
    age = days_since_added(item, now)
    urgency = days_since_last_revisit(item, now)

    age_factor = math.sqrt(age + 1)
    weight = (age_factor + urgency) * revisit_decay(item.times_revisited) * newness_factor(age)

    if weight < MIN_WEIGHT:
        return MIN_WEIGHT
    return weight


def classify_priority(weight: float) -> Priority:
    if weight >= HIGH_PRIORITY_WEIGHT:
        return "high"
    if weight >= MEDIUM_PRIORITY_WEIGHT:
        return "medium"
    return "low"


def is_eligible(item: Item, now: datetime, min_revisit_days: int) -> bool:
    """
    Whether the item may be selected today.

    Never-revisited items are always eligible regardless of the threshold.
    The boundary is inclusive.
    """
    if item.last_revisited_at is None:
        return True
    return days_since_last_revisit(item, now) >= min_revisit_days


def compute_weight_detail(
    item: Item,
    now: datetime,
    min_revisit_days: int = DEFAULT_MIN_REVISIT_DAYS,
) -> WeightResult:
    """
    Detailed scheduling metadata for an item.

    Used by the diagnostics and focus views to show why/when an item surfaces.
    Rounding is applied to the returned values only.
    """
    weight = compute_weight(item, now)
    decay = revisit_decay(item.times_revisited)

    return WeightResult(
        item_id=item.id,
        weight=round(weight, 2),
        days_since_added=round(days_since_added(item, now), 1),
        days_since_last_revisit=round(days_since_last_revisit(item, now), 1),
        times_revisited=item.times_revisited,
        revisit_decay=round(decay, 2),
        is_eligible=is_eligible(item, now, min_revisit_days),
        priority=classify_priority(weight),
    )


def filter_eligible(items: Iterable[Item], now: datetime, min_revisit_days: int) -> list[Item]:
    """Return the eligible subset, preserving input order."""
    return [item for item in items if is_eligible(item, now, min_revisit_days)]
