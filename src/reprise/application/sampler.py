"""
Weighted sampling without replacement, and the seeds that drive it.

Two call sites share `select_weighted` and differ only in the seed they pass:
    - The "today's focus" view uses `current_day_seed`, so repeated calls on the
      same local calendar date return the same items.
    - The dispatch sweep uses `fresh_seed`, so repeated sweeps on one day need
      not reselect the same items.
"""

import random
import time
from collections.abc import Sequence
from datetime import datetime

from reprise.application.weight_model import compute_weight
from reprise.domain.models import Item


def current_day_seed(now: datetime) -> int:
    """Deterministic seed for the local calendar date of `now` (e.g. 20260101)."""
    return now.year * 10000 + now.month * 100 + now.day


def fresh_seed() -> int:
    """Nanosecond wall-clock seed for non-repeatable selections."""
    return time.time_ns()


def select_weighted(items: Sequence[Item], n: int, seed: int, now: datetime) -> list[Item]:
    """
    Pick `n` distinct items by weighted roulette-wheel selection.

    Same (items, n, seed, now) always yields the same ordered selection. Each
    call owns its own generator, so concurrent callers never share state.

    Args:
        items: Candidate items (typically the eligible subset).
        n: Number of items to draw.
        seed: Seed for the private pseudorandom generator.
        now: Instant used to weigh the candidates.

    Returns:
        min(n, len(items)) items. When n covers every candidate, all items are
        returned in their original order and no randomness is consumed.
    """
    if n >= len(items):
        return list(items)
    if n <= 0:
        return []

    rng = random.Random(seed)

    # `now` is fixed for the whole draw, so weights are computed once.
    remaining = [(item, compute_weight(item, now)) for item in items]
    selected: list[Item] = []

    while len(selected) < n and remaining:
        total_weight = sum(w for _, w in remaining)

        if total_weight <= 0:
            idx = rng.randrange(len(remaining))
        else:
            value = rng.random() * total_weight
            cumulative = 0.0
            # Float accumulation may fall just short of `value`; default to the last slot.
            idx = len(remaining) - 1
            for j, (_, weight) in enumerate(remaining):
                cumulative += weight
                if cumulative >= value:
                    idx = j
                    break

        item, _ = remaining.pop(idx)
        selected.append(item)

    return selected
