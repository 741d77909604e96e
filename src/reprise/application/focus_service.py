"""
Focus Service: the interactive "what to revisit today" view.

Selections are seeded with the local calendar date and computed from each
item as it stood at the start of the local day. Refreshing the view therefore
shows the same items all day, including after some of them are revisited,
while tomorrow picks different ones.
"""

import dataclasses
import logging
from datetime import datetime

from reprise.application.sampler import current_day_seed, select_weighted
from reprise.application.weight_model import compute_weight_detail, filter_eligible
from reprise.domain.calendar import same_local_date
from reprise.domain.errors import UserNotFoundError
from reprise.domain.models import FocusEntry, FocusReport, Item, ItemWeight, Recipient
from reprise.domain.ports import Clock, ItemRepository, UserDirectory

logger = logging.getLogger(__name__)


def start_of_day(now: datetime) -> datetime:
    return now.replace(hour=0, minute=0, second=0, microsecond=0)


def as_of_day_start(item: Item, day_start: datetime) -> Item:
    """
    The item with today's revisit rolled back.

    At most one revisit is recorded per local date, so undoing it means one
    fewer revisit and the latest earlier history entry as the last revisit.
    """
    if not same_local_date(item.last_revisited_at, day_start):
        return item
    earlier = [h.revisited_at for h in item.history if h.revisited_at < day_start]
    return dataclasses.replace(
        item,
        times_revisited=max(0, item.times_revisited - 1),
        last_revisited_at=max(earlier) if earlier else None,
    )


class FocusService:
    """
    Application service for day-stable selections and weight listings.

    Depends on the UserDirectory and ItemRepository abstractions, not on
    concrete adapters.
    """

    def __init__(self, users: UserDirectory, items: ItemRepository, clock: Clock):
        self._users = users
        self._items = items
        self._clock = clock

    async def _require_user(self, user_id: str) -> Recipient:
        user = await self._users.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def get_todays_focus(self, user_id: str) -> FocusReport:
        """
        Today's recommended items for a user.

        Repeated calls within the same local calendar date return the same
        items, as long as no item is added, archived or deleted. Revisiting a
        focus item marks it done without replacing it.

        Raises:
            UserNotFoundError: unknown user.
        """
        user = await self._require_user(user_id)
        now = self._clock.now()
        profile = user.profile
        day_start = start_of_day(now)

        items = await self._items.list_active_items(user.id)
        snapshots = {item.id: as_of_day_start(item, day_start) for item in items}
        eligible = filter_eligible(snapshots.values(), day_start, profile.min_revisit_days)
        seed = current_day_seed(now)
        selected = select_weighted(eligible, profile.problems_per_day, seed, day_start)

        current = {item.id: item for item in items}
        entries = []
        for snapshot in selected:
            item = current[snapshot.id]
            entries.append(
                FocusEntry(
                    item=item,
                    weight=compute_weight_detail(item, now, profile.min_revisit_days),
                    revisited_today=same_local_date(item.last_revisited_at, now),
                )
            )
        logger.debug(f"Focus for {user.id}: {len(entries)} of {len(eligible)} eligible (seed={seed})")
        return FocusReport(user_id=user.id, seed=seed, entries=entries)

    async def list_weights(self, user_id: str) -> list[ItemWeight]:
        """All active items with their weights, highest first."""
        user = await self._require_user(user_id)
        now = self._clock.now()

        items = await self._items.list_active_items(user.id)
        weighted = [
            ItemWeight(item=item, weight=compute_weight_detail(item, now, user.profile.min_revisit_days))
            for item in items
        ]
        weighted.sort(key=lambda w: w.weight.weight, reverse=True)
        return weighted
