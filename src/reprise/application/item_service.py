"""
Item Service: adding, inspecting and editing a user's tracked items.

The scheduling engine only reads items. Everything that changes them goes
through here so the CLI and HTTP surfaces share one ownership check.
"""

import logging

from reprise.application.weight_model import compute_weight_detail
from reprise.domain.calendar import same_local_date
from reprise.domain.errors import UserNotFoundError
from reprise.domain.models import Item, ItemDetail, Recipient, WeightResult
from reprise.domain.ports import Clock, ItemRepository, UserDirectory

logger = logging.getLogger(__name__)


class ItemService:
    def __init__(self, users: UserDirectory, items: ItemRepository, clock: Clock):
        self._users = users
        self._items = items
        self._clock = clock

    async def _require_user(self, user_id: str) -> Recipient:
        user = await self._users.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def list_items(self, user_id: str, include_retired: bool = False) -> list[Item]:
        """The user's items, newest first."""
        await self._require_user(user_id)
        if include_retired:
            items = await self._items.list_items(user_id)
        else:
            items = await self._items.list_active_items(user_id)
        return sorted(items, key=lambda i: i.added_at, reverse=True)

    async def get_item_detail(self, user_id: str, item_id: str) -> ItemDetail:
        """
        One item with its current weight, revisited-today flag and history.

        Raises:
            UserNotFoundError: unknown user.
            ItemNotFoundError: the item does not belong to the user.
        """
        user = await self._require_user(user_id)
        item = await self._items.get_item(user_id, item_id)
        now = self._clock.now()
        return ItemDetail(
            item=item,
            weight=compute_weight_detail(item, now, user.profile.min_revisit_days),
            revisited_today=same_local_date(item.last_revisited_at, now),
        )

    async def get_item_weight(self, user_id: str, item_id: str) -> WeightResult:
        return (await self.get_item_detail(user_id, item_id)).weight

    async def add_item(
        self,
        user_id: str,
        title: str,
        link: str = "",
        topic: str | None = None,
        difficulty: str | None = None,
    ) -> Item:
        await self._require_user(user_id)
        item = await self._items.add_item(
            user_id, title, self._clock.now(), link=link, topic=topic, difficulty=difficulty
        )
        logger.info(f"User {user_id} added item {item.id}")
        return item

    async def update_item(
        self,
        user_id: str,
        item_id: str,
        title: str | None = None,
        link: str | None = None,
        topic: str | None = None,
        difficulty: str | None = None,
    ) -> Item:
        await self._require_user(user_id)
        return await self._items.update_item(
            user_id, item_id, title=title, link=link, topic=topic, difficulty=difficulty
        )

    async def record_revisit(self, user_id: str, item_id: str, notes: str | None = None) -> Item:
        """
        Raises:
            AlreadyRevisitedTodayError: the item was already revisited today.
        """
        await self._require_user(user_id)
        item = await self._items.record_revisit(user_id, item_id, self._clock.now(), notes=notes)
        logger.info(f"User {user_id} revisited {item_id} ({item.times_revisited} total)")
        return item

    async def archive_item(self, user_id: str, item_id: str) -> Item:
        await self._require_user(user_id)
        return await self._items.archive_item(user_id, item_id)

    async def delete_item(self, user_id: str, item_id: str) -> None:
        await self._require_user(user_id)
        await self._items.delete_item(user_id, item_id)
        logger.info(f"User {user_id} deleted item {item_id}")
