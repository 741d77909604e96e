"""
In-memory store: process-local UserDirectory and ItemRepository.

Used by tests and as the working copy behind the YAML store.
"""

import logging
from datetime import datetime

from ulid import ULID

from reprise.domain.calendar import same_local_date
from reprise.domain.errors import AlreadyRevisitedTodayError, ItemNotFoundError, UserNotFoundError
from reprise.domain.models import Item, Recipient, RevisitEntry
from reprise.domain.ports import ItemRepository, UserDirectory

logger = logging.getLogger(__name__)


def generate_item_id() -> str:
    """Generate a stable item ID using ULID."""
    return f"item_{ULID()}"


class InMemoryStore(UserDirectory, ItemRepository):
    def __init__(self, users: list[Recipient] | None = None, items: dict[str, list[Item]] | None = None):
        self.users: dict[str, Recipient] = {u.id: u for u in users or []}
        self.items: dict[str, list[Item]] = {uid: list(lst) for uid, lst in (items or {}).items()}

    def put_user(self, user: Recipient) -> None:
        self.users[user.id] = user
        self.items.setdefault(user.id, [])

    # --- UserDirectory ---

    async def add_user(self, user: Recipient) -> None:
        self.put_user(user)

    async def list_users(self) -> list[Recipient]:
        return list(self.users.values())

    async def get_user(self, user_id: str) -> Recipient | None:
        return self.users.get(user_id)

    async def update_last_sent_at(self, user_id: str, sent_at: datetime) -> None:
        user = self.users.get(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        user.profile.last_email_sent_at = sent_at

    # --- ItemRepository ---

    async def list_active_items(self, user_id: str) -> list[Item]:
        return [item for item in self.items.get(user_id, []) if item.status == "active"]

    def _find(self, user_id: str, item_id: str) -> Item:
        for item in self.items.get(user_id, []):
            if item.id == item_id:
                return item
        raise ItemNotFoundError(item_id)

    async def add_item(
        self,
        user_id: str,
        title: str,
        added_at: datetime,
        link: str = "",
        topic: str | None = None,
        difficulty: str | None = None,
    ) -> Item:
        if user_id not in self.users:
            raise UserNotFoundError(user_id)
        item = Item(
            id=generate_item_id(),
            added_at=added_at,
            title=title,
            link=link,
            topic=topic,
            difficulty=difficulty,
        )
        self.items.setdefault(user_id, []).append(item)
        logger.debug(f"Added item {item.id} for user {user_id}")
        return item

    async def list_items(self, user_id: str) -> list[Item]:
        return list(self.items.get(user_id, []))

    async def get_item(self, user_id: str, item_id: str) -> Item:
        return self._find(user_id, item_id)

    async def update_item(
        self,
        user_id: str,
        item_id: str,
        title: str | None = None,
        link: str | None = None,
        topic: str | None = None,
        difficulty: str | None = None,
    ) -> Item:
        item = self._find(user_id, item_id)
        if title is not None:
            item.title = title
        if link is not None:
            item.link = link
        if topic is not None:
            item.topic = topic
        if difficulty is not None:
            item.difficulty = difficulty
        return item

    async def delete_item(self, user_id: str, item_id: str) -> None:
        item = self._find(user_id, item_id)
        self.items[user_id].remove(item)
        logger.debug(f"Deleted item {item_id} for user {user_id}")

    async def record_revisit(
        self, user_id: str, item_id: str, at: datetime, notes: str | None = None
    ) -> Item:
        item = self._find(user_id, item_id)
        if same_local_date(item.last_revisited_at, at):
            raise AlreadyRevisitedTodayError(item_id)
        item.times_revisited += 1
        item.last_revisited_at = at
        item.history.append(RevisitEntry(revisited_at=at, notes=notes or None))
        return item

    async def archive_item(self, user_id: str, item_id: str) -> Item:
        item = self._find(user_id, item_id)
        item.status = "retired"
        return item
