"""
Ports (interfaces) for the scheduling engine.

These define the contracts that infrastructure adapters must implement.
Application services depend on these abstractions, not concrete implementations.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime

from .models import Item, Recipient


class Clock(ABC):
    """Source of the current instant, expressed in the local time zone."""

    @abstractmethod
    def now(self) -> datetime:
        """Return the current timezone-aware instant in local time."""
        pass


class UserDirectory(ABC):
    """
    Port for enumerating users and recording reminder delivery.

    Implementations:
        - InMemoryStore: process-local dictionaries.
        - YamlStore: a single YAML document on disk.
    """

    @abstractmethod
    async def list_users(self) -> list[Recipient]:
        pass

    @abstractmethod
    async def get_user(self, user_id: str) -> Recipient | None:
        pass

    @abstractmethod
    async def update_last_sent_at(self, user_id: str, sent_at: datetime) -> None:
        """Persist the instant of the last successful reminder for a user."""
        pass

    @abstractmethod
    async def add_user(self, user: Recipient) -> None:
        """Create or replace a user."""
        pass


class ItemRepository(ABC):
    """Port for reading (and, outside the engine, mutating) a user's items."""

    @abstractmethod
    async def list_active_items(self, user_id: str) -> list[Item]:
        """
        Fetch the user's items whose status is "active".

        Returns:
            Items in insertion order.
        """
        pass

    @abstractmethod
    async def add_item(
        self,
        user_id: str,
        title: str,
        added_at: datetime,
        link: str = "",
        topic: str | None = None,
        difficulty: str | None = None,
    ) -> Item:
        pass

    @abstractmethod
    async def list_items(self, user_id: str) -> list[Item]:
        """All of the user's items, retired ones included, in insertion order."""
        pass

    @abstractmethod
    async def get_item(self, user_id: str, item_id: str) -> Item:
        """
        Raises:
            ItemNotFoundError: the item does not belong to the user.
        """
        pass

    @abstractmethod
    async def update_item(
        self,
        user_id: str,
        item_id: str,
        title: str | None = None,
        link: str | None = None,
        topic: str | None = None,
        difficulty: str | None = None,
    ) -> Item:
        """Change descriptive fields. None leaves a field unchanged."""
        pass

    @abstractmethod
    async def delete_item(self, user_id: str, item_id: str) -> None:
        """Remove the item and its revisit history permanently."""
        pass

    @abstractmethod
    async def record_revisit(
        self, user_id: str, item_id: str, at: datetime, notes: str | None = None
    ) -> Item:
        """
        Increment the revisit counter, set last_revisited_at and append a
        history entry.

        Raises:
            ItemNotFoundError: the item does not belong to the user.
            AlreadyRevisitedTodayError: a revisit exists on the same local date.
        """
        pass

    @abstractmethod
    async def archive_item(self, user_id: str, item_id: str) -> Item:
        pass


@dataclass(frozen=True)
class SendResult:
    """Outcome of a notification attempt."""

    ok: bool
    message: str = ""


class NotificationSender(ABC):
    @abstractmethod
    async def send(self, address: str, items: list[Item]) -> SendResult:
        pass

    async def close(self) -> None:
        """Release any held connections. No-op by default."""
        return None
