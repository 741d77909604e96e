"""
YAML Store: UserDirectory and ItemRepository backed by a single YAML file.

The document is re-read on every call and rewritten atomically on mutation:

    users:
      - id: alice
        email: alice@example.com
        problems_per_day: 3
        min_revisit_days: 2
        email_time: "05:00"
        last_email_sent_at: null
    items:
      - id: item_01H...
        user_id: alice
        title: Two Sum
        link: https://leetcode.com/problems/two-sum/
        added_at: "2026-01-01T09:00:00+00:00"
        last_revisited_at: "2026-01-03T08:10:00+00:00"
        times_revisited: 1
        status: active
        history:
          - revisited_at: "2026-01-03T08:10:00+00:00"
            notes: used a hash map
"""

import logging
import os
import tempfile
from datetime import datetime, tzinfo
from pathlib import Path
from typing import Any
from zoneinfo import ZoneInfo

import yaml

from reprise.domain.constants import DEFAULT_MIN_REVISIT_DAYS, DEFAULT_PROBLEMS_PER_DAY
from reprise.domain.errors import StoreUnavailableError
from reprise.domain.models import Item, Recipient, RevisitEntry, UserSchedulingProfile
from reprise.domain.ports import ItemRepository, UserDirectory
from reprise.infrastructure.adapters.memory_store import InMemoryStore, generate_item_id

logger = logging.getLogger(__name__)

MINUTES_PER_DAY = 24 * 60


def _parse_instant(value: Any, tz: tzinfo | None = None) -> datetime | None:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        try:
            dt = datetime.fromisoformat(str(value))
        except ValueError as e:
            raise StoreUnavailableError(f"Invalid timestamp in store: {value!r}") from e
    # Naive timestamps are read in the configured zone, or the host zone if none is set
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=tz) if tz is not None else dt.astimezone()
    return dt


def _format_instant(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse_email_time(value: Any, user_id: str) -> str | None:
    """
    Normalise a stored email_time to a string.

    YAML 1.1 reads an unquoted 18:00 as the base-60 integer 1080, so integers
    within a day are turned back into "HH:MM". Anything else is kept as text
    and rejected later by the time-of-day gate.
    """
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool) and 0 <= value < MINUTES_PER_DAY:
        hours, minutes = divmod(value, 60)
        logger.warning(
            f"User {user_id}: unquoted email_time read as {value}; using {hours:02d}:{minutes:02d}"
        )
        return f"{hours:02d}:{minutes:02d}"
    logger.warning(f"User {user_id}: email_time {value!r} is not a HH:MM string")
    return str(value)


class YamlStore(UserDirectory, ItemRepository):
    """
    File-backed store for single-host deployments and the CLI.

    Every operation loads the file into an InMemoryStore, delegates to it,
    and writes the result back when something changed.
    """

    def __init__(self, path: Path, timezone: str | None = None):
        self.path = Path(path)
        self._tz: tzinfo | None = ZoneInfo(timezone) if timezone else None

    # --- Serialization ---

    def _load(self) -> InMemoryStore:
        if not self.path.exists():
            return InMemoryStore()

        try:
            raw = yaml.safe_load(self.path.read_text(encoding="utf-8")) or {}
        except (OSError, yaml.YAMLError) as e:
            raise StoreUnavailableError(f"Cannot read {self.path}: {e}") from e

        if not isinstance(raw, dict):
            raise StoreUnavailableError(f"{self.path}: expected a mapping at the top level")

        store = InMemoryStore()
        for entry in raw.get("users") or []:
            user_id = str(entry["id"])
            store.put_user(
                Recipient(
                    id=user_id,
                    email=entry.get("email", ""),
                    profile=UserSchedulingProfile(
                        problems_per_day=int(entry.get("problems_per_day", DEFAULT_PROBLEMS_PER_DAY)),
                        min_revisit_days=int(entry.get("min_revisit_days", DEFAULT_MIN_REVISIT_DAYS)),
                        email_time=_parse_email_time(entry.get("email_time"), user_id),
                        last_email_sent_at=_parse_instant(entry.get("last_email_sent_at"), self._tz),
                    ),
                )
            )

        missing_ids = False
        for entry in raw.get("items") or []:
            user_id = str(entry["user_id"])
            item_id = entry.get("id")
            if not item_id:
                item_id = generate_item_id()
                missing_ids = True
            store.items.setdefault(user_id, []).append(
                Item(
                    id=str(item_id),
                    added_at=_parse_instant(entry["added_at"], self._tz),
                    title=entry.get("title", ""),
                    link=entry.get("link", ""),
                    last_revisited_at=_parse_instant(entry.get("last_revisited_at"), self._tz),
                    times_revisited=int(entry.get("times_revisited", 0)),
                    status=entry.get("status", "active"),
                    topic=entry.get("topic"),
                    difficulty=entry.get("difficulty"),
                    history=[
                        RevisitEntry(
                            revisited_at=_parse_instant(h["revisited_at"], self._tz),
                            notes=h.get("notes"),
                        )
                        for h in entry.get("history") or []
                    ],
                )
            )

        if missing_ids:
            logger.info(f"Assigned missing item IDs in {self.path}")
            self._save(store)

        return store

    def _save(self, store: InMemoryStore) -> None:
        doc = {
            "users": [
                {
                    "id": u.id,
                    "email": u.email,
                    "problems_per_day": u.profile.problems_per_day,
                    "min_revisit_days": u.profile.min_revisit_days,
                    "email_time": u.profile.email_time,
                    "last_email_sent_at": _format_instant(u.profile.last_email_sent_at),
                }
                for u in store.users.values()
            ],
            "items": [
                {
                    "id": item.id,
                    "user_id": user_id,
                    "title": item.title,
                    "link": item.link,
                    "added_at": _format_instant(item.added_at),
                    "last_revisited_at": _format_instant(item.last_revisited_at),
                    "times_revisited": item.times_revisited,
                    "status": item.status,
                    "topic": item.topic,
                    "difficulty": item.difficulty,
                    "history": [
                        {"revisited_at": _format_instant(h.revisited_at), "notes": h.notes}
                        for h in item.history
                    ],
                }
                for user_id, items in store.items.items()
                for item in items
            ],
        }

        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=self.path.parent, prefix=".reprise-", suffix=".yaml")
            with os.fdopen(fd, "w", encoding="utf-8") as f:
                yaml.safe_dump(doc, f, sort_keys=False, allow_unicode=True)
            os.replace(tmp, self.path)
        except OSError as e:
            raise StoreUnavailableError(f"Cannot write {self.path}: {e}") from e

    # --- UserDirectory ---

    async def add_user(self, user: Recipient) -> None:
        store = self._load()
        store.put_user(user)
        self._save(store)

    async def list_users(self) -> list[Recipient]:
        return await self._load().list_users()

    async def get_user(self, user_id: str) -> Recipient | None:
        return await self._load().get_user(user_id)

    async def update_last_sent_at(self, user_id: str, sent_at: datetime) -> None:
        store = self._load()
        await store.update_last_sent_at(user_id, sent_at)
        self._save(store)

    # --- ItemRepository ---

    async def list_active_items(self, user_id: str) -> list[Item]:
        return await self._load().list_active_items(user_id)

    async def list_items(self, user_id: str) -> list[Item]:
        return await self._load().list_items(user_id)

    async def get_item(self, user_id: str, item_id: str) -> Item:
        return await self._load().get_item(user_id, item_id)

    async def add_item(
        self,
        user_id: str,
        title: str,
        added_at: datetime,
        link: str = "",
        topic: str | None = None,
        difficulty: str | None = None,
    ) -> Item:
        store = self._load()
        item = await store.add_item(user_id, title, added_at, link=link, topic=topic, difficulty=difficulty)
        self._save(store)
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
        store = self._load()
        item = await store.update_item(
            user_id, item_id, title=title, link=link, topic=topic, difficulty=difficulty
        )
        self._save(store)
        return item

    async def delete_item(self, user_id: str, item_id: str) -> None:
        store = self._load()
        await store.delete_item(user_id, item_id)
        self._save(store)

    async def record_revisit(
        self, user_id: str, item_id: str, at: datetime, notes: str | None = None
    ) -> Item:
        store = self._load()
        item = await store.record_revisit(user_id, item_id, at, notes=notes)
        self._save(store)
        return item

    async def archive_item(self, user_id: str, item_id: str) -> Item:
        store = self._load()
        item = await store.archive_item(user_id, item_id)
        self._save(store)
        return item
