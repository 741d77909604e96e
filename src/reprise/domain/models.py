"""
Domain models for revisit scheduling.

These are pure data structures with no I/O or external dependencies.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Literal

from reprise.domain.constants import DEFAULT_MIN_REVISIT_DAYS, DEFAULT_PROBLEMS_PER_DAY

ItemStatus = Literal["active", "retired"]
Priority = Literal["high", "medium", "low"]

# Why a user did (or did not) receive a reminder during a sweep.
OutcomeStatus = Literal[
    "sent",
    "already_sent",
    "too_early",
    "no_eligible_items",
    "nothing_selected",
    "invalid_config",
    "send_failed",
    "error",
]

# What a sweep would do for a user right now (dry run).
GateVerdict = Literal[
    "would_send",
    "already_sent",
    "too_early",
    "no_eligible_items",
    "invalid_config",
]

# Result of an on-demand send for one user.
SendNowStatus = Literal["sent", "send_failed", "no_eligible_items"]


@dataclass
class RevisitEntry:
    """One recorded revisit, with optional free-form notes."""

    revisited_at: datetime
    notes: str | None = None


@dataclass
class Item:
    """
    A trackable unit under spaced-repetition scheduling.

    Attributes:
        id: Stable identifier.
        added_at: When the item was added (timezone-aware).
        last_revisited_at: Most recent revisit, None if never revisited.
        times_revisited: Number of recorded revisits.
        status: Only "active" items are scheduled.
        history: Recorded revisits, oldest first.
    """

    id: str
    added_at: datetime
    title: str = ""
    link: str = ""
    last_revisited_at: datetime | None = None
    times_revisited: int = 0
    status: ItemStatus = "active"
    topic: str | None = None
    difficulty: str | None = None
    history: list[RevisitEntry] = field(default_factory=list)


@dataclass(frozen=True)
class WeightResult:
    """
    Scheduling metadata for an item, computed fresh on every evaluation.

    Magnitudes are rounded for presentation (weight and decay to 2 decimals,
    day counts to 1 decimal).
    """

    item_id: str
    weight: float
    days_since_added: float
    days_since_last_revisit: float
    times_revisited: int
    revisit_decay: float
    is_eligible: bool
    priority: Priority


@dataclass
class UserSchedulingProfile:
    """
    Per-user scheduling preferences.

    Attributes:
        problems_per_day: How many items a reminder carries.
        min_revisit_days: Minimum gap before a revisited item is eligible again.
        email_time: Local "HH:MM" before which no reminder is sent; None sends
            as soon as a sweep reaches the user.
        last_email_sent_at: Instant of the last successful reminder.
    """

    problems_per_day: int = DEFAULT_PROBLEMS_PER_DAY
    min_revisit_days: int = DEFAULT_MIN_REVISIT_DAYS
    email_time: str | None = None
    last_email_sent_at: datetime | None = None


@dataclass
class Recipient:
    """A user as seen by the dispatcher: identity, address and profile."""

    id: str
    email: str
    profile: UserSchedulingProfile = field(default_factory=UserSchedulingProfile)


@dataclass
class UserOutcome:
    """Result of processing one user during a sweep."""

    user_id: str
    status: OutcomeStatus
    selected_ids: list[str] = field(default_factory=list)
    message: str | None = None


@dataclass
class SweepReport:
    """Summary of one dispatch sweep."""

    started_at: datetime
    force: bool
    outcomes: list[UserOutcome] = field(default_factory=list)
    aborted: bool = False
    error: str | None = None

    @property
    def sent_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status == "sent")

    @property
    def failed_count(self) -> int:
        return sum(1 for o in self.outcomes if o.status in ("send_failed", "error"))

    @property
    def skipped_count(self) -> int:
        return len(self.outcomes) - self.sent_count - self.failed_count


@dataclass
class ItemWeight:
    """An item paired with its computed weight metadata."""

    item: Item
    weight: WeightResult
    selected: bool = False


@dataclass
class DryRunReport:
    """Diagnostics for a single user: what a sweep would do right now."""

    user_id: str
    email: str
    verdict: GateVerdict
    problems_per_day: int
    min_revisit_days: int
    items: list[ItemWeight] = field(default_factory=list)
    eligible_ids: list[str] = field(default_factory=list)
    selected_ids: list[str] = field(default_factory=list)


@dataclass
class FocusEntry:
    item: Item
    weight: WeightResult
    revisited_today: bool


@dataclass
class FocusReport:
    """Today's day-stable selection for a user."""

    user_id: str
    seed: int
    entries: list[FocusEntry] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.entries)

    @property
    def completed(self) -> int:
        return sum(1 for e in self.entries if e.revisited_today)

    @property
    def remaining(self) -> int:
        return self.total - self.completed


@dataclass
class ItemDetail:
    """A single item with its current weight and revisit history."""

    item: Item
    weight: WeightResult
    revisited_today: bool


@dataclass
class SendNowReport:
    """Result of an immediate, gate-free send for one user."""

    user_id: str
    email: str
    status: SendNowStatus
    problems_per_day: int
    min_revisit_days: int
    items: list[ItemWeight] = field(default_factory=list)
    eligible_ids: list[str] = field(default_factory=list)
    selected_ids: list[str] = field(default_factory=list)
    message: str | None = None
