"""
Daily dispatch orchestrator.

Sweeps every user and, for each one:
1. Skips if a reminder already went out today (unless forced)
2. Skips if the local time is earlier than the user's email_time (even when forced)
3. Filters the user's active items for eligibility
4. Samples problems_per_day items with a fresh seed
5. Hands them to the notification sender and records the send on success

A failure for one user never aborts the sweep; it is logged and the user
stays eligible for the next sweep.
"""

import asyncio
import logging
from collections.abc import Callable
from datetime import datetime

from reprise.application.sampler import fresh_seed, select_weighted
from reprise.application.weight_model import compute_weight_detail, filter_eligible
from reprise.domain.calendar import is_before_time_of_day, same_local_date
from reprise.domain.constants import DEFAULT_DISPATCH_TIMEOUT
from reprise.domain.errors import InvalidEmailTimeError, UserNotFoundError
from reprise.domain.models import (
    DryRunReport,
    Item,
    ItemWeight,
    OutcomeStatus,
    Recipient,
    SendNowReport,
    SendNowStatus,
    SweepReport,
    UserOutcome,
)
from reprise.domain.ports import (
    Clock,
    ItemRepository,
    NotificationSender,
    SendResult,
    UserDirectory,
)

logger = logging.getLogger(__name__)


class DispatchOrchestrator:
    """
    Runs dispatch sweeps over all users.

    Only one sweep may be in flight at a time. A request that arrives while a
    sweep is running is dropped, whichever trigger (timer, admin, CLI) sent it.
    """

    def __init__(
        self,
        users: UserDirectory,
        items: ItemRepository,
        sender: NotificationSender,
        clock: Clock,
        dispatch_timeout: float = DEFAULT_DISPATCH_TIMEOUT,
        seed_factory: Callable[[], int] = fresh_seed,
    ):
        """
        Args:
            users: Directory of recipients and their scheduling profiles.
            items: Repository of the users' items.
            sender: Notification collaborator.
            clock: Source of the current local instant.
            dispatch_timeout: Seconds a single send may take before it counts as failed.
            seed_factory: Seed source for dispatch selections.
        """
        self._users = users
        self._items = items
        self._sender = sender
        self._clock = clock
        self._timeout = dispatch_timeout
        self._seed_factory = seed_factory
        self._lock = asyncio.Lock()

    @property
    def is_running(self) -> bool:
        return self._lock.locked()

    async def run_sweep(self, force: bool = False) -> SweepReport | None:
        """
        Run one sweep over all users.

        Args:
            force: Bypass the already-sent-today check. The time-of-day gate
                still applies.

        Returns:
            The sweep report, or None if another sweep was already running.
        """
        if self._lock.locked():
            logger.warning(f"Dispatch sweep already in progress; dropping request (force={force})")
            return None

        async with self._lock:
            return await self._sweep(force)

    async def _sweep(self, force: bool) -> SweepReport:
        report = SweepReport(started_at=self._clock.now(), force=force)
        logger.info(f"Running dispatch sweep (force={force})...")

        try:
            users = await self._users.list_users()
        except Exception as e:
            logger.error(f"Dispatch sweep aborted: cannot enumerate users: {e}", exc_info=True)
            report.aborted = True
            report.error = str(e)
            return report

        for user in users:
            try:
                outcome = await self._process_user(user, force)
            except Exception as e:
                logger.error(f"Dispatch failed for user {user.id}: {e}", exc_info=True)
                outcome = UserOutcome(user_id=user.id, status="error", message=str(e))
            report.outcomes.append(outcome)

        logger.info(
            f"Dispatch sweep finished: {len(report.outcomes)} users, "
            f"{report.sent_count} sent, {report.failed_count} failed, "
            f"{report.skipped_count} skipped"
        )
        return report

    def _check_gates(self, user: Recipient, now: datetime, force: bool) -> OutcomeStatus | None:
        """Return the skip status for a user, or None if the user may proceed."""
        profile = user.profile

        if not force and same_local_date(profile.last_email_sent_at, now):
            return "already_sent"

        if profile.problems_per_day <= 0:
            logger.warning(
                f"Skipping user {user.id}: problems_per_day must be positive, "
                f"got {profile.problems_per_day}"
            )
            return "invalid_config"

        try:
            if is_before_time_of_day(now, profile.email_time):
                return "too_early"
        except InvalidEmailTimeError as e:
            logger.warning(f"Skipping user {user.id}: {e}")
            return "invalid_config"

        return None

    async def _process_user(self, user: Recipient, force: bool) -> UserOutcome:
        now = self._clock.now()
        profile = user.profile

        gate = self._check_gates(user, now, force)
        if gate is not None:
            logger.debug(f"Skipping user {user.id}: {gate}")
            return UserOutcome(user_id=user.id, status=gate)

        items = await self._items.list_active_items(user.id)
        eligible = filter_eligible(items, now, profile.min_revisit_days)
        if not eligible:
            logger.info(f"No eligible items for user {user.id}")
            return UserOutcome(user_id=user.id, status="no_eligible_items")

        selected = select_weighted(eligible, profile.problems_per_day, self._seed_factory(), now)
        if not selected:
            return UserOutcome(user_id=user.id, status="nothing_selected")

        selected_ids = [item.id for item in selected]
        result = await self._send(user.email, selected)
        if not result.ok:
            logger.error(f"Error sending reminder to {user.email}: {result.message}")
            return UserOutcome(
                user_id=user.id,
                status="send_failed",
                selected_ids=selected_ids,
                message=result.message,
            )

        await self._users.update_last_sent_at(user.id, now)
        logger.info(f"Sent {len(selected)} item(s) to {user.email}")
        return UserOutcome(user_id=user.id, status="sent", selected_ids=selected_ids)

    async def _send(self, address: str, items: list[Item]) -> SendResult:
        try:
            return await asyncio.wait_for(self._sender.send(address, items), timeout=self._timeout)
        except asyncio.TimeoutError:
            return SendResult(ok=False, message=f"send timed out after {self._timeout}s")
        except Exception as e:
            return SendResult(ok=False, message=f"{type(e).__name__}: {e}")

    async def _require_user(self, user_id: str) -> Recipient:
        user = await self._users.get_user(user_id)
        if user is None:
            raise UserNotFoundError(user_id)
        return user

    async def _weigh(
        self, user: Recipient, now: datetime
    ) -> tuple[list[ItemWeight], list[Item], list[Item]]:
        """Weigh every active item and draw a selection with a fresh seed."""
        profile = user.profile
        items = await self._items.list_active_items(user.id)

        eligible = filter_eligible(items, now, profile.min_revisit_days)
        selected = (
            select_weighted(eligible, profile.problems_per_day, self._seed_factory(), now)
            if profile.problems_per_day > 0
            else []
        )
        selected_ids = {item.id for item in selected}
        weighted = [
            ItemWeight(
                item=item,
                weight=compute_weight_detail(item, now, profile.min_revisit_days),
                selected=item.id in selected_ids,
            )
            for item in items
        ]
        return weighted, eligible, selected

    async def dry_run(self, user_id: str, force: bool = False) -> DryRunReport:
        """
        Report what a sweep would do for one user right now, without sending.

        Raises:
            UserNotFoundError: unknown user.
        """
        user = await self._require_user(user_id)
        now = self._clock.now()
        weighted, eligible, selected = await self._weigh(user, now)

        verdict = self._check_gates(user, now, force)
        if verdict is None:
            verdict = "would_send" if eligible else "no_eligible_items"

        return DryRunReport(
            user_id=user.id,
            email=user.email,
            verdict=verdict,
            problems_per_day=user.profile.problems_per_day,
            min_revisit_days=user.profile.min_revisit_days,
            items=weighted,
            eligible_ids=[item.id for item in eligible],
            selected_ids=[item.id for item in selected],
        )

    async def send_now(self, user_id: str) -> SendNowReport:
        """
        Select and send a reminder to one user immediately.

        Skips the already-sent and time-of-day gates and does not record the
        send, so the scheduled reminder still goes out as usual. Intended for
        checking delivery settings.

        Raises:
            UserNotFoundError: unknown user.
        """
        user = await self._require_user(user_id)
        now = self._clock.now()
        weighted, eligible, selected = await self._weigh(user, now)

        status: SendNowStatus = "no_eligible_items"
        message = None
        if selected:
            result = await self._send(user.email, selected)
            status = "sent" if result.ok else "send_failed"
            message = result.message
            if result.ok:
                logger.info(f"Sent on-demand reminder with {len(selected)} item(s) to {user.email}")
            else:
                logger.error(f"Error sending on-demand reminder to {user.email}: {result.message}")

        return SendNowReport(
            user_id=user.id,
            email=user.email,
            status=status,
            problems_per_day=user.profile.problems_per_day,
            min_revisit_days=user.profile.min_revisit_days,
            items=weighted,
            eligible_ids=[item.id for item in eligible],
            selected_ids=[item.id for item in selected],
            message=message,
        )
