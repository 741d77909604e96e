"""
Service Factory
Centralizes the logic for selecting adapters and wiring the application services.
"""

import logging
from dataclasses import dataclass

from reprise.application.config import AppConfig
from reprise.application.dispatch import DispatchOrchestrator
from reprise.application.focus_service import FocusService
from reprise.application.item_service import ItemService
from reprise.application.ticker import DispatchTicker
from reprise.domain.ports import Clock, NotificationSender
from reprise.infrastructure.adapters.memory_store import InMemoryStore
from reprise.infrastructure.adapters.notifications import (
    LogNotificationSender,
    ResendNotificationSender,
)
from reprise.infrastructure.adapters.yaml_store import YamlStore
from reprise.infrastructure.clock import SystemClock

logger = logging.getLogger(__name__)


@dataclass
class Services:
    """Application services sharing one store, sender and clock."""

    store: InMemoryStore | YamlStore
    sender: NotificationSender
    clock: Clock
    orchestrator: DispatchOrchestrator
    focus: FocusService
    items: ItemService
    ticker: DispatchTicker


def get_store(config: AppConfig) -> InMemoryStore | YamlStore:
    if config.store == "memory":
        return InMemoryStore()
    return YamlStore(config.data_file, timezone=config.timezone)


def get_notification_sender(config: AppConfig) -> NotificationSender:
    """
    Returns the Resend sender when an API key is configured, otherwise the
    log-only simulation sender.
    """
    if config.resend_api_key:
        return ResendNotificationSender(
            api_key=config.resend_api_key,
            from_address=config.email_from,
            url=config.resend_url,
            timeout=config.dispatch_timeout,
        )
    logger.info("No Resend API key configured; reminders will be logged, not sent")
    return LogNotificationSender(from_address=config.email_from)


def build_services(config: AppConfig) -> Services:
    store = get_store(config)
    sender = get_notification_sender(config)
    clock = SystemClock(config.timezone)

    orchestrator = DispatchOrchestrator(
        users=store,
        items=store,
        sender=sender,
        clock=clock,
        dispatch_timeout=config.dispatch_timeout,
    )
    return Services(
        store=store,
        sender=sender,
        clock=clock,
        orchestrator=orchestrator,
        focus=FocusService(store, store, clock),
        items=ItemService(store, store, clock),
        ticker=DispatchTicker(orchestrator, interval_seconds=config.tick_seconds),
    )
