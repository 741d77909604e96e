# Infrastructure Adapters Package
from .memory_store import InMemoryStore
from .notifications import LogNotificationSender, ResendNotificationSender
from .yaml_store import YamlStore

__all__ = ["InMemoryStore", "YamlStore", "LogNotificationSender", "ResendNotificationSender"]
