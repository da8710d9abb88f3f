from .completion import CompletionClient, CompletionError
from .discovery import DiscoveryResult, Origin, Place, Provider, ProviderDiscovery
from .reminders import Notification, NotificationFeed, ReminderScheduler, next_occurrence

__all__ = [
    "CompletionClient",
    "CompletionError",
    "DiscoveryResult",
    "Notification",
    "NotificationFeed",
    "Origin",
    "Place",
    "Provider",
    "ProviderDiscovery",
    "ReminderScheduler",
    "next_occurrence",
]
