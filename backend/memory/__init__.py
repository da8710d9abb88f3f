from .database import SQLiteProfileDB
from .history import HistoryPersister, build_history_item
from .profile_models import ChatHistoryItem, Identity, ProfileData, Reminder
from .profile_store import ProfileNotFound, ProfileStore

__all__ = [
    "SQLiteProfileDB",
    "ChatHistoryItem",
    "HistoryPersister",
    "Identity",
    "ProfileData",
    "ProfileNotFound",
    "ProfileStore",
    "Reminder",
    "build_history_item",
]
