from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Callable

from memory.profile_models import Identity, Reminder
from memory.profile_store import ProfileNotFound, ProfileStore
from memory.time_utils import date_key, local_now, to_iso

logger = logging.getLogger(__name__)

NotifyCallback = Callable[[Identity, Reminder], None]


def next_occurrence(time_text: str, now: datetime) -> datetime:
    """Next wall-clock occurrence of HH:MM: today if still ahead, else tomorrow."""
    hours, minutes = (int(part) for part in time_text.split(":", 1))
    candidate = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
    if candidate <= now:
        candidate += timedelta(days=1)
    return candidate


@dataclass
class Notification:
    user_id: str
    title: str
    body: str
    reminder_id: str
    created_at: str


@dataclass
class NotificationFeed:
    """Per-user queue of raised notifications, drained by the client."""

    max_items: int = 50
    _items: dict[str, deque[Notification]] = field(default_factory=dict)

    def push(self, identity: Identity, reminder: Reminder) -> Notification:
        dosage = f" ({reminder.dosage})" if reminder.dosage else ""
        notification = Notification(
            user_id=identity.user_id,
            title="Medication Reminder",
            body=f"Time to take {reminder.medication_name}{dosage}.",
            reminder_id=reminder.id,
            created_at=to_iso(local_now()),
        )
        self._items.setdefault(identity.user_id, deque(maxlen=self.max_items)).append(notification)
        return notification

    def drain(self, user_id: str) -> list[Notification]:
        queue = self._items.pop(user_id, None)
        return list(queue) if queue else []


class ReminderScheduler:
    def __init__(
        self,
        store: ProfileStore,
        notify: NotifyCallback,
        *,
        clock: Callable[[], datetime] = local_now,
    ) -> None:
        self._store = store
        self._notify = notify
        self._clock = clock
        self._handles: dict[tuple[str, str], asyncio.TimerHandle] = {}

    @property
    def pending_count(self) -> int:
        return len(self._handles)

    def is_scheduled(self, user_id: str, reminder_id: str) -> bool:
        return (user_id, reminder_id) in self._handles

    def schedule(self, identity: Identity, reminder: Reminder) -> float | None:
        """Arm a one-shot notification; returns the delay in seconds, or None when skipped."""
        if not reminder.active:
            return None
        now = self._clock()
        if reminder.last_notified == date_key(now):
            logger.debug("reminder %s already notified today", reminder.id)
            return None

        key = (identity.user_id, reminder.id)
        existing = self._handles.pop(key, None)
        if existing is not None:
            existing.cancel()

        delay = max(0.0, (next_occurrence(reminder.time, now) - now).total_seconds())
        self._handles[key] = asyncio.get_running_loop().call_later(delay, self._fire, identity, reminder.id)
        logger.info("reminder %s for %s armed in %.0fs", reminder.id, identity.user_id, delay)
        return delay

    def schedule_all(self, identity: Identity, reminders: list[Reminder]) -> int:
        armed = 0
        for reminder in reminders:
            if self.schedule(identity, reminder) is not None:
                armed += 1
        return armed

    def cancel_user(self, user_id: str) -> None:
        for key in [key for key in self._handles if key[0] == user_id]:
            self._handles.pop(key).cancel()

    def cancel_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

    def _fire(self, identity: Identity, reminder_id: str) -> None:
        self._handles.pop((identity.user_id, reminder_id), None)
        today = date_key(self._clock())
        try:
            profile = self._store.load_profile(identity)
        except ProfileNotFound:
            logger.warning("reminder %s fired but profile for %s is gone", reminder_id, identity.user_id)
            return

        reminders = profile.medical_info.reminders
        target = next((item for item in reminders if item.id == reminder_id), None)
        if target is None or not target.active or target.last_notified == today:
            return

        self._notify(identity, target)
        target.last_notified = today
        try:
            self._store.save_section(identity, "medical_info", profile.medical_info)
        except Exception:
            logger.exception("failed to stamp reminder %s for %s", reminder_id, identity.user_id)
