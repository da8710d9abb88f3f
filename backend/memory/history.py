from __future__ import annotations

import asyncio
import logging
import os
from datetime import datetime
from typing import Any, Callable, Sequence

from .profile_models import CHAT_HISTORY_CAP, ChatHistoryItem, Identity, ProfileData
from .profile_store import ProfileNotFound, ProfileStore
from .time_utils import to_iso, utc_now

logger = logging.getLogger(__name__)

IdentityProvider = Callable[[], Identity | None]

MIN_LOG_LENGTH = 3
MIN_USER_TEXT_CHARS = 11
RECENT_USER_TURNS = 5
RECENT_BOT_TURNS = 3
SNAPSHOT_SIZE = 10


def build_history_item(messages: Sequence[dict[str, Any]], now: datetime | None = None) -> ChatHistoryItem | None:
    """Summarise the tail of a conversation, or None when it is too trivial to keep."""
    user_turns = [m["content"] for m in messages if m.get("sender") == "user"][-RECENT_USER_TURNS:]
    bot_turns = [
        m["content"] for m in messages if m.get("sender") == "bot" and m.get("type") == "text"
    ][-RECENT_BOT_TURNS:]
    user_text = " ".join(user_turns)
    if len(user_text) < MIN_USER_TEXT_CHARS:
        return None

    topic = " ".join(user_text.split()[:5]) + "..."
    bot_text = " ".join(bot_turns) if bot_turns else "general guidance"
    summary = f"User asked about: {user_text}. Assistant responded with: {bot_text}"
    return ChatHistoryItem(
        topic=topic,
        date=to_iso(now or utc_now()),
        summary=summary,
        messages=[dict(m) for m in messages[-SNAPSHOT_SIZE:]],
    )


class HistoryPersister:
    """Debounced writer of chat summaries into the profile's chat history."""

    def __init__(
        self,
        store: ProfileStore,
        identity_provider: IdentityProvider,
        *,
        delay_seconds: float | None = None,
    ) -> None:
        self._store = store
        self._identity_provider = identity_provider
        if delay_seconds is None:
            delay_seconds = float(os.getenv("ASSISTANT_HISTORY_DEBOUNCE_SECONDS", "5.0"))
        self.delay_seconds = max(0.0, delay_seconds)
        self._pending: asyncio.Task | None = None
        self._latest: list[dict[str, Any]] = []
        self._last_saved_marker: str | None = None

    @property
    def pending(self) -> bool:
        return self._pending is not None and not self._pending.done()

    def notify(self, messages: Sequence[dict[str, Any]]) -> None:
        self._latest = list(messages)
        self.cancel()
        self._pending = asyncio.get_running_loop().create_task(self._fire_after_delay())

    def cancel(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None

    async def flush(self) -> ChatHistoryItem | None:
        had_pending = self.pending
        self.cancel()
        if not had_pending:
            return None
        return self.persist(self._latest)

    async def _fire_after_delay(self) -> None:
        await asyncio.sleep(self.delay_seconds)
        self._pending = None
        self.persist(self._latest)

    def persist(self, messages: Sequence[dict[str, Any]]) -> ChatHistoryItem | None:
        identity = self._identity_provider()
        if identity is None:
            logger.debug("history persist skipped: no authenticated session")
            return None
        if len(messages) < MIN_LOG_LENGTH:
            return None
        marker = str(messages[-1].get("id"))
        if marker == self._last_saved_marker:
            return None
        item = build_history_item(messages)
        if item is None:
            logger.debug("history persist skipped: conversation too short for %s", identity.user_id)
            return None

        try:
            try:
                profile = self._store.load_profile(identity)
            except ProfileNotFound:
                profile = ProfileData.default_for(identity)
            personalization = profile.ai_personalization.model_copy(
                update={"chat_history": [item, *profile.ai_personalization.chat_history][:CHAT_HISTORY_CAP]}
            )
            self._store.save_section(identity, "ai_personalization", personalization)
        except Exception:
            logger.exception("failed to save chat history for %s", identity.user_id)
            return None

        self._last_saved_marker = marker
        logger.info("saved chat history item %s for %s", item.id, identity.user_id)
        return item
