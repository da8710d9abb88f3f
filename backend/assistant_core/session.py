from __future__ import annotations

import asyncio
import logging
import os
import random
from typing import Any, Awaitable, Callable

from assistant_tools.discovery import Provider
from assistant_tools.forms import (
    APPOINTMENT_FAILED_TEXT,
    REMINDER_SAVE_FAILED_TEXT,
    AppointmentForm,
    ReminderForm,
    SymptomCheckerForm,
    compose_symptom_analysis,
    format_appointment_confirmation,
    format_form_in_progress,
    format_reminder_confirmation,
)
from assistant_tools.health_data import GREETING_TEXT, MAIN_MENU_OPTIONS
from assistant_tools.reminders import ReminderScheduler
from memory.history import HistoryPersister
from memory.profile_models import AppointmentRecord, ChatHistoryItem, Identity, ProfileData, Reminder
from memory.profile_store import ProfileNotFound, ProfileStore

from .classifier import IntentClassifier
from .hooks import LogChange
from .message_log import MessageLog
from .models import (
    Delegate,
    Direct,
    Message,
    Mode,
    ModeTransition,
    OptionsMessage,
    Sender,
    SessionContext,
    bot_text,
    message_from_dict,
    message_to_dict,
    user_text,
)
from .modes import ModeController

logger = logging.getLogger(__name__)

TypingDelay = Callable[[], Awaitable[None]]

CONTEXT_TURNS = 6


class HistoryItemNotFound(Exception):
    pass


def random_typing_delay(min_ms: float | None = None, max_ms: float | None = None) -> TypingDelay:
    low = float(os.getenv("ASSISTANT_TYPING_DELAY_MS_MIN", "500")) if min_ms is None else min_ms
    high = float(os.getenv("ASSISTANT_TYPING_DELAY_MS_MAX", "1500")) if max_ms is None else max_ms
    low, high = max(0.0, min(low, high)), max(0.0, max(low, high))

    async def _delay() -> None:
        await asyncio.sleep(random.uniform(low, high) / 1000.0)

    return _delay


async def no_typing_delay() -> None:
    return None


def greeting_message(name: str | None = None) -> OptionsMessage:
    if name:
        content = f"Welcome back, {name}! How can I help you with your healthcare needs today?"
    else:
        content = GREETING_TEXT
    return OptionsMessage(content=content, options=MAIN_MENU_OPTIONS)


class ChatSession:
    """Routes one user's chat turns and form completions through the core."""

    def __init__(
        self,
        *,
        store: ProfileStore,
        classifier: IntentClassifier,
        scheduler: ReminderScheduler | None = None,
        typing_delay: TypingDelay | None = None,
        history_delay_seconds: float | None = None,
    ) -> None:
        self.store = store
        self.classifier = classifier
        self.scheduler = scheduler
        self.context = SessionContext()
        self.modes = ModeController()
        self.log = MessageLog([greeting_message()])
        self.persister = HistoryPersister(
            store,
            lambda: self.context.identity,
            delay_seconds=history_delay_seconds,
        )
        self.log.hooks.add_after(self._on_log_change)
        self.is_typing = False
        self._typing_delay = typing_delay or random_typing_delay()
        self._reply_lock = asyncio.Lock()

    def _on_log_change(self, change: LogChange) -> None:
        if not self.context.authenticated:
            return
        self.persister.notify([message_to_dict(message) for message in change.snapshot])

    async def _typing(self) -> None:
        self.is_typing = True
        try:
            await self._typing_delay()
        finally:
            self.is_typing = False

    def _append(self, message: Message) -> Message:
        self.log.append(message)
        return message

    def _conversation_context(self) -> str:
        lines = []
        for message in self.log.snapshot()[-CONTEXT_TURNS:]:
            speaker = "User" if message.sender == Sender.USER else "Assistant"
            lines.append(f"{speaker}: {message.content}")
        return "\n".join(lines)

    def _apply(self, result: Direct | ModeTransition) -> list[Message]:
        if isinstance(result, Direct):
            return [self._append(result.message)]
        if not self.modes.request(result.mode):
            logger.warning("ignoring %s transition while %s is active", result.mode.value, self.modes.active.value)
            # The offer would name a form that cannot open.
            return [self._append(bot_text(format_form_in_progress(self.modes.active.value)))]
        if result.message is None:
            return []
        return [self._append(result.message)]

    def _load_profile(self) -> ProfileData:
        identity = self.context.identity
        if identity is None:
            return ProfileData()
        try:
            profile = self.store.load_profile(identity)
        except ProfileNotFound:
            profile = self.context.profile or ProfileData.default_for(identity)
        self.context.profile = profile
        return profile

    async def start(self, identity: Identity, session_key: str | None = None) -> Message:
        self.context = SessionContext(identity=identity, session_key=session_key)
        self.modes.reset()
        try:
            profile = self.store.load_profile(identity)
        except ProfileNotFound:
            profile = ProfileData.default_for(identity)
            try:
                self.store.save_profile(profile, identity)
            except Exception:
                logger.exception("failed to create default profile for %s", identity.user_id)
        self.context.profile = profile

        await self._typing()
        welcome = greeting_message(self.context.display_name or None)
        self.log.replace_all([welcome])
        if self.scheduler is not None:
            self.scheduler.schedule_all(identity, profile.active_reminders())
        return welcome

    async def end(self) -> None:
        await self.persister.flush()
        self.persister.cancel()
        if self.scheduler is not None and self.context.identity is not None:
            self.scheduler.cancel_user(self.context.identity.user_id)
        self.context = SessionContext()
        self.modes.reset()
        self.log.replace_all([greeting_message()])

    async def send_message(self, text: str) -> list[Message]:
        content = (text or "").strip()
        if not content:
            return []
        self._append(user_text(content))
        async with self._reply_lock:
            await self._typing()
            result = self.classifier.classify(content)
            resolved = await self.classifier.resolve(result, context=self._conversation_context())
            return self._apply(resolved)

    async def select_option(self, option: str) -> list[Message]:
        self._append(user_text(option))
        async with self._reply_lock:
            await self._typing()
            result = self.classifier.classify_option(option)
            resolved = await self.classifier.resolve(result, context=self._conversation_context())
            return self._apply(resolved)

    async def complete_symptom_checker(self, form: SymptomCheckerForm) -> list[Message]:
        self.modes.finish(Mode.SYMPTOM_CHECKER)
        description = form.describe()
        self._append(user_text(description))
        async with self._reply_lock:
            await self._typing()
            result = self.classifier.classify(description)
            if isinstance(result, ModeTransition) and result.mode == Mode.SYMPTOM_CHECKER:
                # The form just closed; ask for an analysis instead of reopening it.
                result = Delegate(description)
            resolved = await self.classifier.resolve(
                result,
                context=self._conversation_context(),
                fallback=compose_symptom_analysis(form.labels()),
            )
            return self._apply(resolved)

    async def complete_appointment(self, form: AppointmentForm) -> Message:
        self.modes.finish(Mode.APPOINTMENT)
        provider = self.context.selected_provider
        self.context.selected_provider = None
        booked = form.resolve(
            provider.name if provider else None,
            provider.specialty if provider else None,
        )
        if booked is None:
            content = APPOINTMENT_FAILED_TEXT
        else:
            content = format_appointment_confirmation(booked)
            self._record_appointment(AppointmentRecord(doctor=booked.doctor, date=booked.date, purpose=booked.purpose))
        await self._typing()
        return self._append(bot_text(content))

    def _record_appointment(self, record: AppointmentRecord) -> None:
        identity = self.context.identity
        if identity is None:
            return
        profile = self._load_profile()
        profile.health_records.appointment_history.append(record)
        try:
            self.store.save_section(identity, "health_records", profile.health_records)
        except Exception:
            logger.exception("failed to record appointment for %s", identity.user_id)

    async def complete_reminder(self, form: ReminderForm) -> Message:
        self.modes.finish(Mode.REMINDER)
        reminder = form.to_reminder()
        saved = self._persist_reminder(reminder)
        await self._typing()
        if not saved:
            return self._append(bot_text(REMINDER_SAVE_FAILED_TEXT))
        if self.scheduler is not None and self.context.identity is not None:
            self.scheduler.schedule(self.context.identity, reminder)
        return self._append(bot_text(format_reminder_confirmation(reminder)))

    def _persist_reminder(self, reminder: Reminder) -> bool:
        identity = self.context.identity
        if identity is None:
            logger.warning("reminder not saved: no authenticated session")
            return False
        profile = self._load_profile()
        profile.medical_info.reminders.append(reminder)
        try:
            self.store.save_section(identity, "medical_info", profile.medical_info)
        except Exception:
            logger.exception("failed to save reminder for %s", identity.user_id)
            profile.medical_info.reminders.remove(reminder)
            return False
        return True

    async def select_health_tip(self, content: str) -> Message:
        self.modes.finish(Mode.HEALTH_TIPS)
        await self._typing()
        return self._append(bot_text(content))

    async def select_provider(self, provider: Provider) -> Message:
        self.modes.finish(Mode.NEARBY_PROVIDER)
        self.context.selected_provider = provider
        self.modes.request(Mode.APPOINTMENT)
        await self._typing()
        return self._append(
            bot_text(f"You selected {provider.name}, {provider.specialty}. Please schedule your appointment below.")
        )

    def cancel(self, mode: Mode) -> None:
        self.modes.finish(mode)
        if mode == Mode.APPOINTMENT:
            self.context.selected_provider = None

    def history_items(self) -> list[ChatHistoryItem]:
        if self.context.identity is None:
            return []
        return list(self._load_profile().ai_personalization.chat_history)

    def open_history_panel(self) -> list[ChatHistoryItem]:
        self.modes.request(Mode.HISTORY_PANEL)
        return self.history_items()

    def close_history_panel(self) -> None:
        self.modes.finish(Mode.HISTORY_PANEL)

    async def load_history_item(self, item_id: str) -> Message:
        item = next((entry for entry in self.history_items() if entry.id == item_id), None)
        if item is None:
            raise HistoryItemNotFound(item_id)
        self.log.replace_all([message_from_dict(payload) for payload in item.messages])
        if self.modes.history_panel_open:
            self.modes.finish(Mode.HISTORY_PANEL)
        return self._append(
            bot_text(
                f'I\'ve loaded your previous conversation about "{item.topic}". '
                "You can continue from where you left off."
            )
        )

    async def suggest_reply(self) -> str:
        last_bot = self.log.last(Sender.BOT)
        if last_bot is None or self.classifier.completion is None:
            return ""
        try:
            return await self.classifier.completion.suggest_reply(last_bot.content)
        except Exception as exc:
            logger.warning("reply suggestion failed: %s", exc)
            return ""

    def state(self) -> dict[str, Any]:
        provider = self.context.selected_provider
        return {
            "messages": [message_to_dict(message) for message in self.log.snapshot()],
            "modes": self.modes.as_dict(),
            "is_typing": self.is_typing,
            "selected_provider": provider.as_dict() if provider else None,
        }
