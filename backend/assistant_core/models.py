from __future__ import annotations

import threading
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, ClassVar

from assistant_tools.discovery import Provider
from memory.profile_models import Identity, ProfileData
from memory.time_utils import parse_iso, to_iso, utc_now


class Sender(str, Enum):
    USER = "user"
    BOT = "bot"


class MessageType(str, Enum):
    TEXT = "text"
    OPTIONS = "options"
    SYMPTOM_CHECKER = "symptom-checker"
    APPOINTMENT = "appointment"
    REMINDER = "reminder"
    HEALTH_TIP = "health-tip"
    NEARBY_DOCTORS = "nearby-doctors"


class Mode(str, Enum):
    IDLE = "idle"
    SYMPTOM_CHECKER = "symptom-checker"
    APPOINTMENT = "appointment"
    REMINDER = "reminder"
    HEALTH_TIPS = "health-tips"
    NEARBY_PROVIDER = "nearby-provider"
    HISTORY_PANEL = "history-panel"


FORM_MODES = frozenset(
    {Mode.SYMPTOM_CHECKER, Mode.APPOINTMENT, Mode.REMINDER, Mode.HEALTH_TIPS, Mode.NEARBY_PROVIDER}
)

_clock_lock = threading.Lock()
_last_stamp: datetime | None = None


def _stamp() -> datetime:
    global _last_stamp
    with _clock_lock:
        now = utc_now()
        if _last_stamp is not None and now < _last_stamp:
            now = _last_stamp
        _last_stamp = now
        return now


def _new_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class Message:
    content: str
    sender: Sender = Sender.BOT
    id: str = field(default_factory=_new_id)
    timestamp: datetime = field(default_factory=_stamp)

    type: ClassVar[MessageType]


@dataclass(frozen=True)
class TextMessage(Message):
    type: ClassVar[MessageType] = MessageType.TEXT


@dataclass(frozen=True)
class OptionsMessage(Message):
    options: tuple[str, ...] = ()

    type: ClassVar[MessageType] = MessageType.OPTIONS


@dataclass(frozen=True)
class SymptomCheckerMessage(Message):
    options: tuple[str, ...] = ()

    type: ClassVar[MessageType] = MessageType.SYMPTOM_CHECKER


@dataclass(frozen=True)
class AppointmentMessage(Message):
    type: ClassVar[MessageType] = MessageType.APPOINTMENT


@dataclass(frozen=True)
class ReminderMessage(Message):
    type: ClassVar[MessageType] = MessageType.REMINDER


@dataclass(frozen=True)
class HealthTipMessage(Message):
    type: ClassVar[MessageType] = MessageType.HEALTH_TIP


@dataclass(frozen=True)
class NearbyDoctorsMessage(Message):
    type: ClassVar[MessageType] = MessageType.NEARBY_DOCTORS


_VARIANTS: dict[MessageType, type[Message]] = {
    MessageType.TEXT: TextMessage,
    MessageType.OPTIONS: OptionsMessage,
    MessageType.SYMPTOM_CHECKER: SymptomCheckerMessage,
    MessageType.APPOINTMENT: AppointmentMessage,
    MessageType.REMINDER: ReminderMessage,
    MessageType.HEALTH_TIP: HealthTipMessage,
    MessageType.NEARBY_DOCTORS: NearbyDoctorsMessage,
}


def user_text(content: str) -> TextMessage:
    return TextMessage(content=content, sender=Sender.USER)


def bot_text(content: str) -> TextMessage:
    return TextMessage(content=content, sender=Sender.BOT)


def message_options(message: Message) -> tuple[str, ...]:
    return tuple(getattr(message, "options", ()))


def message_to_dict(message: Message) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "id": message.id,
        "content": message.content,
        "sender": message.sender.value,
        "timestamp": to_iso(message.timestamp),
        "type": message.type.value,
    }
    if hasattr(message, "options"):
        payload["options"] = list(message_options(message))
    return payload


def message_from_dict(payload: dict[str, Any]) -> Message:
    # MessageType raises ValueError for an unknown type.
    variant = _VARIANTS[MessageType(payload.get("type", "text"))]
    kwargs: dict[str, Any] = {
        "content": str(payload.get("content") or ""),
        "sender": Sender(payload.get("sender", "bot")),
        "id": str(payload.get("id") or _new_id()),
        "timestamp": parse_iso(payload.get("timestamp")) or _stamp(),
    }
    if variant in (OptionsMessage, SymptomCheckerMessage):
        kwargs["options"] = tuple(str(option) for option in payload.get("options") or ())
    return variant(**kwargs)


@dataclass(frozen=True)
class Direct:
    message: Message


@dataclass(frozen=True)
class ModeTransition:
    mode: Mode
    message: Message | None = None


@dataclass(frozen=True)
class Delegate:
    prompt: str


ClassificationResult = Direct | ModeTransition | Delegate


@dataclass
class SessionContext:
    """Per-login state threaded through the chat core; discarded on logout."""

    identity: Identity | None = None
    session_key: str | None = None
    profile: ProfileData | None = None
    selected_provider: Provider | None = None

    @property
    def authenticated(self) -> bool:
        return self.identity is not None

    @property
    def display_name(self) -> str:
        if self.profile and self.profile.basic_info.full_name:
            return self.profile.basic_info.full_name
        return self.identity.name if self.identity else ""
