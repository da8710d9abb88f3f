from .classifier import INTENT_RULES, IntentClassifier
from .hooks import LogChange, LogHookRunner
from .message_log import MessageLog
from .models import (
    ClassificationResult,
    Delegate,
    Direct,
    Message,
    MessageType,
    Mode,
    ModeTransition,
    Sender,
    SessionContext,
    message_from_dict,
    message_to_dict,
)
from .modes import ModeController, ModeError
from .session import ChatSession, HistoryItemNotFound, no_typing_delay, random_typing_delay

__all__ = [
    "INTENT_RULES",
    "ChatSession",
    "ClassificationResult",
    "Delegate",
    "Direct",
    "HistoryItemNotFound",
    "IntentClassifier",
    "LogChange",
    "LogHookRunner",
    "Message",
    "MessageLog",
    "MessageType",
    "Mode",
    "ModeController",
    "ModeError",
    "ModeTransition",
    "Sender",
    "SessionContext",
    "message_from_dict",
    "message_to_dict",
    "no_typing_delay",
    "random_typing_delay",
]
