from __future__ import annotations

import threading
from typing import Iterable, Iterator

from .hooks import LogChange, LogHookRunner
from .models import Message


class MessageLog:
    """Append-only conversation log; replace_all is the only bulk mutation."""

    def __init__(self, messages: Iterable[Message] = (), hooks: LogHookRunner | None = None) -> None:
        self._lock = threading.Lock()
        self._messages: tuple[Message, ...] = tuple(messages)
        self.hooks = hooks or LogHookRunner()

    def append(self, message: Message) -> tuple[Message, ...]:
        with self._lock:
            self._messages = (*self._messages, message)
            snapshot = self._messages
        self.hooks.run_after(LogChange("append", snapshot))
        return snapshot

    def replace_all(self, messages: Iterable[Message]) -> tuple[Message, ...]:
        with self._lock:
            self._messages = tuple(messages)
            snapshot = self._messages
        self.hooks.run_after(LogChange("replace", snapshot))
        return snapshot

    def snapshot(self) -> tuple[Message, ...]:
        return self._messages

    def last(self, sender=None) -> Message | None:
        for message in reversed(self._messages):
            if sender is None or message.sender == sender:
                return message
        return None

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)
