from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable

if TYPE_CHECKING:
    from .models import Message

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LogChange:
    kind: str
    snapshot: tuple["Message", ...]


LogHook = Callable[[LogChange], None]


class LogHookRunner:
    def __init__(self) -> None:
        self._after_hooks: list[LogHook] = []

    def add_after(self, hook: LogHook) -> None:
        self._after_hooks.append(hook)

    def remove_after(self, hook: LogHook) -> None:
        if hook in self._after_hooks:
            self._after_hooks.remove(hook)

    def run_after(self, change: LogChange) -> None:
        # The log has already changed; a failing hook must not undo that or skip later hooks.
        for hook in list(self._after_hooks):
            try:
                hook(change)
            except Exception:
                logger.exception("log hook failed after %s", change.kind)
