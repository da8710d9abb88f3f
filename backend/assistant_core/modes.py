from __future__ import annotations

import logging

from .models import FORM_MODES, Mode

logger = logging.getLogger(__name__)


class ModeError(Exception):
    pass


class ModeController:
    """Single-slot state machine for the active form, plus the history side panel."""

    _TRANSITIONS = {
        Mode.IDLE: set(FORM_MODES),
        **{mode: {Mode.IDLE} for mode in FORM_MODES},
    }

    def __init__(self) -> None:
        self._active = Mode.IDLE
        self._history_panel_open = False

    @property
    def active(self) -> Mode:
        return self._active

    @property
    def history_panel_open(self) -> bool:
        return self._history_panel_open

    def is_active(self, mode: Mode) -> bool:
        if mode == Mode.HISTORY_PANEL:
            return self._history_panel_open
        return self._active == mode

    def active_modes(self) -> list[Mode]:
        modes = [self._active] if self._active != Mode.IDLE else []
        if self._history_panel_open:
            modes.append(Mode.HISTORY_PANEL)
        return modes

    def request(self, mode: Mode) -> bool:
        if mode == Mode.HISTORY_PANEL:
            self._history_panel_open = True
            return True
        if mode == Mode.IDLE:
            return self._active == Mode.IDLE
        if mode not in self._TRANSITIONS[self._active]:
            logger.info("mode transition rejected: %s is active, %s requested", self._active.value, mode.value)
            return False
        self._active = mode
        return True

    def finish(self, mode: Mode) -> None:
        if mode == Mode.HISTORY_PANEL:
            self._history_panel_open = False
            return
        if self._active != mode or mode == Mode.IDLE:
            raise ModeError(f"Mode not active: {mode.value}")
        self._active = Mode.IDLE

    def reset(self) -> None:
        self._active = Mode.IDLE
        self._history_panel_open = False

    def as_dict(self) -> dict[str, object]:
        return {
            "active": self._active.value,
            "history_panel_open": self._history_panel_open,
        }
