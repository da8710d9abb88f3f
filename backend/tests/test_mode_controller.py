from __future__ import annotations

import itertools

import pytest

from assistant_core.models import FORM_MODES, Mode
from assistant_core.modes import ModeController, ModeError


def test_idle_to_form_and_back():
    modes = ModeController()
    assert modes.active == Mode.IDLE
    assert modes.request(Mode.REMINDER) is True
    assert modes.is_active(Mode.REMINDER)

    modes.finish(Mode.REMINDER)
    assert modes.active == Mode.IDLE


def test_second_form_mode_is_rejected_while_one_is_active():
    modes = ModeController()
    modes.request(Mode.APPOINTMENT)

    assert modes.request(Mode.SYMPTOM_CHECKER) is False
    assert modes.active == Mode.APPOINTMENT


def test_at_most_one_form_mode_for_any_request_sequence():
    ordered = sorted(FORM_MODES, key=lambda mode: mode.value) + [Mode.HISTORY_PANEL]
    for sequence in itertools.permutations(ordered, 4):
        modes = ModeController()
        for mode in sequence:
            modes.request(mode)
            active_forms = [item for item in modes.active_modes() if item in FORM_MODES]
            assert len(active_forms) <= 1


def test_history_panel_coexists_with_a_form():
    modes = ModeController()
    modes.request(Mode.HEALTH_TIPS)
    assert modes.request(Mode.HISTORY_PANEL) is True

    assert modes.active_modes() == [Mode.HEALTH_TIPS, Mode.HISTORY_PANEL]
    modes.finish(Mode.HISTORY_PANEL)
    assert modes.active == Mode.HEALTH_TIPS
    assert modes.history_panel_open is False


def test_finishing_an_inactive_mode_raises():
    modes = ModeController()
    with pytest.raises(ModeError):
        modes.finish(Mode.APPOINTMENT)
    modes.request(Mode.REMINDER)
    with pytest.raises(ModeError):
        modes.finish(Mode.APPOINTMENT)
    with pytest.raises(ModeError):
        modes.finish(Mode.IDLE)


def test_reset_clears_form_and_panel():
    modes = ModeController()
    modes.request(Mode.NEARBY_PROVIDER)
    modes.request(Mode.HISTORY_PANEL)
    modes.reset()
    assert modes.as_dict() == {"active": "idle", "history_panel_open": False}
