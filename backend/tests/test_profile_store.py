from __future__ import annotations

import pytest
from pydantic import ValidationError

from memory import ChatHistoryItem, Identity, ProfileData, ProfileNotFound, Reminder
from memory.profile_models import AIPersonalization, MedicalInfo

IDENTITY = Identity(user_id="user-store", email="store@example.com", name="Sam Store")


def test_missing_profile_raises(profile_store):
    with pytest.raises(ProfileNotFound):
        profile_store.load_profile(IDENTITY)


def test_default_profile_round_trips(profile_store):
    profile = ProfileData.default_for(IDENTITY)
    profile_store.save_profile(profile, IDENTITY)

    loaded = profile_store.load_profile(IDENTITY)
    assert loaded.basic_info.full_name == "Sam Store"
    assert loaded.basic_info.email == "store@example.com"
    assert loaded.reminders_preferences.medication_reminders is True
    assert loaded == profile


def test_save_section_upserts_one_section(profile_store):
    profile_store.save_profile(ProfileData.default_for(IDENTITY), IDENTITY)
    reminder = Reminder(medication_name="Lisinopril", dosage="10mg", time="07:15")
    profile_store.save_section(IDENTITY, "medical_info", MedicalInfo(blood_group="O+", reminders=[reminder]))
    profile_store.save_section(IDENTITY, "medical_info", {"blood_group": "A-", "reminders": [reminder.model_dump()]})

    loaded = profile_store.load_profile(IDENTITY)
    assert loaded.medical_info.blood_group == "A-"
    assert loaded.medical_info.reminders == [reminder]
    assert loaded.basic_info.full_name == "Sam Store"
    assert loaded.active_reminders() == [reminder]


def test_unknown_section_is_rejected(profile_store):
    with pytest.raises(ValueError):
        profile_store.save_section(IDENTITY, "billing", {})


def test_profiles_are_scoped_per_user(profile_store):
    other = Identity(user_id="someone-else", name="Other")
    profile_store.save_profile(ProfileData.default_for(IDENTITY), IDENTITY)
    with pytest.raises(ProfileNotFound):
        profile_store.load_profile(other)


def test_login_sessions_resolve_until_closed(profile_store):
    key = profile_store.open_session(IDENTITY)
    assert key.startswith("sess_")
    assert profile_store.get_current_session(key) == IDENTITY

    profile_store.close_session(key)
    assert profile_store.get_current_session(key) is None
    assert profile_store.get_current_session(None) is None


def test_chat_history_is_capped_and_items_are_frozen():
    items = [ChatHistoryItem(topic=f"t{index}", date="2025-05-01", summary="s") for index in range(12)]
    personalization = AIPersonalization(chat_history=items)
    assert [item.topic for item in personalization.chat_history] == [f"t{index}" for index in range(10)]

    with pytest.raises(ValidationError):
        items[0].topic = "changed"


def test_reminder_time_must_be_clock_time():
    with pytest.raises(ValidationError):
        Reminder(medication_name="X", time="8am")
    assert Reminder(medication_name="X", time=" 23:59 ").time == "23:59"
