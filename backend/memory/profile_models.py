from __future__ import annotations

import re
import uuid
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, field_validator

CHAT_HISTORY_CAP = 10
PROFILE_SECTIONS = (
    "basic_info",
    "medical_info",
    "health_metrics",
    "health_records",
    "reminders_preferences",
    "account_security",
    "ai_personalization",
)

_TIME_RE = re.compile(r"^([01]\d|2[0-3]):([0-5]\d)$")


def normalize_clock_time(value: str) -> str:
    cleaned = (value or "").strip()
    if not _TIME_RE.fullmatch(cleaned):
        raise ValueError("time must be HH:MM (24h)")
    return cleaned


@dataclass(frozen=True)
class Identity:
    user_id: str
    email: str = ""
    name: str = ""


class Reminder(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    medication_name: str
    dosage: str = ""
    frequency: str = ""
    time: str
    active: bool = True
    last_notified: str | None = None

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        return normalize_clock_time(value)


class ChatHistoryItem(BaseModel):
    """One persisted conversation summary; never edited after creation."""

    model_config = ConfigDict(frozen=True)

    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    topic: str
    date: str
    summary: str
    messages: list[dict[str, Any]] = Field(default_factory=list)


class BasicInfo(BaseModel):
    full_name: str = ""
    gender: str = ""
    date_of_birth: str | None = None
    contact_number: str = ""
    email: str = ""
    residential_address: str = ""
    profile_picture: str | None = None


class MedicalInfo(BaseModel):
    blood_group: str = ""
    known_allergies: str = ""
    chronic_conditions: str = ""
    current_medications: str = ""
    past_surgeries: str = ""
    vaccination_records: str = ""
    family_medical_history: str = ""
    reminders: list[Reminder] = Field(default_factory=list)


class HealthMetrics(BaseModel):
    height: str = ""
    weight: str = ""
    bmi: str = ""
    blood_pressure: str = ""
    heart_rate: str = ""
    glucose_levels: str = ""
    oxygen_saturation: str = ""
    sleep_patterns: str = ""
    exercise_routine: str = ""


class AppointmentRecord(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    doctor: str
    date: str
    purpose: str = ""


class HospitalVisit(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    hospital: str
    date: str
    reason: str = ""


class MedicalReport(BaseModel):
    id: str = Field(default_factory=lambda: uuid.uuid4().hex)
    name: str
    type: str = ""
    date: str = ""
    file_url: str | None = None


class InsuranceDetails(BaseModel):
    provider: str = ""
    policy_number: str = ""
    coverage: str = ""


class HealthRecords(BaseModel):
    medical_reports: list[MedicalReport] = Field(default_factory=list)
    appointment_history: list[AppointmentRecord] = Field(default_factory=list)
    hospital_visits: list[HospitalVisit] = Field(default_factory=list)
    insurance_details: InsuranceDetails = Field(default_factory=InsuranceDetails)


class NotificationPreferences(BaseModel):
    email: bool = True
    sms: bool = False
    push: bool = True


class RemindersPreferences(BaseModel):
    medication_reminders: bool = True
    appointment_reminders: bool = True
    preferred_chat_time: str = ""
    language_preference: str = "english"
    notification_preferences: NotificationPreferences = Field(default_factory=NotificationPreferences)


class EmergencyContact(BaseModel):
    name: str = ""
    relationship: str = ""
    phone: str = ""


class AccountSecurity(BaseModel):
    username: str = ""
    two_factor_enabled: bool = False
    emergency_contact: EmergencyContact = Field(default_factory=EmergencyContact)
    data_consent: bool = False
    user_role: str = "patient"


class HealthGoal(BaseModel):
    goal: str
    target: str = ""
    progress: int = 0
    start_date: str | None = None
    target_date: str | None = None


class MoodEntry(BaseModel):
    date: str
    mood: Literal["very-sad", "sad", "neutral", "happy", "very-happy"]
    notes: str = ""


class AIPersonalization(BaseModel):
    frequent_symptoms: list[str] = Field(default_factory=list)
    health_goals: list[HealthGoal] = Field(default_factory=list)
    chat_history: list[ChatHistoryItem] = Field(default_factory=list)
    mood_tracking: list[MoodEntry] = Field(default_factory=list)

    @field_validator("chat_history")
    @classmethod
    def _cap_history(cls, value: list[ChatHistoryItem]) -> list[ChatHistoryItem]:
        return value[:CHAT_HISTORY_CAP]


class ProfileData(BaseModel):
    basic_info: BasicInfo = Field(default_factory=BasicInfo)
    medical_info: MedicalInfo = Field(default_factory=MedicalInfo)
    health_metrics: HealthMetrics = Field(default_factory=HealthMetrics)
    health_records: HealthRecords = Field(default_factory=HealthRecords)
    reminders_preferences: RemindersPreferences = Field(default_factory=RemindersPreferences)
    account_security: AccountSecurity = Field(default_factory=AccountSecurity)
    ai_personalization: AIPersonalization = Field(default_factory=AIPersonalization)

    @classmethod
    def default_for(cls, identity: Identity) -> "ProfileData":
        return cls(
            basic_info=BasicInfo(full_name=identity.name, email=identity.email),
            account_security=AccountSecurity(username=identity.name),
        )

    def active_reminders(self) -> list[Reminder]:
        return [reminder for reminder in self.medical_info.reminders if reminder.active]
