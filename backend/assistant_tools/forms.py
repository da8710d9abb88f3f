from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, Field, field_validator, model_validator

from memory.profile_models import Reminder, normalize_clock_time

from .health_data import SYMPTOM_ANALYSIS, find_slot, find_symptom


class SymptomCheckerForm(BaseModel):
    symptoms: list[str] = Field(min_length=1)
    notes: str = ""

    def labels(self) -> list[str]:
        labels: list[str] = []
        for raw in self.symptoms:
            symptom = find_symptom(raw)
            label = symptom.label if symptom else raw.strip()
            if label and label not in labels:
                labels.append(label)
        return labels

    def describe(self) -> str:
        text = f"I'm experiencing: {', '.join(self.labels())}."
        notes = self.notes.strip()
        if notes:
            text = f"{text} {notes}"
        return text


def compose_symptom_analysis(labels: list[str]) -> str:
    lines = ["Based on your symptoms, here's some general information:", ""]
    for label in labels:
        symptom = find_symptom(label)
        if symptom and symptom.id in SYMPTOM_ANALYSIS:
            lines.append(f"- {symptom.label}: {SYMPTOM_ANALYSIS[symptom.id]}")
    lines.append("")
    lines.append(
        "This is not a medical diagnosis. Please consult a healthcare professional "
        "for proper evaluation and treatment."
    )
    return "\n".join(lines)


@dataclass(frozen=True)
class BookedAppointment:
    date: str
    time: str
    doctor: str
    specialty: str
    purpose: str = ""


class AppointmentForm(BaseModel):
    slot_id: int | None = None
    date: str | None = None
    time: str | None = None
    doctor: str | None = None
    specialty: str | None = None
    purpose: str = ""

    @model_validator(mode="after")
    def _require_slot_or_datetime(self) -> "AppointmentForm":
        if self.slot_id is None and not (self.date and self.time):
            raise ValueError("select an appointment slot, or both a date and a time")
        return self

    def resolve(self, provider_name: str | None = None, provider_specialty: str | None = None) -> BookedAppointment | None:
        if self.slot_id is not None:
            slot = find_slot(self.slot_id)
            if slot is None:
                return None
            return BookedAppointment(slot.date, slot.time, slot.doctor, slot.specialty, self.purpose)
        doctor = self.doctor or provider_name or "your healthcare provider"
        specialty = self.specialty or provider_specialty or "General Medicine"
        return BookedAppointment(self.date or "", self.time or "", doctor, specialty, self.purpose)


def format_appointment_confirmation(appointment: BookedAppointment) -> str:
    return (
        "Your appointment has been scheduled:\n\n"
        f"Date: {appointment.date}\n"
        f"Time: {appointment.time}\n"
        f"Doctor: {appointment.doctor}\n"
        f"Specialty: {appointment.specialty}\n\n"
        "You will receive a confirmation email shortly. You can cancel or reschedule your "
        "appointment up to 24 hours before the scheduled time."
    )


APPOINTMENT_FAILED_TEXT = "Sorry, there was an issue with scheduling your appointment. Please try again."


class ReminderForm(BaseModel):
    medication_name: str = Field(min_length=1)
    dosage: str = ""
    frequency: str = ""
    time: str

    @field_validator("medication_name")
    @classmethod
    def _strip_name(cls, value: str) -> str:
        cleaned = value.strip()
        if not cleaned:
            raise ValueError("medication name is required")
        return cleaned

    @field_validator("time")
    @classmethod
    def _check_time(cls, value: str) -> str:
        return normalize_clock_time(value)

    def to_reminder(self) -> Reminder:
        return Reminder(
            medication_name=self.medication_name,
            dosage=self.dosage.strip(),
            frequency=self.frequency.strip(),
            time=self.time,
            active=True,
        )


def format_reminder_confirmation(reminder: Reminder) -> str:
    lines = ["Medication reminder set:", "", f"Medication: {reminder.medication_name}"]
    if reminder.dosage:
        lines.append(f"Dosage: {reminder.dosage}")
    if reminder.frequency:
        lines.append(f"Frequency: {reminder.frequency}")
    lines.append(f"Time: {reminder.time}")
    lines.append("")
    lines.append("I'll remind you to take your medication at the scheduled time.")
    return "\n".join(lines)


REMINDER_SAVE_FAILED_TEXT = (
    "I couldn't save your medication reminder right now. Please try again in a moment."
)

FORM_IN_PROGRESS_TEXT = "Please finish or cancel the open {form} form before starting something new."


def format_form_in_progress(mode_value: str) -> str:
    return FORM_IN_PROGRESS_TEXT.format(form=mode_value.replace("-", " "))
