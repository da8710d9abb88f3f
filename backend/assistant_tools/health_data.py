from __future__ import annotations

from dataclasses import dataclass

ASSISTANT_NAME = "Smart Healthcare Assistant"

MAIN_MENU_OPTIONS = (
    "Check symptoms",
    "Schedule appointment",
    "Set medication reminder",
    "Get health tips",
    "Ask health questions",
    "Find nearby doctors",
    "View chat history",
)

GREETING_TEXT = f"Hello! I'm your {ASSISTANT_NAME}. How can I help you today?"
APOLOGY_TEXT = (
    "I'm sorry, I'm having trouble answering right now. "
    "Please try again in a moment, or choose one of the options below."
)
UNKNOWN_SYMPTOM_TEXT = (
    "I don't have specific information about that symptom. "
    "It's best to consult with a healthcare professional for personalized advice."
)
UNKNOWN_FAQ_TEXT = "I don't have information about that specific question."


@dataclass(frozen=True)
class Symptom:
    id: str
    label: str


@dataclass(frozen=True)
class FAQ:
    question: str
    answer: str


@dataclass(frozen=True)
class AppointmentSlot:
    id: int
    date: str
    time: str
    doctor: str
    specialty: str


SYMPTOMS = (
    Symptom("fever", "Fever"),
    Symptom("cough", "Cough"),
    Symptom("headache", "Headache"),
    Symptom("sore_throat", "Sore Throat"),
    Symptom("fatigue", "Fatigue"),
    Symptom("body_ache", "Body Ache"),
    Symptom("shortness_of_breath", "Shortness of Breath"),
    Symptom("nausea", "Nausea"),
    Symptom("dizziness", "Dizziness"),
    Symptom("rash", "Skin Rash"),
)

SYMPTOM_ANALYSIS = {
    "fever": "Fever could indicate an infection. Monitor your temperature and stay hydrated.",
    "cough": (
        "Coughs can be caused by infections, allergies, or irritants. "
        "If persistent, consider consulting a healthcare provider."
    ),
    "headache": "Headaches can be due to stress, dehydration, or other factors. Rest and stay hydrated.",
    "sore_throat": "Sore throats are often caused by viral infections. Warm liquids and rest may help.",
    "fatigue": "Fatigue can be caused by lack of sleep, stress, or underlying health conditions.",
    "body_ache": "Body aches often accompany infections or can be caused by physical exertion.",
    "shortness_of_breath": (
        "Shortness of breath could indicate a respiratory issue and should be evaluated "
        "by a healthcare professional."
    ),
    "nausea": "Nausea can be caused by digestive issues, motion sickness, or other factors.",
    "dizziness": "Dizziness may be caused by inner ear issues, low blood sugar, or dehydration.",
    "rash": "Skin rashes can be caused by allergies, infections, or other skin conditions.",
}

HEALTH_TIPS = (
    "Stay hydrated by drinking at least 8 glasses of water daily.",
    "Aim for 7-9 hours of quality sleep each night.",
    "Include a variety of fruits and vegetables in your diet.",
    "Exercise regularly - aim for at least 150 minutes of moderate activity per week.",
    "Practice stress management techniques like meditation or deep breathing.",
    "Maintain a balanced diet with appropriate portions.",
    "Take regular breaks from screen time to rest your eyes.",
    "Wash hands frequently to prevent the spread of germs.",
    "Schedule regular check-ups with your healthcare provider.",
    "Stay up to date with recommended vaccinations.",
)

HEALTH_FAQS = (
    FAQ(
        "How can I improve my sleep quality?",
        "Maintain a regular sleep schedule, create a restful environment, limit screen time before bed, "
        "avoid caffeine and large meals in the evening, and consider relaxation techniques before bedtime.",
    ),
    FAQ(
        "What are the signs of dehydration?",
        "Signs include increased thirst, dry mouth, fatigue, headache, dark-colored urine, and dizziness. "
        "Stay hydrated by drinking water regularly throughout the day.",
    ),
    FAQ(
        "How can I manage stress effectively?",
        "Regular exercise, adequate sleep, mindfulness practices, maintaining social connections, and time "
        "management can all help reduce stress. Consider activities like yoga, meditation, or hobbies you enjoy.",
    ),
    FAQ(
        "When should I get a flu shot?",
        "The best time to get a flu shot is before flu season begins, typically in early fall. However, "
        "getting vaccinated later can still provide protection during most of the flu season.",
    ),
    FAQ(
        "How much exercise do adults need?",
        "Adults should aim for at least 150 minutes of moderate-intensity aerobic activity or 75 minutes of "
        "vigorous activity per week, plus muscle-strengthening activities at least twice a week.",
    ),
)

AVAILABLE_APPOINTMENTS = (
    AppointmentSlot(1, "2025-05-02", "09:00 AM", "Dr. Sarah Johnson", "General Medicine"),
    AppointmentSlot(2, "2025-05-02", "11:30 AM", "Dr. Sarah Johnson", "General Medicine"),
    AppointmentSlot(3, "2025-05-03", "10:00 AM", "Dr. Michael Chen", "Internal Medicine"),
    AppointmentSlot(4, "2025-05-03", "02:15 PM", "Dr. Michael Chen", "Internal Medicine"),
    AppointmentSlot(5, "2025-05-04", "09:30 AM", "Dr. Emily Rodriguez", "Pediatrics"),
    AppointmentSlot(6, "2025-05-04", "01:00 PM", "Dr. Emily Rodriguez", "Pediatrics"),
    AppointmentSlot(7, "2025-05-05", "11:00 AM", "Dr. David Kim", "Cardiology"),
    AppointmentSlot(8, "2025-05-05", "03:30 PM", "Dr. David Kim", "Cardiology"),
)


def symptom_labels() -> list[str]:
    return [symptom.label for symptom in SYMPTOMS]


def find_symptom(label: str) -> Symptom | None:
    wanted = (label or "").strip().lower()
    for symptom in SYMPTOMS:
        if symptom.label.lower() == wanted:
            return symptom
    return None


def get_symptom_analysis(label: str) -> str:
    symptom = find_symptom(label)
    if symptom and symptom.id in SYMPTOM_ANALYSIS:
        return SYMPTOM_ANALYSIS[symptom.id]
    return UNKNOWN_SYMPTOM_TEXT


def faq_questions() -> list[str]:
    return [faq.question for faq in HEALTH_FAQS]


def find_faq(question: str) -> FAQ | None:
    for faq in HEALTH_FAQS:
        if faq.question == question:
            return faq
    return None


def get_faq_response(question: str) -> str:
    faq = find_faq(question)
    return faq.answer if faq else UNKNOWN_FAQ_TEXT


def find_slot(slot_id: int) -> AppointmentSlot | None:
    for slot in AVAILABLE_APPOINTMENTS:
        if slot.id == slot_id:
            return slot
    return None


def slots_by_date() -> dict[str, list[AppointmentSlot]]:
    grouped: dict[str, list[AppointmentSlot]] = {}
    for slot in AVAILABLE_APPOINTMENTS:
        grouped.setdefault(slot.date, []).append(slot)
    return grouped
