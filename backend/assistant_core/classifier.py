from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from typing import Callable

from assistant_tools.completion import CompletionClient
from assistant_tools.health_data import (
    APOLOGY_TEXT,
    HEALTH_TIPS,
    faq_questions,
    find_faq,
    find_symptom,
    get_symptom_analysis,
    symptom_labels,
)

from .models import (
    AppointmentMessage,
    ClassificationResult,
    Delegate,
    Direct,
    HealthTipMessage,
    Mode,
    ModeTransition,
    NearbyDoctorsMessage,
    OptionsMessage,
    ReminderMessage,
    SymptomCheckerMessage,
    bot_text,
)

logger = logging.getLogger(__name__)

MENU_MODE_OPTIONS = {
    "Check symptoms": Mode.SYMPTOM_CHECKER,
    "Schedule appointment": Mode.APPOINTMENT,
    "Set medication reminder": Mode.REMINDER,
    "Get health tips": Mode.HEALTH_TIPS,
    "Find nearby doctors": Mode.NEARBY_PROVIDER,
    "View chat history": Mode.HISTORY_PANEL,
}
ASK_QUESTIONS_OPTION = "Ask health questions"


@dataclass(frozen=True)
class IntentRule:
    name: str
    keywords: tuple[str, ...]
    build: Callable[["IntentClassifier"], ClassificationResult]

    def matches(self, lowered: str) -> bool:
        return any(keyword in lowered for keyword in self.keywords)


def _symptom_offer(_: "IntentClassifier") -> ClassificationResult:
    return ModeTransition(
        Mode.SYMPTOM_CHECKER,
        SymptomCheckerMessage(
            content="I can help you check your symptoms. What symptoms are you experiencing?",
            options=tuple(symptom_labels()),
        ),
    )


def _appointment_offer(_: "IntentClassifier") -> ClassificationResult:
    return ModeTransition(
        Mode.APPOINTMENT,
        AppointmentMessage(content="Would you like to schedule an appointment with a healthcare provider?"),
    )


def _reminder_offer(_: "IntentClassifier") -> ClassificationResult:
    return ModeTransition(
        Mode.REMINDER,
        ReminderMessage(content="I can help you set up medication reminders. Would you like to add one?"),
    )


def _health_tip(classifier: "IntentClassifier") -> ClassificationResult:
    tip = classifier.rng.choice(HEALTH_TIPS)
    return Direct(HealthTipMessage(content=f"Here's a health tip for you: {tip}"))


def _faq_menu(_: "IntentClassifier") -> ClassificationResult:
    return Direct(
        OptionsMessage(
            content="Here are some frequently asked health questions. Which one would you like to know more about?",
            options=tuple(faq_questions()),
        )
    )


def _nearby_offer(_: "IntentClassifier") -> ClassificationResult:
    return ModeTransition(
        Mode.NEARBY_PROVIDER,
        NearbyDoctorsMessage(
            content=(
                "I can help you find nearby hospitals and doctors. "
                "Would you like me to show you healthcare facilities in your area?"
            )
        ),
    )


# Order is precedence: the first matching rule wins.
INTENT_RULES = (
    IntentRule(
        "symptom",
        ("symptom", "not feeling well", "sick", *(label.lower() for label in symptom_labels())),
        _symptom_offer,
    ),
    IntentRule("appointment", ("appointment", "schedule", "booking", "doctor"), _appointment_offer),
    IntentRule("reminder", ("medicine", "medication", "reminder"), _reminder_offer),
    IntentRule("health_tip", ("tip", "advice", "health tips"), _health_tip),
    IntentRule("faq", ("faq", "question"), _faq_menu),
    IntentRule("nearby", ("hospital", "nearby", "find", "location", "doctors near me"), _nearby_offer),
)


class IntentClassifier:
    def __init__(self, completion: CompletionClient | None = None, rng: random.Random | None = None) -> None:
        self.completion = completion
        self.rng = rng or random.Random()

    def classify(self, text: str) -> ClassificationResult:
        lowered = (text or "").lower()
        for rule in INTENT_RULES:
            if rule.matches(lowered):
                return rule.build(self)
        return Delegate(text)

    def classify_option(self, option: str) -> ClassificationResult:
        """Resolve a clicked menu option by literal equality before free-text rules."""
        if option in MENU_MODE_OPTIONS:
            return ModeTransition(MENU_MODE_OPTIONS[option])
        if option == ASK_QUESTIONS_OPTION:
            return Direct(
                OptionsMessage(
                    content="Here are some common health questions. Select one to learn more:",
                    options=tuple(faq_questions()),
                )
            )
        symptom = find_symptom(option)
        if symptom is not None:
            return Direct(bot_text(f"About {symptom.label}: {get_symptom_analysis(symptom.label)}"))
        faq = find_faq(option)
        if faq is not None:
            return Direct(bot_text(faq.answer))
        return self.classify(option)

    async def resolve(
        self,
        result: ClassificationResult,
        *,
        context: str = "",
        fallback: str | None = None,
    ) -> Direct | ModeTransition:
        if not isinstance(result, Delegate):
            return result
        if self.completion is None:
            return Direct(bot_text(fallback or APOLOGY_TEXT))
        try:
            reply = await self.completion.complete(result.prompt, context)
        except Exception as exc:
            logger.warning("delegate completion failed: %s", exc)
            return Direct(bot_text(fallback or APOLOGY_TEXT))
        if not reply.strip():
            return Direct(bot_text(fallback or APOLOGY_TEXT))
        return Direct(bot_text(reply.strip()))
