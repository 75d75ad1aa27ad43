import random
from datetime import datetime, timedelta
from typing import Optional, Sequence, TypeVar

from app.core.context_builder import MedicalContext, format_number, to_naive_utc, utc_now
from app.core.outcome import PipelineOutcome

T = TypeVar("T")

MAX_GREETING_WORDS = 5
DEFAULT_GREETING_GLUCOSE_MIN = 70
DEFAULT_GREETING_GLUCOSE_MAX = 180
A1C_RECENT_WINDOW = timedelta(days=90)
EXERCISE_RECENT_WINDOW = timedelta(hours=48)

GREETING_PHRASES = [
    "hi",
    "hello",
    "hey",
    "greetings",
    "good morning",
    "good afternoon",
    "good evening",
    "howdy",
    "hi there",
    "hello there",
    "hey there",
    "hola",
    "namaste",
    "bonjour",
    "ciao",
    "salut",
    "hallo",
    "sup",
    "yo",
    "what's up",
    "wassup",
    "morning",
    "evening",
    "afternoon",
    "how are you",
    "how's it going",
    "how do you do",
    "nice to meet you",
    "pleased to meet you",
    "good day",
    "whats up",
    "whatsup",
    "heya",
]

QUESTION_GREETINGS = [
    "how are you",
    "how's it going",
    "how do you do",
    "how are you doing",
    "how have you been",
    "what's up",
    "whats up",
]

GREETING_INTROS = [
    "Hello! I'm DiaX, your diabetes support assistant. ",
    "Hi there! I'm DiaX, your friendly diabetes management companion. ",
    "Greetings! I'm DiaX, here to help with your diabetes management needs. ",
    "Good day! I'm DiaX, your dedicated diabetes support assistant. ",
    "Welcome! I'm DiaX, ready to assist with your diabetes management. ",
]

PROFILE_CLOSINGS = [
    "How can I help you today with your diabetes management?",
    "What can I assist you with regarding your diabetes care today?",
    "How may I support your diabetes management today?",
    "What information or support do you need today?",
    "How can I be of assistance with your health goals today?",
]

NEW_USER_CLOSINGS = [
    "I can provide information and support for managing diabetes. How can I assist you today?",
    "I'm here to help with diabetes information and management. What would you like to know?",
    "I can offer support and information about diabetes. What questions do you have?",
    "I'm designed to help with diabetes care and information. How can I support you?",
    "I provide diabetes support and information. What would you like assistance with today?",
]

DIABETES_TYPE_NAMES = {
    "type1": "Type 1",
    "type2": "Type 2",
    "gestational": "Gestational",
    "prediabetes": "Prediabetes",
}


def pick(candidates: Sequence[T], rng: Optional[random.Random] = None) -> T:
    source = rng or random
    return candidates[source.randrange(len(candidates))]


def is_greeting(message: str) -> bool:
    text = (message or "").strip().lower()
    if not text or len(text.split()) > MAX_GREETING_WORDS:
        return False

    for phrase in GREETING_PHRASES:
        if text == phrase or text.startswith(f"{phrase} "):
            return True
        if any(text.startswith(f"{phrase}{mark}") for mark in ("!", ".", ",")):
            return True

    return any(f"{phrase}?" in text for phrase in QUESTION_GREETINGS)


def diabetes_type_name(diabetes_type: str) -> str:
    return DIABETES_TYPE_NAMES.get(diabetes_type, diabetes_type)


def _personalization(context: MedicalContext, now: datetime) -> str:
    parts: list[str] = []
    if context.diabetes_type:
        parts.append(f"I see you're managing {diabetes_type_name(context.diabetes_type)} diabetes. ")

    metrics = context.health_metrics
    if metrics.blood_glucose:
        value = metrics.blood_glucose[0].value
        shown = format_number(value)
        low = context.target_glucose_min if context.target_glucose_min is not None else DEFAULT_GREETING_GLUCOSE_MIN
        high = context.target_glucose_max if context.target_glucose_max is not None else DEFAULT_GREETING_GLUCOSE_MAX
        if value < low:
            parts.append(f"I notice your last glucose reading was {shown} mg/dL, which is below your target range. ")
        elif value > high:
            parts.append(f"I notice your last glucose reading was {shown} mg/dL, which is above your target range. ")
        else:
            parts.append(f"I notice your last glucose reading of {shown} mg/dL is within your target range. ")

    if metrics.a1c and to_naive_utc(metrics.a1c.recorded_at) > now - A1C_RECENT_WINDOW:
        parts.append(f"Your recent A1C was {format_number(metrics.a1c.value)}%. ")

    exercise = metrics.exercise
    if exercise and to_naive_utc(exercise.recorded_at) > now - EXERCISE_RECENT_WINDOW:
        parts.append(f"Great job on your recent {exercise.duration_minutes} minutes of {exercise.exercise_type}! ")
    return "".join(parts)


def generate_greeting_response(
    greeting: str,
    medical_context: Optional[MedicalContext] = None,
    rng: Optional[random.Random] = None,
    now: Optional[datetime] = None,
) -> PipelineOutcome:
    """Answer a greeting locally, without calling the completion service."""
    current = to_naive_utc(now or utc_now())
    response = pick(GREETING_INTROS, rng)
    if medical_context is not None:
        response += _personalization(medical_context, current)
        response += pick(PROFILE_CLOSINGS, rng)
    else:
        response += pick(NEW_USER_CLOSINGS, rng)

    return PipelineOutcome(
        message_text=response,
        sources=[],
        diagnostics={"greeting_detected": True, "ai_bypassed": True},
    )
