from datetime import date
from typing import Optional, Sequence

from app.core.context_builder import (
    GLUCOSE_READING_LIMIT,
    BloodPressureReading,
    HealthMetricsSnapshot,
    MedicalContext,
    format_number,
    utc_now,
)
from app.core.outcome import ResourceRef

DEFAULT_METRICS_GLUCOSE_MIN = 70
DEFAULT_METRICS_GLUCOSE_MAX = 130

PURPOSE_STATEMENT = (
    "You are DiaX, a specialized diabetes support chatbot. "
    "Your purpose is to provide personalized assistance, evidence-based information, "
    "and emotional support to people managing diabetes. "
)

CORE_PRINCIPLES = [
    "Be compassionate, supportive, and empathetic in all responses.",
    "Provide accurate, evidence-based information about diabetes management, nutrition, medication, and complications.",
    "Personalize all responses based on the user's specific data, medical context, and conversation history.",
    "Maintain continuity across conversations by referencing previous discussions when relevant.",
    "Always include a clear disclaimer to consult healthcare professionals for medical advice when appropriate.",
]

RESPONSE_GUIDELINES = [
    "Use clear, concise language that is accessible to people with various levels of medical knowledge.",
    (
        "When answering questions about diet, exercise, or medication, be specific and practical, "
        "tailoring recommendations to the user's diabetes type and health status."
    ),
    (
        "If you notice concerning trends in the user's health metrics (e.g., consistently high blood glucose), "
        "acknowledge them and suggest appropriate actions."
    ),
    (
        "When discussing health metrics, compare current values to the user's target ranges "
        "and previous readings to provide context."
    ),
    "If you cannot provide a confident answer, acknowledge limitations rather than giving potentially harmful information.",
    "When relevant, mention the importance of regular blood sugar monitoring, A1C testing, and medical check-ups.",
    (
        "Reference the user's specific medications, allergies, and comorbidities when providing advice "
        "about treatments or lifestyle changes."
    ),
    "If the user mentions symptoms or complications, acknowledge their experience and provide targeted information.",
    "Base your responses on the most recent and reliable diabetes management guidelines and research.",
    (
        "When referencing health metrics, connect them to potential lifestyle factors or behavioral patterns "
        "that may be influencing them."
    ),
]

CONTINUITY_INSTRUCTIONS = [
    "Maintain context from previous messages in the conversation.",
    "If referring to previous health metrics or information, be specific about when they were mentioned.",
    "If the user mentions new symptoms, metrics, or concerns, incorporate them into your understanding of their situation.",
    (
        "If the user has mentioned specific goals in previous conversations (e.g., weight loss, better glucose control), "
        "reference and reinforce these."
    ),
    "Build upon previous explanations rather than repeating the same basic information.",
]

TYPE_CONSIDERATIONS = {
    "type1": (
        "Type 1 considerations: Insulin dependency, risk of DKA, carb counting importance, "
        "technology management (pumps/CGMs if mentioned)"
    ),
    "type2": (
        "Type 2 considerations: Insulin resistance, lifestyle modification importance, "
        "progressive condition, medication management"
    ),
    "gestational": (
        "Gestational considerations: Temporary condition, fetal health impacts, "
        "postpartum follow-up importance, future T2D risk"
    ),
    "prediabetes": (
        "Prediabetes considerations: Prevention focus, lifestyle changes can reverse condition, "
        "regular screening importance"
    ),
}

EXERCISE_INTENSITY_LABELS = {1: "Low", 2: "Moderate"}


def _numbered(items: Sequence[str]) -> list[str]:
    return [f"{idx}. {item}" for idx, item in enumerate(items, start=1)]


def bmi_category(bmi: float) -> str:
    if bmi < 18.5:
        return "underweight"
    if bmi < 25:
        return "normal weight"
    if bmi < 30:
        return "overweight"
    return "obese"


def blood_pressure_category(reading: BloodPressureReading) -> str:
    systolic, diastolic = reading.systolic, reading.diastolic
    if systolic < 120 and diastolic < 80:
        return "normal"
    if systolic < 130 and diastolic < 80:
        return "elevated"
    if 130 <= systolic < 140 or 80 <= diastolic < 90:
        return "Stage 1 hypertension"
    return "Stage 2 hypertension"


def a1c_status(value: float) -> str:
    if value < 5.7:
        return "normal"
    if value < 6.5:
        return "prediabetic range"
    return "diabetic range"


def estimated_average_glucose(a1c_value: float) -> int:
    return round(a1c_value * 28.7 - 46.7)


def heart_rate_category(bpm: float) -> str:
    if bpm < 60:
        return "bradycardia"
    if bpm <= 100:
        return "normal range"
    return "tachycardia"


def _profile_lines(context: MedicalContext, today: date) -> list[str]:
    lines = ["", "USER MEDICAL CONTEXT:"]
    if context.diabetes_type:
        lines.append(f"- Diabetes Type: {context.diabetes_type}")
        consideration = TYPE_CONSIDERATIONS.get(context.diabetes_type)
        if consideration:
            lines.append(f"  * {consideration}")
    if context.diagnosis_year:
        years = today.year - context.diagnosis_year
        lines.append(f"- Diagnosed in: {context.diagnosis_year} ({years} years ago)")
    if context.height_cm and context.weight_kg:
        lines.append(f"- Height: {format_number(context.height_cm)} cm")
        lines.append(f"- Weight: {format_number(context.weight_kg)} kg")
    if context.bmi:
        lines.append(f"- BMI: {format_number(context.bmi)} ({bmi_category(context.bmi)})")
    if context.target_glucose_min and context.target_glucose_max:
        lines.append(
            f"- Target glucose range: {format_number(context.target_glucose_min)} - "
            f"{format_number(context.target_glucose_max)} mg/dL"
        )
        lines.append("  * Use these personalized targets when discussing blood glucose values")
    if context.medications:
        lines.append(f"- Medications: {context.medications}")
        lines.append("  * Consider these medications when discussing treatment, side effects, or drug interactions")
    if context.allergies:
        lines.append(f"- Allergies: {context.allergies}")
        lines.append("  * Consider these allergies when discussing foods, medications, or treatments")
    if context.comorbidities:
        lines.append(f"- Comorbidities: {context.comorbidities}")
        lines.append(
            "  * Consider these conditions when discussing overall health management, exercise, and nutrition"
        )
    return lines


def _glucose_lines(context: MedicalContext, metrics: HealthMetricsSnapshot) -> list[str]:
    readings = metrics.blood_glucose[:GLUCOSE_READING_LIMIT]
    low = context.target_glucose_min if context.target_glucose_min is not None else DEFAULT_METRICS_GLUCOSE_MIN
    high = context.target_glucose_max if context.target_glucose_max is not None else DEFAULT_METRICS_GLUCOSE_MAX
    average = round(sum(r.value for r in readings) / len(readings), 1)
    in_range = sum(1 for r in readings if low <= r.value <= high)
    in_range_pct = round(in_range / len(readings) * 100)

    lines = [
        f"- Recent Blood Glucose Readings (average: {format_number(average)} mg/dL): "
        f"{in_range_pct}% within target range"
    ]
    for reading in readings:
        tag = f" ({reading.context})" if reading.context else ""
        if reading.value < low:
            status = "below target"
        elif reading.value > high:
            status = "above target"
        else:
            status = "within target"
        lines.append(
            f"  * {format_number(reading.value)} mg/dL on {reading.recorded_at:%Y-%m-%d %H:%M}{tag} - {status}"
        )
    return lines


def _metrics_lines(context: MedicalContext) -> list[str]:
    metrics = context.health_metrics
    lines = ["", "USER HEALTH METRICS:"]
    if metrics.blood_glucose:
        lines.extend(_glucose_lines(context, metrics))

    bp = metrics.blood_pressure
    if bp:
        lines.append(
            f"- Blood Pressure: {bp.systolic}/{bp.diastolic} mmHg (as of {bp.recorded_at:%Y-%m-%d}) - "
            f"{blood_pressure_category(bp)}"
        )

    a1c = metrics.a1c
    if a1c:
        lines.append(
            f"- A1C: {format_number(a1c.value)}% (as of {a1c.recorded_at:%Y-%m-%d}) - {a1c_status(a1c.value)}, "
            f"estimated average glucose: {estimated_average_glucose(a1c.value)} mg/dL"
        )

    weight = metrics.weight
    if weight and (context.weight_kg is None or weight.value != context.weight_kg):
        line = f"- Current Weight: {format_number(weight.value)} kg (as of {weight.recorded_at:%Y-%m-%d})"
        if context.weight_kg is not None:
            diff = weight.value - context.weight_kg
            if abs(diff) > 0.5:
                direction = "gained" if diff > 0 else "lost"
                line += f" - has {direction} {format_number(round(abs(diff), 1))} kg since previous recording"
        lines.append(line)

    hr = metrics.heart_rate
    if hr:
        lines.append(
            f"- Heart Rate: {format_number(hr.value)} bpm (as of {hr.recorded_at:%Y-%m-%d}) - "
            f"{heart_rate_category(hr.value)}"
        )

    exercise = metrics.exercise
    if exercise:
        line = f"- Recent Exercise: {exercise.duration_minutes} minutes of {exercise.exercise_type}"
        if exercise.intensity is not None:
            line += f" (Intensity: {EXERCISE_INTENSITY_LABELS.get(exercise.intensity, 'High')})"
        line += f" on {exercise.recorded_at:%Y-%m-%d}"
        lines.append(line)
        lines.append("  * Consider how this exercise pattern might impact blood glucose management")
    return lines


def _resource_lines(resources: Sequence[ResourceRef]) -> list[str]:
    lines = [
        "",
        "RELEVANT RESOURCES:",
        "Use these evidence-based resources to inform your responses to the current query:",
    ]
    for idx, resource in enumerate(resources, start=1):
        lines.append(f"{idx}. {resource.title}: {resource.description}")
        if resource.url:
            lines.append(f"   Source: {resource.url}")
    lines.append("Refer to these resources in your answer when appropriate, providing evidence-based information.")
    return lines


def build_system_prompt(
    medical_context: Optional[MedicalContext],
    resources: Sequence[ResourceRef],
    today: Optional[date] = None,
) -> str:
    """Assemble the instruction prompt sent ahead of the conversation turns.

    Block order is fixed: purpose and guidelines, medical profile, health metrics,
    matched resources, then continuity instructions. Optional blocks and lines are
    emitted only when their data is present. No length cap is applied here.
    """
    current_day = today or utc_now().date()
    lines = [PURPOSE_STATEMENT, "CORE PRINCIPLES:"]
    lines.extend(_numbered(CORE_PRINCIPLES))
    lines.append("RESPONSE GUIDELINES:")
    lines.extend(_numbered(RESPONSE_GUIDELINES))

    if medical_context is not None:
        lines.extend(_profile_lines(medical_context, current_day))
        if not medical_context.health_metrics.is_empty():
            lines.extend(_metrics_lines(medical_context))

    if resources:
        lines.extend(_resource_lines(resources))

    lines.extend(["", "CONVERSATION CONTINUITY:"])
    lines.extend(_numbered(CONTINUITY_INSTRUCTIONS))
    return "\n".join(lines)
