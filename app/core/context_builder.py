from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Union

from sqlalchemy.orm import Session

from app.db.models import HealthMetric, MedicalProfile

GLUCOSE_READING_LIMIT = 5


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def to_naive_utc(value: datetime) -> datetime:
    # SQLite hands back naive datetimes; everything is compared as naive UTC.
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def format_number(value: Union[int, float]) -> str:
    if float(value).is_integer():
        return str(int(value))
    return str(round(float(value), 2))


@dataclass(frozen=True)
class GlucoseReading:
    value: float
    recorded_at: datetime
    context: Optional[str] = None


@dataclass(frozen=True)
class BloodPressureReading:
    systolic: int
    diastolic: int
    recorded_at: datetime


@dataclass(frozen=True)
class MetricReading:
    value: float
    recorded_at: datetime


@dataclass(frozen=True)
class ExerciseEntry:
    duration_minutes: int
    exercise_type: str
    recorded_at: datetime
    intensity: Optional[int] = None


@dataclass(frozen=True)
class HealthMetricsSnapshot:
    # Glucose readings are ordered newest first.
    blood_glucose: tuple[GlucoseReading, ...] = ()
    blood_pressure: Optional[BloodPressureReading] = None
    a1c: Optional[MetricReading] = None
    weight: Optional[MetricReading] = None
    heart_rate: Optional[MetricReading] = None
    exercise: Optional[ExerciseEntry] = None

    def is_empty(self) -> bool:
        return not (
            self.blood_glucose
            or self.blood_pressure
            or self.a1c
            or self.weight
            or self.heart_rate
            or self.exercise
        )


@dataclass(frozen=True)
class MedicalContext:
    diabetes_type: Optional[str] = None
    diagnosis_year: Optional[int] = None
    height_cm: Optional[float] = None
    weight_kg: Optional[float] = None
    bmi: Optional[float] = None
    target_glucose_min: Optional[float] = None
    target_glucose_max: Optional[float] = None
    medications: Optional[str] = None
    allergies: Optional[str] = None
    comorbidities: Optional[str] = None
    health_metrics: HealthMetricsSnapshot = field(default_factory=HealthMetricsSnapshot)


def _latest(db: Session, user_id: int, *columns) -> Optional[HealthMetric]:
    query = db.query(HealthMetric).filter(HealthMetric.user_id == user_id)
    for column in columns:
        query = query.filter(column.isnot(None))
    return query.order_by(HealthMetric.recorded_at.desc(), HealthMetric.id.desc()).first()


def load_health_metrics(db: Session, user_id: int) -> HealthMetricsSnapshot:
    glucose_rows = (
        db.query(HealthMetric)
        .filter(HealthMetric.user_id == user_id, HealthMetric.blood_glucose_level.isnot(None))
        .order_by(HealthMetric.recorded_at.desc(), HealthMetric.id.desc())
        .limit(GLUCOSE_READING_LIMIT)
        .all()
    )
    bp_row = _latest(db, user_id, HealthMetric.systolic_pressure, HealthMetric.diastolic_pressure)
    a1c_row = _latest(db, user_id, HealthMetric.a1c_percentage)
    weight_row = _latest(db, user_id, HealthMetric.weight_kg)
    hr_row = _latest(db, user_id, HealthMetric.heart_rate)
    exercise_row = _latest(db, user_id, HealthMetric.exercise_duration)

    return HealthMetricsSnapshot(
        blood_glucose=tuple(
            GlucoseReading(
                value=row.blood_glucose_level,
                recorded_at=row.recorded_at,
                context=row.measurement_context,
            )
            for row in glucose_rows
        ),
        blood_pressure=(
            BloodPressureReading(
                systolic=bp_row.systolic_pressure,
                diastolic=bp_row.diastolic_pressure,
                recorded_at=bp_row.recorded_at,
            )
            if bp_row
            else None
        ),
        a1c=MetricReading(value=a1c_row.a1c_percentage, recorded_at=a1c_row.recorded_at) if a1c_row else None,
        weight=MetricReading(value=weight_row.weight_kg, recorded_at=weight_row.recorded_at) if weight_row else None,
        heart_rate=MetricReading(value=hr_row.heart_rate, recorded_at=hr_row.recorded_at) if hr_row else None,
        exercise=(
            ExerciseEntry(
                duration_minutes=exercise_row.exercise_duration,
                exercise_type=exercise_row.exercise_type or "exercise",
                intensity=exercise_row.exercise_intensity,
                recorded_at=exercise_row.recorded_at,
            )
            if exercise_row
            else None
        ),
    )


def load_medical_context(db: Session, user_id: int) -> Optional[MedicalContext]:
    profile = db.query(MedicalProfile).filter(MedicalProfile.user_id == user_id).first()
    if not profile:
        return None

    return MedicalContext(
        diabetes_type=profile.diabetes_type,
        diagnosis_year=profile.diagnosis_year,
        height_cm=profile.height_cm,
        weight_kg=profile.weight_kg,
        bmi=profile.bmi,
        target_glucose_min=profile.target_glucose_min,
        target_glucose_max=profile.target_glucose_max,
        medications=profile.medications,
        allergies=profile.allergies,
        comorbidities=profile.comorbidities,
        health_metrics=load_health_metrics(db, user_id),
    )
