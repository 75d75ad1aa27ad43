from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from pydantic import BaseModel, Field
from sqlalchemy.orm import Session

from app.api.auth import get_current_user
from app.core.context_builder import to_naive_utc
from app.db.models import HealthMetric, User
from app.db.session import get_db

router = APIRouter(prefix="/metrics", tags=["metrics"])


class MeasurementContext(str, Enum):
    fasting = "fasting"
    before_meal = "before_meal"
    after_meal = "after_meal"
    bedtime = "bedtime"
    random = "random"


# field -> (lower, upper, must_be_int)
METRIC_RULES: dict[str, tuple[float, float, bool]] = {
    "blood_glucose_level": (20, 600, False),
    "systolic_pressure": (70, 250, True),
    "diastolic_pressure": (40, 150, True),
    "heart_rate": (30, 220, True),
    "weight_kg": (20, 350, False),
    "a1c_percentage": (3, 20, False),
    "exercise_duration": (1, 600, True),
    "exercise_intensity": (1, 3, True),
    "carbs_grams": (0, 1000, True),
}


class MetricWriteRequest(BaseModel):
    blood_glucose_level: Optional[float] = None
    measurement_context: Optional[MeasurementContext] = None
    systolic_pressure: Optional[float] = None
    diastolic_pressure: Optional[float] = None
    heart_rate: Optional[float] = None
    weight_kg: Optional[float] = None
    a1c_percentage: Optional[float] = None
    exercise_duration: Optional[float] = None
    exercise_type: Optional[str] = Field(default=None, max_length=64)
    exercise_intensity: Optional[float] = None
    carbs_grams: Optional[float] = None
    notes: Optional[str] = Field(default=None, max_length=2000)
    recorded_at: Optional[datetime] = None


class MetricItem(BaseModel):
    id: int
    blood_glucose_level: Optional[float] = None
    measurement_context: Optional[str] = None
    systolic_pressure: Optional[int] = None
    diastolic_pressure: Optional[int] = None
    heart_rate: Optional[int] = None
    weight_kg: Optional[float] = None
    a1c_percentage: Optional[float] = None
    exercise_duration: Optional[int] = None
    exercise_type: Optional[str] = None
    exercise_intensity: Optional[int] = None
    carbs_grams: Optional[int] = None
    notes: Optional[str] = None
    recorded_at: datetime


class MetricListResponse(BaseModel):
    items: list[MetricItem]


def _validate_metrics(payload: MetricWriteRequest) -> dict[str, object]:
    values: dict[str, object] = {}
    for field_name, (lower, upper, must_be_int) in METRIC_RULES.items():
        value = getattr(payload, field_name)
        if value is None:
            continue
        if value < lower or value > upper:
            raise HTTPException(status_code=422, detail=f"value out of range for {field_name}")
        if must_be_int and int(value) != value:
            raise HTTPException(status_code=422, detail=f"value for {field_name} must be an integer")
        values[field_name] = int(value) if must_be_int else float(value)

    if not values:
        raise HTTPException(status_code=422, detail="at least one metric value is required")
    if ("systolic_pressure" in values) != ("diastolic_pressure" in values):
        raise HTTPException(status_code=422, detail="blood pressure needs both systolic and diastolic values")
    if "systolic_pressure" in values and values["systolic_pressure"] <= values["diastolic_pressure"]:
        raise HTTPException(status_code=422, detail="systolic_pressure must exceed diastolic_pressure")
    return values


def _to_item(row: HealthMetric) -> MetricItem:
    return MetricItem(
        id=row.id,
        blood_glucose_level=row.blood_glucose_level,
        measurement_context=row.measurement_context,
        systolic_pressure=row.systolic_pressure,
        diastolic_pressure=row.diastolic_pressure,
        heart_rate=row.heart_rate,
        weight_kg=row.weight_kg,
        a1c_percentage=row.a1c_percentage,
        exercise_duration=row.exercise_duration,
        exercise_type=row.exercise_type,
        exercise_intensity=row.exercise_intensity,
        carbs_grams=row.carbs_grams,
        notes=row.notes,
        recorded_at=row.recorded_at,
    )


@router.post("", response_model=MetricItem, status_code=status.HTTP_201_CREATED)
def create_metric(
    payload: MetricWriteRequest,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MetricItem:
    values = _validate_metrics(payload)
    recorded_at = to_naive_utc(payload.recorded_at or datetime.now(timezone.utc))
    record = HealthMetric(
        user_id=user.id,
        measurement_context=payload.measurement_context.value if payload.measurement_context else None,
        exercise_type=(payload.exercise_type or "").strip() or None,
        notes=(payload.notes or "").strip() or None,
        recorded_at=recorded_at,
        **values,
    )
    db.add(record)
    db.commit()
    db.refresh(record)
    return _to_item(record)


@router.get("", response_model=MetricListResponse)
def list_metrics(
    from_ts: Optional[datetime] = Query(default=None, alias="from"),
    to_ts: Optional[datetime] = Query(default=None, alias="to"),
    limit: int = Query(default=100, ge=1, le=500),
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
) -> MetricListResponse:
    query = db.query(HealthMetric).filter(HealthMetric.user_id == user.id)
    if from_ts:
        query = query.filter(HealthMetric.recorded_at >= to_naive_utc(from_ts))
    if to_ts:
        query = query.filter(HealthMetric.recorded_at <= to_naive_utc(to_ts))

    rows = query.order_by(HealthMetric.recorded_at.desc(), HealthMetric.id.desc()).limit(limit).all()
    return MetricListResponse(items=[_to_item(row) for row in rows])
