from datetime import datetime, timedelta

from app.core.context_builder import (
    GLUCOSE_READING_LIMIT,
    format_number,
    load_health_metrics,
    load_medical_context,
)
from app.db.models import HealthMetric


def test_context_is_none_without_profile(create_user, seed_metrics, db_session) -> None:
    user = create_user()
    seed_metrics(user.id)
    assert load_medical_context(db_session, user.id) is None


def test_context_carries_profile_and_latest_metrics(create_user, seed_profile, seed_metrics, db_session) -> None:
    user = create_user()
    seed_profile(user.id)
    now = datetime(2025, 3, 10, 12, 0)
    seed_metrics(user.id, now=now)

    context = load_medical_context(db_session, user.id)
    assert context is not None
    assert context.diabetes_type == "type2"
    assert context.bmi == 26.8
    assert context.medications == "Metformin 500mg twice daily"

    metrics = context.health_metrics
    assert [r.value for r in metrics.blood_glucose] == [110, 185]
    assert metrics.blood_glucose[0].context == "fasting"
    assert (metrics.blood_pressure.systolic, metrics.blood_pressure.diastolic) == (128, 82)
    assert metrics.heart_rate.value == 72
    assert metrics.a1c.value == 6.8
    assert metrics.weight.value == 80.5
    assert metrics.exercise.exercise_type == "walking"
    assert metrics.exercise.intensity == 2


def test_glucose_readings_are_capped_newest_first(create_user, db_session) -> None:
    user = create_user()
    base = datetime(2025, 1, 1, 8, 0)
    db_session.add_all(
        HealthMetric(user_id=user.id, blood_glucose_level=100 + i, recorded_at=base + timedelta(days=i))
        for i in range(8)
    )
    db_session.commit()

    snapshot = load_health_metrics(db_session, user.id)
    assert len(snapshot.blood_glucose) == GLUCOSE_READING_LIMIT
    assert [r.value for r in snapshot.blood_glucose] == [107, 106, 105, 104, 103]
    assert snapshot.blood_pressure is None
    assert snapshot.exercise is None


def test_empty_snapshot(create_user, db_session) -> None:
    user = create_user()
    assert load_health_metrics(db_session, user.id).is_empty()


def test_format_number() -> None:
    assert format_number(120.0) == "120"
    assert format_number(6.75) == "6.75"
    assert format_number(7.333) == "7.33"
