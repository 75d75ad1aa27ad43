from datetime import datetime, timedelta
from enum import Enum
from pathlib import Path
from typing import Callable, Optional, Sequence
from uuid import uuid4

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session

from app.core.config import CompletionConfigError
from app.core.conversation import ConversationTurn
from app.core.outcome import Citation, TokenUsage, UpstreamError, UpstreamErrorKind
from app.core.security import get_password_hash
from app.db.catalog import build_resource, seed_resources as load_catalog
from app.db.models import HealthMetric, MedicalProfile, User
from app.db.session import SessionLocal, configure_database, create_tables
from app.services.llm import CompletionOutcome, CompletionResult, get_completion_client

FAKE_MODEL = "sonar-test"
FAKE_ANSWER = (
    "Aim for steady carbohydrate portions and pair them with protein and fiber. "
    "Check with your care team before changing medication."
)


class FakeScenario(str, Enum):
    OK = "OK"
    OK_WITH_CITATIONS = "OK_WITH_CITATIONS"
    EMPTY = "EMPTY"
    TIMEOUT = "TIMEOUT"
    AUTH = "AUTH"
    MODEL_NOT_FOUND = "MODEL_NOT_FOUND"
    NETWORK = "NETWORK"
    SERVER_ERROR = "SERVER_ERROR"
    MISSING_KEY = "MISSING_KEY"
    CRASH = "CRASH"


class FakeCompletionClient:
    def __init__(self, scenario: FakeScenario) -> None:
        self.scenario = scenario
        self.calls: list[tuple[str, list[ConversationTurn]]] = []

    def complete(self, system_prompt: str, turns: Sequence[ConversationTurn]) -> CompletionOutcome:
        self.calls.append((system_prompt, list(turns)))
        if self.scenario == FakeScenario.OK:
            return CompletionResult(
                message_text=FAKE_ANSWER,
                model=FAKE_MODEL,
                token_usage=TokenUsage(prompt=120, completion=40, total=160),
            )
        if self.scenario == FakeScenario.OK_WITH_CITATIONS:
            return CompletionResult(
                message_text=FAKE_ANSWER,
                model=FAKE_MODEL,
                citations=(
                    Citation(
                        title="Carb counting",
                        url="https://example.org/carbs",
                        excerpt="Counting carbohydrates helps match insulin to meals.",
                        domain="example.org",
                    ),
                ),
                token_usage=TokenUsage(prompt=130, completion=45, total=175),
            )
        if self.scenario == FakeScenario.EMPTY:
            return UpstreamError(UpstreamErrorKind.empty_response, "Completion response had no content")
        if self.scenario == FakeScenario.TIMEOUT:
            return UpstreamError(UpstreamErrorKind.timeout, "Completion request timed out: read timeout")
        if self.scenario == FakeScenario.AUTH:
            return UpstreamError(
                UpstreamErrorKind.authentication,
                "Completion request failed (status=401): invalid api key",
                status_code=401,
            )
        if self.scenario == FakeScenario.MODEL_NOT_FOUND:
            return UpstreamError(
                UpstreamErrorKind.model_configuration,
                "Completion request failed (status=404): model not found",
                status_code=404,
            )
        if self.scenario == FakeScenario.NETWORK:
            return UpstreamError(UpstreamErrorKind.network_connectivity, "Completion request failed: connection refused")
        if self.scenario == FakeScenario.SERVER_ERROR:
            return UpstreamError(
                UpstreamErrorKind.http_status,
                "Completion request failed (status=503): upstream unavailable",
                status_code=503,
            )
        if self.scenario == FakeScenario.MISSING_KEY:
            raise CompletionConfigError("Completion API key not configured")
        if self.scenario == FakeScenario.CRASH:
            raise RuntimeError("simulated crash")
        raise ValueError("Unknown fake scenario")


class FakeResourceStore:
    def __init__(self, rows=None) -> None:
        self.rows = list(rows or [])
        self.queries: list[list[str]] = []

    def search_approved(self, keywords, limit):
        self.queries.append(list(keywords))
        return self.rows[:limit]


@pytest.fixture(scope="session")
def test_db_path(tmp_path_factory: pytest.TempPathFactory) -> Path:
    db_path = tmp_path_factory.mktemp("db") / "diabetes_companion_test.db"
    configure_database(str(db_path))
    create_tables()
    return db_path


@pytest.fixture(scope="session")
def app(test_db_path: Path):
    from app.main import app as fastapi_app

    return fastapi_app


@pytest.fixture
def client(app):
    app.dependency_overrides = {}
    with TestClient(app) as test_client:
        yield test_client
    app.dependency_overrides = {}


@pytest.fixture
def db_session(test_db_path: Path):
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture
def create_user(db_session: Session) -> Callable[..., User]:
    def _create_user() -> User:
        email = f"user_{uuid4().hex[:10]}@test.com"
        user = User(email=email, password_hash=get_password_hash("StrongPass123"))
        db_session.add(user)
        db_session.commit()
        db_session.refresh(user)
        return user

    return _create_user


@pytest.fixture
def signup_user(client: TestClient) -> Callable[[], tuple[str, str]]:
    def _signup() -> tuple[str, str]:
        email = f"auth_{uuid4().hex[:10]}@test.com"
        password = "StrongPass123"
        signup = client.post("/auth/signup", json={"email": email, "password": password})
        assert signup.status_code == 201
        login = client.post("/auth/login", data={"username": email, "password": password})
        assert login.status_code == 200
        return email, login.json()["access_token"]

    return _signup


@pytest.fixture
def auth_token(signup_user) -> str:
    _, token = signup_user()
    return token


@pytest.fixture
def auth_headers(auth_token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {auth_token}"}


@pytest.fixture
def seed_profile(db_session: Session):
    def _seed(user_id: int, **overrides) -> MedicalProfile:
        values = dict(
            diabetes_type="type2",
            diagnosis_year=2018,
            height_cm=175.0,
            weight_kg=82.0,
            target_glucose_min=80.0,
            target_glucose_max=140.0,
            medications="Metformin 500mg twice daily",
            allergies="Penicillin",
            comorbidities="Hypertension",
        )
        values.update(overrides)
        row = MedicalProfile(user_id=user_id, **values)
        db_session.add(row)
        db_session.commit()
        db_session.refresh(row)
        return row

    return _seed


@pytest.fixture
def seed_metrics(db_session: Session):
    def _seed(user_id: int, now: Optional[datetime] = None) -> list[HealthMetric]:
        now = now or datetime.utcnow()
        rows = [
            HealthMetric(
                user_id=user_id,
                blood_glucose_level=110,
                measurement_context="fasting",
                recorded_at=now - timedelta(hours=2),
            ),
            HealthMetric(
                user_id=user_id,
                blood_glucose_level=185,
                measurement_context="after_meal",
                recorded_at=now - timedelta(hours=8),
            ),
            HealthMetric(
                user_id=user_id,
                systolic_pressure=128,
                diastolic_pressure=82,
                heart_rate=72,
                recorded_at=now - timedelta(days=1),
            ),
            HealthMetric(user_id=user_id, a1c_percentage=6.8, recorded_at=now - timedelta(days=30)),
            HealthMetric(user_id=user_id, weight_kg=80.5, recorded_at=now - timedelta(days=2)),
            HealthMetric(
                user_id=user_id,
                exercise_duration=30,
                exercise_type="walking",
                exercise_intensity=2,
                recorded_at=now - timedelta(hours=20),
            ),
        ]
        db_session.add_all(rows)
        db_session.commit()
        for row in rows:
            db_session.refresh(row)
        return rows

    return _seed


@pytest.fixture
def seed_resources(db_session: Session) -> Callable[..., int]:
    def _seed(with_unapproved: bool = False) -> int:
        count = load_catalog(db_session, replace=True)
        if with_unapproved:
            hidden = build_resource(
                {
                    "title": "Unreviewed Diet Foods Blog",
                    "description": "Pending review: miracle foods to avoid insulin.",
                    "category": "nutrition",
                    "tags": ["foods"],
                },
                is_approved=False,
            )
            db_session.add(hidden)
            db_session.commit()
        return count

    return _seed


@pytest.fixture
def fake_completion_factory() -> Callable[[FakeScenario], FakeCompletionClient]:
    def _factory(scenario: FakeScenario) -> FakeCompletionClient:
        return FakeCompletionClient(scenario=scenario)

    return _factory


@pytest.fixture
def override_completion_client(app, fake_completion_factory):
    def _override(scenario: FakeScenario) -> FakeCompletionClient:
        fake = fake_completion_factory(scenario)
        app.dependency_overrides[get_completion_client] = lambda: fake
        return fake

    return _override
