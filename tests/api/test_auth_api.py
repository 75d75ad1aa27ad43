from uuid import uuid4


def test_health(client) -> None:
    assert client.get("/health").json() == {"status": "ok"}


def test_signup_login_and_duplicate(client) -> None:
    email = f"Person_{uuid4().hex[:8]}@Test.com"
    signup = client.post("/auth/signup", json={"email": email, "password": "StrongPass123"})
    assert signup.status_code == 201
    assert signup.json()["token_type"] == "bearer"

    duplicate = client.post("/auth/signup", json={"email": email.lower(), "password": "StrongPass123"})
    assert duplicate.status_code == 409

    login = client.post("/auth/login", data={"username": email, "password": "StrongPass123"})
    assert login.status_code == 200
    token = login.json()["access_token"]
    assert client.get("/chat/sessions", headers={"Authorization": f"Bearer {token}"}).status_code == 200


def test_bad_credentials(client) -> None:
    email = f"user_{uuid4().hex[:8]}@test.com"
    client.post("/auth/signup", json={"email": email, "password": "StrongPass123"})
    wrong = client.post("/auth/login", data={"username": email, "password": "WrongPass123"})
    assert wrong.status_code == 401
    assert client.get("/chat/sessions", headers={"Authorization": "Bearer not-a-token"}).status_code == 401


def test_short_password_rejected(client) -> None:
    response = client.post("/auth/signup", json={"email": f"u_{uuid4().hex[:6]}@test.com", "password": "short"})
    assert response.status_code == 422
