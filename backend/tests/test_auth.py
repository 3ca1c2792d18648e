from dicey.main import app
from dicey.security import create_session_token

PASSWORD = "Secret123!"


def _signup(client, email="alice@example.com", name="Alice", password=PASSWORD):
    return client.post("/auth/signup", json={"name": name, "email": email, "password": password})


def test_signup_sets_session_cookie(client):
    r = _signup(client)
    assert r.status_code == 201, r.text
    body = r.json()
    assert body["success"] is True
    assert isinstance(body["user_id"], int)

    set_cookie = r.headers.get("set-cookie", "")
    assert set_cookie.startswith("session=")
    assert "HttpOnly" in set_cookie
    assert "samesite=lax" in set_cookie.lower()
    assert "Path=/" in set_cookie


def test_duplicate_email_is_rejected_case_insensitively(client):
    assert _signup(client).status_code == 201
    r = _signup(client, email="ALICE@example.com", name="Other Alice")
    assert r.status_code == 409
    body = r.json()
    assert body["success"] is False
    assert body["error"] == "duplicate_identity"
    assert body["message"]


def test_signup_validates_payload(client):
    assert _signup(client, email="not-an-email").status_code == 422
    assert _signup(client, password="short").status_code == 422
    assert _signup(client, name="   ").status_code == 422


def test_login_success_and_me(client):
    created = _signup(client).json()
    client.cookies.clear()

    r = client.post("/auth/login", json={"email": "Alice@Example.com", "password": PASSWORD})
    assert r.status_code == 200, r.text
    assert r.json()["user_id"] == created["user_id"]

    me = client.get("/auth/me")
    assert me.status_code == 200
    assert me.json() == {"id": created["user_id"], "name": "Alice", "email": "alice@example.com"}


def test_login_failure_is_uniform(client):
    _signup(client)
    client.cookies.clear()

    wrong_password = client.post("/auth/login", json={"email": "alice@example.com", "password": "nope-nope"})
    unknown_user = client.post("/auth/login", json={"email": "ghost@example.com", "password": PASSWORD})

    for r in (wrong_password, unknown_user):
        assert r.status_code == 401
        assert r.json()["error"] == "invalid_credentials"
        assert "set-cookie" not in r.headers
    assert wrong_password.json()["message"] == unknown_user.json()["message"]


def test_bearer_token_is_accepted(client, signup):
    headers = signup("Bob")
    client.cookies.clear()
    r = client.get("/auth/me", headers=headers)
    assert r.status_code == 200
    assert r.json()["name"].startswith("Bob")


def test_logout_clears_session(client):
    _signup(client)
    assert client.get("/auth/me").status_code == 200

    r = client.post("/auth/logout")
    assert r.status_code == 200
    assert r.json() == {"success": True}
    assert client.get("/auth/me").status_code == 401


def test_protected_routes_require_session(client):
    assert client.get("/auth/me").status_code == 401
    assert client.get("/rooms").status_code == 401
    assert client.post("/rooms", json={"title": "Lunch"}).status_code == 401

    tampered = {"Authorization": "Bearer not.a.token"}
    r = client.get("/auth/me", headers=tampered)
    assert r.status_code == 401
    body = r.json()
    assert body["success"] is False
    assert body["error"] == "unauthenticated"
    assert body["message"]


def test_token_for_missing_account_is_rejected(client):
    stale = {"Authorization": f"Bearer {create_session_token(424242)}"}
    r = client.get("/rooms", headers=stale)
    assert r.status_code == 401
    assert r.json()["error"] == "unauthenticated"
    assert client.post("/rooms/ABCDEF/options", json={"text": "Tacos"}, headers=stale).status_code == 401


def test_login_rate_limited(client):
    _signup(client)
    limiter = app.state.limiter
    limiter.enabled = True
    try:
        codes = [
            client.post("/auth/login", json={"email": "alice@example.com", "password": "wrong-pass"}).status_code
            for _ in range(6)
        ]
    finally:
        limiter.enabled = False

    assert codes[:5] == [401] * 5
    assert codes[5] == 429
