from geovote import create_app
from geovote.config import TestingConfig
from geovote.extensions import db


def _register(client, email="board@example.org", password="StrongPass123"):
    return client.post("/api/auth/register", json={"email": email, "password": password, "name": "Board"})


def _login(client, email="board@example.org", password="StrongPass123"):
    return client.post("/api/auth/login", json={"email": email, "password": password})


def test_register_login_me(client):
    res = _register(client)
    assert res.status_code == 201
    assert res.get_json()["organizer"]["email"] == "board@example.org"

    res = _login(client)
    assert res.status_code == 200
    token = res.get_json()["access_token"]

    res = client.get("/api/auth/me", headers={"Authorization": f"Bearer {token}"})
    assert res.status_code == 200
    assert res.get_json()["organizer"]["name"] == "Board"


def test_duplicate_registration(client):
    _register(client)
    assert _register(client, email="BOARD@example.org").status_code == 409


def test_bad_credentials(client):
    _register(client)
    res = _login(client, password="WrongPass123")
    assert res.status_code == 401


def test_validation_error_envelope(client):
    res = client.post("/api/auth/register", json={"email": "not-an-email", "password": "short"})
    assert res.status_code == 400
    body = res.get_json()
    assert body["success"] is False
    assert body["error"]["code"] == "VALIDATION_ERROR"
    assert set(body["error"]["details"]) == {"email", "password"}
    assert body["request_id"] == res.headers["X-Request-Id"]


def test_request_id_is_echoed(client):
    res = client.get("/health", headers={"X-Request-Id": "abc-123"})
    assert res.status_code == 200
    assert res.headers["X-Request-Id"] == "abc-123"


def test_logout_revokes_token(client):
    _register(client)
    token = _login(client).get_json()["access_token"]
    headers = {"Authorization": f"Bearer {token}"}

    assert client.post("/api/auth/logout", headers=headers).status_code == 200
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_refresh_issues_access_token(client):
    _register(client)
    refresh_token = _login(client).get_json()["refresh_token"]
    res = client.post("/api/auth/refresh", headers={"Authorization": f"Bearer {refresh_token}"})
    assert res.status_code == 200
    assert res.get_json()["access_token"]


def test_login_is_rate_limited(client):
    # auth bucket allows 5 per minute per client IP
    for _ in range(5):
        assert _login(client, email="nobody@example.org").status_code == 401

    res = _login(client, email="nobody@example.org")
    assert res.status_code == 429
    body = res.get_json()
    assert body["error"]["code"] == "TOO_MANY_REQUESTS"
    assert body["error"]["details"]["bucket"] == "auth"
    retry_after = int(res.headers["Retry-After"])
    assert retry_after >= 1
    assert body["error"]["details"]["retry_after_seconds"] == retry_after


def _login_from(client, remote_addr, forwarded_for=None):
    headers = {"X-Forwarded-For": forwarded_for} if forwarded_for else {}
    return client.post(
        "/api/auth/login",
        json={"email": "nobody@example.org", "password": "StrongPass123"},
        headers=headers,
        environ_base={"REMOTE_ADDR": remote_addr},
    )


def test_rate_limit_is_per_client(client):
    for _ in range(5):
        _login_from(client, "203.0.113.7")
    assert _login_from(client, "203.0.113.7").status_code == 429
    assert _login_from(client, "203.0.113.9").status_code == 401


def test_forged_forwarded_for_does_not_reset_limit(client):
    statuses = [
        _login_from(client, "203.0.113.7", forwarded_for=f"10.9.9.{i}").status_code
        for i in range(8)
    ]
    assert statuses == [401] * 5 + [429] * 3


def test_trusted_proxy_hop_identifies_client():
    class BehindProxyConfig(TestingConfig):
        PROXY_FIX_X_FOR = 1

    app = create_app(BehindProxyConfig)
    with app.app_context():
        db.create_all()
        client = app.test_client()

        # the proxy at 10.0.0.2 appends the real caller as the last hop
        for _ in range(5):
            _login_from(client, "10.0.0.2", forwarded_for="198.51.100.20")
        assert _login_from(client, "10.0.0.2", forwarded_for="198.51.100.20").status_code == 429
        assert _login_from(client, "10.0.0.2", forwarded_for="198.51.100.21").status_code == 401
        # a spoofed first hop does not change the identity the proxy vouched for
        assert _login_from(client, "10.0.0.2", forwarded_for="1.2.3.4, 198.51.100.20").status_code == 429

        db.session.remove()
        db.drop_all()
