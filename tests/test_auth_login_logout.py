import warnings
from datetime import datetime, timedelta, timezone

import jwt

from cinestream import security
from cinestream.models import RevokedToken, User, db


def test_login_returns_token_and_preferences(client, user):
    resp = client.post("/api/auth/login", json={"email": user.email, "password": user.password})

    assert resp.status_code == 200
    data = resp.get_json()["data"]
    assert data["token"]
    assert data["user"]["id"] == user.id
    assert data["user"]["preferences"]["qualityPreference"] == "medium"


def test_login_token_carries_identity_claims(app, user, settings):
    claims = jwt.decode(user.token, settings.jwt_secret, algorithms=["HS256"])

    assert claims["userId"] == user.id
    assert claims["email"] == user.email
    assert claims["role"] == "user"
    assert claims["exp"] > claims["iat"]


def test_wrong_password_and_unknown_user_look_the_same(client, user):
    wrong = client.post("/api/auth/login", json={"email": user.email, "password": "Wrong!Pass1"})
    unknown = client.post("/api/auth/login", json={"email": "nobody@example.com", "password": "Wrong!Pass1"})

    assert wrong.status_code == unknown.status_code == 401
    assert wrong.get_json()["message"] == unknown.get_json()["message"] == "Invalid credentials"


def test_login_requires_both_fields(client):
    resp = client.post("/api/auth/login", json={"email": "ana@example.com"})

    assert resp.status_code == 400
    assert resp.get_json()["message"] == "Email and password are required"


def test_inactive_user_cannot_log_in(app, client, user):
    with app.app_context():
        db.session.get(User, user.id).is_active = False
        db.session.commit()

    resp = client.post("/api/auth/login", json={"email": user.email, "password": user.password})
    assert resp.status_code == 401


def test_logout_revokes_token(client, user):
    assert client.get("/api/users/profile", headers=user.headers).status_code == 200

    resp = client.post("/api/auth/logout", headers=user.headers)
    assert resp.status_code == 200
    assert resp.get_json()["data"]["redirectTo"] == "/login"

    resp = client.get("/api/users/profile", headers=user.headers)
    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Token has been revoked"


def test_logout_twice_is_rejected(client, user):
    assert client.post("/api/auth/logout", headers=user.headers).status_code == 200
    assert client.post("/api/auth/logout", headers=user.headers).status_code == 401


def test_new_login_after_logout_works(client, login, user):
    client.post("/api/auth/logout", headers=user.headers)

    token = login(user.email, user.password)

    assert token != user.token
    resp = client.get("/api/users/profile", headers={"Authorization": f"Bearer {token}"})
    assert resp.status_code == 200


def test_missing_token(client):
    resp = client.get("/api/users/profile")

    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Access token required"


def test_garbage_token(client):
    resp = client.get("/api/users/profile", headers={"Authorization": "Bearer not.a.jwt"})

    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Invalid token"


def test_expired_token(client, user, settings):
    past = datetime.now(timezone.utc) - timedelta(hours=1)
    token = jwt.encode(
        {"userId": user.id, "email": user.email, "role": "user", "iat": past - timedelta(hours=1), "exp": past},
        settings.jwt_secret,
        algorithm="HS256",
    )

    resp = client.get("/api/users/profile", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Token expired"


def test_reset_token_is_not_an_access_token(app, client, user):
    with app.app_context():
        token, _ = security.issue_reset_token(db.session.get(User, user.id))

    resp = client.get("/api/users/profile", headers={"Authorization": f"Bearer {token}"})

    assert resp.status_code == 401
    assert resp.get_json()["message"] == "Invalid token"


def test_expired_revocations_are_purged(app, user):
    with app.app_context():
        security.revoke_token(user.token)
        entry = RevokedToken.query.one()
        entry.expires_at = datetime.utcnow() - timedelta(seconds=1)
        db.session.commit()

        assert security.purge_expired_revocations() == 1
        db.session.commit()
        assert RevokedToken.query.count() == 0


def test_suite_secret_does_not_trigger_key_length_warnings(app, user):
    with app.app_context(), warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        security.decode_token(user.token)

    assert not [w for w in caught if "KeyLength" in w.category.__name__]
