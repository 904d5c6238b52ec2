import itertools
from dataclasses import dataclass
from datetime import date

import pytest

from cinestream import Settings, create_app
from cinestream.models import Movie, User, db

STRONG_PASSWORD = "Str0ng!Pass"


@dataclass
class Account:
    id: int
    email: str
    password: str
    token: str

    @property
    def headers(self):
        return {"Authorization": f"Bearer {self.token}"}


@pytest.fixture
def settings():
    return Settings(
        app_env="test",
        database_url="sqlite://",
        secret_key="test-secret",
        jwt_secret="test-jwt-secret-for-the-cinestream-suite",
        media_base_url="https://media.test/video",
        media_signing_key="media-test-key",
        log_level="WARNING",
    )


@pytest.fixture
def app(settings):
    app = create_app(settings)
    yield app
    with app.app_context():
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def registration():
    """Build a valid registration body, overridable per test."""
    def build(**overrides):
        body = {
            "email": "ana.lopez@example.com",
            "password": STRONG_PASSWORD,
            "confirmPassword": STRONG_PASSWORD,
            "firstName": "Ana",
            "lastName": "Lopez",
            "age": 28,
        }
        body.update(overrides)
        return body

    return build


@pytest.fixture
def login(client):
    def do_login(email, password=STRONG_PASSWORD):
        resp = client.post("/api/auth/login", json={"email": email, "password": password})
        assert resp.status_code == 200, resp.get_json()
        return resp.get_json()["data"]["token"]

    return do_login


@pytest.fixture
def make_user(app, client, registration, login):
    counter = itertools.count(1)

    def create(role="user", **overrides):
        n = next(counter)
        body = registration(email=f"user{n}@example.com", firstName=f"User{n}", **overrides)
        resp = client.post("/api/auth/register", json=body)
        assert resp.status_code == 201, resp.get_json()
        user_id = resp.get_json()["data"]["user"]["id"]

        if role != "user":
            with app.app_context():
                db.session.get(User, user_id).role = role
                db.session.commit()

        token = login(body["email"], body["password"])
        return Account(id=user_id, email=body["email"], password=body["password"], token=token)

    return create


@pytest.fixture
def user(make_user):
    return make_user()


@pytest.fixture
def admin(make_user):
    return make_user(role="admin")


@pytest.fixture
def make_movie(app):
    counter = itertools.count(1)

    def create(**overrides):
        n = next(counter)
        fields = {
            "title": f"Movie {n}",
            "description": f"Description of movie {n}",
            "synopsis": f"Longer synopsis of movie number {n}",
            "release_date": date(2020, 1, 1),
            "duration": 120,
            "genre": ["Drama"],
            "director": "Jane Doe",
            "poster": f"https://img.example.com/{n}.jpg",
            "video_url": f"https://cdn.example.com/{n}.mp4",
            "media_id": f"media_{n}",
        }
        fields.update(overrides)
        with app.app_context():
            movie = Movie(**fields)
            db.session.add(movie)
            db.session.commit()
            return movie.movie_id

    return create


@pytest.fixture
def movie(make_movie):
    return make_movie()
