from datetime import datetime, timedelta

from cinestream.cli import SAMPLE_MOVIES
from cinestream.models import Movie, RevokedToken, User, db


def test_seed_movies_only_fills_empty_catalog(app):
    runner = app.test_cli_runner()

    result = runner.invoke(args=["seed-movies"])
    assert result.exit_code == 0
    assert f"Inserted {len(SAMPLE_MOVIES)} movies" in result.output

    result = runner.invoke(args=["seed-movies"])
    assert "nothing to seed" in result.output

    with app.app_context():
        assert Movie.query.count() == len(SAMPLE_MOVIES)
        assert all(m.poster.startswith("https://media.test/video/posters/") for m in Movie.query.all())


def test_seeded_movies_are_served(app, client):
    app.test_cli_runner().invoke(args=["seed-movies"])

    data = client.get("/api/movies?sort=title&order=asc").get_json()["data"]

    assert [m["title"] for m in data] == sorted(m["title"] for m in SAMPLE_MOVIES)


def test_backfill_usernames(app, client, registration):
    client.post("/api/auth/register", json=registration(email="a@example.com", firstName="Ana", lastName="López"))
    client.post("/api/auth/register", json=registration(email="b@example.com", firstName="Ana", lastName="Lpez"))
    client.post("/api/auth/register", json=registration(email="c@example.com", username="keeper"))

    result = app.test_cli_runner().invoke(args=["backfill-usernames"])

    assert result.exit_code == 0
    with app.app_context():
        names = {u.email: u.username for u in User.query.all()}
    assert names == {"a@example.com": "analpez", "b@example.com": "analpez1", "c@example.com": "keeper"}


def test_purge_revoked_tokens(app):
    with app.app_context():
        db.session.add(RevokedToken(token_digest="a" * 64, expires_at=datetime.utcnow() - timedelta(hours=1)))
        db.session.add(RevokedToken(token_digest="b" * 64, expires_at=datetime.utcnow() + timedelta(hours=1)))
        db.session.commit()

    result = app.test_cli_runner().invoke(args=["purge-revoked-tokens"])

    assert "Removed 1 expired revocations" in result.output
    with app.app_context():
        assert [t.token_digest for t in RevokedToken.query.all()] == ["b" * 64]
