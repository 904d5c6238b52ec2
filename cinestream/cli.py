import logging
import re
from datetime import date

import click

from .models import Movie, User, db
from .security import purge_expired_revocations

logger = logging.getLogger(__name__)

SAMPLE_MOVIES = [
    {
        "title": "The Long Harbor",
        "description": "A retired ferry captain is pulled back to sea when his old route goes silent.",
        "synopsis": "When the last ferry between two island towns stops answering the radio, "
                    "a retired captain takes her old boat out one more time and finds the crossing changed.",
        "release_date": date(2023, 5, 12),
        "duration": 118,
        "genre": ["Drama", "Adventure"],
        "director": "Ines Marlowe",
        "cast": ["Ruth Calder", "Tomas Ek", "Amara Osei"],
        "language": "en",
        "tags": ["sea", "drama"],
        "media_id": "long_harbor_main",
    },
    {
        "title": "Static Bloom",
        "description": "A botanist discovers that a greenhouse plant is broadcasting on a radio frequency.",
        "synopsis": "A night-shift botanist records a signal coming from a rare orchid, and "
                    "a government lab wants the plant before she can work out what it is saying.",
        "release_date": date(2024, 10, 3),
        "duration": 104,
        "genre": ["Science Fiction", "Thriller"],
        "director": "Kenji Harlan",
        "cast": ["Lena Vos", "Marcus Reid"],
        "language": "en",
        "tags": ["science-fiction", "mystery"],
        "media_id": "static_bloom_main",
    },
    {
        "title": "Paper Crowns",
        "description": "Three siblings inherit a failing puppet theater and one last booking.",
        "synopsis": "After their grandmother dies, three estranged siblings have a week to "
                    "stage the puppet show she promised a small town, or lose the theater for good.",
        "release_date": date(2022, 2, 18),
        "duration": 97,
        "genre": ["Comedy", "Family"],
        "director": "Sofia Brandt",
        "cast": ["Noah Pike", "Elsie Grant", "Dev Raman"],
        "language": "en",
        "tags": ["family", "comedy"],
        "media_id": "paper_crowns_main",
    },
]


def _sample_movie(data, media_base_url):
    slug = data["media_id"]
    return Movie(
        poster=f"{media_base_url.rstrip('/')}/posters/{slug}.jpg",
        video_url=f"{media_base_url.rstrip('/')}/{slug}.mp4",
        trailer="",
        **data,
    )


def generate_username(user):
    """firstname+lastname, lower-cased and stripped to [a-z0-9], with a counter until it is free."""
    base = re.sub(r"[^a-z0-9]", "", f"{user.first_name}{user.last_name}".lower())[:20]
    if len(base) < 3:
        base = f"user{base}"

    candidate = base
    counter = 1
    while User.query.filter(User.username == candidate, User.user_id != user.user_id).first():
        candidate = f"{base}{counter}"
        counter += 1
    return candidate


def register_commands(app):
    @app.cli.command("init-db")
    def init_db():
        """Create all tables."""
        db.create_all()
        click.echo("Database tables created")

    @app.cli.command("seed-movies")
    def seed_movies():
        """Insert the sample catalog into an empty movies table."""
        existing = Movie.query.count()
        if existing:
            click.echo(f"Movies table already has {existing} rows, nothing to seed")
            return

        media_base_url = app.extensions["settings"].media_base_url
        for data in SAMPLE_MOVIES:
            db.session.add(_sample_movie(dict(data), media_base_url))
        db.session.commit()

        logger.info("Seeded %d movies", len(SAMPLE_MOVIES))
        click.echo(f"Inserted {len(SAMPLE_MOVIES)} movies")

    @app.cli.command("purge-revoked-tokens")
    def purge_revoked_tokens():
        """Delete revocation records whose token has expired."""
        removed = purge_expired_revocations()
        db.session.commit()
        click.echo(f"Removed {removed} expired revocations")

    @app.cli.command("backfill-usernames")
    def backfill_usernames():
        """Generate usernames for users that do not have one."""
        users = (
            User.query.filter(db.or_(User.username.is_(None), User.username == ""))
            .order_by(User.user_id)
            .all()
        )
        if not users:
            click.echo("All users already have usernames")
            return

        for user in users:
            user.username = generate_username(user)
            # flush so the next lookup sees this name as taken
            db.session.flush()
            click.echo(f"{user.email} -> {user.username}")
        db.session.commit()

        logger.info("Backfilled usernames for %d users", len(users))
        click.echo(f"Updated {len(users)} users")
