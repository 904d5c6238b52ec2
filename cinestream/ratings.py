"""Rating writes and the per-movie rating snapshot.

Every write below ends with :func:`refresh_movie_stats`, which recomputes
the average, count and 1..5 histogram from the *active* ratings and stores
them on the movie row. The recompute happens after the rating write and is
not part of the same transaction. A failure in between leaves the cached
stats stale until the next successful write.
"""

import logging
from datetime import datetime
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import func

from .errors import NotFound
from .models import Movie, Rating, db, empty_distribution

logger = logging.getLogger(__name__)

STAR_VALUES = (1, 2, 3, 4, 5)


def find_active_movie(movie_id):
    movie = Movie.query.filter(Movie.movie_id == movie_id, Movie.active()).first()
    if movie is None:
        raise NotFound("Movie not found")
    return movie


def _one_decimal(score, total):
    # exact halves round up: 9/4 is 2.3, not 2.2
    return float((Decimal(score) / Decimal(total)).quantize(Decimal("0.1"), rounding=ROUND_HALF_UP))


def calculate_movie_stats(movie_id):
    rows = (
        db.session.query(Rating.rating, func.count(Rating.rating_id))
        .filter(Rating.movie_id == movie_id, Rating.active())
        .group_by(Rating.rating)
        .all()
    )

    distribution = empty_distribution()
    total = 0
    score = 0
    for star, count in rows:
        if star not in STAR_VALUES:
            continue
        distribution[str(star)] = count
        total += count
        score += star * count

    average = _one_decimal(score, total) if total else 0
    return {"average": average, "count": total, "distribution": distribution}


def refresh_movie_stats(movie):
    stats = calculate_movie_stats(movie.movie_id)
    movie.rating_average = stats["average"]
    movie.rating_count = stats["count"]
    movie.rating_distribution = dict(stats["distribution"])
    db.session.commit()
    return stats


def upsert_rating(user, movie_id, value, review=""):
    """Create the user's rating for a movie or overwrite the existing one.

    Returns ``(rating, created, stats)``.
    """
    movie = find_active_movie(movie_id)

    rating = Rating.query.filter_by(user_id=user.user_id, movie_id=movie.movie_id).first()
    created = rating is None

    if created:
        rating = Rating(user_id=user.user_id, movie_id=movie.movie_id, rating=value, review=review or "")
        db.session.add(rating)
    else:
        rating.rating = value
        rating.review = review or ""
        rating.is_active = True
        rating.updated_at = datetime.utcnow()

    db.session.commit()

    stats = refresh_movie_stats(movie)
    logger.info(
        "%s rating %s for movie %s by user %s",
        "Created" if created else "Updated", rating.rating_id, movie.movie_id, user.user_id,
    )
    return rating, created, stats


def update_rating(user, rating_id, value=None, review=None):
    rating = Rating.query.filter(
        Rating.rating_id == rating_id,
        Rating.user_id == user.user_id,
        Rating.active(),
    ).first()
    if rating is None:
        raise NotFound("Rating not found or does not belong to the user")

    movie = find_active_movie(rating.movie_id)

    if value is not None:
        rating.rating = value
    if review is not None:
        rating.review = review
    rating.updated_at = datetime.utcnow()
    db.session.commit()

    return rating, refresh_movie_stats(movie)


def delete_rating(user, movie_id):
    """Soft-delete the user's active rating for a movie."""
    rating = Rating.query.filter(
        Rating.user_id == user.user_id,
        Rating.movie_id == movie_id,
        Rating.active(),
    ).first()
    if rating is None:
        raise NotFound("No rating found for this movie")

    rating.is_active = False
    db.session.commit()

    movie = db.session.get(Movie, movie_id)
    return refresh_movie_stats(movie)


def refresh_stats_for_movies(movie_ids):
    """Recompute snapshots for several movies, e.g. after an account is removed."""
    for movie in Movie.query.filter(Movie.movie_id.in_(list(movie_ids))).all():
        refresh_movie_stats(movie)
