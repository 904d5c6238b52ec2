import logging
from datetime import date

from flask import Blueprint, request

from .. import security
from ..errors import BadRequest, NotFound
from ..models import Movie, db
from ..pagination import Page, PageRequest, paginate
from ..ratings import find_active_movie
from ..responses import created, paginated, success
from ..validation import MovieCreate, MovieUpdate, require_valid
from . import json_body, media_service

logger = logging.getLogger(__name__)

bp = Blueprint("movies", __name__)

SORT_COLUMNS = {
    "createdAt": Movie.created_at,
    "title": Movie.title,
    "releaseDate": Movie.release_date,
    "rating": Movie.rating_average,
    "views": Movie.views,
    "duration": Movie.duration,
}

# JSON columns keep the lists, the remaining fields map straight to columns
_LIST_FIELDS = ("genre", "cast", "thumbnails", "tags")


def _apply(movie, fields):
    for name, value in fields.items():
        if name in _LIST_FIELDS:
            value = list(value or [])
        elif name == "subtitles":
            value = [dict(s) for s in value or []]
        elif name == "media_metadata":
            value = {k: v for k, v in (value or {}).items() if v is not None}
        setattr(movie, name, value)


def _int_arg(name):
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    try:
        return int(raw)
    except ValueError:
        raise BadRequest(f"{name} must be an integer")


def _float_arg(name):
    raw = request.args.get(name)
    if raw in (None, ""):
        return None
    try:
        return float(raw)
    except ValueError:
        raise BadRequest(f"{name} must be a number")


# ---------------- LIST ----------------
@bp.route("", methods=["GET"])
@bp.route("/", methods=["GET"])
def list_movies():
    page_req = PageRequest.from_args(request.args, default_limit=20, max_limit=100)

    query = Movie.query.filter(Movie.active())

    genres = [g for g in request.args.getlist("genre") if g]
    release_year = _int_arg("releaseYear")
    min_rating = _float_arg("minRating")
    language = request.args.get("language")
    director = request.args.get("director")

    if release_year is not None:
        if not 1 <= release_year <= 9999:
            raise BadRequest("releaseYear must be a valid year")
        query = query.filter(Movie.release_date.between(date(release_year, 1, 1), date(release_year, 12, 31)))
    if min_rating is not None:
        query = query.filter(Movie.rating_average >= min_rating)
    if language:
        query = query.filter(Movie.language == language)
    if director:
        query = query.filter(Movie.director.ilike(f"%{director}%"))

    sort_column = SORT_COLUMNS.get(request.args.get("sort"), Movie.created_at)
    order = sort_column.asc() if request.args.get("order") == "asc" else sort_column.desc()
    query = query.order_by(order, Movie.movie_id.asc())

    if genres:
        # Genre lists live in a JSON column, so membership is checked here
        wanted = set(genres)
        movies = [m for m in query.all() if wanted.intersection(m.genre or [])]
        total = len(movies)
        movies = movies[page_req.offset:page_req.offset + page_req.limit]
        page = Page(items=movies, total=total, request=page_req)
    else:
        page = paginate(query, page_req)

    return paginated("Movies retrieved successfully", [m.to_dict() for m in page.items], page)


@bp.route("/search", methods=["GET"])
def search_movies():
    term = (request.args.get("q") or "").strip()
    if not term:
        raise BadRequest("Search query is required")
    limit = min(100, max(1, _int_arg("limit") or 20))

    pattern = f"%{term}%"
    movies = (
        Movie.query.filter(
            Movie.active(),
            db.or_(Movie.title.ilike(pattern), Movie.description.ilike(pattern), Movie.synopsis.ilike(pattern)),
        )
        .order_by(Movie.rating_average.desc(), Movie.title.asc())
        .limit(limit)
        .all()
    )
    return success("Search completed successfully", [m.to_dict() for m in movies])


@bp.route("/trending", methods=["GET"])
def trending_movies():
    limit = min(100, max(1, _int_arg("limit") or 10))
    movies = (
        Movie.query.filter(Movie.active())
        .order_by(Movie.views.desc(), Movie.rating_average.desc())
        .limit(limit)
        .all()
    )
    return success("Trending movies retrieved successfully", [m.to_dict() for m in movies])


# ---------------- DETAIL ----------------
@bp.route("/<int:movie_id>", methods=["GET"])
def get_movie(movie_id):
    movie = find_active_movie(movie_id)

    Movie.query.filter_by(movie_id=movie_id).update({Movie.views: Movie.views + 1}, synchronize_session=False)
    db.session.commit()

    return success("Movie retrieved successfully", movie.to_dict())


@bp.route("/<int:movie_id>/video", methods=["GET"])
def get_movie_video(movie_id):
    movie = find_active_movie(movie_id)
    if not movie.media_id:
        raise NotFound("Video not available for this movie")

    expires_in = _int_arg("duration") or 3600
    url = media_service().signed_video_url(
        movie.media_id,
        expires_in=expires_in,
        width=_int_arg("width"),
        height=_int_arg("height"),
        quality=request.args.get("quality", "auto"),
    )
    return success("Video URL generated successfully", {
        "videoUrl": url,
        "expiresIn": expires_in,
        "movieId": movie.movie_id,
        "title": movie.title,
        "duration": movie.duration,
    })


@bp.route("/<int:movie_id>/video/info", methods=["GET"])
def get_movie_video_info(movie_id):
    movie = find_active_movie(movie_id)
    if not movie.media_id:
        raise NotFound("Video not available for this movie")

    info = media_service().video_info(movie)
    return success("Video info retrieved successfully", {
        "movieId": movie.movie_id,
        "title": movie.title,
        "mediaId": movie.media_id,
        **info,
    })


# ---------------- ADMIN ----------------
@bp.route("", methods=["POST"])
@bp.route("/", methods=["POST"])
@security.admin_required
def create_movie():
    payload = require_valid(MovieCreate, json_body())

    movie = Movie()
    _apply(movie, payload.model_dump())
    db.session.add(movie)
    db.session.commit()

    logger.info("Movie %s created", movie.movie_id)
    return created("Movie created successfully", movie.to_dict())


@bp.route("/<int:movie_id>", methods=["PUT"])
@security.admin_required
def update_movie(movie_id):
    movie = db.session.get(Movie, movie_id)
    if movie is None:
        raise NotFound("Movie not found")

    changes = require_valid(MovieUpdate, json_body()).provided()
    _apply(movie, {k: v for k, v in changes.items() if v is not None})
    db.session.commit()

    return success("Movie updated successfully", movie.to_dict())


@bp.route("/<int:movie_id>", methods=["DELETE"])
@security.admin_required
def delete_movie(movie_id):
    movie = db.session.get(Movie, movie_id)
    if movie is None:
        raise NotFound("Movie not found")

    movie.is_active = False
    db.session.commit()

    logger.info("Movie %s soft-deleted", movie_id)
    return success("Movie deleted successfully")
