import logging

from flask import Blueprint, g, request

from .. import security
from ..errors import NotFound
from ..models import Rating, User
from ..pagination import PageRequest, paginate
from ..ratings import calculate_movie_stats, delete_rating, find_active_movie, update_rating, upsert_rating
from ..responses import created, paginated, success
from ..validation import RatingCreate, RatingUpdate, require_valid
from . import json_body

logger = logging.getLogger(__name__)

bp = Blueprint("ratings", __name__)

SORT_COLUMNS = {"createdAt": Rating.created_at, "rating": Rating.rating}


def _stats_payload(movie_id, stats):
    return {
        "movieId": movie_id,
        "averageRating": stats["average"],
        "totalRatings": stats["count"],
        "distribution": stats["distribution"],
    }


# ---------------- RATE ----------------
@bp.route("", methods=["POST"])
@bp.route("/", methods=["POST"])
@security.login_required
def rate_movie():
    payload = require_valid(RatingCreate, json_body())

    rating, is_new, stats = upsert_rating(g.current_user, payload.movie_id, payload.rating, payload.review)
    data = {"rating": rating.to_dict(), "movieStats": _stats_payload(rating.movie_id, stats)}

    if is_new:
        return created("Rating created successfully", data)
    return success("Rating updated successfully", data)


@bp.route("/<int:rating_id>", methods=["PUT"])
@security.login_required
def edit_rating(rating_id):
    payload = require_valid(RatingUpdate, json_body())

    rating, stats = update_rating(g.current_user, rating_id, value=payload.rating, review=payload.review)
    return success("Rating updated successfully", {
        "rating": rating.to_dict(),
        "movieStats": _stats_payload(rating.movie_id, stats),
    })


# ---------------- READ ----------------
@bp.route("/movie/<int:movie_id>/stats", methods=["GET"])
def movie_stats(movie_id):
    find_active_movie(movie_id)
    stats = calculate_movie_stats(movie_id)
    return success("Rating statistics retrieved successfully", _stats_payload(movie_id, stats))


@bp.route("/movie/<int:movie_id>/user", methods=["GET"])
@security.login_required
def my_rating(movie_id):
    rating = Rating.query.filter(
        Rating.user_id == g.current_user.user_id,
        Rating.movie_id == movie_id,
        Rating.active(),
    ).first()
    if rating is None:
        raise NotFound("No rating found for this movie")
    return success("Rating retrieved successfully", rating.to_dict())


@bp.route("/movie/<int:movie_id>", methods=["GET"])
def movie_ratings(movie_id):
    find_active_movie(movie_id)
    page_req = PageRequest.from_args(request.args)

    sort_column = SORT_COLUMNS.get(request.args.get("sortBy"), Rating.created_at)
    order = sort_column.asc() if request.args.get("order") == "asc" else sort_column.desc()

    query = (
        Rating.query.join(User, User.user_id == Rating.user_id)
        .filter(Rating.movie_id == movie_id, Rating.active(), User.is_active.is_(True))
        .order_by(order, Rating.rating_id.desc())
    )
    page = paginate(query, page_req)

    items = []
    for rating in page.items:
        item = rating.to_dict()
        item["user"] = rating.user.to_public()
        items.append(item)
    return paginated("Ratings retrieved successfully", items, page)


# ---------------- DELETE ----------------
@bp.route("/movie/<int:movie_id>", methods=["DELETE"])
@security.login_required
def remove_rating(movie_id):
    stats = delete_rating(g.current_user, movie_id)
    logger.info("User %s removed rating for movie %s", g.current_user.user_id, movie_id)
    return success("Rating deleted successfully", {"movieStats": _stats_payload(movie_id, stats)})
