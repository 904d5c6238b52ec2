import logging
from datetime import datetime

from flask import Blueprint, g, request

from .. import security
from ..errors import BadRequest, Conflict, Forbidden, NotFound
from ..models import Favorite, Movie, User, db
from ..pagination import Page, PageRequest, paginate
from ..ratings import find_active_movie
from ..responses import created, paginated, success
from ..validation import FavoriteCreate, FavoriteUpdate, require_valid
from . import json_body

logger = logging.getLogger(__name__)

bp = Blueprint("favorites", __name__)

SORT_COLUMNS = {
    "createdAt": Favorite.created_at,
    "updatedAt": Favorite.updated_at,
    "rating": Favorite.rating,
    "title": Movie.title,
    "releaseDate": Movie.release_date,
}


def _parse_date(name):
    raw = request.args.get(name)
    if not raw:
        return None
    try:
        return datetime.fromisoformat(raw.replace("Z", "+00:00")).replace(tzinfo=None)
    except ValueError:
        raise BadRequest(f"{name} must be an ISO date")


def _ensure_owner_or_admin(owner_id, message):
    user = g.current_user
    if owner_id != user.user_id and not security.is_admin(user):
        raise Forbidden(message)


def _list_favorites(query, page_req):
    """Apply the shared listing filters. Favorites of removed movies never show."""
    query = query.join(Movie, Movie.movie_id == Favorite.movie_id).filter(Favorite.active(), Movie.active())

    from_date = _parse_date("fromDate")
    to_date = _parse_date("toDate")
    if from_date:
        query = query.filter(Favorite.created_at >= from_date)
    if to_date:
        query = query.filter(Favorite.created_at <= to_date)

    sort_column = SORT_COLUMNS.get(request.args.get("sort"), Favorite.created_at)
    order = sort_column.asc() if request.args.get("order") == "asc" else sort_column.desc()
    query = query.order_by(order, Favorite.favorite_id.desc())

    genre = request.args.get("genre")
    if not genre:
        return paginate(query, page_req)

    # genre is a JSON list on the movie row
    matches = [f for f in query.all() if genre in (f.movie.genre or [])]
    window = matches[page_req.offset:page_req.offset + page_req.limit]
    return Page(items=window, total=len(matches), request=page_req)


# ---------------- ADD ----------------
@bp.route("", methods=["POST"])
@bp.route("/", methods=["POST"])
@security.login_required
def add_favorite():
    payload = require_valid(FavoriteCreate, json_body())
    _ensure_owner_or_admin(payload.user_id, "You can only manage your own favorites")

    owner = db.session.get(User, payload.user_id)
    if owner is None or not owner.is_active:
        raise NotFound("User not found")
    movie = find_active_movie(payload.movie_id)

    favorite = Favorite.query.filter_by(user_id=owner.user_id, movie_id=movie.movie_id).first()
    if favorite is not None and favorite.is_active:
        raise Conflict("Already in favorites")

    if favorite is None:
        favorite = Favorite(user_id=owner.user_id, movie_id=movie.movie_id)
        db.session.add(favorite)
    favorite.is_active = True
    favorite.notes = payload.notes or ""
    favorite.rating = payload.rating
    db.session.commit()

    logger.info("Movie %s added to favorites of user %s", movie.movie_id, owner.user_id)
    return created("Added to favorites", favorite.to_dict())


# ---------------- LIST ----------------
@bp.route("", methods=["GET"])
@bp.route("/", methods=["GET"])
@security.admin_required
def list_all_favorites():
    page_req = PageRequest.from_args(request.args, max_limit=100)
    page = _list_favorites(Favorite.query, page_req)
    return paginated("All favorites retrieved successfully", [f.to_dict() for f in page.items], page)


@bp.route("/me", methods=["GET"])
@security.login_required
def my_favorites():
    query = Favorite.query.filter(Favorite.user_id == g.current_user.user_id)
    page = _list_favorites(query, PageRequest.from_args(request.args))
    return paginated("Your favorites retrieved successfully", [f.to_dict() for f in page.items], page)


@bp.route("/me/<int:favorite_id>", methods=["GET"])
@security.login_required
def my_favorite(favorite_id):
    favorite = (
        Favorite.query.join(Movie, Movie.movie_id == Favorite.movie_id)
        .filter(
            Favorite.favorite_id == favorite_id,
            Favorite.user_id == g.current_user.user_id,
            Favorite.active(),
            Movie.active(),
        )
        .first()
    )
    if favorite is None:
        raise NotFound("Favorite not found")
    return success("Favorite retrieved successfully", favorite.to_dict())


@bp.route("/<int:user_id>", methods=["GET"])
@security.login_required
def user_favorites(user_id):
    _ensure_owner_or_admin(user_id, "You can only view your own favorites")

    query = Favorite.query.filter(Favorite.user_id == user_id)
    page = _list_favorites(query, PageRequest.from_args(request.args))
    return paginated("User favorites retrieved successfully", [f.to_dict() for f in page.items], page)


# ---------------- UPDATE / DELETE ----------------
def _active_favorite_or_404(favorite_id):
    favorite = Favorite.query.filter(Favorite.favorite_id == favorite_id, Favorite.active()).first()
    if favorite is None:
        raise NotFound("Favorite not found")
    return favorite


@bp.route("/<int:favorite_id>", methods=["PUT"])
@security.login_required
def update_favorite(favorite_id):
    favorite = _active_favorite_or_404(favorite_id)
    _ensure_owner_or_admin(favorite.user_id, "You can only update your own favorites")

    changes = require_valid(FavoriteUpdate, json_body()).provided()
    if "notes" in changes:
        favorite.notes = changes["notes"] or ""
    if "rating" in changes:
        favorite.rating = changes["rating"]
    db.session.commit()

    return success("Favorite updated", favorite.to_dict())


@bp.route("/<int:favorite_id>", methods=["DELETE"])
@security.login_required
def delete_favorite(favorite_id):
    favorite = _active_favorite_or_404(favorite_id)
    _ensure_owner_or_admin(favorite.user_id, "You can only delete your own favorites")

    favorite.is_active = False
    db.session.commit()

    logger.info("Favorite %s removed", favorite_id)
    return success("Removed from favorites", {
        "deletedFavoriteId": favorite.favorite_id,
        "movieTitle": favorite.movie.title if favorite.movie else None,
    })
