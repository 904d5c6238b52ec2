import logging

from flask import Blueprint, g, request

from .. import security
from ..errors import Forbidden, NotFound
from ..models import Comment, db
from ..pagination import PageRequest, paginate
from ..ratings import find_active_movie
from ..responses import created, paginated, success
from ..validation import CommentCreate, CommentUpdate, require_valid
from . import json_body

logger = logging.getLogger(__name__)

bp = Blueprint("comments", __name__)


def _newest_first(query):
    return query.order_by(Comment.created_at.desc(), Comment.comment_id.desc())


def _active_comment_or_404(comment_id):
    comment = Comment.query.filter(Comment.comment_id == comment_id, Comment.active()).first()
    if comment is None:
        raise NotFound("Comment not found")
    return comment


def _int_filter(name):
    try:
        return int(request.args[name])
    except (KeyError, ValueError):
        return None


# ---------------- CREATE ----------------
@bp.route("", methods=["POST"])
@bp.route("/", methods=["POST"])
@security.login_required
def create_comment():
    payload = require_valid(CommentCreate, json_body())
    movie = find_active_movie(payload.movie_id)

    comment = Comment(user_id=g.current_user.user_id, movie_id=movie.movie_id, content=payload.content)
    db.session.add(comment)
    db.session.commit()

    logger.info("User %s commented on movie %s", g.current_user.user_id, movie.movie_id)
    return created("Comment created successfully", comment.to_dict())


# ---------------- LIST ----------------
@bp.route("", methods=["GET"])
@bp.route("/", methods=["GET"])
@security.admin_required
def list_comments():
    query = Comment.query.filter(Comment.active())

    movie_id = _int_filter("movieId")
    if movie_id is not None:
        query = query.filter(Comment.movie_id == movie_id)
    user_id = _int_filter("userId")
    if user_id is not None:
        query = query.filter(Comment.user_id == user_id)

    page = paginate(_newest_first(query), PageRequest.from_args(request.args))
    return paginated("Comments retrieved successfully", [c.to_dict() for c in page.items], page)


@bp.route("/me", methods=["GET"])
@security.login_required
def my_comments():
    query = Comment.query.filter(Comment.user_id == g.current_user.user_id, Comment.active())
    page = paginate(_newest_first(query), PageRequest.from_args(request.args))
    return paginated("Your comments retrieved successfully", [c.to_dict() for c in page.items], page)


def _movie_comments(movie_id):
    find_active_movie(movie_id)
    query = Comment.query.filter(Comment.movie_id == movie_id, Comment.active())
    page = paginate(_newest_first(query), PageRequest.from_args(request.args))

    viewer = security.current_user()
    items = []
    for comment in page.items:
        item = comment.to_dict()
        item["isOwner"] = viewer is not None and viewer.user_id == comment.user_id
        items.append(item)
    return paginated("Movie comments retrieved successfully", items, page)


@bp.route("/public/movie/<int:movie_id>", methods=["GET"])
@security.optional_auth
def public_movie_comments(movie_id):
    return _movie_comments(movie_id)


@bp.route("/movie/<int:movie_id>", methods=["GET"])
@security.login_required
def movie_comments(movie_id):
    return _movie_comments(movie_id)


# ---------------- SINGLE ----------------
@bp.route("/<int:comment_id>", methods=["GET"])
@security.login_required
def get_comment(comment_id):
    comment = _active_comment_or_404(comment_id)
    user = g.current_user
    if comment.user_id != user.user_id and not security.is_admin(user):
        raise Forbidden("You can only access your own comments")
    return success("Comment retrieved successfully", comment.to_dict())


@bp.route("/<int:comment_id>", methods=["PUT"])
@security.login_required
def update_comment(comment_id):
    comment = _active_comment_or_404(comment_id)
    if comment.user_id != g.current_user.user_id:
        raise Forbidden("You can only edit your own comments")

    payload = require_valid(CommentUpdate, json_body())
    comment.content = payload.content
    db.session.commit()

    return success("Comment updated successfully", comment.to_dict())


@bp.route("/<int:comment_id>", methods=["DELETE"])
@security.login_required
def delete_comment(comment_id):
    comment = _active_comment_or_404(comment_id)
    user = g.current_user
    if comment.user_id != user.user_id and not security.can_moderate(user):
        raise Forbidden("You can only delete your own comments")

    comment.is_active = False
    db.session.commit()

    logger.info("Comment %s removed by user %s", comment_id, user.user_id)
    return success("Comment deleted successfully")
