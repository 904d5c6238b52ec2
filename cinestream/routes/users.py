import logging
from datetime import datetime

from flask import Blueprint, g

from .. import security
from ..errors import BadRequest, Conflict, Unauthorized
from ..models import DEFAULT_PREFERENCES, Rating, User, db
from ..ratings import refresh_stats_for_movies
from ..responses import created, success
from ..validation import (
    ChangePasswordRequest,
    ForgotPasswordRequest,
    LoginRequest,
    ProfileUpdateRequest,
    RegisterRequest,
    ResetPasswordRequest,
    require_valid,
)
from . import email_service, json_body

logger = logging.getLogger(__name__)

auth_bp = Blueprint("auth", __name__)
users_bp = Blueprint("users", __name__)

FORGOT_PASSWORD_MESSAGE = "If the email exists in our system, you will receive a link to reset your password"
INVALID_RESET_LINK = "Invalid or expired link"


def _camel_preferences(prefs):
    keys = {"quality_preference": "qualityPreference"}
    return {keys.get(k, k): v for k, v in prefs.items() if v is not None}


# ---------------- REGISTER ----------------
@auth_bp.route("/register", methods=["POST"])
def register():
    payload = require_valid(RegisterRequest, json_body())

    clauses = [User.email == payload.email]
    if payload.username:
        clauses.append(User.username == payload.username)
    existing = User.query.filter(db.or_(*clauses)).first()
    if existing:
        field = "email" if existing.email == payload.email else "username"
        raise Conflict(f"This {field} is already registered. Please use a different one.")

    user = User(
        username=payload.username,
        email=payload.email,
        password_hash=security.hash_password(payload.password),
        first_name=payload.first_name,
        last_name=payload.last_name,
        age=payload.age,
        preferences=dict(DEFAULT_PREFERENCES),
    )
    db.session.add(user)
    db.session.commit()

    logger.info("Registered user %s", user.user_id)
    return created("Registration successful", {"user": user.to_dict()})


# ---------------- LOGIN ----------------
@auth_bp.route("/login", methods=["POST"])
def login():
    payload = require_valid(LoginRequest, json_body())

    user = User.query.filter_by(email=payload.email).first()
    if not user or not user.is_active or not security.verify_password(user.password_hash, payload.password):
        logger.warning("Failed login for %s", payload.email)
        raise Unauthorized("Invalid credentials")

    token = security.issue_access_token(user)
    logger.info("User %s logged in", user.user_id)

    data = user.to_dict()
    data["preferences"] = {**DEFAULT_PREFERENCES, **(user.preferences or {})}
    return success("Login successful", {"user": data, "token": token})


# ---------------- LOGOUT ----------------
@auth_bp.route("/logout", methods=["POST"])
@security.login_required
def logout():
    expires_at = security.revoke_token(g.token)
    logger.info("User %s logged out, token revoked until %s", g.current_user.user_id, expires_at)
    return success("Logged out successfully", {"redirectTo": "/login"})


# ---------------- PASSWORD RECOVERY ----------------
@auth_bp.route("/forgot-password", methods=["POST"])
def forgot_password():
    payload = require_valid(ForgotPasswordRequest, json_body())

    user = User.query.filter_by(email=payload.email).first()
    if user and user.is_active:
        token, expires = security.issue_reset_token(user)
        user.reset_password_token = token
        user.reset_password_expires = expires
        db.session.commit()

        settings = security.get_settings()
        link = f"{settings.client_url.rstrip('/')}/reset-password?token={token}"
        if not email_service().send_password_reset(user, link):
            logger.error("Could not deliver password reset email to user %s", user.user_id)
        logger.info("Password reset requested for user %s", user.user_id)
    else:
        logger.info("Password reset requested for unknown email")

    return success(FORGOT_PASSWORD_MESSAGE)


@auth_bp.route("/reset-password", methods=["POST"])
def reset_password():
    payload = require_valid(ResetPasswordRequest, json_body())

    try:
        claims = security.decode_token(payload.token)
    except Unauthorized:
        raise BadRequest(INVALID_RESET_LINK)
    if claims.get("purpose") != security.RESET_PURPOSE:
        raise BadRequest(INVALID_RESET_LINK)

    user_id = claims.get("userId")
    user = db.session.get(User, user_id) if user_id is not None else None
    if (
        user is None
        or user.reset_password_token != payload.token
        or user.reset_password_expires is None
        or user.reset_password_expires <= datetime.utcnow()
    ):
        raise BadRequest(INVALID_RESET_LINK)

    user.password_hash = security.hash_password(payload.password)
    user.reset_password_token = None
    user.reset_password_expires = None
    db.session.commit()

    logger.info("Password reset completed for user %s", user.user_id)
    return success("Password reset successfully")


# ---------------- PROFILE ----------------
@users_bp.route("/profile", methods=["GET"])
@security.login_required
def get_profile():
    return success("Profile retrieved successfully", g.current_user.to_dict(include_private=True))


@users_bp.route("/profile", methods=["PUT"])
@security.login_required
def update_profile():
    user = g.current_user
    changes = require_valid(ProfileUpdateRequest, json_body()).provided()

    email = changes.get("email")
    if email and email != user.email:
        if User.query.filter(User.email == email, User.user_id != user.user_id).first():
            raise Conflict("This email is already in use by another user")
        user.email = email

    username = changes.get("username")
    if username and username != user.username:
        if User.query.filter(User.username == username, User.user_id != user.user_id).first():
            raise Conflict("This username is already taken")
        user.username = username

    for attr in ("first_name", "last_name", "age", "profile_picture"):
        if changes.get(attr) is not None:
            setattr(user, attr, changes[attr])

    if changes.get("preferences"):
        merged = {**DEFAULT_PREFERENCES, **(user.preferences or {})}
        merged.update(_camel_preferences(changes["preferences"]))
        user.preferences = merged

    db.session.commit()
    return success("Profile updated successfully", user.to_dict(include_private=True))


@users_bp.route("/change-password", methods=["PUT"])
@security.login_required
def change_password():
    user = g.current_user
    payload = require_valid(ChangePasswordRequest, json_body())

    if not security.verify_password(user.password_hash, payload.current_password):
        raise BadRequest("Current password is incorrect")
    if security.verify_password(user.password_hash, payload.new_password):
        raise BadRequest("New password must be different from the current one")

    user.password_hash = security.hash_password(payload.new_password)
    db.session.commit()

    logger.info("User %s changed password", user.user_id)
    return success("Password updated successfully")


# ---------------- ACCOUNT ----------------
@users_bp.route("/account", methods=["DELETE"])
@security.login_required
def delete_account():
    user = g.current_user

    rated_movies = {
        movie_id
        for (movie_id,) in db.session.query(Rating.movie_id).filter(
            Rating.user_id == user.user_id, Rating.active()
        )
    }
    deleted = {
        "email": user.email,
        "username": user.username,
        "deletedAt": datetime.utcnow().isoformat(),
    }

    security.revoke_token(g.token)
    db.session.delete(user)
    db.session.commit()

    if rated_movies:
        refresh_stats_for_movies(rated_movies)

    logger.info("Account %s deleted", deleted["email"])
    return success("Account deleted successfully", {
        "message": "Account deleted",
        "redirectTo": "/register",
        "deletedUser": deleted,
    })
