"""Passwords, JWTs, the revocation store and the route guards built on them.

Request flow for a protected route::

    bearer token -> revocation lookup -> signature/expiry check -> active user

The authenticated user and the raw token are stored on ``flask.g`` as
``g.current_user`` and ``g.token``.
"""

import logging
import uuid
from datetime import datetime, timedelta, timezone
from functools import wraps

import jwt
from flask import current_app, g, request
from werkzeug.security import check_password_hash, generate_password_hash

from .errors import Forbidden, Unauthorized
from .models import RevokedToken, User, db

logger = logging.getLogger(__name__)

RESET_PURPOSE = "password_reset"


def get_settings():
    return current_app.extensions["settings"]


# ---------------- PASSWORDS ----------------

def hash_password(password):
    return generate_password_hash(password)


def verify_password(password_hash, password):
    if not password_hash or not password:
        return False
    return check_password_hash(password_hash, password)


# ---------------- TOKENS ----------------

def _utcnow():
    return datetime.now(timezone.utc)


def issue_access_token(user):
    """Sign a token carrying the user's id, email and role."""
    settings = get_settings()
    now = _utcnow()
    payload = {
        "userId": user.user_id,
        "email": user.email,
        "role": user.role,
        "iat": now,
        "jti": uuid.uuid4().hex,
        "exp": now + timedelta(seconds=settings.jwt_expires_in),
    }
    return jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)


def issue_reset_token(user):
    settings = get_settings()
    now = _utcnow()
    expires = now + timedelta(seconds=settings.reset_token_ttl)
    payload = {
        "userId": user.user_id,
        "email": user.email,
        "purpose": RESET_PURPOSE,
        "iat": now,
        "jti": uuid.uuid4().hex,
        "exp": expires,
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token, expires.replace(tzinfo=None)


def decode_token(token):
    """Verify signature and expiry. Raises Unauthorized on failure."""
    settings = get_settings()
    try:
        return jwt.decode(token, settings.jwt_secret, algorithms=[settings.jwt_algorithm])
    except jwt.ExpiredSignatureError:
        raise Unauthorized("Token expired")
    except jwt.InvalidTokenError:
        raise Unauthorized("Invalid token")


def token_expiry(token):
    """Read the exp claim without verifying the signature."""
    claims = jwt.decode(token, options={"verify_signature": False})
    exp = claims.get("exp")
    if exp is None:
        return None
    return datetime.fromtimestamp(exp, tz=timezone.utc).replace(tzinfo=None)


def extract_bearer_token(header):
    if not header or not header.startswith("Bearer "):
        return None
    token = header[len("Bearer "):].strip()
    return token or None


# ---------------- REVOCATION STORE ----------------

def purge_expired_revocations():
    """Drop revocations whose token has expired on its own."""
    now = datetime.utcnow()
    deleted = RevokedToken.query.filter(RevokedToken.expires_at <= now).delete(synchronize_session=False)
    if deleted:
        logger.info("Purged %d expired revoked tokens", deleted)
    return deleted


def revoke_token(token):
    """Block ``token`` until its own expiry. Idempotent."""
    expires_at = token_expiry(token) or datetime.utcnow()
    purge_expired_revocations()
    digest = RevokedToken.digest(token)
    if RevokedToken.query.filter_by(token_digest=digest).first() is None:
        db.session.add(RevokedToken(token_digest=digest, expires_at=expires_at))
    db.session.commit()
    return expires_at


def is_token_revoked(token):
    return (
        RevokedToken.query.filter(
            RevokedToken.token_digest == RevokedToken.digest(token),
            RevokedToken.expires_at > datetime.utcnow(),
        ).first()
        is not None
    )


# ---------------- GUARDS ----------------

def authenticate_request():
    """Resolve the bearer token on the current request to an active user."""
    token = extract_bearer_token(request.headers.get("Authorization"))
    if not token:
        raise Unauthorized("Access token required")

    if is_token_revoked(token):
        logger.warning("Rejected revoked token on %s %s", request.method, request.path)
        raise Unauthorized("Token has been revoked")

    claims = decode_token(token)
    if claims.get("purpose") == RESET_PURPOSE:
        raise Unauthorized("Invalid token")

    user_id = claims.get("userId")
    user = db.session.get(User, user_id) if user_id is not None else None
    if user is None or not user.is_active:
        raise Unauthorized("Invalid token or user not found")

    g.current_user = user
    g.token = token
    return user


def login_required(view):
    @wraps(view)
    def wrapper(*args, **kwargs):
        authenticate_request()
        return view(*args, **kwargs)

    return wrapper


def roles_required(*roles, message="Forbidden"):
    def decorator(view):
        @wraps(view)
        def wrapper(*args, **kwargs):
            user = authenticate_request()
            if user.role not in roles:
                raise Forbidden(message)
            return view(*args, **kwargs)

        return wrapper

    return decorator


def optional_auth(view):
    """Attach the user when a valid token is sent, otherwise carry on anonymously."""
    @wraps(view)
    def wrapper(*args, **kwargs):
        g.current_user = None
        if request.headers.get("Authorization"):
            try:
                authenticate_request()
            except Unauthorized:
                g.current_user = None
        return view(*args, **kwargs)

    return wrapper


admin_required = roles_required("admin", message="Admin access required")


def current_user():
    return g.get("current_user")


def is_admin(user):
    return user is not None and user.role == "admin"


def can_moderate(user):
    return user is not None and user.role in ("admin", "moderator")
