"""Request validation.

Every payload the API accepts is described by a pydantic model below. The
routes call :func:`validate_payload` (or :func:`require_valid`) before they
touch the database, so nothing is persisted from a request that failed
validation. Field-level problems are collected into a ``ValidationResult``
whose ``errors`` list carries one ``{"field", "message"}`` entry per issue.
"""

import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, List, Literal, Optional
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, ValidationError, field_validator, model_validator
from pydantic.alias_generators import to_camel

from .errors import ValidationFailed

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
USERNAME_RE = re.compile(r"^[A-Za-z0-9_]{3,30}$")
LANGUAGE_CODE_RE = re.compile(r"^[a-z]{2}(-[A-Z]{2})?$")

PASSWORD_RULES_MESSAGE = (
    "Password must be at least 8 characters long and contain an uppercase letter, "
    "a lowercase letter, a number and a symbol"
)

COMMENT_MAX_LENGTH = 200
REVIEW_MAX_LENGTH = 500
NOTES_MAX_LENGTH = 500


def is_valid_email(value):
    return isinstance(value, str) and bool(EMAIL_RE.match(value))


def is_strong_password(value):
    if not isinstance(value, str) or len(value) < 8:
        return False
    return (
        re.search(r"[A-Z]", value) is not None
        and re.search(r"[a-z]", value) is not None
        and re.search(r"\d", value) is not None
        and re.search(r"[^A-Za-z0-9]", value) is not None
    )


def is_valid_url(value):
    if not isinstance(value, str):
        return False
    parsed = urlparse(value)
    return parsed.scheme in ("http", "https") and bool(parsed.netloc)


def _is_blank(value):
    return value is None or (isinstance(value, str) and not value.strip())


def _check_length(value, label, minimum, maximum):
    value = value.strip()
    if len(value) < minimum or len(value) > maximum:
        raise ValueError(f"{label} must be between {minimum} and {maximum} characters")
    return value


def _check_star(value, label="Rating"):
    if value is None:
        return value
    if value < 1 or value > 5:
        raise ValueError(f"{label} must be an integer between 1 and 5")
    return value


@dataclass
class ValidationResult:
    value: Optional[BaseModel] = None
    errors: List[dict] = field(default_factory=list)

    @property
    def ok(self):
        return not self.errors


def _format_errors(exc):
    errors = []
    for err in exc.errors():
        loc = ".".join(str(part) for part in err.get("loc", ())) or "body"
        message = err.get("msg", "Invalid value")
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        errors.append({"field": loc, "message": message})
    return errors


def validate_payload(schema, data):
    """Validate ``data`` against ``schema`` and return a ValidationResult."""
    if not isinstance(data, dict):
        return ValidationResult(errors=[{"field": "body", "message": "Request body must be a JSON object"}])
    try:
        return ValidationResult(value=schema.model_validate(data))
    except ValidationError as exc:
        return ValidationResult(errors=_format_errors(exc))


def require_valid(schema, data, message=None):
    result = validate_payload(schema, data)
    if not result.ok:
        raise ValidationFailed.from_result(result, message=message)
    return result.value


class Payload(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    def provided(self):
        """Only the fields the client actually sent, keyed by attribute name."""
        return self.model_dump(exclude_unset=True)


# ---------------- USERS ----------------

class PreferencesUpdate(Payload):
    language: Optional[Literal["en", "es"]] = None
    notifications: Optional[bool] = None
    autoplay: Optional[bool] = None
    quality_preference: Optional[Literal["low", "medium", "high", "auto"]] = None


class _PasswordPair(Payload):
    @model_validator(mode="after")
    def passwords_match(self):
        if self.password != self.confirm_password:
            raise ValueError("Passwords do not match")
        return self


class RegisterRequest(_PasswordPair):
    email: str
    password: str
    confirm_password: str
    first_name: str
    last_name: str
    age: int
    username: Optional[str] = None

    @model_validator(mode="before")
    @classmethod
    def all_fields_present(cls, data: Any):
        if isinstance(data, dict):
            required = ("email", "password", "confirmPassword", "firstName", "lastName", "age")
            if any(_is_blank(data.get(key)) for key in required):
                raise ValueError("All fields are required")
        return data

    @field_validator("email")
    @classmethod
    def email_format(cls, v):
        v = v.strip().lower()
        if not is_valid_email(v):
            raise ValueError("Please provide a valid email")
        return v

    @field_validator("password")
    @classmethod
    def password_strength(cls, v):
        if not is_strong_password(v):
            raise ValueError(PASSWORD_RULES_MESSAGE)
        return v

    @field_validator("first_name")
    @classmethod
    def first_name_length(cls, v):
        return _check_length(v, "First name", 1, 50)

    @field_validator("last_name")
    @classmethod
    def last_name_length(cls, v):
        return _check_length(v, "Last name", 1, 50)

    @field_validator("age")
    @classmethod
    def age_range(cls, v):
        if v < 13 or v > 120:
            raise ValueError("Age must be a number between 13 and 120")
        return v

    @field_validator("username")
    @classmethod
    def username_format(cls, v):
        if v is None or not v.strip():
            return None
        v = v.strip()
        if not USERNAME_RE.match(v):
            raise ValueError(
                "Username must be 3-30 characters and contain only letters, numbers and underscores"
            )
        return v


class LoginRequest(Payload):
    email: str
    password: str

    @model_validator(mode="before")
    @classmethod
    def both_present(cls, data: Any):
        if isinstance(data, dict) and (_is_blank(data.get("email")) or _is_blank(data.get("password"))):
            raise ValueError("Email and password are required")
        return data

    @field_validator("email")
    @classmethod
    def normalize_email(cls, v):
        return v.strip().lower()


class ForgotPasswordRequest(Payload):
    email: str

    @model_validator(mode="before")
    @classmethod
    def email_present(cls, data: Any):
        if isinstance(data, dict) and _is_blank(data.get("email")):
            raise ValueError("Email is required")
        return data

    @field_validator("email")
    @classmethod
    def email_format(cls, v):
        v = v.strip().lower()
        if not is_valid_email(v):
            raise ValueError("Please provide a valid email")
        return v


class ResetPasswordRequest(_PasswordPair):
    token: str
    password: str
    confirm_password: str

    @model_validator(mode="before")
    @classmethod
    def all_fields_present(cls, data: Any):
        if isinstance(data, dict):
            if any(_is_blank(data.get(key)) for key in ("token", "password", "confirmPassword")):
                raise ValueError("All fields are required")
        return data

    @field_validator("password")
    @classmethod
    def password_strength(cls, v):
        if not is_strong_password(v):
            raise ValueError(PASSWORD_RULES_MESSAGE)
        return v


class ChangePasswordRequest(Payload):
    current_password: str
    new_password: str
    confirm_password: str

    @model_validator(mode="before")
    @classmethod
    def all_fields_present(cls, data: Any):
        if isinstance(data, dict):
            required = ("currentPassword", "newPassword", "confirmPassword")
            if any(_is_blank(data.get(key)) for key in required):
                raise ValueError("All fields are required")
        return data

    @model_validator(mode="after")
    def passwords_match(self):
        if self.new_password != self.confirm_password:
            raise ValueError("Passwords do not match")
        if not is_strong_password(self.new_password):
            raise ValueError(PASSWORD_RULES_MESSAGE)
        return self


PROFILE_FIELDS = ("username", "email", "firstName", "lastName", "age", "profilePicture", "preferences")


class ProfileUpdateRequest(Payload):
    username: Optional[str] = None
    email: Optional[str] = None
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    age: Optional[int] = None
    profile_picture: Optional[str] = None
    preferences: Optional[PreferencesUpdate] = None

    @model_validator(mode="before")
    @classmethod
    def something_to_update(cls, data: Any):
        if isinstance(data, dict) and not any(key in data for key in PROFILE_FIELDS):
            raise ValueError("No data provided to update")
        return data

    @field_validator("username")
    @classmethod
    def username_format(cls, v):
        if v is None:
            return v
        v = v.strip()
        if not USERNAME_RE.match(v):
            raise ValueError(
                "Username must be 3-30 characters and contain only letters, numbers and underscores"
            )
        return v

    @field_validator("email")
    @classmethod
    def email_format(cls, v):
        if v is None:
            return v
        v = v.strip().lower()
        if not is_valid_email(v):
            raise ValueError("Please provide a valid email")
        return v

    @field_validator("first_name")
    @classmethod
    def first_name_length(cls, v):
        if v is None:
            return v
        if len(v.strip()) < 2:
            raise ValueError("First name must be at least 2 characters")
        return _check_length(v, "First name", 2, 50)

    @field_validator("last_name")
    @classmethod
    def last_name_length(cls, v):
        if v is None:
            return v
        if len(v.strip()) < 2:
            raise ValueError("Last name must be at least 2 characters")
        return _check_length(v, "Last name", 2, 50)

    @field_validator("age")
    @classmethod
    def age_range(cls, v):
        if v is not None and (v < 13 or v > 120):
            raise ValueError("Age must be a number between 13 and 120")
        return v

    @field_validator("profile_picture")
    @classmethod
    def picture_url(cls, v):
        if v and not is_valid_url(v):
            raise ValueError("Profile picture must be a valid URL")
        return v


# ---------------- MOVIES ----------------

class Subtitle(Payload):
    language: str
    language_code: str
    url: str
    is_default: bool = False

    @field_validator("language_code")
    @classmethod
    def code_format(cls, v):
        if not LANGUAGE_CODE_RE.match(v):
            raise ValueError("Invalid language code format")
        return v


class MediaMetadata(Payload):
    width: Optional[int] = None
    height: Optional[int] = None
    format: Optional[str] = None


class _MovieFields(Payload):
    @field_validator("title", check_fields=False)
    @classmethod
    def title_length(cls, v):
        return v if v is None else _check_length(v, "Title", 1, 200)

    @field_validator("description", check_fields=False)
    @classmethod
    def description_length(cls, v):
        return v if v is None else _check_length(v, "Description", 1, 500)

    @field_validator("synopsis", check_fields=False)
    @classmethod
    def synopsis_length(cls, v):
        return v if v is None else _check_length(v, "Synopsis", 1, 2000)

    @field_validator("director", check_fields=False)
    @classmethod
    def director_length(cls, v):
        return v if v is None else _check_length(v, "Director name", 1, 100)

    @field_validator("duration", check_fields=False)
    @classmethod
    def duration_range(cls, v):
        if v is not None and (v < 1 or v > 1000):
            raise ValueError("Duration must be between 1 and 1000 minutes")
        return v

    @field_validator("genre", check_fields=False)
    @classmethod
    def genre_not_empty(cls, v):
        if v is None:
            return v
        cleaned = [g.strip() for g in v if g and g.strip()]
        if not cleaned:
            raise ValueError("At least one genre is required")
        return cleaned

    @field_validator("cast", check_fields=False)
    @classmethod
    def cast_names(cls, v):
        if v is None:
            return v
        cleaned = [c.strip() for c in v if c and c.strip()]
        if any(len(c) > 100 for c in cleaned):
            raise ValueError("Cast member name cannot exceed 100 characters")
        return cleaned

    @field_validator("tags", check_fields=False)
    @classmethod
    def lower_tags(cls, v):
        return v if v is None else [t.strip().lower() for t in v if t and t.strip()]

    @field_validator("poster", "video_url", "trailer", check_fields=False)
    @classmethod
    def url_format(cls, v, info):
        if v and not is_valid_url(v):
            label = {"poster": "Poster", "video_url": "Video URL", "trailer": "Trailer"}[info.field_name]
            raise ValueError(f"{label} must be a valid URL")
        return v

    @field_validator("language", check_fields=False)
    @classmethod
    def language_length(cls, v):
        if v is not None and not 2 <= len(v) <= 5:
            raise ValueError("Language code must be between 2 and 5 characters")
        return v


class MovieCreate(_MovieFields):
    title: str
    description: str
    synopsis: str
    release_date: date
    duration: int
    genre: List[str]
    director: str
    poster: str
    video_url: str
    media_id: str
    cast: List[str] = []
    trailer: str = ""
    thumbnails: List[str] = []
    language: str = "en"
    subtitles: List[Subtitle] = []
    tags: List[str] = []
    media_metadata: Optional[MediaMetadata] = None


class MovieUpdate(_MovieFields):
    title: Optional[str] = None
    description: Optional[str] = None
    synopsis: Optional[str] = None
    release_date: Optional[date] = None
    duration: Optional[int] = None
    genre: Optional[List[str]] = None
    director: Optional[str] = None
    poster: Optional[str] = None
    video_url: Optional[str] = None
    media_id: Optional[str] = None
    cast: Optional[List[str]] = None
    trailer: Optional[str] = None
    thumbnails: Optional[List[str]] = None
    language: Optional[str] = None
    subtitles: Optional[List[Subtitle]] = None
    tags: Optional[List[str]] = None
    media_metadata: Optional[MediaMetadata] = None


# ---------------- RATINGS ----------------

class RatingCreate(Payload):
    movie_id: int
    rating: int
    review: str = ""

    @model_validator(mode="before")
    @classmethod
    def both_present(cls, data: Any):
        if isinstance(data, dict) and (_is_blank(data.get("movieId")) or _is_blank(data.get("rating"))):
            raise ValueError("Movie ID and rating are required")
        return data

    @field_validator("rating")
    @classmethod
    def star_value(cls, v):
        return _check_star(v)

    @field_validator("review")
    @classmethod
    def review_length(cls, v):
        v = (v or "").strip()
        if len(v) > REVIEW_MAX_LENGTH:
            raise ValueError(f"Review cannot exceed {REVIEW_MAX_LENGTH} characters")
        return v


class RatingUpdate(Payload):
    rating: Optional[int] = None
    review: Optional[str] = None

    @field_validator("rating")
    @classmethod
    def star_value(cls, v):
        return _check_star(v)

    @field_validator("review")
    @classmethod
    def review_length(cls, v):
        if v is None:
            return v
        v = v.strip()
        if len(v) > REVIEW_MAX_LENGTH:
            raise ValueError(f"Review cannot exceed {REVIEW_MAX_LENGTH} characters")
        return v


# ---------------- COMMENTS ----------------

def _comment_content(v):
    v = (v or "").strip()
    if not 1 <= len(v) <= COMMENT_MAX_LENGTH:
        raise ValueError(f"Comment must be between 1 and {COMMENT_MAX_LENGTH} characters")
    return v


class CommentCreate(Payload):
    movie_id: int
    content: str

    @field_validator("content")
    @classmethod
    def content_length(cls, v):
        return _comment_content(v)


class CommentUpdate(Payload):
    content: str

    @field_validator("content")
    @classmethod
    def content_length(cls, v):
        return _comment_content(v)


# ---------------- FAVORITES ----------------

class _FavoriteFields(Payload):
    @field_validator("notes", check_fields=False)
    @classmethod
    def notes_length(cls, v):
        if v is None:
            return v
        v = v.strip()
        if len(v) > NOTES_MAX_LENGTH:
            raise ValueError(f"Notes cannot exceed {NOTES_MAX_LENGTH} characters")
        return v

    @field_validator("rating", check_fields=False)
    @classmethod
    def star_value(cls, v):
        return _check_star(v)


class FavoriteCreate(_FavoriteFields):
    user_id: int
    movie_id: int
    notes: Optional[str] = None
    rating: Optional[int] = None


class FavoriteUpdate(_FavoriteFields):
    notes: Optional[str] = None
    rating: Optional[int] = None
