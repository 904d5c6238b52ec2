# cinestream/models.py
import hashlib
from datetime import datetime

from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

USER_ROLES = ("user", "admin", "moderator")

DEFAULT_PREFERENCES = {
    "language": "en",
    "notifications": True,
    "autoplay": True,
    "qualityPreference": "medium",
}


def empty_distribution():
    return {"1": 0, "2": 0, "3": 0, "4": 0, "5": 0}


def _iso(value):
    return value.isoformat() if value else None


class TimestampMixin:
    created_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow, nullable=False)


class SoftDeleteMixin:
    is_active = db.Column(db.Boolean, default=True, nullable=False, index=True)

    @classmethod
    def active(cls):
        """Predicate selecting rows that have not been soft-deleted."""
        return cls.is_active.is_(True)


class User(TimestampMixin, db.Model):
    __tablename__ = "users"
    user_id = db.Column(db.Integer, primary_key=True)
    username = db.Column(db.String(30), unique=True, nullable=True)
    email = db.Column(db.String(254), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    age = db.Column(db.Integer, nullable=False)
    profile_picture = db.Column(db.String(500), default="", nullable=False)
    role = db.Column(db.Enum(*USER_ROLES, name="user_role"), default="user", nullable=False)
    preferences = db.Column(db.JSON, default=lambda: dict(DEFAULT_PREFERENCES), nullable=False)
    reset_password_token = db.Column(db.Text, nullable=True)
    reset_password_expires = db.Column(db.DateTime, nullable=True)
    is_active = db.Column(db.Boolean, default=True, nullable=False)

    ratings = db.relationship("Rating", back_populates="user", cascade="all, delete-orphan")
    comments = db.relationship("Comment", back_populates="user", cascade="all, delete-orphan")
    favorites = db.relationship("Favorite", back_populates="user", cascade="all, delete-orphan")

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}"

    @property
    def display_name(self):
        return self.username or self.full_name

    def to_dict(self, include_private=False):
        data = {
            "id": self.user_id,
            "username": self.username,
            "email": self.email,
            "displayName": self.display_name,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "role": self.role,
        }
        if include_private:
            data.update({
                "age": self.age,
                "profilePicture": self.profile_picture,
                "preferences": {**DEFAULT_PREFERENCES, **(self.preferences or {})},
                "createdAt": _iso(self.created_at),
            })
        return data

    def to_public(self):
        return {
            "id": self.user_id,
            "firstName": self.first_name,
            "lastName": self.last_name,
            "username": self.username,
            "profilePicture": self.profile_picture,
        }

    def __repr__(self):
        return f"<User {self.email}>"


class Movie(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = "movies"
    movie_id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(200), nullable=False, index=True)
    description = db.Column(db.String(500), nullable=False)
    synopsis = db.Column(db.Text, nullable=False)
    release_date = db.Column(db.Date, nullable=False, index=True)
    duration = db.Column(db.Integer, nullable=False)
    genre = db.Column(db.JSON, default=list, nullable=False)
    director = db.Column(db.String(100), nullable=False)
    cast = db.Column(db.JSON, default=list, nullable=False)
    poster = db.Column(db.String(500), nullable=False)
    trailer = db.Column(db.String(500), default="", nullable=False)
    video_url = db.Column(db.String(500), nullable=False)
    media_id = db.Column(db.String(255), nullable=False)
    media_metadata = db.Column(db.JSON, default=dict, nullable=False)
    thumbnails = db.Column(db.JSON, default=list, nullable=False)
    language = db.Column(db.String(5), default="en", nullable=False)
    subtitles = db.Column(db.JSON, default=list, nullable=False)
    tags = db.Column(db.JSON, default=list, nullable=False)
    views = db.Column(db.Integer, default=0, nullable=False, index=True)

    # Denormalized snapshot of the active ratings, refreshed on every rating write
    rating_average = db.Column(db.Float, default=0.0, nullable=False, index=True)
    rating_count = db.Column(db.Integer, default=0, nullable=False)
    rating_distribution = db.Column(db.JSON, default=empty_distribution, nullable=False)

    ratings = db.relationship("Rating", back_populates="movie")

    @property
    def formatted_duration(self):
        if not self.duration or self.duration <= 0:
            return "N/A"
        hours, minutes = divmod(self.duration, 60)
        return f"{hours}h {minutes}m" if hours > 0 else f"{minutes}m"

    @property
    def release_year(self):
        return self.release_date.year if self.release_date else None

    @property
    def rating_stats(self):
        return {
            "average": self.rating_average or 0,
            "count": self.rating_count or 0,
            "distribution": {**empty_distribution(), **(self.rating_distribution or {})},
        }

    def to_summary(self):
        return {
            "id": self.movie_id,
            "title": self.title,
            "poster": self.poster,
            "genre": list(self.genre or []),
            "director": self.director,
            "duration": self.duration,
            "releaseDate": _iso(self.release_date),
        }

    def to_dict(self):
        return {
            "id": self.movie_id,
            "title": self.title,
            "description": self.description,
            "synopsis": self.synopsis,
            "releaseDate": _iso(self.release_date),
            "releaseYear": self.release_year,
            "duration": self.duration,
            "formattedDuration": self.formatted_duration,
            "genre": list(self.genre or []),
            "director": self.director,
            "cast": list(self.cast or []),
            "poster": self.poster,
            "trailer": self.trailer,
            "videoUrl": self.video_url,
            "mediaId": self.media_id,
            "thumbnails": list(self.thumbnails or []),
            "language": self.language,
            "subtitles": list(self.subtitles or []),
            "tags": list(self.tags or []),
            "rating": self.rating_stats,
            "views": self.views,
            "isActive": self.is_active,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }

    def __repr__(self):
        return f"<Movie {self.title}>"


class Rating(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = "ratings"
    rating_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    movie_id = db.Column(db.Integer, db.ForeignKey("movies.movie_id", ondelete="CASCADE"), nullable=False)
    rating = db.Column(db.Integer, nullable=False)
    review = db.Column(db.String(500), default="", nullable=False)

    user = db.relationship("User", back_populates="ratings")
    movie = db.relationship("Movie", back_populates="ratings")

    __table_args__ = (
        db.UniqueConstraint("user_id", "movie_id", name="uq_rating_user_movie"),
        db.Index("ix_ratings_movie_active", "movie_id", "is_active"),
        db.Index("ix_ratings_user_active", "user_id", "is_active"),
        db.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_rating_range"),
    )

    def to_dict(self):
        return {
            "id": self.rating_id,
            "userId": self.user_id,
            "movieId": self.movie_id,
            "rating": self.rating,
            "review": self.review,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class Comment(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = "comments"
    comment_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    movie_id = db.Column(db.Integer, db.ForeignKey("movies.movie_id", ondelete="CASCADE"), nullable=False)
    content = db.Column(db.String(200), nullable=False)

    user = db.relationship("User", back_populates="comments")
    movie = db.relationship("Movie")

    __table_args__ = (
        db.Index("ix_comments_movie_active_created", "movie_id", "is_active", "created_at"),
        db.Index("ix_comments_user_active_created", "user_id", "is_active", "created_at"),
    )

    def to_dict(self):
        return {
            "id": self.comment_id,
            "content": self.content,
            "user": {
                "id": self.user.user_id,
                "firstName": self.user.first_name,
                "lastName": self.user.last_name,
                "email": self.user.email,
            } if self.user else {"id": self.user_id},
            "movie": {"id": self.movie.movie_id, "title": self.movie.title} if self.movie else {"id": self.movie_id},
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class Favorite(TimestampMixin, SoftDeleteMixin, db.Model):
    __tablename__ = "favorites"
    favorite_id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.user_id", ondelete="CASCADE"), nullable=False)
    movie_id = db.Column(db.Integer, db.ForeignKey("movies.movie_id", ondelete="CASCADE"), nullable=False)
    notes = db.Column(db.String(500), default="", nullable=False)
    rating = db.Column(db.Integer, nullable=True)

    user = db.relationship("User", back_populates="favorites")
    movie = db.relationship("Movie")

    __table_args__ = (
        db.UniqueConstraint("user_id", "movie_id", name="uq_favorite_user_movie"),
        db.Index("ix_favorites_user_active", "user_id", "is_active"),
    )

    def to_dict(self):
        return {
            "id": self.favorite_id,
            "userId": self.user_id,
            "movie": self.movie.to_summary() if self.movie else {"id": self.movie_id},
            "notes": self.notes,
            "rating": self.rating,
            "createdAt": _iso(self.created_at),
            "updatedAt": _iso(self.updated_at),
        }


class RevokedToken(db.Model):
    __tablename__ = "revoked_tokens"
    revoked_token_id = db.Column(db.Integer, primary_key=True)
    token_digest = db.Column(db.String(64), unique=True, nullable=False)
    revoked_at = db.Column(db.DateTime, default=datetime.utcnow, nullable=False)
    expires_at = db.Column(db.DateTime, nullable=False, index=True)

    @staticmethod
    def digest(token):
        return hashlib.sha256(token.encode("utf-8")).hexdigest()
