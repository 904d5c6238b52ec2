# cinestream/config.py
import os
import re
from dataclasses import dataclass, replace
from typing import Optional

from dotenv import load_dotenv

ENVIRONMENTS = ("development", "production", "test", "staging")

_DURATION_RE = re.compile(r"^(\d+)\s*([smhd]?)$")
_UNIT_SECONDS = {"": 1, "s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value, default=7 * 86400):
    """Turn '7d', '12h', '30m' or a plain number of seconds into seconds."""
    if value is None or value == "":
        return default
    if isinstance(value, int):
        return value
    match = _DURATION_RE.match(str(value).strip().lower())
    if not match:
        raise ValueError(f"Invalid duration: {value!r}")
    amount, unit = match.groups()
    return int(amount) * _UNIT_SECONDS[unit]


@dataclass(frozen=True)
class Settings:
    app_env: str = "development"
    secret_key: str = "fallback_key"
    port: int = 5000

    jwt_secret: str = ""
    jwt_expires_in: int = 7 * 86400
    jwt_algorithm: str = "HS256"
    reset_token_ttl: int = 3600

    database_url: Optional[str] = None
    client_url: str = "http://localhost:5173"
    log_level: str = "INFO"

    email_api_key: str = ""
    email_api_url: str = "https://api.brevo.com/v3/smtp/email"
    email_from: str = "no-reply@cinestream.local"
    smtp_host: str = ""
    smtp_port: int = 587
    smtp_user: str = ""
    smtp_password: str = ""

    media_base_url: str = "https://media.cinestream.local/video"
    media_signing_key: str = ""

    @classmethod
    def from_env(cls, env_file=None):
        # Load .env from the project root unless told otherwise
        if env_file is None:
            env_file = os.path.join(os.path.dirname(os.path.dirname(__file__)), ".env")
        load_dotenv(env_file)

        app_env = os.getenv("APP_ENV", "development")
        if app_env not in ENVIRONMENTS:
            app_env = "development"

        return cls(
            app_env=app_env,
            secret_key=os.getenv("SECRET_KEY", "fallback_key"),
            port=int(os.getenv("PORT", "5000")),
            jwt_secret=os.getenv("JWT_SECRET", ""),
            jwt_expires_in=parse_duration(os.getenv("JWT_EXPIRES_IN", "7d")),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            database_url=os.getenv("DATABASE_URL") or _mysql_uri_from_parts(),
            client_url=os.getenv("CLIENT_URL", "http://localhost:5173"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            email_api_key=os.getenv("EMAIL_API_KEY", ""),
            email_api_url=os.getenv("EMAIL_API_URL", cls.email_api_url),
            email_from=os.getenv("EMAIL_FROM", cls.email_from),
            smtp_host=os.getenv("SMTP_HOST", ""),
            smtp_port=int(os.getenv("SMTP_PORT", "587")),
            smtp_user=os.getenv("SMTP_USER", ""),
            smtp_password=os.getenv("SMTP_PASSWORD", ""),
            media_base_url=os.getenv("MEDIA_BASE_URL", cls.media_base_url),
            media_signing_key=os.getenv("MEDIA_SIGNING_KEY", ""),
        )

    @property
    def is_production(self):
        return self.app_env == "production"

    @property
    def is_test(self):
        return self.app_env == "test"

    @property
    def is_development(self):
        return self.app_env == "development"

    def validate(self):
        if not self.jwt_secret:
            raise ValueError("Missing JWT_SECRET in environment")
        if self.is_production and len(self.jwt_secret) < 32:
            raise ValueError("JWT_SECRET must be at least 32 characters in production")
        if not self.database_url and not self.is_test:
            raise ValueError("Missing database environment variables in .env")
        return self

    def with_overrides(self, **changes):
        return replace(self, **changes)

    def flask_config(self):
        return {
            "SECRET_KEY": self.secret_key,
            "SQLALCHEMY_DATABASE_URI": self.database_url or "sqlite://",
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
            "TESTING": self.is_test,
        }

    def summary(self):
        """Redacted view of the settings, safe to log."""
        info = {
            "environment": self.app_env,
            "port": self.port,
            "client_url": self.client_url,
        }
        if not self.is_production:
            info["database"] = "configured" if self.database_url else "missing"
            info["jwt_secret"] = "configured" if self.jwt_secret else "missing"
            info["email"] = (
                "api" if self.email_api_key else "smtp" if self.smtp_host else "console"
            )
        return info


def _mysql_uri_from_parts():
    user = os.getenv("DB_USER")
    password = os.getenv("DB_PASSWORD")
    host = os.getenv("DB_HOST", "localhost")
    port = os.getenv("DB_PORT", "3306")
    name = os.getenv("DB_NAME")

    if not all([user, password, host, port, name]):
        return None

    return f"mysql+pymysql://{user}:{password}@{host}:{port}/{name}"
