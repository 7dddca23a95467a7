import os
from pathlib import Path

from dotenv import load_dotenv


_PACKAGE_DIR = Path(__file__).resolve().parent
_PROJECT_ROOT = _PACKAGE_DIR.parent

# Root .env is canonical; secret_santa/.env remains a fallback.
load_dotenv(_PROJECT_ROOT / ".env")
load_dotenv(_PACKAGE_DIR / ".env")


def _first_non_empty_env(*names: str, default: str) -> str:
    """Returns the first non-empty env var value from `names`, else `default`."""
    for name in names:
        value = os.getenv(name)
        if value is not None and value != "":
            return value
    return default


def _parse_int_env(*names: str, default: int) -> int:
    """Parses the first non-empty env var in `names` as int, else returns `default`."""
    raw = _first_non_empty_env(*names, default=str(default))
    try:
        return int(raw)
    except (TypeError, ValueError):
        return default


def _parse_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or raw == "":
        return default
    return raw.strip().lower() in ("1", "true", "t", "yes", "on")


class BaseConfig:

    # Flask secret. Falls back to JWT_SECRET_KEY for compatibility.
    SECRET_KEY: str = _first_non_empty_env(
        "SECRET_KEY",
        "JWT_SECRET_KEY",
        default="change-me-in-production",
    )

    # Signing secret for the "jwt" session backend. Falls back to SECRET_KEY.
    JWT_SECRET_KEY: str = _first_non_empty_env(
        "JWT_SECRET_KEY",
        "SECRET_KEY",
        default="change-me-in-production",
    )
    JWT_ALGORITHM: str = "HS256"

    # "memory" keeps opaque tokens in process; "jwt" issues signed tokens.
    SESSION_BACKEND: str = _first_non_empty_env("SESSION_BACKEND", default="memory")
    SESSION_TTL: int = _parse_int_env("SESSION_TTL", default=7 * 86400)  # seconds

    # "json" (files under DATA_DIR), "sql" (SQLAlchemy) or "memory".
    RECORD_STORE_BACKEND: str = _first_non_empty_env("RECORD_STORE_BACKEND", default="json")
    DATA_DIR: str = _first_non_empty_env("DATA_DIR", default=str(_PROJECT_ROOT / "data"))

    SQLALCHEMY_DATABASE_URI: str = _first_non_empty_env(
        "DATABASE_URL",
        default=f"sqlite:///{_PROJECT_ROOT / 'data' / 'secret_santa.db'}",
    )
    SQLALCHEMY_TRACK_MODIFICATIONS: bool = False

    JSON_SORT_KEYS: bool = False
    BCRYPT_LOG_ROUNDS: int = 12

    DRAW_MAX_ATTEMPTS: int = _parse_int_env("DRAW_MAX_ATTEMPTS", default=100)
    DEFAULT_MAX_PARTICIPANTS: int = 20

    # Reject non-list wishlist payloads instead of storing an empty list.
    WISHLIST_STRICT: bool = _parse_bool_env("WISHLIST_STRICT", default=False)

    # Used to build shareable invite links.
    PUBLIC_BASE_URL: str = _first_non_empty_env(
        "PUBLIC_BASE_URL",
        default="http://localhost:5000",
    )

    LOG_LEVEL: str = _first_non_empty_env("LOG_LEVEL", default="INFO")


class DevelopmentConfig(BaseConfig):
    DEBUG:   bool = True
    TESTING: bool = False
    LOG_LEVEL: str = _first_non_empty_env("LOG_LEVEL", default="DEBUG")


class TestingConfig(BaseConfig):

    DEBUG:   bool = True
    TESTING: bool = True

    SESSION_BACKEND: str = "memory"
    SESSION_TTL: int = 30
    RECORD_STORE_BACKEND: str = "memory"
    SQLALCHEMY_DATABASE_URI: str = os.getenv("TEST_DATABASE_URL", "sqlite://")

    BCRYPT_LOG_ROUNDS: int = 4
    WISHLIST_STRICT: bool = False
    LOG_LEVEL: str = "WARNING"


class ProductionConfig(BaseConfig):

    DEBUG:   bool = False
    TESTING: bool = False

    # Heroku / Render return 'postgres://' which SQLAlchemy 1.4+ rejects;
    # normalise to 'postgresql://'.
    _raw_db_url: str = os.getenv("DATABASE_URL", "")
    SQLALCHEMY_DATABASE_URI: str = (
        _raw_db_url.replace("postgres://", "postgresql://", 1)
        if _raw_db_url.startswith("postgres://")
        else _raw_db_url
    )


def validate_production_config(app) -> None:
    """
    Fail-fast guard for production configuration.

    Must be called in the app factory right after the config class is loaded.
    Raises ValueError if any required production value is missing or insecure.
    """
    if app.config.get("SECRET_KEY") == "change-me-in-production":
        raise ValueError(
            "SECRET_KEY must be set to a strong random value in production. "
            "Do not use the default placeholder."
        )
    if (
        app.config.get("SESSION_BACKEND") == "jwt"
        and app.config.get("JWT_SECRET_KEY") == "change-me-in-production"
    ):
        raise ValueError(
            "JWT_SECRET_KEY must be set to a strong random value in production. "
            "Do not use the default placeholder."
        )
    if (
        app.config.get("RECORD_STORE_BACKEND") == "sql"
        and not app.config.get("SQLALCHEMY_DATABASE_URI")
    ):
        raise ValueError(
            "DATABASE_URL environment variable is required when "
            "RECORD_STORE_BACKEND=sql."
        )
    if app.config.get("RECORD_STORE_BACKEND") == "memory":
        raise ValueError(
            "RECORD_STORE_BACKEND=memory is not durable and cannot be used in production."
        )


# ── Config selector ────────────────────────────────────────────────────────
#
# Used by the app factory:
#   from secret_santa.config import config_by_name
#   app.config.from_object(config_by_name[flask_env])
# ──────────────────────────────────────────────────────────────────────────

config_by_name: dict[str, type[BaseConfig]] = {
    "development": DevelopmentConfig,
    "testing":     TestingConfig,
    "production":  ProductionConfig,
}

# Resolves the active config class from FLASK_ENV; development by default.
ActiveConfig: type[BaseConfig] = config_by_name.get(
    os.getenv("FLASK_ENV", "development"),
    DevelopmentConfig,
)
