# merchantconnect/core/config.py
from functools import lru_cache

from pydantic import ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict


class ConfigurationError(RuntimeError):
    """
    Raised when required startup configuration is missing or invalid.

    This is fatal: the application refuses to serve until it is fixed.
    """


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - SUPABASE_KEY (anon key)
      - DATABASE_URL (Supabase Postgres connection string)
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)
      - ADMIN_EMAIL (supplier address that receives merchant inquiries)

    Optional:
      - SUPABASE_SERVICE_ROLE_KEY (only used for the storage/admin client)
      - GEMINI_API_KEY (image analysis + email drafting; fallbacks otherwise)
      - LOGO_HTML (HTML snippet replacing the text logo on clients)
      - SMTP_* (send a copy of each inquiry to ADMIN_EMAIL)
      - FEED_MAX_SESSIONS, FEED_SESSION_IDLE_SECONDS (in-memory feed session bounds)
    """

    PROJECT_NAME: str = "MerchantConnect API"
    API_V1_STR: str = "/api/v1"

    # Supabase / DB config
    SUPABASE_URL: str
    SUPABASE_KEY: str
    DATABASE_URL: str

    # JWT verification (backend-side)
    SUPABASE_JWT_SECRET: str
    SUPABASE_JWT_ALG: str = "HS256"

    # Service role key bypasses RLS (backend only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None
    STORAGE_BUCKET: str = "assets"

    # Supplier notification address (the "To" of every inquiry)
    ADMIN_EMAIL: str
    LOGO_HTML: str = ""

    # Text generation
    GEMINI_API_KEY: str | None = None
    GEMINI_MODEL: str = "gemini-2.5-flash"

    # SMTP (optional copy of inquiries)
    SMTP_HOST: str | None = None
    SMTP_PORT: int = 587
    SMTP_USERNAME: str | None = None
    SMTP_PASSWORD: str | None = None
    SMTP_FROM_EMAIL: str | None = None
    SMTP_FROM_NAME: str = "MerchantConnect"
    SMTP_USE_TLS: bool = True
    SMTP_USE_SSL: bool = False

    # Feed presentation
    ROWS_PER_BATCH: int = 2
    SENTINEL_ROOT_MARGIN_PX: int = 200
    MAX_SELECT_QUANTITY: int = 10
    FEED_MAX_SESSIONS: int = 1000
    FEED_SESSION_IDLE_SECONDS: int = 1800

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:5173",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.

    Raises:
        ConfigurationError: if a required variable is missing or invalid.
    """
    try:
        return Settings()
    except ValidationError as e:
        missing = ", ".join(
            str(err["loc"][0]) for err in e.errors() if err.get("loc")
        )
        raise ConfigurationError(
            f"Invalid or missing configuration: {missing}"
        ) from e
