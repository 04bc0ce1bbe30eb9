from functools import lru_cache
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Centralized application settings loaded from environment.

    Required env vars (.env):
      - SUPABASE_URL
      - SUPABASE_KEY (anon key)
      - DATABASE_URL (Supabase Postgres connection string)

    Required only when AUTH_TOKEN_VERIFIER=local:
      - SUPABASE_JWT_SECRET (JWT signing secret from Supabase project settings)

    Optional:
      - SUPABASE_SERVICE_ROLE_KEY (used for Storage when present)
    """

    PROJECT_NAME: str = "Keyboard Review API"
    API_PREFIX: str = ""
    LOG_LEVEL: str = "INFO"

    # Supabase / DB config
    SUPABASE_URL: str
    SUPABASE_KEY: str
    DATABASE_URL: str

    # Bearer token verification:
    #   remote => ask Supabase Auth for the user behind the token
    #   local  => verify the JWT signature with SUPABASE_JWT_SECRET
    AUTH_TOKEN_VERIFIER: Literal["remote", "local"] = "remote"
    SUPABASE_JWT_SECRET: str | None = None
    SUPABASE_JWT_ALG: str = "HS256"

    # Service role key bypasses RLS (backend only)
    SUPABASE_SERVICE_ROLE_KEY: str | None = None

    # Where Supabase sends users after they click the confirmation link.
    AUTH_REDIRECT_URL: str | None = None

    # Review media storage
    REVIEW_MEDIA_BUCKET: str = "review-media"
    MAX_MEDIA_BYTES: int = 20 * 1024 * 1024

    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://127.0.0.1:3000",
        "http://localhost:8081",
    ]

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings loader.
    Ensures we don't re-parse .env on every import / request.
    """
    return Settings()
