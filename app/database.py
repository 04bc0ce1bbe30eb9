import json
from typing import Any

from sqlalchemy import text
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from app.core.config import get_settings

settings = get_settings()

# ---------------------------------------------------------
# Supabase Postgres connection (via pooler)
#
# - sslmode=require   : enforce SSL when running in the cloud
# - pool_size=1       : keep only 1 connection to the Supabase pooler
# - max_overflow=0    : do not open extra connections beyond the pool
# - pool_pre_ping=True: validate connections before using them
#
# Supabase Session mode limits the number of clients; SQLAlchemy's default
# pool_size (5+) per process quickly hits
#   "MaxClientsInSessionMode: max clients reached"
#
# SQLite URLs (local runs, tests) get a single shared in-process connection.
# ---------------------------------------------------------


def _with_sslmode(url: str) -> str:
    """Append sslmode=require to Postgres URLs that don't set it."""
    if not url.startswith("postgres") or "sslmode=" in url:
        return url
    return url + ("&" if "?" in url else "?") + "sslmode=require"


def _engine_kwargs(url: str) -> dict[str, Any]:
    if url.startswith("sqlite"):
        return {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }
    return {
        "pool_pre_ping": True,
        "pool_size": 1,
        "max_overflow": 0,
    }


db_url = _with_sslmode(settings.DATABASE_URL)

engine = create_engine(
    db_url,
    echo=False,  # set to True if you want to debug SQL queries
    **_engine_kwargs(db_url),
)


def create_db_and_tables() -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(engine)


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(engine) as session:
        yield session


def apply_caller_context(session: Session, claims: dict[str, Any]) -> None:
    """
    Run the current transaction as the calling Supabase user.

    Supabase RLS policies read `auth.uid()` from `request.jwt.claims` and
    apply to the `authenticated` role. Both settings are transaction-local,
    so they vanish at commit/rollback.

    No-op on non-Postgres databases.
    """
    if session.get_bind().dialect.name != "postgresql":
        return
    session.execute(
        text("select set_config('request.jwt.claims', :claims, true)"),
        {"claims": json.dumps(claims)},
    )
    session.execute(text("set local role authenticated"))
