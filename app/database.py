# app/database.py
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel, create_engine, Session

from app.core.config import get_settings

settings = get_settings()


def _engine_options(db_url: str) -> tuple[str, dict]:
    """
    Build (url, kwargs) for create_engine.

    Postgres (Supabase pooler):
      - sslmode=require   : enforce SSL when running in the cloud
      - pool_size=1       : keep only 1 connection to the Supabase pooler
      - max_overflow=0    : do not open extra connections beyond the pool
      - pool_pre_ping=True: validate connections before using them

    Supabase Session mode limits the number of clients; SQLAlchemy's
    default pool (5+) easily hits "MaxClientsInSessionMode".

    SQLite (local runs / tests):
      - a single shared connection so an in-memory DB survives across sessions
    """
    if db_url.startswith("sqlite"):
        return db_url, {
            "connect_args": {"check_same_thread": False},
            "poolclass": StaticPool,
        }

    if "sslmode=" not in db_url:
        separator = "&" if "?" in db_url else "?"
        db_url = f"{db_url}{separator}sslmode=require"

    return db_url, {
        "pool_pre_ping": True,
        "pool_size": 1,
        "max_overflow": 0,
    }


def build_engine(db_url: str):
    url, options = _engine_options(db_url)
    return create_engine(url, echo=False, **options)


engine = build_engine(settings.DATABASE_URL)


def create_db_and_tables(bind=None) -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(bind or engine)


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
