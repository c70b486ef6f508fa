# merchantconnect/database.py
from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine, Session

from merchantconnect.core.errors import ServiceNotInitializedError

# ---------------------------------------------------------
# Supabase Postgres connection (via pooler)
#
# - sslmode=require   : enforce SSL when running in the cloud
# - pool_size=1       : keep only 1 connection to the Supabase pooler
# - max_overflow=0    : do not open extra connections beyond the pool
# - pool_pre_ping=True: validate connections before using them
#
# Supabase Session mode limits the number of clients. If each backend
# process opens many connections (SQLAlchemy default pool_size 5+),
# you can easily hit:
#   "MaxClientsInSessionMode: max clients reached"
# ---------------------------------------------------------

_engine: Engine | None = None


def build_database_url(db_url: str) -> str:
    """Append sslmode=require to a Postgres URL if it is not already present."""
    if not db_url.startswith("postgres") or "sslmode=" in db_url:
        return db_url
    if "?" in db_url:
        return db_url + "&sslmode=require"
    return db_url + "?sslmode=require"


def init_engine(db_url: str, **engine_kwargs) -> Engine:
    """
    Create the process-wide engine. Called once from ServiceContext.init().

    Extra keyword arguments override the pooler defaults (tests pass a
    SQLite StaticPool here).
    """
    global _engine

    if engine_kwargs:
        _engine = create_engine(db_url, **engine_kwargs)
    else:
        _engine = create_engine(
            build_database_url(db_url),
            echo=False,        # set to True if you want to debug SQL queries
            pool_pre_ping=True,
            pool_size=1,
            max_overflow=0,
        )
    return _engine


def get_engine() -> Engine:
    """
    Return the initialized engine.

    Raises:
        ServiceNotInitializedError: if init_engine() has not run yet.
    """
    if _engine is None:
        raise ServiceNotInitializedError("database")
    return _engine


def dispose_engine() -> None:
    """Dispose the engine and forget it (application shutdown)."""
    global _engine

    if _engine is not None:
        _engine.dispose()
        _engine = None


def create_db_and_tables() -> None:
    """
    Create all tables defined in SQLModel metadata if they do not exist.

    This is called once on application startup.
    """
    SQLModel.metadata.create_all(get_engine())


def get_session():
    """
    FastAPI dependency that yields a SQLModel Session.

    Usage:

        from fastapi import Depends

        @router.get("/example")
        def example_endpoint(session: Session = Depends(get_session)):
            ...
    """
    with Session(get_engine()) as session:
        yield session
