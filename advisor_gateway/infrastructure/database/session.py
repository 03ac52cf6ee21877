"""Database engine and session factory for the financial record store"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from advisor_gateway.config import settings


def create_record_engine(database_url: str | None = None) -> Engine:
    """
    Engine for the record store.

    Reads run on worker threads, so SQLite connections must be shareable
    across threads; server databases get a bounded, self-healing pool.
    """
    url = database_url or settings.database_url
    if url.startswith("sqlite"):
        return create_engine(url, connect_args={"check_same_thread": False})

    return create_engine(
        url,
        pool_pre_ping=True,  # Verify connections before using
        pool_size=settings.db_pool_size,
        max_overflow=settings.db_max_overflow,
        pool_recycle=settings.db_pool_recycle_seconds,
    )


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)
