import logging

from sqlalchemy import JSON, Engine, create_engine, event
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import DeclarativeBase, sessionmaker

from app.core.config import settings

logger = logging.getLogger(__name__)

# JSONB on PostgreSQL, plain JSON (text) everywhere else
JSONType = JSON().with_variant(JSONB(), "postgresql")


class Base(DeclarativeBase):
    pass


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """SQLite ignores FOREIGN KEY clauses unless the pragma is set per connection."""

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def create_db_engine(url: str) -> Engine:
    if url.startswith("sqlite"):
        engine = create_engine(url, echo=settings.DEBUG, connect_args={"check_same_thread": False})
        enable_sqlite_foreign_keys(engine)
        return engine
    return create_engine(url, echo=settings.DEBUG, pool_pre_ping=True, pool_size=10, max_overflow=20)


engine = create_db_engine(settings.DATABASE_URL)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(bind: Engine | None = None) -> None:
    """Create any missing tables."""
    import app.models  # noqa: F401  register models with Base.metadata

    Base.metadata.create_all(bind=bind or engine)
    logger.info("Database initialized")


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()
