import logging
import time
from urllib.parse import urlparse

from sqlalchemy import create_engine, text
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from reviewlens.core.config import settings
from reviewlens.db.base import Base
from reviewlens.db.types import VectorAsJSON

logger = logging.getLogger(__name__)

_connect_args = (
    {"check_same_thread": False} if settings.DATABASE_URL.startswith("sqlite") else {}
)
engine = create_engine(settings.DATABASE_URL, pool_pre_ping=True, connect_args=_connect_args)
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


def _scalar(connection, query: str, **params) -> bool:
    return bool(connection.execute(text(query), params).scalar())


def _set_search_path(connection) -> None:
    db_name = engine.url.database
    if not (settings.DATABASE_SEARCH_PATH and db_name):
        return
    try:
        connection.execute(
            text(f'ALTER DATABASE "{db_name}" SET search_path TO {settings.DATABASE_SEARCH_PATH}')
        )
    except SQLAlchemyError as exc:  # pragma: no cover - server dependent
        logger.warning("Failed to set search_path for database %s: %s", db_name, exc, exc_info=True)


def ensure_extensions() -> bool:
    """Enable pgvector on PostgreSQL. Returns whether embeddings use the vector type.

    Any other dialect, or a server without the extension, keeps the JSON
    storage for ``review_text_embeddings.vector``.
    """

    if engine.dialect.name != "postgresql":
        VectorAsJSON.disable_vector()
        return False

    vector_enabled = False
    with engine.begin() as connection:
        try:
            if _scalar(connection, "SELECT 1 FROM pg_available_extensions WHERE name = :name", name="vector"):
                connection.execute(text("CREATE EXTENSION IF NOT EXISTS vector"))
                vector_enabled = _scalar(
                    connection,
                    "SELECT EXISTS (SELECT 1 FROM pg_type WHERE typname = :name)",
                    name="vector",
                )
            else:
                logger.warning("pgvector extension is not available; embeddings stored as JSON")
            _set_search_path(connection)
        except SQLAlchemyError as exc:  # pragma: no cover - server dependent
            logger.warning("Failed to ensure database extensions: %s", exc, exc_info=True)
            vector_enabled = False

    if vector_enabled:
        VectorAsJSON.enable_vector()
    else:
        VectorAsJSON.disable_vector()
    return vector_enabled


def wait_for_db(max_attempts: int = 10, delay_seconds: float = 2.0) -> None:
    """Block until the database is reachable or raise after exhausting retries."""

    url = urlparse(settings.DATABASE_URL)
    if url.scheme.startswith("sqlite"):
        return

    for attempt in range(1, max_attempts + 1):
        try:
            with engine.connect() as connection:
                connection.execute(text("SELECT 1"))
            if attempt > 1:
                logger.info("Database became reachable on attempt %s", attempt)
            return
        except OperationalError as exc:  # pragma: no cover - best effort guard
            logger.warning(
                "Database not ready (attempt %s/%s): %s", attempt, max_attempts, exc
            )
            if attempt == max_attempts:
                raise
            time.sleep(delay_seconds)


def init_db() -> None:
    """Wait for the database, enable extensions and create any missing tables."""

    import reviewlens.models  # noqa: F401

    wait_for_db()
    vector_enabled = ensure_extensions()
    Base.metadata.create_all(bind=engine)
    logger.info(
        "Database ready (%s, embeddings stored as %s)",
        engine.dialect.name,
        "vector" if vector_enabled else "json",
    )
