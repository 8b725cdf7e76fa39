"""Store cached embedding vectors as pgvector when the extension is available."""

from alembic import context, op
import sqlalchemy as sa


revision = "0003_pgvector_embeddings"
down_revision = "0002_insights"
branch_labels = None
depends_on = None

TABLE = "review_text_embeddings"
COLUMN = "vector"


def _log_warning(message: str) -> None:
    ctx = context.get_context()
    logger = getattr(ctx, "log", None)
    if logger is not None:
        logger.warning(message)


def _get_column_type(connection, table: str, column: str) -> str | None:
    query = sa.text(
        """
        SELECT atttypid::regtype::text
        FROM pg_attribute
        JOIN pg_class ON pg_class.oid = pg_attribute.attrelid
        JOIN pg_namespace ON pg_namespace.oid = pg_class.relnamespace
        WHERE pg_namespace.nspname = current_schema()
          AND pg_class.relname = :table
          AND pg_attribute.attname = :column
          AND pg_attribute.attnum > 0
          AND NOT pg_attribute.attisdropped
        """
    )
    return connection.execute(query, {"table": table, "column": column}).scalar()


def _ensure_vector_extension(connection) -> bool:
    available = connection.execute(
        sa.text("SELECT 1 FROM pg_available_extensions WHERE name = 'vector'")
    ).scalar()
    if not available:
        _log_warning("Extension 'vector' is not available; embeddings stay JSON")
        return False

    try:
        connection.execute(sa.text("CREATE EXTENSION IF NOT EXISTS vector"))
    except sa.exc.DBAPIError as exc:  # pragma: no cover - server dependent
        _log_warning(f"Failed to create extension 'vector'; embeddings stay JSON ({exc})")
        return False
    return bool(
        connection.execute(
            sa.text("SELECT EXISTS (SELECT 1 FROM pg_type WHERE typname = 'vector')")
        ).scalar()
    )


def upgrade() -> None:
    connection = op.get_bind()
    if connection.dialect.name != "postgresql":
        return
    if not _ensure_vector_extension(connection):
        return

    if _get_column_type(connection, TABLE, COLUMN) != "vector":
        connection.execute(
            sa.text(
                f"ALTER TABLE {TABLE} ALTER COLUMN {COLUMN} TYPE vector USING ({COLUMN}::text)::vector"
            )
        )


def downgrade() -> None:
    connection = op.get_bind()
    if connection.dialect.name != "postgresql":
        return

    if _get_column_type(connection, TABLE, COLUMN) == "vector":
        connection.execute(
            sa.text(
                f"ALTER TABLE {TABLE} ALTER COLUMN {COLUMN} TYPE json USING to_json({COLUMN}::float8[])"
            )
        )
