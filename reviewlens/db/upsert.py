"""Dialect-aware upsert helpers reusable across the pipeline."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import and_, select
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session


def _dialect_insert(db: Session, model):
    bind = db.get_bind()
    name = bind.dialect.name if bind is not None else ""
    if name == "postgresql":
        return postgresql.insert(model)
    if name == "sqlite":
        return sqlite.insert(model)
    return None


def upsert_rows(
    db: Session,
    model,
    rows: Sequence[Dict[str, Any]],
    conflict_columns: Sequence[str],
    update_columns: Optional[Sequence[str]] = None,
) -> None:
    """Insert ``rows`` into ``model``'s table, resolving conflicts on ``conflict_columns``.

    ``update_columns`` lists the columns overwritten on conflict. An empty or
    missing list means "do nothing" on conflict, which keeps the first write.
    The caller owns the transaction.
    """

    if not rows:
        return

    stmt = _dialect_insert(db, model)
    if stmt is not None:
        stmt = stmt.values(list(rows))
        if update_columns:
            stmt = stmt.on_conflict_do_update(
                index_elements=list(conflict_columns),
                set_={column: getattr(stmt.excluded, column) for column in update_columns},
            )
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=list(conflict_columns))
        db.execute(stmt)
        return

    _upsert_portable(db, model, rows, conflict_columns, update_columns)


def _upsert_portable(
    db: Session,
    model,
    rows: Sequence[Dict[str, Any]],
    conflict_columns: Sequence[str],
    update_columns: Optional[Sequence[str]],
) -> None:
    for row in rows:
        criteria = and_(*(getattr(model, column) == row[column] for column in conflict_columns))
        existing = db.execute(select(model).where(criteria)).scalars().first()
        if existing is None:
            db.add(model(**row))
        elif update_columns:
            for column in update_columns:
                setattr(existing, column, row[column])
        db.flush()


def chunked(items: Sequence[Any], size: int) -> List[Sequence[Any]]:
    size = max(1, size)
    return [items[i : i + size] for i in range(0, len(items), size)]
