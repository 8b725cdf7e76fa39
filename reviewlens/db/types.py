"""Dialect-aware custom column types."""

from __future__ import annotations

import json
import logging
from typing import Any, Iterable, List, Optional

from sqlalchemy.types import JSON, TypeDecorator


logger = logging.getLogger(__name__)


class VectorAsJSON(TypeDecorator):
    """Store embedding vectors as pgvector on PostgreSQL and JSON elsewhere.

    Values always come back as ``list[float]`` whatever the storage shape.
    """

    impl = JSON
    cache_ok = True

    _vector_enabled = False

    def __init__(self, dimensions: Optional[int] = None) -> None:
        super().__init__()
        self._dimensions = dimensions

    def load_dialect_impl(self, dialect):  # type: ignore[override]
        if dialect.name == "postgresql" and self._vector_enabled:
            from pgvector.sqlalchemy import Vector

            return dialect.type_descriptor(Vector(self._dimensions))
        return dialect.type_descriptor(JSON())

    def process_bind_param(self, value: Optional[Iterable[float]], dialect):  # type: ignore[override]
        if value is None:
            return None
        return [float(x) for x in value]

    def process_result_value(self, value: Any, dialect) -> Optional[List[float]]:  # type: ignore[override]
        if value is None:
            return None
        if isinstance(value, str):
            value = json.loads(value)
        return [float(x) for x in value]

    @classmethod
    def enable_vector(cls) -> None:
        if not cls._vector_enabled:
            logger.info("pgvector support enabled; storing embeddings using vector type")
        cls._vector_enabled = True

    @classmethod
    def disable_vector(cls) -> None:
        if cls._vector_enabled:
            logger.info("pgvector support disabled; falling back to JSON storage for embeddings")
        cls._vector_enabled = False
