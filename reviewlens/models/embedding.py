from sqlalchemy import Column, DateTime, Integer, String, UniqueConstraint
from datetime import datetime

from reviewlens.core.config import settings
from reviewlens.db.base import Base
from reviewlens.db.types import VectorAsJSON


class EmbeddingRecord(Base):
    """Embedding vectors shared by every review with the same normalized text."""

    __tablename__ = "review_text_embeddings"

    id = Column(Integer, primary_key=True)
    body_sha = Column(String(64), nullable=False)
    model = Column(String, nullable=False)
    vector = Column(VectorAsJSON(settings.EMBEDDING_DIMENSION), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (UniqueConstraint("body_sha", "model", name="uq_embedding_sha_model"),)
