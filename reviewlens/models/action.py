from sqlalchemy import (
    JSON,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from datetime import datetime

from reviewlens.db.base import Base


class Action(Base):
    __tablename__ = "actions"

    id = Column(Integer, primary_key=True, index=True)
    theme_id = Column(Integer, ForeignKey("themes.id", ondelete="CASCADE"), nullable=False, index=True)
    kind = Column(String(16), nullable=False)
    description = Column(Text, nullable=False)
    normalized_description = Column(Text, nullable=False)
    impact = Column(Integer, nullable=False)
    effort = Column(Integer, nullable=False)
    evidence = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("theme_id", "normalized_description", name="uq_action_theme_description"),
    )


class SynthesisCache(Base):
    """Full synthesis payloads keyed by the entity they were generated for."""

    __tablename__ = "synthesis_cache"

    id = Column(Integer, primary_key=True)
    entity_id = Column(String(64), nullable=False)
    prompt_version = Column(Integer, nullable=False)
    payload = Column(JSON, nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (
        UniqueConstraint("entity_id", "prompt_version", name="uq_synthesis_entity_prompt"),
    )
