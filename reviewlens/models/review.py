from sqlalchemy import Column, DateTime, Index, Integer, String, Text
from datetime import datetime

from reviewlens.db.base import Base


class Review(Base):
    __tablename__ = "reviews"

    id = Column(String(64), primary_key=True)
    product_id = Column(String, nullable=False, index=True)
    body = Column(Text, nullable=False)
    normalized_body = Column(Text, nullable=False)
    body_sha = Column(String(64), nullable=False, index=True)
    review_date = Column(String(32), nullable=False)
    rating = Column(Integer)
    severity = Column(String(16))
    source_url = Column(String)
    created_at = Column(DateTime, default=datetime.utcnow)

    __table_args__ = (Index("ix_reviews_product_date", "product_id", "review_date"),)
