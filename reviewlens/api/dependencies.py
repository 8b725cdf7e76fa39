from fastapi import Depends
from sqlalchemy.orm import Session

from reviewlens.core.config import settings
from reviewlens.db.session import SessionLocal
from reviewlens.services.openai_client import (
    OpenAIChatProvider,
    OpenAIEmbeddingProvider,
    get_async_client,
)
from reviewlens.services.pipeline import IngestionPipeline
from reviewlens.services.review_source import JsonFileReviewSource
from reviewlens.services.synthesis import ActionSynthesizer


def get_db():
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_review_source() -> JsonFileReviewSource:
    return JsonFileReviewSource(settings.REVIEW_SOURCE_PATH)


def get_embedding_provider() -> OpenAIEmbeddingProvider:
    return OpenAIEmbeddingProvider(get_async_client(), settings.EMBEDDING_MODEL)


def get_theme_chat() -> OpenAIChatProvider:
    return OpenAIChatProvider(get_async_client(), settings.THEME_CHAT_MODEL)


def get_actions_chat() -> OpenAIChatProvider:
    return OpenAIChatProvider(get_async_client(), settings.ACTIONS_CHAT_MODEL)


def get_pipeline(
    db: Session = Depends(get_db),
    source=Depends(get_review_source),
    embedder=Depends(get_embedding_provider),
    theme_chat=Depends(get_theme_chat),
    actions_chat=Depends(get_actions_chat),
) -> IngestionPipeline:
    return IngestionPipeline(db, source, embedder, theme_chat, actions_chat)


def get_synthesizer(
    db: Session = Depends(get_db),
    actions_chat=Depends(get_actions_chat),
) -> ActionSynthesizer:
    return ActionSynthesizer(db, actions_chat)
