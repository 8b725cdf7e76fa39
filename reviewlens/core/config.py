from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    DATABASE_URL: str = "postgresql+psycopg2://postgres:postgres@db:5432/postgres"
    DATABASE_SEARCH_PATH: str | None = None
    REDIS_URL: str | None = None
    ENVIRONMENT: str = "development"

    OPENAI_API_KEY: str | None = None
    OPENAI_BASE_URL: str | None = None
    EMBEDDING_MODEL: str = "text-embedding-3-small"
    EMBEDDING_DIMENSION: int = 1536
    EMBEDDING_BATCH_SIZE: int = 100
    EMBEDDING_CONCURRENCY: int = 2
    THEME_CHAT_MODEL: str = "gpt-4o-mini"
    ACTIONS_CHAT_MODEL: str = "gpt-4o-mini"
    CHAT_CONCURRENCY: int = 3
    CHAT_MAX_TOKENS: int = 1000

    CLUSTER_ALGORITHM: Literal["dbscan", "hdbscan"] = "dbscan"
    CLUSTER_EPS: float = 0.12
    CLUSTER_MIN_PTS: int = 2
    HDBSCAN_MIN_CLUSTER_SIZE: int = 5
    HDBSCAN_MIN_SAMPLES: int = 3
    CLUSTER_INCLUDE_NOISE: bool = False

    EVIDENCE_K: int = 5
    RECENCY_PERIOD_DAYS: int = 90
    PROMPT_VERSION: int = 1
    PIPELINE_VERSION: str = "1.0.0"

    RETRY_MAX_ATTEMPTS: int = 2
    RETRY_BACKOFF_SECONDS: float = 0.3

    DEFAULT_INGEST_LIMIT: int = 12
    REVIEW_SOURCE_PATH: str = "data/mock_reviews.json"

    model_config = SettingsConfigDict(env_file=".env")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT.lower() == "production"


settings = Settings()
