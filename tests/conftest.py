import json
import os
import sys
from pathlib import Path
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import httpx
import pytest
from openai import BadRequestError, InternalServerError, RateLimitError
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

PROJECT_ROOT = Path(__file__).resolve().parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

test_db_path = PROJECT_ROOT / "test.db"
if test_db_path.exists():
    test_db_path.unlink()

os.environ.setdefault("DATABASE_URL", "sqlite:///./test.db")
os.environ["RETRY_BACKOFF_SECONDS"] = "0"
os.environ.pop("REDIS_URL", None)

from reviewlens.core.errors import ProviderUnavailableError  # noqa: E402
from reviewlens.db.base import Base  # noqa: E402
from reviewlens.services.review_source import JsonFileReviewSource  # noqa: E402
import reviewlens.models  # noqa: E402,F401


DEFAULT_RULES: Tuple[Tuple[Tuple[str, ...], List[float]], ...] = (
    (("price", "pricing", "charged", "invoice"), [1.0, 0.0, 0.0, 0.0]),
    (("support", "customer service", "ticket"), [0.0, 1.0, 0.0, 0.0]),
)
OTHER_VECTOR = [0.0, 0.0, 1.0, 0.0]


class FakeEmbeddingProvider:
    """Keyword-driven embeddings; records every batch it is asked to embed."""

    def __init__(
        self,
        vectors: Optional[Dict[str, Sequence[float]]] = None,
        rules=DEFAULT_RULES,
        model: str = "fake-embed",
        fail_with: Optional[Exception] = None,
    ) -> None:
        self.model = model
        self.vectors = dict(vectors or {})
        self.rules = rules
        self.fail_with = fail_with
        self.calls: List[List[str]] = []

    @property
    def embedded_texts(self) -> List[str]:
        return [text for batch in self.calls for text in batch]

    def vector_for(self, text: str) -> List[float]:
        if text in self.vectors:
            return list(self.vectors[text])
        lowered = text.lower()
        for keywords, vector in self.rules:
            if any(keyword in lowered for keyword in keywords):
                return list(vector)
        return list(OTHER_VECTOR)

    async def embed(self, texts):
        self.calls.append(list(texts))
        if self.fail_with is not None:
            raise self.fail_with
        return [self.vector_for(text) for text in texts]


class FakeChatProvider:
    """Replays canned responses; the last one repeats. Exceptions are raised."""

    def __init__(self, responses=None, available: bool = True, model: str = "fake-chat") -> None:
        self.model = model
        self.responses = list(responses or [])
        self._available = available
        self.calls: List[Dict[str, str]] = []

    @property
    def available(self) -> bool:
        return self._available

    async def complete(self, *, system: str, user: str) -> str:
        if not self._available:
            raise ProviderUnavailableError(f"Chat model {self.model} requires OPENAI_API_KEY")
        self.calls.append({"system": system, "user": user})
        if not self.responses:
            return ""
        item = self.responses.pop(0) if len(self.responses) > 1 else self.responses[0]
        if isinstance(item, BaseException):
            raise item
        return item


class CountingSource:
    """Wraps a review source and counts fetches."""

    def __init__(self, inner) -> None:
        self.inner = inner
        self.fetches = 0

    async def fetch(self, target, start, end, limit):
        self.fetches += 1
        return await self.inner.fetch(target, start, end, limit)


DEFAULT_ACTIONS = ("Publish a pricing FAQ", "Add a seat audit", "Offer annual billing")


def synthesis_json(descriptions: Sequence[str] = DEFAULT_ACTIONS) -> str:
    return json.dumps(
        {
            "root_causes": ["Tier limits are unclear"],
            "actions": [
                {
                    "kind": "product" if index % 2 == 0 else "gtm",
                    "description": description,
                    "impact": 4,
                    "effort": 2,
                    "evidence": ["r1"],
                }
                for index, description in enumerate(descriptions)
            ],
        }
    )


SAMPLE_REVIEWS = [
    {"id": "p1", "product_id": "unitA", "body": "The price doubled after renewal.", "review_date": "2025-10-05", "rating": 2},
    {"id": "p2", "product_id": "unitA", "body": "Pricing tiers are hard to compare.", "review_date": "2025-11-12", "rating": 3},
    {"id": "p3", "product_id": "unitA", "body": "We were charged twice this month.", "review_date": "2025-12-20", "rating": 1},
    {"id": "s1", "product_id": "unitA", "body": "Support never answered our ticket.", "review_date": "2025-11-02", "rating": 2},
    {"id": "s2", "product_id": "unitA", "body": "Customer service ignored us for a week.", "review_date": "2025-12-01", "rating": 2},
    {"id": "n1", "product_id": "unitA", "body": "The mobile app crashed on launch.", "review_date": "2025-12-03", "rating": 1},
]


@pytest.fixture()
def session_factory():
    engines = []
    sessions = []

    def _make():
        engine = create_engine(
            "sqlite://", connect_args={"check_same_thread": False}, poolclass=StaticPool
        )
        Base.metadata.create_all(bind=engine)
        session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
        engines.append(engine)
        sessions.append(session)
        return session

    yield _make
    for session in sessions:
        session.close()
    for engine in engines:
        engine.dispose()


@pytest.fixture()
def db(session_factory):
    return session_factory()


@pytest.fixture()
def reviews_file(tmp_path) -> Callable[[Sequence[dict]], str]:
    def _write(records: Sequence[dict]) -> str:
        path = tmp_path / f"reviews_{len(list(tmp_path.glob('reviews_*.json')))}.json"
        path.write_text(json.dumps(list(records)), encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture()
def review_source(reviews_file):
    def _make(records: Sequence[dict] = SAMPLE_REVIEWS) -> CountingSource:
        return CountingSource(JsonFileReviewSource(reviews_file(records)))

    return _make


@pytest.fixture()
def sample_reviews() -> List[dict]:
    return [dict(record) for record in SAMPLE_REVIEWS]


@pytest.fixture()
def make_embedder():
    return FakeEmbeddingProvider


@pytest.fixture()
def make_chat():
    return FakeChatProvider


@pytest.fixture(name="synthesis_json")
def synthesis_json_fixture():
    return synthesis_json


@pytest.fixture()
def status_error():
    """Build an ``openai.APIStatusError`` subclass instance for ``status``."""

    def _make(status: int):
        request = httpx.Request("POST", "https://api.openai.com/v1/chat/completions")
        response = httpx.Response(status, request=request)
        if status >= 500:
            return InternalServerError(f"status {status}", response=response, body=None)
        if status == 429:
            return RateLimitError("rate limited", response=response, body=None)
        return BadRequestError(f"status {status}", response=response, body=None)

    return _make
