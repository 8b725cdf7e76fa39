"""OpenAI-backed embedding and chat providers.

The ``AsyncOpenAI`` client is built once per process by ``get_async_client``;
providers receive it explicitly so tests can swap in fakes without touching
the network.
"""

import asyncio
import logging
from functools import lru_cache
from typing import List, Optional, Protocol, Sequence

from openai import AsyncOpenAI

from reviewlens.core.config import settings
from reviewlens.core.errors import ProviderUnavailableError

logger = logging.getLogger(__name__)

_CHAT_SEMAPHORE = asyncio.Semaphore(max(1, settings.CHAT_CONCURRENCY))
_EMBED_SEMAPHORE = asyncio.Semaphore(max(1, settings.EMBEDDING_CONCURRENCY))


class EmbeddingProvider(Protocol):
    model: str

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        ...


class ChatProvider(Protocol):
    model: str

    @property
    def available(self) -> bool:
        ...

    async def complete(self, *, system: str, user: str) -> str:
        ...


def _llm_available() -> bool:
    return bool(settings.OPENAI_API_KEY)


@lru_cache(maxsize=1)
def get_async_client() -> Optional[AsyncOpenAI]:
    if not _llm_available():
        logger.warning("OPENAI_API_KEY not set - generative features use deterministic fallbacks")
        return None
    return AsyncOpenAI(
        api_key=settings.OPENAI_API_KEY,
        base_url=settings.OPENAI_BASE_URL,
    )


class OpenAIEmbeddingProvider:
    def __init__(self, client: Optional[AsyncOpenAI], model: Optional[str] = None) -> None:
        self._client = client
        self.model = model or settings.EMBEDDING_MODEL

    async def embed(self, texts: Sequence[str]) -> List[List[float]]:
        if self._client is None:
            raise ProviderUnavailableError("Embedding provider requires OPENAI_API_KEY")
        if not texts:
            return []
        async with _EMBED_SEMAPHORE:
            response = await self._client.embeddings.create(model=self.model, input=list(texts))
        ordered = sorted(response.data, key=lambda item: item.index)
        return [list(item.embedding) for item in ordered]


class OpenAIChatProvider:
    def __init__(
        self,
        client: Optional[AsyncOpenAI],
        model: str,
        max_tokens: Optional[int] = None,
    ) -> None:
        self._client = client
        self.model = model
        self.max_tokens = max_tokens or settings.CHAT_MAX_TOKENS

    @property
    def available(self) -> bool:
        return self._client is not None

    async def complete(self, *, system: str, user: str) -> str:
        if self._client is None:
            raise ProviderUnavailableError(f"Chat model {self.model} requires OPENAI_API_KEY")
        async with _CHAT_SEMAPHORE:
            completion = await self._client.chat.completions.create(
                model=self.model,
                temperature=0,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
                messages=[
                    {"role": "system", "content": system},
                    {"role": "user", "content": user},
                ],
            )
        return completion.choices[0].message.content or ""
