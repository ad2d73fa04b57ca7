from typing import Any, Dict, List, Union

from loguru import logger
from openai import AsyncOpenAI

from mfuse.providers.base import EmbeddingProvider
from mfuse.utils.error_handler import handle_exceptions, convert_exceptions, ProviderException, ConfigurationException


class OpenAIEmbeddingProvider(EmbeddingProvider):
    """
    Text embeddings from the OpenAI embeddings endpoint.

    ``text-embedding-3-*`` models accept a ``dimensions`` argument, so the
    service returns vectors already shortened to the configured size.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.model = config.get("model") or "text-embedding-3-small"
        self.dimension = config.get("dimension", 384)
        api_key = config.get("api_key")
        if not api_key:
            raise ConfigurationException("OpenAI API key is required for text embeddings")
        self.client = AsyncOpenAI(
            api_key=api_key,
            timeout=config.get("timeout", 30),
            max_retries=config.get("max_retries", 2),
        )

    async def _create(self, payload: Union[str, List[str]], **kwargs) -> List[List[float]]:
        response = await self.client.embeddings.create(
            model=self.model,
            input=payload,
            dimensions=self.dimension,
            **kwargs
        )
        vectors = [item.embedding for item in response.data]
        for vector in vectors:
            if len(vector) != self.dimension:
                raise ProviderException(
                    f"{self.model} returned {len(vector)} dimensions, expected {self.dimension}"
                )
        return vectors

    @handle_exceptions(retries=3, exceptions=(ProviderException,))
    @convert_exceptions({Exception: ProviderException})
    async def embedding(self, text: str, **kwargs) -> List[float]:
        return (await self._create(text, **kwargs))[0]

    @handle_exceptions(retries=3, exceptions=(ProviderException,))
    @convert_exceptions({Exception: ProviderException})
    async def batch_embedding(self, texts: List[str], **kwargs) -> List[List[float]]:
        if not texts:
            return []
        logger.debug(f"Embedding {len(texts)} texts with {self.model}")
        return await self._create(texts, **kwargs)

    async def close(self):
        logger.info("Closing OpenAI embedding client")
        await self.client.close()
