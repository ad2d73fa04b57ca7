import hashlib
import io
import re
from typing import Any, Dict, List, Union

import numpy as np
from PIL import Image
from loguru import logger

from mfuse.providers.base import EmbeddingProvider, ImageEmbeddingProvider, LegacyEmbeddingProvider
from mfuse.utils.normalization import normalize_l2

_TOKEN = re.compile(r"\w+", re.UNICODE)


def _bucket(token: str, dimension: int):
    digest = hashlib.sha256(token.encode("utf-8")).digest()
    index = int.from_bytes(digest[:8], "big") % dimension
    sign = 1.0 if digest[8] & 1 else -1.0
    return index, sign


def hash_tokens(text: str, dimension: int) -> np.ndarray:
    """Signed feature hashing of lower-cased word tokens and their bigrams."""
    vector = np.zeros(dimension, dtype=np.float64)
    tokens = [t.lower() for t in _TOKEN.findall(text)]
    features = tokens + [f"{a}_{b}" for a, b in zip(tokens, tokens[1:])]
    for feature in features:
        index, sign = _bucket(feature, dimension)
        vector[index] += sign
    return vector


def seeded_vector(payload: bytes, dimension: int) -> np.ndarray:
    seed = int.from_bytes(hashlib.sha256(payload).digest()[:8], "big")
    return np.random.default_rng(seed).uniform(-1.0, 1.0, dimension)


class HashingEmbeddingProvider(EmbeddingProvider, LegacyEmbeddingProvider):
    """
    Deterministic, model-free text embedding.

    Serves two roles: the legacy single-vector generator that backs the
    fusion fallback, and the text model of the lightweight "mock" profile.
    """

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.dimension = int(config.get("dimension", 128))
        self.model_tag = config.get("model_tag", "legacy-hash-embedding-v1")
        self.text_weight = float(config.get("text_weight", 0.7))
        self.tags_weight = float(config.get("tags_weight", 0.3))
        logger.debug(f"HashingEmbeddingProvider ready (dimension={self.dimension})")

    async def embedding(self, text: str, **kwargs) -> List[float]:
        return normalize_l2(hash_tokens(text, self.dimension))

    async def batch_embedding(self, texts: List[str], **kwargs) -> List[List[float]]:
        return [await self.embedding(text) for text in texts]

    async def legacy_embedding(self, text: str, tags: List[str], **kwargs) -> List[float]:
        text_part = normalize_l2(hash_tokens(text, self.dimension))
        tags_part = normalize_l2(hash_tokens(" ".join(tags), self.dimension))
        blended = self.text_weight * np.asarray(text_part) + self.tags_weight * np.asarray(tags_part)
        return normalize_l2(blended)


class HashingImageEmbeddingProvider(ImageEmbeddingProvider):
    """Seeds a vector from the decoded pixels, so identical frames embed identically."""

    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.dimension = int(config.get("dimension", 512))

    def _pixels(self, image: Union[str, Image.Image]) -> bytes:
        if isinstance(image, str):
            with Image.open(image) as img:
                return img.convert("RGB").tobytes()
        if isinstance(image, (bytes, bytearray)):
            with Image.open(io.BytesIO(image)) as img:
                return img.convert("RGB").tobytes()
        return image.convert("RGB").tobytes()

    async def image_embedding(self, image: Union[str, Image.Image], **kwargs) -> List[float]:
        return normalize_l2(seeded_vector(self._pixels(image), self.dimension))

    async def batch_image_embedding(self, images: List[Union[str, Image.Image]], **kwargs) -> List[List[float]]:
        return [await self.image_embedding(image) for image in images]
