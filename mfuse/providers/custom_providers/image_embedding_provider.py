from mfuse.providers.base import ImageEmbeddingProvider
from mfuse.config.settings import ClipConfig
from typing import Dict, Any, List, Union, Optional
from PIL import Image
import numpy as np
import torch
from transformers import CLIPProcessor, CLIPModel
from loguru import logger
from mfuse.utils.error_handler import handle_exceptions, convert_exceptions, ProviderException, ConfigurationException
import asyncio


class CLIPImageEmbeddingProvider(ImageEmbeddingProvider):
    """CLIP-based frame embedding provider."""

    def __init__(self, config: Union[Dict[str, Any], ClipConfig]):
        """
        Args:
            config: ClipConfig object or dict with following keys:
                - model_name: CLIP model name (default: "openai/clip-vit-base-patch32")
                - device: "auto", "cpu", or "cuda" (default: "auto")
                - dimension: expected projection size (default: 512)
                - max_image_size: Maximum image dimension (default: 224)
                - batch_size: Frames per forward pass (default: 8)

        The model is loaded on first use so that constructing the provider
        stays cheap for pipelines that never reach the visual branch.
        """
        if isinstance(config, ClipConfig):
            config = config.to_provider_config()

        self.config = config
        self.model_name = config.get("model_name", "openai/clip-vit-base-patch32")
        self.dimension = config.get("dimension", 512)
        self.device = self._get_device()
        self.max_image_size = config.get("max_image_size", 224)
        self.batch_size = config.get("batch_size", 8)

        self.model: Optional[CLIPModel] = None
        self.processor: Optional[CLIPProcessor] = None
        self._load_lock = asyncio.Lock()

    def _get_device(self) -> str:
        device_config = self.config.get("device", "auto")

        if device_config == "auto":
            return "cuda" if torch.cuda.is_available() else "cpu"
        return device_config

    def _initialize_model(self):
        try:
            logger.info(f"Initializing CLIP model {self.model_name} on {self.device}")

            self.model = CLIPModel.from_pretrained(self.model_name)
            self.processor = CLIPProcessor.from_pretrained(self.model_name, use_fast=False)

            self.model = self.model.to(self.device)
            self.model.eval()

            projection = self.model.config.projection_dim
            if projection != self.dimension:
                raise ConfigurationException(
                    f"CLIP model {self.model_name} projects to {projection} dims, configured {self.dimension}"
                )
            logger.info("CLIP model initialized successfully")

        except ConfigurationException:
            raise
        except Exception as e:
            logger.error(f"Failed to initialize CLIP model: {e}")
            raise ConfigurationException(f"Failed to initialize CLIP model: {e}")

    async def _ensure_model(self):
        async with self._load_lock:
            if self.model is None:
                await asyncio.to_thread(self._initialize_model)

    def _load_and_preprocess_image(self, image: Union[str, Image.Image]) -> Optional[Image.Image]:
        try:
            if isinstance(image, str):
                img = Image.open(image).convert('RGB')
            else:
                img = image.convert('RGB') if image.mode != 'RGB' else image

            if max(img.size) > self.max_image_size:
                img.thumbnail((self.max_image_size, self.max_image_size), Image.Resampling.LANCZOS)

            return img

        except Exception as e:
            logger.warning(f"Failed to load/preprocess image: {e}")
            return None

    def _generate_embeddings_sync(self, images: List[Image.Image]) -> np.ndarray:
        try:
            chunks = []
            for start in range(0, len(images), self.batch_size):
                batch = images[start:start + self.batch_size]
                inputs = self.processor(images=batch, return_tensors="pt", padding=True)
                inputs = {k: v.to(self.device) for k, v in inputs.items()}

                with torch.no_grad():
                    image_features = self.model.get_image_features(**inputs)
                    # CLIP similarity is defined on the unit sphere
                    image_features = image_features / image_features.norm(dim=1, keepdim=True)

                chunks.append(image_features.cpu().numpy())

            return np.concatenate(chunks, axis=0)

        except Exception as e:
            logger.error(f"Failed to generate batch embeddings: {e}")
            raise ProviderException(f"Failed to generate batch embeddings: {e}")

    @handle_exceptions(retries=2, exceptions=(ProviderException,))
    @convert_exceptions({Exception: ProviderException})
    async def image_embedding(self, image: Union[str, Image.Image], **kwargs) -> List[float]:
        """Generate embedding for a single frame."""
        await self._ensure_model()
        img = self._load_and_preprocess_image(image)
        if img is None:
            raise ProviderException("Failed to load or preprocess image")

        embeddings = await asyncio.to_thread(self._generate_embeddings_sync, [img])
        return embeddings[0].tolist()

    @handle_exceptions(retries=2, exceptions=(ProviderException,))
    @convert_exceptions({Exception: ProviderException})
    async def batch_image_embedding(self, images: List[Union[str, Image.Image]], **kwargs) -> List[List[float]]:
        """Generate embeddings for multiple frames, skipping the ones that cannot be decoded."""
        await self._ensure_model()
        processed_images = []
        for image in images:
            img = self._load_and_preprocess_image(image)
            if img is not None:
                processed_images.append(img)
            else:
                logger.warning("Skipping failed image in batch")

        if not processed_images:
            raise ProviderException("No valid images to process in batch")

        embeddings = await asyncio.to_thread(self._generate_embeddings_sync, processed_images)
        return [emb.tolist() for emb in embeddings]

    def close(self):
        try:
            if self.model is not None:
                del self.model
                self.model = None

            if self.processor is not None:
                del self.processor
                self.processor = None

            if torch.cuda.is_available():
                torch.cuda.empty_cache()

            logger.info("CLIP embedding provider cleaned up successfully")

        except Exception as e:
            logger.warning(f"Error during CLIP provider cleanup: {e}")
