from .fusion_engine import ContentEmbeddingGenerator, FusionRun, FusionState

__all__ = ["ContentEmbeddingGenerator", "FusionRun", "FusionState"]
