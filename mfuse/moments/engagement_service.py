from typing import Optional

from loguru import logger

from mfuse.embedding_pipeline.core.engagement import EngagementCalculator, EngagementMetrics, EngagementVector
from mfuse.embedding_pipeline.core.outcomes import ExtractionOutcome
from mfuse.moments.repository import MomentRepository


class EngagementService:
    """Recomputes and stores a moment's engagement vector."""

    def __init__(self, repository: MomentRepository, calculator: Optional[EngagementCalculator] = None):
        self.repository = repository
        self.calculator = calculator or EngagementCalculator()

    async def refresh(self, moment_id: str, metrics: EngagementMetrics,
                      duration: float) -> ExtractionOutcome[EngagementVector]:
        outcome = await self.calculator.calculate(metrics, duration, moment_id=moment_id)
        if outcome.is_success:
            await self.repository.save_engagement(moment_id, outcome.value)
            logger.info(f"Engagement vector stored for moment {moment_id}")
        else:
            logger.warning(f"Engagement vector not updated for moment {moment_id}: {outcome.reason}")
        return outcome
