from datetime import datetime, timezone
from typing import List, Optional

from loguru import logger
from pydantic import BaseModel, Field

from mfuse.embedding_pipeline.core.outcomes import ExtractionOutcome, Failure, Success
from mfuse.exceptions import EngagementCalculationError
from mfuse.utils.execution_timer import ExecutionTimer
from mfuse.utils.normalization import normalize_l2

ENGAGEMENT_VECTOR_VERSION = "engagement-vector-v1"
CALCULATION_METHOD = "normalized-features"


class EngagementMetrics(BaseModel):
    """Raw interaction counters. Validated by the calculator, not on construction."""

    views: int = 0
    unique_views: int = 0
    likes: int = 0
    comments: int = 0
    shares: int = 0
    saves: int = 0
    avg_watch_time: float = 0.0
    completion_rate: float = 0.0
    reports: int = 0


class EngagementFeatures(BaseModel):
    like_rate: float
    comment_rate: float
    share_rate: float
    save_rate: float
    retention_rate: float
    avg_completion_rate: float
    report_rate: float
    virality_score: float
    quality_score: float
    view_ratio: float

    def as_vector(self) -> List[float]:
        """Feature values in vector order."""
        return [
            self.like_rate,
            self.comment_rate,
            self.share_rate,
            self.save_rate,
            self.retention_rate,
            self.avg_completion_rate,
            self.report_rate,
            self.virality_score,
            self.quality_score,
            self.view_ratio,
        ]


class EngagementMetadata(BaseModel):
    version: str = ENGAGEMENT_VECTOR_VERSION
    calculation_method: str = CALCULATION_METHOD
    last_updated: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


class EngagementVector(BaseModel):
    vector: List[float]
    dimension: int
    metrics: EngagementMetrics
    features: EngagementFeatures
    metadata: EngagementMetadata = Field(default_factory=EngagementMetadata)


def _rate(count: float, views: int) -> float:
    return count / views if views > 0 else 0.0


class EngagementCalculator:
    """
    Derives a normalized engagement vector from interaction counters.

    ``retention_rate`` is ``avg_watch_time / (views * duration)`` clamped to
    [0, 1]; every other rate is a plain ratio over views.
    """

    def _validate(self, metrics: EngagementMetrics, duration: float):
        counters = {
            "views": metrics.views,
            "unique_views": metrics.unique_views,
            "likes": metrics.likes,
            "comments": metrics.comments,
            "shares": metrics.shares,
            "saves": metrics.saves,
            "reports": metrics.reports,
            "avg_watch_time": metrics.avg_watch_time,
        }
        negative = sorted(name for name, value in counters.items() if value < 0)
        if negative:
            raise EngagementCalculationError(f"Negative engagement counters: {', '.join(negative)}",
                                             details={"fields": negative})
        if not 0.0 <= metrics.completion_rate <= 1.0:
            raise EngagementCalculationError(f"completion_rate must be within [0, 1], got {metrics.completion_rate}")
        if duration < 0:
            raise EngagementCalculationError(f"duration must be non-negative, got {duration}")

    def features(self, metrics: EngagementMetrics, duration: float) -> EngagementFeatures:
        views = metrics.views
        share_rate = _rate(metrics.shares, views)
        save_rate = _rate(metrics.saves, views)
        report_rate = _rate(metrics.reports, views)

        retention_rate = 0.0
        if views > 0 and duration > 0:
            retention_rate = min(1.0, max(0.0, metrics.avg_watch_time / (views * duration)))

        completion = metrics.completion_rate
        return EngagementFeatures(
            like_rate=_rate(metrics.likes, views),
            comment_rate=_rate(metrics.comments, views),
            share_rate=share_rate,
            save_rate=save_rate,
            retention_rate=retention_rate,
            avg_completion_rate=completion,
            report_rate=report_rate,
            virality_score=(share_rate + save_rate) / 2,
            quality_score=max(0.0, retention_rate + completion - 2 * report_rate),
            view_ratio=views / metrics.unique_views if metrics.unique_views > 0 else 1.0,
        )

    async def calculate(self, metrics: EngagementMetrics, duration: float,
                        moment_id: Optional[str] = None) -> ExtractionOutcome[EngagementVector]:
        """Returns ``Success[EngagementVector]`` or a ``Failure``; never raises."""
        with ExecutionTimer() as timer:
            try:
                self._validate(metrics, duration)
                features = self.features(metrics, duration)
                vector = normalize_l2(features.as_vector())
                result = EngagementVector(
                    vector=vector,
                    dimension=len(vector),
                    metrics=metrics,
                    features=features,
                )
                logger.info(f"Engagement for {moment_id or 'moment'}: quality={features.quality_score * 100:.1f}%")
                return Success(value=result, dimension=result.dimension, processing_time_ms=timer.elapsed_ms())
            except Exception as e:
                logger.warning(f"Engagement calculation failed for {moment_id or 'moment'}: {e}")
                return Failure.from_exception(e, processing_time_ms=timer.elapsed_ms())
