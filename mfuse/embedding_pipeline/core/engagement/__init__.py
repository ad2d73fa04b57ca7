from .engagement_calculator import (
    EngagementCalculator,
    EngagementFeatures,
    EngagementMetrics,
    EngagementVector,
)

__all__ = ["EngagementCalculator", "EngagementFeatures", "EngagementMetrics", "EngagementVector"]
