from .engagement_service import EngagementService
from .ingestion_service import MomentIngestionService
from .models import Moment
from .processing_status import ProcessingStatus, ProcessingStep, ProcessingStepName, StepStatus
from .repository import MomentRepository

__all__ = [
    "EngagementService",
    "MomentIngestionService",
    "Moment",
    "MomentRepository",
    "ProcessingStatus",
    "ProcessingStep",
    "ProcessingStepName",
    "StepStatus",
]
