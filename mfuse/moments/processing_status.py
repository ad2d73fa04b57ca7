from datetime import datetime, timezone
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from mfuse.exceptions import ProcessingStepError


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProcessingStepName(str, Enum):
    VIDEO_PROCESSING = "video_processing"
    MODERATION = "moderation"
    UPLOAD = "upload"
    VIDEO_COMPRESSION = "video_compression"
    EMBEDDING_GENERATION = "embedding_generation"


class StepStatus(str, Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    ERROR = "error"


class ProcessingStep(BaseModel):
    name: ProcessingStepName
    status: StepStatus = StepStatus.PENDING
    progress: float = Field(default=0.0, ge=0.0, le=100.0)
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    error: Optional[str] = None


class ProcessingStatus(BaseModel):
    """
    Ordered pipeline steps of a moment.

    Steps are only ever appended. A step's ``completed_at`` is written once;
    completing it a second time raises ``ProcessingStepError``.
    """

    steps: List[ProcessingStep] = Field(default_factory=list)

    def get(self, name: ProcessingStepName) -> Optional[ProcessingStep]:
        for step in self.steps:
            if step.name == name:
                return step
        return None

    def append(self, name: ProcessingStepName, status: StepStatus = StepStatus.PENDING) -> ProcessingStep:
        if self.get(name) is not None:
            raise ProcessingStepError(f"Step {name.value} already exists", details={"step": name.value})
        step = ProcessingStep(name=name, status=status)
        self.steps.append(step)
        return step

    def put(self, step: ProcessingStep) -> ProcessingStep:
        """Replace the step of the same name in place, or append it."""
        for index, current in enumerate(self.steps):
            if current.name == step.name:
                self.steps[index] = step
                return step
        self.steps.append(step)
        return step

    def ensure(self, name: ProcessingStepName) -> ProcessingStep:
        return self.get(name) or self.append(name)

    def start(self, name: ProcessingStepName) -> ProcessingStep:
        step = self.ensure(name)
        step.status = StepStatus.PROCESSING
        step.started_at = step.started_at or _utcnow()
        step.error = None
        return step

    def update_progress(self, name: ProcessingStepName, progress: float) -> ProcessingStep:
        step = self.ensure(name)
        step.progress = min(100.0, max(0.0, progress))
        return step

    def complete(self, name: ProcessingStepName) -> ProcessingStep:
        step = self.ensure(name)
        if step.completed_at is not None:
            raise ProcessingStepError(f"Step {name.value} was already completed at {step.completed_at.isoformat()}",
                                      details={"step": name.value})
        step.status = StepStatus.COMPLETED
        step.progress = 100.0
        step.completed_at = _utcnow()
        step.error = None
        return step

    def fail(self, name: ProcessingStepName, error: str) -> ProcessingStep:
        step = self.ensure(name)
        step.status = StepStatus.ERROR
        step.error = error
        return step
