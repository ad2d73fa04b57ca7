from typing import Any, Awaitable, Callable

from loguru import logger

from mfuse.embedding_pipeline.core.outcomes import ExtractionOutcome, Failure
from mfuse.utils.error_handler import ErrorHandler
from mfuse.utils.execution_timer import ExecutionTimer


class ExtractionAdapter:
    """
    Shared plumbing for the modality adapters.

    ``_guarded`` times one provider interaction and turns any exception into
    a ``Failure`` so that adapters never raise to the fusion engine.
    """

    modality: str = "unknown"

    def __init__(self, enabled: bool = True):
        self.enabled = enabled

    def _disabled(self) -> Failure:
        return Failure(reason=f"{self.modality} extraction is disabled", error_code="DISABLED")

    async def _guarded(self, operation: Callable[[ExecutionTimer], Awaitable[ExtractionOutcome[Any]]]) -> ExtractionOutcome[Any]:
        with ExecutionTimer() as timer:
            try:
                return await operation(timer)
            except Exception as e:
                logger.warning(f"{self.modality} extraction failed: {ErrorHandler.describe(e)}")
                return Failure.from_exception(e, processing_time_ms=timer.elapsed_ms())
