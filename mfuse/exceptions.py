from typing import Dict, Optional


class MFuseException(Exception):
    """Base exception for the mfuse framework."""

    def __init__(self, message: str, error_code: str = None, details: Dict = None):
        super().__init__(message)
        self.error_code = error_code
        self.details = details or {}


class ProviderException(MFuseException):
    """Raised when external provider fails."""
    pass


class ConfigurationException(MFuseException):
    """Raised when configuration is invalid."""
    pass


class ValidationException(MFuseException):
    """Raised when input validation fails."""
    pass


class ResourceNotFoundException(MFuseException):
    """Raised when requested resource is not found."""
    pass


class FusionInputError(MFuseException):
    """Raised when vectors and weights cannot be combined."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, error_code="FUSION_INPUT_ERROR", details=details)


class InvalidWeightsError(FusionInputError):
    """Raised when a weight list is empty, has a negative entry or sums to zero."""
    pass


class ExtractionTimeoutError(MFuseException):
    """Raised when an extraction stage exceeds its timeout."""

    def __init__(self, modality: str, timeout: float):
        super().__init__(
            f"{modality} extraction timed out after {timeout:.2f}s",
            error_code="TIMEOUT",
            details={"modality": modality, "timeout": timeout},
        )


class QueueSchedulingError(MFuseException):
    """Raised when a job cannot be enqueued or scheduled."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, error_code="QUEUE_SCHEDULING_ERROR", details=details)


class EngagementCalculationError(MFuseException):
    """Raised when engagement metrics cannot produce a vector."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, error_code="ENGAGEMENT_CALCULATION_ERROR", details=details)


class ProcessingStepError(MFuseException):
    """Raised on an invalid processing step transition."""

    def __init__(self, message: str, details: Optional[Dict] = None):
        super().__init__(message, error_code="PROCESSING_STEP_ERROR", details=details)
