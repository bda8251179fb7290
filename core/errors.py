"""
Exception classes for the prediction pipeline
"""
from typing import Any, Dict, Optional


class PredictionError(Exception):
    """Base exception class for prediction pipeline errors"""
    def __init__(self, message: str, code: str = "UNKNOWN_ERROR", details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.code = code
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to standard error format"""
        return {
            "code": self.code,
            "message": str(self),
            "details": self.details,
        }


class ConfigurationError(PredictionError):
    """Raised when there's an error in configuration or environment variables"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFIGURATION_ERROR", details=details)


class InvalidRequestError(PredictionError):
    """Raised when a generation request is missing required case data"""
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="INVALID_REQUEST", details=details)


class PlanGenerationError(PredictionError):
    """Raised when the variation plan cannot be obtained or parsed. Fatal to the batch."""
    def __init__(self, message: str = "Failed to generate forensic profile plan.", details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="PLAN_GENERATION_FAILED", details=details)


class VariationRenderError(PredictionError):
    """Raised when a single variation produced no usable image"""
    def __init__(self, index: int, message: str, details: Optional[Dict[str, Any]] = None):
        details = dict(details or {})
        details.setdefault("index", index)
        super().__init__(message, code="VARIATION_RENDER_FAILED", details=details)
        self.index = index
