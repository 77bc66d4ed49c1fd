"""
Error kinds raised by the readiness engine.

Every operation surfaces these to its caller; mapping them to responses is the
presentation layer's job.
"""

from typing import Any, Dict, Optional


class ReadinessEngineError(Exception):
    """Base exception for engine errors.

    Attributes:
        message: Error message
        details: Additional error details (ids, violated rule, ...)
    """

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary."""
        return {
            "error_type": self.__class__.__name__,
            "message": self.message,
            "details": self.details,
        }


class ValidationError(ReadinessEngineError):
    """Raised when an input is malformed or contradicts its mode."""


class NotFoundError(ReadinessEngineError):
    """Raised when a progression, figure, step or edge does not exist."""


class CycleError(ReadinessEngineError):
    """Raised when a prerequisite edge would make the graph cyclic."""


class ConflictError(ReadinessEngineError):
    """Raised on a duplicate edge or duplicate progression."""


__all__ = [
    "ReadinessEngineError",
    "ValidationError",
    "NotFoundError",
    "CycleError",
    "ConflictError",
]
