"""
Custom exceptions for the subscription detection pipeline.
"""
from typing import Any, Dict, Optional


class SubscriptionDetectionError(Exception):
    """Base exception for all subscription detection errors."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        """
        Initialize exception.

        Args:
            message: Error message
            details: Additional error details
        """
        super().__init__(message)
        self.message = message
        self.details = details or {}


class FileProcessingError(SubscriptionDetectionError):
    """Raised when an uploaded statement cannot be processed."""
    pass


class ValidationError(SubscriptionDetectionError):
    """Raised when caller input fails validation."""
    pass


class ParsingError(SubscriptionDetectionError):
    """Raised when statement text cannot be decoded."""
    pass


class ExportError(SubscriptionDetectionError):
    """Raised when Excel export fails."""
    pass


class ConfigurationError(SubscriptionDetectionError):
    """Raised when configuration or a static table is invalid."""
    pass


class DataNotFoundError(SubscriptionDetectionError):
    """Raised when a requested profile or table is not found."""
    pass
