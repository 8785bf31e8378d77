"""Custom exception classes and error handling utilities."""
from typing import Any, Dict, Optional
from fastapi import HTTPException, status
from loguru import logger


class ClubPushError(Exception):
    """Base exception for the application."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class ConfigurationError(ClubPushError):
    """Settings are missing or unusable."""
    pass


class ValidationError(ClubPushError):
    """Data validation errors."""
    pass


class InvalidTargetingSpec(ValidationError):
    """Audience description that cannot be resolved."""
    pass


class InvalidPayloadError(ValidationError):
    """Notification content that cannot be delivered."""
    pass


class UnknownChannelError(ValidationError):
    """Requested delivery channel does not exist."""
    pass


class AuthorizationError(ClubPushError):
    """Caller is authenticated but not allowed to perform the action."""
    pass


def handle_validation_error(error: ValidationError) -> HTTPException:
    """Handle validation errors."""
    logger.warning(f"Validation error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={
            "message": error.message,
            "details": error.details
        }
    )


def handle_authorization_error(error: AuthorizationError) -> HTTPException:
    """Handle authorization errors."""
    logger.warning(f"Authorization error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_403_FORBIDDEN,
        detail=error.message,
    )


def handle_configuration_error(error: ConfigurationError) -> HTTPException:
    """Handle missing configuration surfaced to an API caller."""
    logger.error(f"Configuration error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail=error.message
    )
