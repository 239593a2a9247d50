"""Custom exception classes and error handling utilities."""
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional

from fastapi import HTTPException, status
from loguru import logger
from sqlalchemy.exc import InterfaceError, OperationalError
from sqlalchemy.orm import Session


class PushDeliveryError(Exception):
    """Base exception for the push delivery subsystem."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        self.message = message
        self.details = details or {}
        super().__init__(message)


class StorageUnavailableError(PushDeliveryError):
    """The subscription registry or outbox store cannot be reached."""


class InvalidSubscriptionError(PushDeliveryError):
    """A subscribe request is missing its endpoint or key material."""


class TransientTransportError(PushDeliveryError):
    """A transport failed in a way that may succeed on retry."""


class StaleEndpointError(PushDeliveryError):
    """A transport reported the endpoint as permanently gone."""

    def __init__(self, message: str, status_code: int, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, details)
        self.status_code = status_code


class MalformedPayloadError(PushDeliveryError):
    """An outbox payload cannot be parsed into a known event."""


class UnsupportedEventError(MalformedPayloadError):
    """An outbox row carries an event type with no handler."""


class DeliveryFailedError(PushDeliveryError):
    """A notification could not be delivered through any channel."""


@contextmanager
def storage_guard(db: Session, operation: str) -> Iterator[None]:
    """Roll back and raise ``StorageUnavailableError`` on connection-level failures."""

    try:
        yield
    except (OperationalError, InterfaceError) as exc:
        db.rollback()
        logger.error("Storage unavailable", operation=operation, error=str(exc))
        raise StorageUnavailableError(
            f"Storage unavailable during {operation}", details={"operation": operation}
        ) from exc


def handle_storage_error(error: StorageUnavailableError) -> HTTPException:
    """Handle storage outages and return appropriate HTTP response."""
    logger.error(f"Storage error: {error.message}")
    return HTTPException(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        detail="Notification storage is temporarily unavailable. Please try again later."
    )


def handle_invalid_subscription(error: InvalidSubscriptionError) -> HTTPException:
    """Handle rejected subscription payloads."""
    logger.warning(f"Invalid subscription: {error.message}")
    return HTTPException(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        detail={
            "message": error.message,
            "details": error.details
        }
    )
