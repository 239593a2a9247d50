"""Utility helpers package."""

from app.utils.exceptions import (
    DeliveryFailedError,
    InvalidSubscriptionError,
    MalformedPayloadError,
    PushDeliveryError,
    StaleEndpointError,
    StorageUnavailableError,
    TransientTransportError,
    UnsupportedEventError,
)

__all__ = [
    "DeliveryFailedError",
    "InvalidSubscriptionError",
    "MalformedPayloadError",
    "PushDeliveryError",
    "StaleEndpointError",
    "StorageUnavailableError",
    "TransientTransportError",
    "UnsupportedEventError",
]
