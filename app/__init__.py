"""Push notification delivery service."""
