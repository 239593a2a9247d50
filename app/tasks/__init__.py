"""Celery tasks package."""

from app.tasks import notifications

__all__ = ["notifications"]
