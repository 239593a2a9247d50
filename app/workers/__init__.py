"""Background workers."""

from app.workers.outbox_worker import OutboxWorker, TickStats

__all__ = ["OutboxWorker", "TickStats"]
