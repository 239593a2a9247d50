"""Outbox worker: polls ready outbox rows and delivers them with bounded retries.

Only one worker instance may run against a database at a time. Rows are not
claimed or locked, so two instances can pick up and deliver the same row twice.
"""
from __future__ import annotations

import signal
import sys
import time
from dataclasses import asdict, dataclass
from typing import Callable, Dict, Optional

from loguru import logger
from sqlalchemy.orm import Session

from app.config import settings
from app.db.models.notification_outbox import NotificationOutboxEntry
from app.db.session import SessionLocal
from app.schemas.outbox import EventType, PushMessagePayload, parse_outbox_event
from app.schemas.push import NotificationPayload
from app.services.notification_service import NotificationService
from app.services.outbox import OutboxStore
from app.utils.exceptions import DeliveryFailedError, StorageUnavailableError

EventHandler = Callable[[NotificationService, object], bool]


@dataclass
class TickStats:
    """Counters for one pass over the outbox."""

    selected: int = 0
    sent: int = 0
    skipped: int = 0
    failed: int = 0

    def as_dict(self) -> Dict[str, int]:
        return asdict(self)


class OutboxWorker:
    """Drain the notification outbox one batch per tick.

    Each row moves ``pending|failed -> sent`` on success or
    ``-> failed (attempt_count + 1)`` on any error. Rows are processed
    sequentially and one row's failure never stops the batch.
    """

    def __init__(
        self,
        session_factory: Callable[[], Session] = SessionLocal,
        dispatcher_factory: Callable[[Session], NotificationService] = NotificationService,
        batch_size: Optional[int] = None,
        poll_interval: Optional[float] = None,
        max_attempts: Optional[int] = None,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.session_factory = session_factory
        self.dispatcher_factory = dispatcher_factory
        self.batch_size = batch_size or settings.OUTBOX_BATCH_SIZE
        self.poll_interval = poll_interval or settings.OUTBOX_POLL_INTERVAL_SECONDS
        self.max_attempts = max_attempts or settings.OUTBOX_MAX_ATTEMPTS
        self.sleep = sleep
        self._running = False

        self._handlers: Dict[EventType, EventHandler] = {
            EventType.PUSH_MESSAGE: self._handle_push_message,
        }
        missing = set(EventType) - set(self._handlers)
        if missing:
            raise RuntimeError(f"No outbox handler for event types: {sorted(m.value for m in missing)}")

    def run_once(self) -> TickStats:
        """Process one batch of eligible rows and return what happened."""

        stats = TickStats()
        db = self.session_factory()
        try:
            store = OutboxStore(db, max_attempts=self.max_attempts)
            try:
                entries = store.fetch_ready(self.batch_size)
            except StorageUnavailableError as exc:
                logger.error("Outbox poll failed", error=exc.message)
                return stats

            stats.selected = len(entries)
            if not entries:
                return stats

            dispatcher = self.dispatcher_factory(db)
            for entry in entries:
                outcome = self.process_entry(store, dispatcher, entry)
                setattr(stats, outcome, getattr(stats, outcome) + 1)

            logger.info("Outbox tick complete", **stats.as_dict())
            return stats
        finally:
            db.close()

    def process_entry(
        self,
        store: OutboxStore,
        dispatcher: NotificationService,
        entry: NotificationOutboxEntry,
    ) -> str:
        """Deliver a single row and write back its state.

        Returns ``"sent"``, ``"skipped"`` (marked sent with nothing to deliver)
        or ``"failed"``. Never raises.
        """

        entry_id = str(entry.id)
        try:
            event = parse_outbox_event(entry.event_type, entry.payload)
            delivered = self._handlers[event.event_type](dispatcher, event.payload)
            store.mark_sent(entry)
        except Exception as exc:
            error = str(exc) or exc.__class__.__name__
            logger.error(
                "Failed to process outbox entry",
                entry_id=entry_id,
                error_type=exc.__class__.__name__,
                error=error,
            )
            try:
                store.mark_failed(entry, error)
            except Exception as write_exc:
                logger.error(
                    "Could not record outbox failure",
                    entry_id=entry_id,
                    error=str(write_exc),
                )
            return "failed"

        logger.debug("Outbox entry processed", entry_id=entry_id, delivered=delivered)
        return "sent" if delivered else "skipped"

    def _handle_push_message(self, dispatcher: NotificationService, payload: PushMessagePayload) -> bool:
        if not payload.is_deliverable:
            # Unfixable rows would otherwise burn through every retry
            logger.warning(
                "Push message missing target or body, nothing to deliver",
                target_user_id=payload.target_user_id,
            )
            return False

        notification = NotificationPayload(
            title=payload.title or settings.DEFAULT_NOTIFICATION_TITLE,
            body=payload.body,
            url=payload.url,
            data=payload.data,
        )
        report = dispatcher.deliver(payload.target_user_id, notification)
        if not report.delivered:
            raise DeliveryFailedError(
                "Push delivery failed on every channel; target user has no reachable device",
                details=report.summary(),
            )
        return True

    def run_forever(self, max_ticks: Optional[int] = None) -> None:
        """Tick every ``poll_interval`` seconds until :meth:`stop` is called."""

        self._running = True
        ticks = 0
        logger.info(
            "Outbox worker started",
            batch_size=self.batch_size,
            poll_interval=self.poll_interval,
            max_attempts=self.max_attempts,
        )
        while self._running:
            try:
                self.run_once()
            except Exception as exc:
                logger.error("Error processing outbox loop", error=str(exc))

            ticks += 1
            if max_ticks is not None and ticks >= max_ticks:
                break
            if self._running:
                self.sleep(self.poll_interval)

        self._running = False
        logger.info("Outbox worker stopped", ticks=ticks)

    def stop(self) -> None:
        self._running = False


def configure_logging() -> None:
    logger.remove()
    logger.add(sys.stderr, level=settings.LOG_LEVEL, serialize=settings.LOG_JSON)


def main() -> None:
    configure_logging()
    worker = OutboxWorker()

    def _shutdown(signum, _frame):
        logger.info("Shutdown signal received", signal=signum)
        worker.stop()

    signal.signal(signal.SIGINT, _shutdown)
    signal.signal(signal.SIGTERM, _shutdown)
    worker.run_forever()


if __name__ == "__main__":
    main()
