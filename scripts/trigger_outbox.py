"""CLI script to manually run one notification outbox tick."""
from __future__ import annotations

import argparse

from app.tasks.notifications import process_notification_outbox
from app.workers.outbox_worker import OutboxWorker


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Manually process pending notification outbox rows",
    )
    parser.add_argument(
        "--batch-size",
        type=int,
        help="Rows to process in this tick (default: OUTBOX_BATCH_SIZE)",
    )
    parser.add_argument(
        "--async",
        action="store_true",
        dest="use_async",
        help="Queue the Celery task instead of running immediately",
    )

    args = parser.parse_args()

    if args.use_async:
        task = process_notification_outbox.apply_async()
        print(f"Task queued: {task.id}")
        return

    stats = OutboxWorker(batch_size=args.batch_size).run_once()
    print(f"Result: {stats.as_dict()}")


if __name__ == "__main__":
    main()
