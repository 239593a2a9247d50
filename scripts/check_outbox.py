"""CLI script to inspect the notification outbox."""
from __future__ import annotations

import argparse

from app.db.session import SessionLocal
from app.services.outbox import OutboxStore


def _describe(entry) -> str:
    line = (
        f"{entry.id}  {entry.event_type:<14} {entry.status:<8} "
        f"attempts={entry.attempt_count}  created={entry.created_at}"
    )
    if entry.last_error:
        line += f"\n    last_error: {entry.last_error}"
    return line


def main() -> None:
    parser = argparse.ArgumentParser(description="Show recent and dead-lettered outbox rows")
    parser.add_argument("--limit", type=int, default=10, help="Rows to show per section")
    parser.add_argument(
        "--dead-letters-only",
        action="store_true",
        help="Only list rows that exhausted their delivery attempts",
    )
    args = parser.parse_args()

    db = SessionLocal()
    try:
        store = OutboxStore(db)
        if not args.dead_letters_only:
            print("Latest outbox items:")
            for entry in store.list_recent(args.limit):
                print(_describe(entry))
            print()

        dead = store.list_dead_lettered(args.limit)
        print(f"Dead-lettered items ({len(dead)} shown):")
        for entry in dead:
            print(_describe(entry))
    finally:
        db.close()


if __name__ == "__main__":
    main()
