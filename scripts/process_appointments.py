#!/usr/bin/env python3
"""Appointment batch jobs.

Runs the periodic appointment jobs against the configured store, for
use from cron or a scheduler.

Usage:
    python scripts/process_appointments.py process-pending
    python scripts/process_appointments.py auto-cancel --days 3
    python scripts/process_appointments.py create-tables
"""

import argparse
import asyncio
import sys
from pathlib import Path

# Add parent directory to path for imports
sys.path.insert(0, str(Path(__file__).parent.parent))

from tailorshop.application.appointment_service import BatchResult, get_appointment_service
from tailorshop.infrastructure.config import settings
from tailorshop.infrastructure.logging import configure_logging


async def create_tables() -> None:
    """Create database tables if they don't exist."""
    from tailorshop.infrastructure import models  # noqa: F401  registers the tables
    from tailorshop.infrastructure.database import Base, get_engine

    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


def print_result(title: str, result: BatchResult) -> None:
    print(f"{title}:")
    print(f"  Processed:    {result.processed}")
    print(f"  Confirmed:    {result.confirmed}")
    print(f"  Cancelled:    {result.cancelled}")
    print(f"  Left pending: {result.left_pending}")
    print(f"  Failed:       {result.failed}")


async def main() -> int:
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Run appointment batch jobs")
    commands = parser.add_subparsers(dest="command", required=True)
    commands.add_parser(
        "process-pending",
        help="Re-run auto-approval over pending appointments, oldest first",
    )
    cancel = commands.add_parser(
        "auto-cancel",
        help="Cancel appointments left pending too long",
    )
    cancel.add_argument(
        "--days",
        type=int,
        default=settings.stale_pending_days,
        help=f"Age threshold in days (default: {settings.stale_pending_days})",
    )
    commands.add_parser("create-tables", help="Create database tables")

    args = parser.parse_args()
    configure_logging(settings.log_level)

    if args.command == "create-tables":
        await create_tables()
        print("Tables ready.")
        return 0

    service = get_appointment_service(request_id=f"batch-{args.command}")
    if args.command == "process-pending":
        print_result("Pending appointments", await service.process_pending_appointments())
    else:
        if args.days < 1:
            parser.error("--days must be at least 1")
        print_result(
            f"Stale appointments (> {args.days} days)",
            await service.auto_cancel_stale_pending(days=args.days),
        )

    if settings.storage_backend == "postgres":
        from tailorshop.infrastructure.database import dispose_engine

        await dispose_engine()
    return 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
