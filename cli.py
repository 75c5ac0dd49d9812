#!/usr/bin/env python3
"""
Biohacker - CLI Tool

Command-line interface for maintenance tasks.

Usage:
    python cli.py indexes
    python cli.py preview --start 2024-01-01 --end 2024-01-14 --type weekly --days MON,THU
    python cli.py generate-doses --cycle-id <id>
    python cli.py sync --user-id <id>
    python cli.py create-api-key --user-id <id>
"""

import asyncio
import argparse
import logging
from datetime import date
from dotenv import load_dotenv

# Load environment variables
load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)


async def cmd_indexes(args):
    """Create MongoDB indexes"""
    from biohacker.deps import init_database, close_database

    await init_database()
    await close_database()
    print("✅ Indexes created")


async def cmd_preview(args):
    """Print the doses a schedule would produce, without saving"""
    from biohacker.models.documents import Cycle, RecurrenceRule
    from biohacker.scheduling import expand_cycle

    rule = RecurrenceRule(
        type=args.type,
        times=args.times,
        days=[d for d in args.days.split(",") if d] if args.days else [],
        dates=[int(d) for d in args.dates.split(",") if d] if args.dates else [],
    )
    cycle = Cycle(
        user_id="preview",
        peptide_name=args.peptide,
        dose_amount=args.dose,
        start_date=date.fromisoformat(args.start),
        end_date=date.fromisoformat(args.end),
        frequency=rule,
    )

    doses = expand_cycle(cycle)
    for dose in doses:
        print(f"  {dose.scheduled_date.isoformat()} {dose.time_label}  {dose.peptide_name} {dose.dose_amount}")
    print(f"\n📅 {len(doses)} doses")


async def cmd_generate(args):
    """Regenerate a cycle's dose schedule"""
    from biohacker.deps import init_database, close_database, get_database
    from biohacker.cycle_service import CycleService

    await init_database()
    try:
        service = CycleService(get_database())
        cycle = await service.get_cycle(args.cycle_id)
        if not cycle:
            print(f"❌ Cycle {args.cycle_id} not found")
            return

        result = await service.generate_doses(cycle)
        print(f"✅ Saved {result.count}/{result.generated} doses")
        if result.error:
            print(f"⚠️  {result.error}")
    finally:
        await close_database()


async def cmd_sync(args):
    """Run a calendar sync for one user"""
    from biohacker.deps import (
        init_database, close_database, init_clients, close_clients,
        get_database, get_oauth_client, get_calendar_client
    )
    from biohacker.calendar_sync import CalendarSyncService, CalendarError

    await init_database()
    init_clients()
    try:
        service = CalendarSyncService(
            db=get_database(),
            oauth=get_oauth_client(),
            calendar=get_calendar_client(),
        )
        try:
            result = await service.sync_user(args.user_id)
        except CalendarError as e:
            print(f"❌ {e}")
            return

        print(f"✅ {result.message}")
        for error in result.errors:
            print(f"  ⚠️  {error}")
    finally:
        await close_clients()
        await close_database()


async def cmd_create_api_key(args):
    """Issue an API key for a user"""
    from biohacker.deps import init_database, close_database, get_database
    from biohacker.middleware.auth import create_api_key
    from biohacker.models.documents import utcnow

    await init_database()
    try:
        raw_key, key_hash = create_api_key(args.user_id)
        await get_database().api_keys.insert_one({
            "key_hash": key_hash,
            "user_id": args.user_id,
            "is_active": True,
            "is_admin": False,
            "created_at": utcnow().isoformat(),
        })
        print(f"🔑 {raw_key}")
        print("Store this key now - it will not be shown again.")
    finally:
        await close_database()


def main():
    parser = argparse.ArgumentParser(description="Biohacker CLI")
    subparsers = parser.add_subparsers(dest="command", help="Commands")

    subparsers.add_parser("indexes", help="Create database indexes")

    preview_parser = subparsers.add_parser("preview", help="Preview a dose schedule")
    preview_parser.add_argument("--peptide", default="BPC-157")
    preview_parser.add_argument("--dose", default="250mcg")
    preview_parser.add_argument("--start", required=True, help="YYYY-MM-DD")
    preview_parser.add_argument("--end", required=True, help="YYYY-MM-DD")
    preview_parser.add_argument("--type", choices=["daily", "weekly", "monthly"], default="daily")
    preview_parser.add_argument("--times", type=int, default=1, help="Doses per day (daily)")
    preview_parser.add_argument("--days", help="Comma-separated weekday codes (weekly)")
    preview_parser.add_argument("--dates", help="Comma-separated days of month (monthly)")

    generate_parser = subparsers.add_parser("generate-doses", help="Regenerate a cycle's doses")
    generate_parser.add_argument("--cycle-id", required=True)

    sync_parser = subparsers.add_parser("sync", help="Sync a user's doses to their calendar")
    sync_parser.add_argument("--user-id", required=True)

    key_parser = subparsers.add_parser("create-api-key", help="Issue an API key")
    key_parser.add_argument("--user-id", required=True)

    args = parser.parse_args()

    commands = {
        "indexes": cmd_indexes,
        "preview": cmd_preview,
        "generate-doses": cmd_generate,
        "sync": cmd_sync,
        "create-api-key": cmd_create_api_key,
    }

    if args.command in commands:
        asyncio.run(commands[args.command](args))
    else:
        parser.print_help()


if __name__ == "__main__":
    main()
