#!/usr/bin/env python3
"""
Run one investor contact sync from the command line.
Usage:
  python scripts/run_sync.py
  python scripts/run_sync.py --lookback-days 14
  python scripts/run_sync.py --dry-run        # list the relevant events only, no notes/AI/store
Exit: 0 = sync succeeded; 1 = sync failed; 2 = another run is in progress.
"""
import argparse
import logging
import os
import sys

from dotenv import load_dotenv

load_dotenv()
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from investor_sync.calendar.provider import select_calendar_provider
from investor_sync.calendar.selector import EventSelector, fetch_relevant_events
from investor_sync.core.config import load_config
from investor_sync.core.errors import SyncAlreadyRunning, SyncError
from investor_sync.sync.orchestrator import execute_sync, get_run_guard


def dry_run(cfg) -> int:
    try:
        provider = select_calendar_provider(cfg)
        provider.authorize()
        events = fetch_relevant_events(provider, EventSelector(org_domains=cfg.org_domains), cfg.lookback_days)
    except SyncError as e:
        print(f"Calendar error: {e.message}")
        return 1

    print(f"{len(events)} relevant events in the last {cfg.lookback_days} days")
    for event in events:
        print(f"\n  {event.start.isoformat()}  {event.subject}")
        for email in event.attendee_emails:
            print(f"    - {email}")
    return 0


def main() -> int:
    ap = argparse.ArgumentParser(description="Sync investor meetings into the contact store")
    ap.add_argument("--lookback-days", type=int, default=None, help="Override LOOKBACK_DAYS")
    ap.add_argument("--dry-run", action="store_true", help="Only print the events that would be processed")
    ap.add_argument("--verbose", "-v", action="store_true", help="Debug logging")
    args = ap.parse_args()

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO)

    cfg = load_config()
    if args.lookback_days is not None:
        cfg = cfg.model_copy(update={"lookback_days": args.lookback_days})

    if args.dry_run:
        return dry_run(cfg)

    try:
        result = execute_sync(get_run_guard(), cfg)
    except SyncAlreadyRunning as e:
        print(e.message)
        return 2

    if not result.success:
        print(f"Sync failed ({result.failed_state}): {result.error}")
        return 1

    print(
        f"Sync completed: {result.contacts_processed} contacts from "
        f"{result.events_processed} events at {result.timestamp.isoformat()}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
