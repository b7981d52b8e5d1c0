#!/usr/bin/env python3
"""
Find hard-bounced recipients in recent mail.

Scans the last N days (spam and trash included) for delivery failure
notices, prints the recipients that bounced and, unless --dry-run is
given, merges them into the bounce ledger tab of the configured
spreadsheet (first seen, latest bounce, last seen, bounce count).

Usage:
    python scripts/extract_bounces.py [--days N] [--dry-run]
"""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import logging

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


def print_scan(scan) -> None:
    """Print the bounce scan."""
    print("\n" + "=" * 50)
    print(f"BOUNCE SCAN (last {scan.days} day{'' if scan.days == 1 else 's'})")
    print("=" * 50)
    print(f"Threads scanned: {scan.threads}")
    print(f"Bounce messages: {scan.bounce_messages}")
    if scan.unextracted:
        print(f"Bounces without a recipient: {scan.unextracted}")

    if not scan.addresses:
        print("\nNo bounced recipients.")
        return

    print("\nBounced recipients:")
    for i, email in enumerate(scan.addresses, 1):
        print(f"{i}. {email}")


def main():
    from api.services.bounce_extractor import scan_bounces, update_ledger
    from api.services.gmail import get_gmail_service
    from api.services.rate_limiter import RateLimiter
    from api.services.sheets import get_bounce_ledger_sheet
    from config.settings import settings

    parser = argparse.ArgumentParser(description='Find hard-bounced recipients in recent mail')
    parser.add_argument('--days', type=int, default=settings.bounce_scan_days,
                        help='How many days back to scan (default: %(default)s)')
    parser.add_argument('--dry-run', action='store_true', help='Print results without updating the ledger')
    args = parser.parse_args()

    if args.days < 1:
        logger.error("--days must be at least 1")
        sys.exit(1)
    if not args.dry_run and not settings.sheet_enabled:
        logger.error("No spreadsheet configured (set MAILMATCH_SPREADSHEET_ID or use --dry-run)")
        sys.exit(1)

    gmail = get_gmail_service()
    scan = scan_bounces(
        gmail,
        args.days,
        self_addresses=frozenset(gmail.get_self_addresses() | set(settings.self_aliases)),
        rate_limiter=RateLimiter(settings.query_spacing_seconds),
        max_threads=settings.max_bounce_threads,
    )
    print_scan(scan)

    if args.dry_run:
        logger.info("DRY RUN - ledger not updated")
        return

    update = update_ledger(get_bounce_ledger_sheet(), scan.bounces)
    print(f"\nLedger ({settings.bounce_sheet_name}): {update.created} new, {update.updated} updated")


if __name__ == '__main__':
    main()
