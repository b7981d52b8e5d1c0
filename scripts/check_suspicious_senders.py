#!/usr/bin/env python3
"""
Check whether the mailbox has interacted with any listed address.

Reads one address per line (lines without '@' are ignored), searches
for mail from or to each one and prints a report of the hits.

Usage:
    python scripts/check_suspicious_senders.py addresses.txt
    cat addresses.txt | python scripts/check_suspicious_senders.py -
"""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import logging

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


def print_report(report) -> None:
    """Print the sender report."""
    print("\n" + "=" * 50)
    print("SUSPICIOUS SENDER REPORT")
    print("=" * 50)
    print(f"Total checked: {report.checked}")
    print(f"Interactions found: {report.found}")
    if report.errors:
        print(f"Errors: {report.errors}")

    if not report.hits:
        print("\nNo interactions with the listed addresses.")
        return

    print("\nWARNING: Found interactions with listed addresses:")
    for i, hit in enumerate(report.hits, 1):
        print(f"{i}. {hit.email} ({hit.thread_count} threads)")
        if hit.last_date:
            print(f"   Last contact: {hit.last_date.strftime('%a %b %d %Y')}")
    print("\nReview these conversations for potential security risks.")


def main():
    from api.services.gmail import get_gmail_service
    from api.services.rate_limiter import RateLimiter
    from api.services.sender_checker import check_senders, parse_address_list
    from config.settings import settings

    parser = argparse.ArgumentParser(description='Check a list of addresses for mailbox interaction')
    parser.add_argument('file', help="File with one address per line ('-' for stdin)")
    args = parser.parse_args()

    if args.file == '-':
        text = sys.stdin.read()
    else:
        text = Path(args.file).read_text()

    addresses = parse_address_list(text)
    if not addresses:
        logger.error("No addresses found in input")
        sys.exit(1)

    report = check_senders(
        addresses,
        get_gmail_service(),
        RateLimiter(settings.query_spacing_seconds),
    )
    print_report(report)


if __name__ == '__main__':
    main()
