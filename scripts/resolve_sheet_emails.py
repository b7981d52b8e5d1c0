#!/usr/bin/env python3
"""
Resolve the names in the configured Google Sheet to email addresses.

Reads names from MAILMATCH_NAME_COLUMN of MAILMATCH_SHEET_NAME and writes
email, status, alternates and confidence into the four columns to its
right. Rows already resolved with a score of 10 or more are skipped, so
the script can be re-run after an interruption.

Usage:
    python scripts/resolve_sheet_emails.py [--dry-run] [--limit N]
"""
import sys
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

import argparse
import logging

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')
logger = logging.getLogger(__name__)


class PrintingSink:
    """Outcome sink for dry runs: prints instead of writing cells."""

    def write_outcome(self, row, outcome) -> None:
        print(f"  row {row.row_number}: {row.name!r} -> {outcome.email or '-'} | "
              f"{outcome.status} | {outcome.confidence}")
        if outcome.alternates:
            print(f"      alternates: {outcome.alternates}")

    def mark_progress(self, row, phase) -> None:
        logger.debug(f"row {row.row_number}: searching {phase.value}")


def resolve_sheet(
    dry_run: bool = False,
    limit: int = None,
    spreadsheet_id: str = None,
    sheet_name: str = None,
) -> dict:
    """
    Resolve all pending names in the sheet.

    Args:
        dry_run: If True, print outcomes instead of writing them
        limit: Only read the first N rows
        spreadsheet_id: Override MAILMATCH_SPREADSHEET_ID
        sheet_name: Override MAILMATCH_SHEET_NAME

    Returns:
        Run summary dict
    """
    from api.services.email_resolver import get_email_resolver
    from api.services.row_driver import resolve_rows
    from api.services.sheets import SheetOutcomeSink, get_sheets_service
    from config.settings import settings

    spreadsheet_id = spreadsheet_id or settings.spreadsheet_id
    sheet_name = sheet_name or settings.sheet_name
    if not spreadsheet_id:
        raise ValueError("No spreadsheet configured (set MAILMATCH_SPREADSHEET_ID)")

    sheets = get_sheets_service()
    rows = sheets.read_name_rows(
        spreadsheet_id,
        sheet_name,
        name_column=settings.name_column,
        first_row=settings.first_data_row,
        limit=limit,
    )

    if dry_run:
        logger.info("DRY RUN - outcomes are printed, not written")
        sink = PrintingSink()
    else:
        sink = SheetOutcomeSink(sheets, spreadsheet_id, sheet_name, settings.name_column)

    summary = resolve_rows(rows, get_email_resolver(), sink)

    logger.info(f"\n=== Resolution Results ===")
    logger.info(f"  Rows: {summary.total}")
    logger.info(f"  Found: {summary.found} {summary.by_phase}")
    logger.info(f"  Not found: {summary.not_found}")
    logger.info(f"  Skipped (already resolved): {summary.skipped}")
    logger.info(f"  Empty: {summary.empty}")
    logger.info(f"  Errors: {summary.errors}")
    return summary.to_dict()


if __name__ == '__main__':
    from api.services.row_driver import NoInputError

    parser = argparse.ArgumentParser(description='Resolve sheet names to email addresses')
    parser.add_argument('--dry-run', action='store_true', help='Print outcomes instead of writing them')
    parser.add_argument('--limit', type=int, default=None, help='Only process the first N rows')
    parser.add_argument('--spreadsheet-id', default=None, help='Override the configured spreadsheet')
    parser.add_argument('--sheet', default=None, help='Override the configured sheet name')
    args = parser.parse_args()

    try:
        resolve_sheet(
            dry_run=args.dry_run,
            limit=args.limit,
            spreadsheet_id=args.spreadsheet_id,
            sheet_name=args.sheet,
        )
    except (NoInputError, ValueError) as e:
        logger.error(str(e))
        sys.exit(1)
