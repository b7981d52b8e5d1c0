#!/usr/bin/env python3
"""
Authorize mailmatch to read the mailbox.

Runs the OAuth consent flow once; the stored token then auto-refreshes.
The Sheets scope is included when MAILMATCH_SPREADSHEET_ID is set (or
with --with-sheets), so enabling the names sheet later only needs one
more run of this script.

Usage:
    python scripts/authenticate_google.py [--status] [--with-sheets] [--reset]
"""
import sys
import argparse
import logging
from pathlib import Path

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from api.services.google_auth import MailboxAuth, get_google_auth, required_scopes
from config.settings import settings

logging.basicConfig(level=logging.INFO, format='%(levelname)s: %(message)s')


def print_status(auth: MailboxAuth) -> None:
    """Show OAuth client and token state without authenticating."""
    print("\nAuthentication Status:")
    print("-" * 40)
    if not auth.credentials_path.exists():
        print(f"  No OAuth client file ({auth.credentials_path})")
    elif auth.is_authenticated:
        print("  Authenticated")
    else:
        missing = auth.missing_scopes() if auth.token_path.exists() else []
        if missing:
            print(f"  Token missing scopes: {', '.join(missing)}")
        else:
            print("  Not authenticated")


def main():
    parser = argparse.ArgumentParser(
        description="Authorize mailmatch to read the mailbox"
    )
    parser.add_argument(
        "--status",
        action="store_true",
        help="Check authentication status without authenticating"
    )
    parser.add_argument(
        "--with-sheets",
        action="store_true",
        help="Request the Sheets scope even if no spreadsheet is configured"
    )
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Delete the stored token first and ask for consent again"
    )

    args = parser.parse_args()

    if args.with_sheets:
        auth = MailboxAuth(settings.google_config_dir, required_scopes(include_sheets=True))
    else:
        auth = get_google_auth()

    if args.status:
        print_status(auth)
        return

    if args.reset:
        auth.revoke_token()

    print("\nmailmatch Google Authentication")
    print("=" * 40)
    print(f"Credentials directory: {settings.google_config_dir}")
    print("(A browser window opens if consent is needed)")

    try:
        auth.get_credentials()
    except Exception as e:
        logging.error(f"Authentication failed: {e}")
        sys.exit(1)

    print("Authentication complete!")


if __name__ == "__main__":
    main()
