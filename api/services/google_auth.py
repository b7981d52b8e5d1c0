"""
Google OAuth for the mailbox mailmatch reads.

One OAuth client file and one stored token live under
settings.google_config_dir. Mail and calendar are only read; the Sheets
scope is requested only while a names sheet is configured, and a stored
token that lacks a required scope goes back through consent.
"""
import json
import logging
from pathlib import Path
from typing import Optional

from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials
from google_auth_oauthlib.flow import InstalledAppFlow

from config.settings import settings

logger = logging.getLogger(__name__)

CREDENTIALS_FILENAME = "credentials.json"
TOKEN_FILENAME = "token.json"

READONLY_SCOPES = [
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/calendar.readonly",
]
SHEETS_SCOPE = "https://www.googleapis.com/auth/spreadsheets"


def required_scopes(include_sheets: Optional[bool] = None) -> list[str]:
    """
    Scopes the mailbox token must carry.

    Args:
        include_sheets: Whether the names sheet is read and written
            (defaults to whether a spreadsheet is configured)
    """
    if include_sheets is None:
        include_sheets = settings.sheet_enabled
    return READONLY_SCOPES + [SHEETS_SCOPE] if include_sheets else list(READONLY_SCOPES)


class MailboxAuth:
    """
    OAuth credentials for the single mailbox being searched.

    Loads the stored token, refreshes it when expired and falls back to
    the browser consent flow when it is missing, revoked or short of a
    required scope.
    """

    def __init__(self, config_dir: Path, scopes: Optional[list[str]] = None):
        """
        Args:
            config_dir: Directory holding the OAuth client file and token
            scopes: Scopes to request (defaults to required_scopes())
        """
        self.config_dir = Path(config_dir)
        self.credentials_path = self.config_dir / CREDENTIALS_FILENAME
        self.token_path = self.config_dir / TOKEN_FILENAME
        self.scopes = scopes if scopes is not None else required_scopes()
        self._credentials: Optional[Credentials] = None

    def get_credentials(self) -> Credentials:
        """
        Get valid credentials, running consent if needed.

        Raises:
            FileNotFoundError: If the OAuth client file doesn't exist
        """
        if self._credentials and self._credentials.valid:
            return self._credentials

        if not self.credentials_path.exists():
            raise FileNotFoundError(
                f"Google OAuth client file not found at {self.credentials_path}. "
                f"Download a desktop OAuth client from Google Cloud Console."
            )

        credentials = self._load_token()

        if credentials and not credentials.valid and credentials.refresh_token:
            try:
                logger.info("Refreshing expired mailbox token")
                credentials.refresh(Request())
                self._save_token(credentials)
            except Exception as e:
                logger.warning(f"Token refresh failed (may be revoked): {e}")
                credentials = None

        if not (credentials and credentials.valid):
            logger.info(f"Requesting consent for scopes: {', '.join(self.scopes)}")
            credentials = self._run_oauth_flow()
            self._save_token(credentials)

        self._credentials = credentials
        return credentials

    def missing_scopes(self) -> list[str]:
        """Required scopes the stored token was not granted."""
        granted = set(self._granted_scopes())
        return [scope for scope in self.scopes if scope not in granted]

    def _granted_scopes(self) -> list[str]:
        if not self.token_path.exists():
            return []
        try:
            scopes = json.loads(self.token_path.read_text()).get("scopes") or []
        except (OSError, ValueError) as e:
            logger.warning(f"Unreadable token file {self.token_path}: {e}")
            return []
        return scopes.split() if isinstance(scopes, str) else list(scopes)

    def _load_token(self) -> Optional[Credentials]:
        """Stored credentials, or None when absent, unreadable or under-scoped."""
        if not self.token_path.exists():
            return None

        missing = self.missing_scopes()
        if missing:
            logger.info(f"Stored token lacks {', '.join(missing)}; consent needed")
            return None

        try:
            return Credentials.from_authorized_user_file(str(self.token_path), self.scopes)
        except Exception as e:
            logger.warning(f"Failed to load existing token: {e}")
            return None

    def _run_oauth_flow(self) -> Credentials:
        """Run the browser consent flow on a local callback server."""
        flow = InstalledAppFlow.from_client_secrets_file(str(self.credentials_path), self.scopes)
        return flow.run_local_server(port=0, prompt="consent", access_type="offline")

    def _save_token(self, credentials: Credentials) -> None:
        self.token_path.parent.mkdir(parents=True, exist_ok=True)
        self.token_path.write_text(credentials.to_json())
        logger.info(f"Saved token to {self.token_path}")

    def revoke_token(self) -> None:
        """Delete the stored token so the next use asks for consent again."""
        if self.token_path.exists():
            self.token_path.unlink()
            logger.info(f"Deleted token file {self.token_path}")
        self._credentials = None

    @property
    def is_authenticated(self) -> bool:
        """Whether a stored token covers every required scope and is usable."""
        if not self.token_path.exists() or self.missing_scopes():
            return False

        try:
            creds = Credentials.from_authorized_user_file(str(self.token_path), self.scopes)
        except Exception:
            return False
        return bool(creds.valid or (creds.expired and creds.refresh_token))


_mailbox_auth: Optional[MailboxAuth] = None


def get_google_auth() -> MailboxAuth:
    """Get or create the mailbox auth for settings.google_config_dir."""
    global _mailbox_auth
    if _mailbox_auth is None:
        _mailbox_auth = MailboxAuth(settings.google_config_dir)
    return _mailbox_auth
