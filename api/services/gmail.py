"""
Gmail integration service for mailmatch.

Provides thread search (the MessageSearch capability the resolver
consumes) and the account owner's own addresses via the Gmail API.
Live queries only.
"""
import base64
import logging
import socket

# Set a default socket timeout for all network operations (30 seconds)
# This prevents Gmail API calls from hanging indefinitely
socket.setdefaulttimeout(30)
from datetime import datetime, timezone
from dataclasses import dataclass, field
from typing import Optional
from email.utils import parsedate_to_datetime

from googleapiclient.discovery import build

from api.services.google_auth import get_google_auth
from api.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


@dataclass
class MailMessage:
    """One message of a thread, with the raw address headers."""
    message_id: str
    thread_id: str
    date: datetime
    from_header: str = ""
    to_header: str = ""
    cc_header: str = ""
    bcc_header: str = ""
    subject: str = ""
    plain_body: Optional[str] = None
    html_body: Optional[str] = None

    def header(self, name: str) -> str:
        """Address header by channel name (from/to/cc/bcc)."""
        return {
            "from": self.from_header,
            "to": self.to_header,
            "cc": self.cc_header,
            "bcc": self.bcc_header,
        }.get(name.lower(), "")


@dataclass
class MailThread:
    """A search hit: a thread and its messages, oldest first."""
    thread_id: str
    messages: list[MailMessage] = field(default_factory=list)

    @property
    def last_message_date(self) -> Optional[datetime]:
        if not self.messages:
            return None
        return max(m.date for m in self.messages)


def build_gmail_query(
    terms: Optional[list[str]] = None,
    newer_than_years: Optional[int] = None,
    exclude_from: Optional[list[str]] = None,
) -> str:
    """
    Build Gmail search query string.

    Args:
        terms: Query fragments, OR-ed together (each used verbatim)
        newer_than_years: Restrict to the last N years (newer_than:Ny)
        exclude_from: Sender domains/addresses to exclude (-from:x)

    Returns:
        Gmail query string
    """
    parts = []

    if terms:
        if len(terms) == 1:
            parts.append(terms[0])
        else:
            parts.append("(" + " OR ".join(terms) + ")")

    if newer_than_years:
        parts.append(f"newer_than:{newer_than_years}y")

    for excluded in sorted(exclude_from or []):
        parts.append(f"-from:{excluded}")

    return " ".join(parts)


def quote_term(value: str) -> str:
    """Quote a phrase for Gmail search, dropping embedded quotes."""
    return '"' + value.replace('"', "").strip() + '"'


def _decode(data: str) -> Optional[str]:
    try:
        return base64.urlsafe_b64decode(data).decode("utf-8", errors="replace")
    except Exception as e:
        logger.warning(f"Failed to decode message part: {e}")
        return None


def extract_body_part(payload: dict, mime_type: str) -> Optional[str]:
    """
    Find the first body part of the given MIME type, depth first.

    Args:
        payload: Message payload dict
        mime_type: "text/plain" or "text/html"

    Returns:
        Decoded text or None
    """
    if payload.get("mimeType", mime_type) == mime_type:
        data = payload.get("body", {}).get("data")
        if data and not payload.get("parts"):
            return _decode(data)

    for part in payload.get("parts", []):
        found = extract_body_part(part, mime_type)
        if found:
            return found

    return None


class GmailService:
    """
    Gmail service for searching threads.

    Includes rate limiting between the list and get calls it issues.
    """

    def __init__(self, rate_limit_delay: float = 0.1):
        """
        Initialize Gmail service.

        Args:
            rate_limit_delay: Delay between API calls (seconds)
        """
        self.rate_limit_delay = rate_limit_delay
        self._service = None
        self._limiter = RateLimiter(rate_limit_delay)

    @property
    def service(self):
        """Get or create Gmail API service with timeout."""
        if self._service is None:
            import httplib2
            from google_auth_httplib2 import AuthorizedHttp

            auth = get_google_auth()
            credentials = auth.get_credentials()

            # Create HTTP client with 30 second timeout
            http = httplib2.Http(timeout=30)
            authorized_http = AuthorizedHttp(credentials, http=http)

            self._service = build("gmail", "v1", http=authorized_http)
        return self._service

    def _rate_limit(self):
        """Apply rate limiting between API calls."""
        self._limiter.wait_if_needed()

    def search_threads(self, query: str, offset: int = 0, limit: int = 50) -> list[MailThread]:
        """
        Search threads and fetch their messages.

        Args:
            query: Gmail search query
            offset: Number of matching threads to skip
            limit: Maximum threads to return

        Returns:
            List of MailThread objects, newest thread first

        Raises:
            Exception: Any API failure is logged and re-raised
        """
        if not query or limit <= 0:
            return []

        wanted = offset + limit
        thread_ids: list[str] = []
        page_token = None

        try:
            while len(thread_ids) < wanted:
                self._rate_limit()
                params = {
                    "userId": "me",
                    "q": query,
                    "maxResults": min(500, wanted - len(thread_ids)),
                }
                if page_token:
                    params["pageToken"] = page_token
                result = self.service.users().threads().list(**params).execute()

                thread_ids.extend(t["id"] for t in result.get("threads", []))
                page_token = result.get("nextPageToken")
                if not page_token:
                    break

            threads = []
            for thread_id in thread_ids[offset:wanted]:
                self._rate_limit()
                raw = self.service.users().threads().get(
                    userId="me",
                    id=thread_id,
                    format="full",
                ).execute()
                threads.append(self._parse_thread(raw))

            return threads

        except Exception as e:
            logger.error(f"Failed to search Gmail threads ({query!r}): {e}")
            raise

    def count_threads(self, query: str, limit: int = 10) -> tuple[int, Optional[datetime]]:
        """
        Count matching threads without fetching bodies.

        Returns:
            Tuple of (thread count up to limit, date of the newest message)
        """
        threads = self.search_threads(query, offset=0, limit=limit)
        dates = [t.last_message_date for t in threads if t.last_message_date]
        return len(threads), (max(dates) if dates else None)

    def get_self_addresses(self) -> set[str]:
        """
        Get the account owner's addresses (primary plus send-as aliases).

        Returns:
            Lowercase addresses; empty set if the lookup fails
        """
        addresses: set[str] = set()
        try:
            self._rate_limit()
            profile = self.service.users().getProfile(userId="me").execute()
            if profile.get("emailAddress"):
                addresses.add(profile["emailAddress"].lower())

            self._rate_limit()
            send_as = self.service.users().settings().sendAs().list(userId="me").execute()
            for alias in send_as.get("sendAs", []):
                if alias.get("sendAsEmail"):
                    addresses.add(alias["sendAsEmail"].lower())
        except Exception as e:
            logger.error(f"Failed to look up own addresses: {e}")

        return addresses

    def _parse_thread(self, raw: dict) -> MailThread:
        """Parse a raw threads.get response, skipping unparseable messages."""
        messages = []
        for msg in raw.get("messages", []):
            message = self._parse_message(msg)
            if message:
                messages.append(message)
        return MailThread(thread_id=raw.get("id", ""), messages=messages)

    def _parse_message(self, msg: dict) -> Optional[MailMessage]:
        """
        Parse raw Gmail API message into MailMessage.

        Args:
            msg: Raw message dict from API (format=full)

        Returns:
            MailMessage or None if parsing fails
        """
        try:
            payload = msg.get("payload", {})
            headers = {}
            for header in payload.get("headers", []):
                name = header.get("name", "").lower()
                if name in ("from", "to", "cc", "bcc", "subject", "date"):
                    headers[name] = header.get("value", "")

            # Parse date, falling back to Gmail's internal timestamp
            try:
                date = parsedate_to_datetime(headers.get("date", ""))
                if date.tzinfo is None:
                    date = date.replace(tzinfo=timezone.utc)
            except Exception:
                internal = msg.get("internalDate")
                if internal:
                    date = datetime.fromtimestamp(int(internal) / 1000, tz=timezone.utc)
                else:
                    date = datetime.now(timezone.utc)

            return MailMessage(
                message_id=msg.get("id", ""),
                thread_id=msg.get("threadId", ""),
                date=date,
                from_header=headers.get("from", ""),
                to_header=headers.get("to", ""),
                cc_header=headers.get("cc", ""),
                bcc_header=headers.get("bcc", ""),
                subject=headers.get("subject", ""),
                plain_body=extract_body_part(payload, "text/plain"),
                html_body=extract_body_part(payload, "text/html"),
            )

        except Exception as e:
            logger.warning(f"Failed to parse message: {e}")
            return None


_gmail_service: Optional[GmailService] = None


def get_gmail_service() -> GmailService:
    """Get or create the Gmail service for the mailbox."""
    global _gmail_service
    if _gmail_service is None:
        _gmail_service = GmailService()
    return _gmail_service
