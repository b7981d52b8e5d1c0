"""
Bounce extractor.

Scans recent mail for hard-bounce notifications, works out which
recipients bounced and keeps a ledger of bounced addresses with the
first and last bounce seen and a bounce count.

Recipients come from the original message in the bounce thread when it
can be found; otherwise from the lines of the notification around a
failure phrase or 5xx code.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Optional, Protocol

from api.services.address_parser import (
    extract_email_addresses,
    html_to_text,
    is_valid_email,
    parse_address_header,
)
from api.services.rate_limiter import RateLimiter
from api.utils.datetime_utils import make_aware

logger = logging.getLogger(__name__)

# Delivery-status senders
FROM_INDICATORS = (
    "mailer-daemon",
    "mail delivery subsystem",
    "postmaster",
)

# Hard-bounce subjects
SUBJECT_INDICATORS = (
    "delivery status notification (failure)",
    "undeliverable",
    "delivery failure",
    "delivery has failed",
    "message not delivered",
    "returned mail",
    "failure notice",
    "undelivered mail returned to sender",
    "mail delivery failed",
    "mail delivery problem",
)

# Body phrases of a permanent failure; also anchors for body extraction
BODY_INDICATORS = (
    "permanent fatal errors",
    "delivery has failed",
    "message not delivered",
    "address not found",
    "no such user",
    "user unknown",
    "recipient not found",
    "recipient address rejected",
    "invalid recipient",
    "mailbox not found",
    "mailbox unavailable",
    "mailbox disabled",
    "mailbox does not exist",
    "unrouteable address",
    "unknown recipient",
    "the email account that you tried to reach does not exist",
    "domain not found",
    "domain does not exist",
    "unrouteable domain",
    "no mx record",
    "dns domain does not exist",
    "dns error: dns domain",
    "dns error: dns type 'mx' lookup of",
    "your message wasn't delivered to",
    "your message couldn't be delivered",
    "the recipient's email system rejected your message",
    "resolver.adr.",
    "recipient not found by smtp address lookup",
)

# Permanent (5xx) SMTP codes only; 4xx deferrals are not bounces
CODE_REGEXES = (
    re.compile(r"5[0-9]{2}(\s*[-#:])?\s*5\.[0-9]\.[0-9]+"),
    re.compile(r"(?<![0-9])550(?![0-9])"),
    re.compile(r"(?<![0-9])554(?![0-9])"),
    re.compile(r"\b5\.1\.1\b"),
    re.compile(r"\b5\.4\.310\b"),
)

SYSTEM_LOCAL_PARTS = frozenset({"postmaster", "mailer-daemon"})
SYSTEM_DOMAINS = frozenset({"mail.gmail.com", "1e100.net", "ant.amazon.com"})

# Lines after an anchor line that may hold the failed address
ANCHOR_LOOKAHEAD = 3

# local@tenant.onmicrosoft.com routing aliases
_TENANT_ALIAS_REGEX = re.compile(
    r"^([A-Za-z0-9._%+\-']+)@([A-Za-z0-9.\-]+)\.onmicrosoft\.com$", re.IGNORECASE
)

GMAIL_THREAD_URL = "https://mail.google.com/mail/u/0/#all/{thread_id}"

LEDGER_HEADER = [
    "Timestamp",
    "Bounced Email",
    "Bounce Subject",
    "Bounce From",
    "Gmail Thread URL",
    "Last Seen",
    "Bounce Count",
]
LEDGER_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass
class Bounce:
    """One recipient named by one bounce notification."""
    email: str
    date: datetime
    subject: str
    from_header: str
    thread_id: str

    @property
    def thread_url(self) -> str:
        return GMAIL_THREAD_URL.format(thread_id=self.thread_id)

    def to_dict(self) -> dict:
        return {
            "email": self.email,
            "date": self.date.isoformat(),
            "subject": self.subject,
            "from_header": self.from_header,
            "thread_url": self.thread_url,
        }


@dataclass
class BounceScan:
    """Result of scanning a time window for bounces."""
    days: int
    threads: int = 0
    bounce_messages: int = 0
    unextracted: int = 0
    bounces: list[Bounce] = field(default_factory=list)

    @property
    def addresses(self) -> list[str]:
        """Distinct bounced addresses, lowercased and sorted."""
        return sorted({b.email.lower() for b in self.bounces})

    def to_dict(self) -> dict:
        return {
            "days": self.days,
            "threads": self.threads,
            "bounce_messages": self.bounce_messages,
            "unextracted": self.unextracted,
            "addresses": self.addresses,
            "bounces": [b.to_dict() for b in self.bounces],
        }


@dataclass
class LedgerEntry:
    """One row of the bounce ledger."""
    email: str
    first_seen: str
    subject: str
    from_header: str
    thread_url: str
    last_seen: str
    count: int = 1
    row_number: Optional[int] = None

    def as_row(self) -> list:
        """Cell values in LEDGER_HEADER order."""
        return [
            self.first_seen,
            self.email,
            self.subject,
            self.from_header,
            self.thread_url,
            self.last_seen,
            self.count,
        ]


@dataclass
class LedgerUpdate:
    """Rows created and updated by one ledger merge."""
    created: int = 0
    updated: int = 0

    def to_dict(self) -> dict:
        return {"created": self.created, "updated": self.updated}


class BounceLedger(Protocol):
    """Where ledger rows live (a sheet tab, a dict in tests)."""

    def load(self) -> dict[str, LedgerEntry]: ...

    def save(self, created: list[LedgerEntry], updated: list[LedgerEntry]) -> None: ...


def normalize_text(text: Optional[str]) -> str:
    """Lowercase and straighten curly apostrophes."""
    if not text:
        return ""
    return text.lower().replace("’", "'").replace("‘", "'")


def is_system_sender(from_header: Optional[str]) -> bool:
    from_text = normalize_text(from_header)
    return any(p in from_text for p in FROM_INDICATORS)


def has_bounce_code(text: Optional[str]) -> bool:
    return any(regex.search(text or "") for regex in CODE_REGEXES)


def is_bounce_message(from_header: str, subject: str, body: str) -> bool:
    """
    Decide whether a message is a hard-bounce notification.

    Checks the sender, then the subject, then body phrases, then 5xx codes,
    stopping at the first hit.
    """
    if is_system_sender(from_header):
        return True

    subject_text = normalize_text(subject)
    if any(p in subject_text for p in SUBJECT_INDICATORS):
        return True

    body_text = normalize_text(body)
    if any(p in body_text for p in BODY_INDICATORS):
        return True

    return has_bounce_code(body)


def is_system_address(email: str) -> bool:
    """Mail infrastructure addresses that appear in bounces but never bounced."""
    local, _, domain = email.lower().partition("@")
    if not domain:
        return False
    if local in SYSTEM_LOCAL_PARTS or domain in SYSTEM_DOMAINS:
        return True
    return domain.startswith("mail-") and ".google.com" in domain


def message_body(message) -> str:
    """Plain body, else the text of the HTML body."""
    return message.plain_body or html_to_text(message.html_body)


def extract_from_body(body: Optional[str]) -> list[str]:
    """
    Addresses near failure phrases or 5xx codes in a bounce body.

    Each anchor line and the ANCHOR_LOOKAHEAD lines after it are searched.
    """
    lines = (body or "").splitlines()
    found: dict[str, str] = {}

    for i, line in enumerate(lines):
        line_text = normalize_text(line)
        if not (any(p in line_text for p in BODY_INDICATORS) or has_bounce_code(line)):
            continue
        for candidate_line in lines[i:i + ANCHOR_LOOKAHEAD + 1]:
            for email in extract_email_addresses(candidate_line):
                if not is_system_address(email):
                    found.setdefault(email.lower(), email)

    return list(found.values())


def _is_self(header: str, self_addresses: frozenset) -> bool:
    return any(p.address.lower() in self_addresses for p in parse_address_header(header))


def find_original_message(messages: list, bounce, self_addresses: frozenset = frozenset()):
    """
    The message the bounce is about, from the same thread.

    Prefers a message the owner sent; else the first message that is
    neither the bounce nor from a delivery-status sender.
    """
    fallback = None
    for message in messages:
        if message is bounce or is_system_sender(message.from_header):
            continue
        if self_addresses and _is_self(message.from_header, self_addresses):
            return message
        if fallback is None:
            fallback = message
    return fallback


def original_recipients(message, self_addresses: frozenset = frozenset()) -> list[str]:
    """To/Cc/Bcc recipients of a sent message, minus the owner and system addresses."""
    found: dict[str, str] = {}
    for header in (message.to_header, message.cc_header, message.bcc_header):
        for parsed in parse_address_header(header):
            email = parsed.address
            key = email.lower()
            if key in self_addresses or not is_valid_email(email) or is_system_address(email):
                continue
            found.setdefault(key, email)
    return list(found.values())


def bounce_query(days: int) -> str:
    """Everything newer than N days, spam and trash included."""
    return f"newer_than:{days}d in:anywhere"


def tenant_alias_query(local_part: str, tenant: str) -> str:
    """Owner-sent mail of the last day mentioning an alias's local part and tenant."""
    return f"newer_than:1d from:me in:anywhere {local_part} {tenant}"


def resolve_tenant_aliases(
    emails: list[str],
    search,
    self_addresses: frozenset = frozenset(),
    rate_limiter: Optional[RateLimiter] = None,
) -> list[str]:
    """
    Replace local@tenant.onmicrosoft.com aliases with the addresses mail was sent to.

    An alias is replaced by every recent recipient with the same local part
    on a domain containing the tenant name. Aliases without such a
    recipient, or whose lookup fails, are kept as they are.
    """
    resolved: dict[str, str] = {}

    for email in emails:
        match = _TENANT_ALIAS_REGEX.match(email.strip())
        if not match:
            resolved.setdefault(email.lower(), email)
            continue

        local_part, tenant = match.group(1).lower(), match.group(2).lower()
        if rate_limiter:
            rate_limiter.wait_if_needed()
        try:
            threads = search.search_threads(tenant_alias_query(local_part, tenant), offset=0, limit=10)
        except Exception as e:
            logger.warning(f"Alias lookup failed for {email}, keeping it: {e}")
            threads = []

        originals = []
        for thread in threads:
            for message in thread.messages:
                if self_addresses and not _is_self(message.from_header, self_addresses):
                    continue
                for recipient in original_recipients(message, self_addresses):
                    recipient_local, _, domain = recipient.lower().partition("@")
                    if recipient_local == local_part and tenant in domain:
                        originals.append(recipient)

        if originals:
            logger.info(f"Alias {email} resolved to {', '.join(originals)}")
        for address in originals or [email]:
            resolved.setdefault(address.lower(), address)

    return list(resolved.values())


def scan_bounces(
    search,
    days: int,
    self_addresses: frozenset = frozenset(),
    rate_limiter: Optional[RateLimiter] = None,
    max_threads: int = 500,
) -> BounceScan:
    """
    Find hard-bounced recipients in the last `days` days of mail.

    Args:
        search: MessageSearch implementation
        days: Look-back window in days
        self_addresses: Owner addresses (lowercase), never reported
        rate_limiter: Spacing between searches
        max_threads: Most threads inspected

    Returns:
        BounceScan with one Bounce per (notification, recipient)

    Raises:
        Exception: Whatever the window search raises
    """
    scan = BounceScan(days=days)
    if rate_limiter:
        rate_limiter.wait_if_needed()

    threads = search.search_threads(bounce_query(days), offset=0, limit=max_threads)
    scan.threads = len(threads)
    logger.info(f"Scanning {len(threads)} threads from the last {days} day(s) for bounces")

    for thread in threads:
        for message in thread.messages:
            # Mail the owner sent is never a delivery notice
            if self_addresses and _is_self(message.from_header, self_addresses):
                continue
            body = message_body(message)
            if not is_bounce_message(message.from_header, message.subject, body):
                continue
            scan.bounce_messages += 1

            original = find_original_message(thread.messages, message, self_addresses)
            emails = original_recipients(original, self_addresses) if original else []
            if not emails:
                emails = extract_from_body(body)
            if not emails:
                scan.unextracted += 1
                logger.info(f"Bounce without a recipient: {message.subject!r} from {message.from_header!r}")
                continue

            for email in resolve_tenant_aliases(emails, search, self_addresses, rate_limiter):
                scan.bounces.append(Bounce(
                    email=email,
                    date=message.date,
                    subject=message.subject,
                    from_header=message.from_header,
                    thread_id=thread.thread_id,
                ))

    logger.info(
        f"{scan.bounce_messages} bounce messages, {len(scan.addresses)} addresses, "
        f"{scan.unextracted} without a recipient"
    )
    return scan


def format_ledger_time(value: datetime) -> str:
    return make_aware(value).astimezone(timezone.utc).strftime(LEDGER_TIME_FORMAT)


def parse_ledger_time(text: Optional[str]) -> Optional[datetime]:
    try:
        return datetime.strptime((text or "").strip(), LEDGER_TIME_FORMAT).replace(tzinfo=timezone.utc)
    except ValueError:
        return None


def merge_bounces(
    entries: dict[str, LedgerEntry],
    bounces: list[Bounce],
) -> tuple[list[LedgerEntry], list[LedgerEntry]]:
    """
    Fold bounces into ledger entries keyed by lowercase address.

    Bounces are applied oldest first. A bounce dated at or before an
    entry's last-seen time was already counted and is ignored, so scanning
    overlapping windows does not inflate counts.

    Returns:
        (created entries, updated existing entries)
    """
    created: list[LedgerEntry] = []
    updated: dict[str, LedgerEntry] = {}

    for bounce in sorted(bounces, key=lambda b: make_aware(b.date)):
        key = bounce.email.lower()
        seen_at = format_ledger_time(bounce.date)
        entry = entries.get(key)

        if entry is None:
            entry = LedgerEntry(
                email=bounce.email,
                first_seen=seen_at,
                subject=bounce.subject,
                from_header=bounce.from_header,
                thread_url=bounce.thread_url,
                last_seen=seen_at,
            )
            entries[key] = entry
            created.append(entry)
            continue

        last_seen = parse_ledger_time(entry.last_seen)
        # Compared at the stored (whole-second) precision
        if last_seen is not None and parse_ledger_time(seen_at) <= last_seen:
            continue

        entry.count += 1
        entry.subject = bounce.subject
        entry.from_header = bounce.from_header
        entry.thread_url = bounce.thread_url
        entry.last_seen = seen_at
        if entry.row_number is not None:
            updated[key] = entry

    return created, list(updated.values())


def update_ledger(ledger: BounceLedger, bounces: list[Bounce]) -> LedgerUpdate:
    """Merge a scan's bounces into a ledger and persist the changed rows."""
    entries = ledger.load()
    created, updated = merge_bounces(entries, bounces)
    ledger.save(created, updated)
    logger.info(f"Bounce ledger: {len(created)} new, {len(updated)} updated")
    return LedgerUpdate(created=len(created), updated=len(updated))
