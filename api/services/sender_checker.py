"""
Suspicious sender checker.

Given a list of addresses (e.g. from a phishing or breach notice), reports
which of them the mailbox has ever exchanged mail with.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Optional

from api.services.rate_limiter import RateLimiter

logger = logging.getLogger(__name__)

# Threads fetched per address; only presence and the latest date matter
THREADS_PER_ADDRESS = 10

# Log progress every N addresses
PROGRESS_EVERY = 100


@dataclass
class SenderHit:
    """An address the mailbox has interacted with."""
    email: str
    thread_count: int
    last_date: Optional[datetime] = None

    def to_dict(self) -> dict:
        return {
            "email": self.email,
            "thread_count": self.thread_count,
            "last_date": self.last_date.isoformat() if self.last_date else None,
        }


@dataclass
class SenderReport:
    """Result of checking a list of addresses."""
    checked: int = 0
    errors: int = 0
    hits: list[SenderHit] = field(default_factory=list)

    @property
    def found(self) -> int:
        return len(self.hits)

    def to_dict(self) -> dict:
        return {
            "checked": self.checked,
            "found": self.found,
            "errors": self.errors,
            "hits": [h.to_dict() for h in self.hits],
        }


def parse_address_list(text: Optional[str]) -> list[str]:
    """
    Read one address per line.

    Blank lines and lines without '@' (headings, instructions) are ignored.

    Returns:
        Lowercased addresses in input order, without duplicates
    """
    if not text:
        return []
    return normalize_addresses(text.splitlines())


def normalize_addresses(addresses: list[str]) -> list[str]:
    """Lowercase, strip, keep entries containing '@', drop duplicates."""
    seen = set()
    result = []
    for entry in addresses:
        email = entry.strip().lower()
        if not email or "@" not in email or email in seen:
            continue
        seen.add(email)
        result.append(email)
    return result


def interaction_query(email: str) -> str:
    """Gmail query matching mail from or to an address."""
    return f"from:{email} OR to:{email}"


def check_sender(email: str, search, rate_limiter: Optional[RateLimiter] = None) -> Optional[SenderHit]:
    """
    Check a single address.

    Returns:
        SenderHit if any thread matched, else None

    Raises:
        Exception: Whatever the search raises
    """
    if rate_limiter:
        rate_limiter.wait_if_needed()

    threads = search.search_threads(interaction_query(email), offset=0, limit=THREADS_PER_ADDRESS)
    if not threads:
        return None

    dates = [t.last_message_date for t in threads if t.last_message_date]
    return SenderHit(
        email=email,
        thread_count=len(threads),
        last_date=max(dates) if dates else None,
    )


def check_senders(
    addresses: list[str],
    search,
    rate_limiter: Optional[RateLimiter] = None,
) -> SenderReport:
    """
    Check every address for mailbox interaction.

    Args:
        addresses: Raw addresses (normalized here)
        search: MessageSearch implementation
        rate_limiter: Spacing between searches

    Returns:
        SenderReport; per-address failures are counted, never raised
    """
    emails = normalize_addresses(addresses)
    report = SenderReport()
    logger.info(f"Checking {len(emails)} addresses")

    for i, email in enumerate(emails):
        if i and i % PROGRESS_EVERY == 0:
            logger.info(f"Progress: {i}/{len(emails)} ({report.found} found)")

        report.checked += 1
        try:
            hit = check_sender(email, search, rate_limiter)
        except Exception as e:
            report.errors += 1
            logger.error(f"Error checking {email}: {e}")
            continue

        if hit:
            logger.warning(f"Interaction found: {email} ({hit.thread_count} threads)")
            report.hits.append(hit)

    logger.info(f"Checked {report.checked}: {report.found} found, {report.errors} errors")
    return report
