"""
Address header parsing and junk filtering.

Pure helpers shared by every resolution phase:
- Split To/Cc/Bcc/From header values into (display name, address) pairs
- Validate address shape
- Reject automated/system addresses before they reach scoring
- Pull email-shaped substrings out of message bodies
"""
import logging
import re
from dataclasses import dataclass
from typing import Optional

from bs4 import BeautifulSoup

from config.junk_patterns import JUNK_LOCAL_REGEX, JUNK_LOCAL_PARTS, SYSTEM_DOMAINS

logger = logging.getLogger(__name__)

# Shape check for a single address (local@domain.tld)
VALID_EMAIL_REGEX = re.compile(r"^[A-Za-z0-9._%+\-']+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}$")

# Email-shaped substrings inside free text
EMAIL_IN_TEXT_REGEX = re.compile(r"[A-Za-z0-9._%+\-']+@[A-Za-z0-9.\-]+\.[A-Za-z]{2,}")

# "Name <addr>" with optional quotes around the name
_NAMED_ADDRESS_REGEX = re.compile(r'^"?([^"<]*?)"?\s*<([^<>]+)>$')


@dataclass(frozen=True)
class ParsedAddress:
    """One entry of an address header."""
    display_name: str
    address: str


def split_address_list(header: Optional[str]) -> list[str]:
    """
    Split an address header on commas that separate entries.

    Commas inside angle brackets or inside a double-quoted display name do
    not split, so '"Smith, Jane" <j@x.com>, bob@y.com' yields two entries.

    Args:
        header: Raw header value (may be None or empty)

    Returns:
        Non-empty, stripped entries in header order
    """
    if not header:
        return []

    entries = []
    current = []
    in_angle = False
    in_quotes = False

    for char in header:
        if char == '"' and not in_angle:
            in_quotes = not in_quotes
        elif char == '<' and not in_quotes:
            in_angle = True
        elif char == '>' and not in_quotes:
            in_angle = False
        elif char == ',' and not in_angle and not in_quotes:
            entries.append("".join(current))
            current = []
            continue
        current.append(char)
    entries.append("".join(current))

    return [e.strip() for e in entries if e.strip()]


def parse_address(entry: str) -> Optional[ParsedAddress]:
    """
    Parse one header entry into display name and address.

    Args:
        entry: '"Jane Smith" <jane@x.com>', 'Jane <jane@x.com>' or 'jane@x.com'

    Returns:
        ParsedAddress, or None if the entry holds no address at all
    """
    entry = entry.strip()
    match = _NAMED_ADDRESS_REGEX.match(entry)
    if match:
        display = match.group(1).strip().strip('"').strip("'").strip()
        return ParsedAddress(display_name=display, address=match.group(2).strip())

    if "@" in entry:
        return ParsedAddress(display_name="", address=entry.strip('<>"\' '))

    return None


def parse_address_header(header: Optional[str]) -> list[ParsedAddress]:
    """Split and parse a full header value, dropping unparseable entries."""
    parsed = []
    for entry in split_address_list(header):
        address = parse_address(entry)
        if address is None:
            logger.debug(f"Skipping header entry without address: {entry!r}")
            continue
        parsed.append(address)
    return parsed


def is_valid_email(address: str) -> bool:
    """Check basic local@domain.tld shape."""
    return bool(address) and VALID_EMAIL_REGEX.match(address) is not None


def is_junk_address(address: str) -> bool:
    """
    Check if an address is an automated or internal system sender.

    Args:
        address: Email address (any case)

    Returns:
        True if the address must never become a candidate
    """
    if not address or "@" not in address:
        return False

    local, _, domain = address.lower().rpartition("@")

    if local in JUNK_LOCAL_PARTS:
        return True
    if JUNK_LOCAL_REGEX.search(local):
        return True

    # Domain or any parent domain (x.calendar.google.com -> calendar.google.com)
    parts = domain.split(".")
    for i in range(len(parts) - 1):
        if ".".join(parts[i:]) in SYSTEM_DOMAINS:
            return True

    return False


def html_to_text(html: Optional[str]) -> str:
    """Strip tags from an HTML body, dropping style and script blocks."""
    if not html:
        return ""
    soup = BeautifulSoup(html, "html.parser")
    for tag in soup(["style", "script"]):
        tag.decompose()
    return soup.get_text(" ")


def extract_email_addresses(text: Optional[str]) -> list[str]:
    """
    Find email-shaped substrings in free text.

    Returns:
        Addresses in order of first appearance, deduplicated case-insensitively
    """
    if not text:
        return []

    seen = set()
    found = []
    for match in EMAIL_IN_TEXT_REGEX.findall(text):
        address = match.strip(".'")
        key = address.lower()
        if key in seen or not is_valid_email(address):
            continue
        seen.add(key)
        found.append(address)
    return found
