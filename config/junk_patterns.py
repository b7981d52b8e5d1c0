"""
Junk Address Patterns and Noise Domain Configuration.

Centralized configuration for identifying automated/system addresses that
must never become name-to-email candidates, and for the noise domains
excluded from mailbox searches.

Used by:
- api/services/address_parser.py (junk filter, all phases)
- api/services/email_resolver.py (search query exclusions)

Extra entries can be added in config/junk_overrides.yaml (optional):

    junk_local_parts: [alerts]
    system_domains: [mail.example-crm.com]
    noise_domains: [newsletters.example.com]
"""
import logging
import re
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)

# =============================================================================
# LOCAL-PART PATTERNS
# =============================================================================
# Checked against the lowercased local part (before @).

JUNK_LOCAL_REGEX = re.compile(
    r"(no[-_.]?reply|do[-_.]?not[-_.]?reply|mailer[-_.]?daemon|bounces?(?![a-z]))"
)

# Local parts rejected only on exact match
JUNK_LOCAL_PARTS = {
    'notifications',
}

# =============================================================================
# INTERNAL SYSTEM DOMAINS
# =============================================================================
# Document, calendar and drive services that send on behalf of real people.
# Subdomains are matched too (x.calendar.google.com).

SYSTEM_DOMAINS = {
    'docs.google.com',
    'drive.google.com',
    'calendar.google.com',
    'resource.calendar.google.com',
    'group.calendar.google.com',
    'calendar-server.bounces.google.com',
    'sharepointonline.com',
    'dropboxmail.com',
}

# =============================================================================
# SEARCH NOISE DOMAINS
# =============================================================================
# Excluded from header/body searches with -from:<domain>.

NOISE_DOMAINS = {
    'docs.google.com',
    'calendar.google.com',
    'linkedin.com',
    'facebookmail.com',
}


def _load_overrides(config_path: Optional[Path] = None) -> tuple[set[str], set[str], set[str]]:
    """
    Merge optional YAML overrides into the default lists.

    Returns:
        Tuple of (junk_local_parts, system_domains, noise_domains)
    """
    config_path = config_path or Path(__file__).parent / "junk_overrides.yaml"
    local_parts = set(JUNK_LOCAL_PARTS)
    system_domains = set(SYSTEM_DOMAINS)
    noise_domains = set(NOISE_DOMAINS)

    if not config_path.exists():
        return local_parts, system_domains, noise_domains

    try:
        import yaml
        with open(config_path) as f:
            config = yaml.safe_load(f) or {}

        local_parts.update(str(x).lower() for x in config.get("junk_local_parts", []))
        system_domains.update(str(x).lower() for x in config.get("system_domains", []))
        noise_domains.update(str(x).lower() for x in config.get("noise_domains", []))
        logger.info(f"Loaded junk overrides from {config_path}")

    except Exception as e:
        logger.warning(f"Failed to load junk_overrides.yaml: {e}, using defaults")

    return local_parts, system_domains, noise_domains


# Load overrides at module import time
JUNK_LOCAL_PARTS, SYSTEM_DOMAINS, NOISE_DOMAINS = _load_overrides()
