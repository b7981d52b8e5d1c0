"""
Candidate scoring primitives for name-to-email resolution.

Pure functions, no I/O:
- fold_name / normalize_local: Unicode-aware folding for comparison
- base_score: how well an address local-part matches the name tokens
- recency_bonus: tiered bonus for how recently the evidence was seen
- overlap helpers used by the acceptance gates
- confidence_label / format_score for outcomes
"""
import re
import unicodedata
from datetime import datetime, timezone
from typing import Optional, Sequence

from api.utils.datetime_utils import make_aware
from config.scoring_weights import (
    EXACT_PATTERN_POINTS,
    BOTH_NAMES_SUBSTRING_POINTS,
    SINGLE_NAME_DOMAIN_POINTS,
    SINGLE_NAME_POINTS,
    STARTS_WITH_POINTS,
    INITIAL_PATTERN_POINTS,
    WEAK_SUBSTRING_POINTS,
    DIGIT_RUN_PENALTY,
    PUNCTUATION_RUN_PENALTY,
    RECENT_DAYS,
    RECENT_POINTS,
    MID_DAYS,
    MID_POINTS,
    DISPLAY_TWO_TOKEN_POINTS,
    DISPLAY_ONE_TOKEN_POINTS,
    HIGH_CONFIDENCE_MIN,
    MEDIUM_CONFIDENCE_MIN,
)

# Stripped from local-parts and tokens before comparison
_STRIP_CHARS_REGEX = re.compile(r"[.\-_'’‘]")
_DIGIT_RUN_REGEX = re.compile(r"\d{3,}")
_PUNCTUATION_RUN_REGEX = re.compile(r"[.\-_+'%]{2,}")
# Runs of Unicode letters (no digits, no underscore)
_WORD_REGEX = re.compile(r"[^\W\d_]+")


def fold_name(text: Optional[str]) -> str:
    """
    Lowercase and strip diacritics ("José" -> "jose").

    Punctuation is kept; see normalize_local for the stripped form.
    """
    if not text:
        return ""
    decomposed = unicodedata.normalize("NFKD", text.lower())
    return "".join(c for c in decomposed if not unicodedata.combining(c))


def normalize_local(text: Optional[str]) -> str:
    """Fold and strip apostrophes, hyphens, dots and underscores."""
    return _STRIP_CHARS_REGEX.sub("", fold_name(text))


def split_email(email: str) -> tuple[str, str]:
    """Split an address into (local, domain), both lowercased."""
    local, _, domain = email.strip().lower().rpartition("@")
    return local, domain


def base_score(email: str, tokens: Sequence[str]) -> float:
    """
    Score an address local-part against name tokens.

    Every rule is evaluated independently and the points are summed, so a
    local-part like "jane.smith" collects the dotted exact pattern, the
    joined exact pattern, both-names-substring and the starts-with and
    substring rules.

    Args:
        email: Candidate address
        tokens: Name tokens; the first is the first name, the last the surname

    Returns:
        Base score (may be negative for opaque local-parts with penalties)
    """
    if not tokens or "@" not in email:
        return 0.0

    local_raw, domain = split_email(email)
    folded = fold_name(local_raw)
    local = normalize_local(local_raw)
    first = normalize_local(tokens[0])
    last = normalize_local(tokens[-1])
    domain_norm = normalize_local(domain)

    score = 0.0
    if not local or not first or not last:
        return score

    # Exact concatenations, joined and dotted forms tested independently
    if local == first + last:
        score += EXACT_PATTERN_POINTS
    if local == last + first:
        score += EXACT_PATTERN_POINTS
    if folded == f"{first}.{last}":
        score += EXACT_PATTERN_POINTS
    if folded == f"{last}.{first}":
        score += EXACT_PATTERN_POINTS

    if first in local and last in local:
        score += BOTH_NAMES_SUBSTRING_POINTS

    if local == first or local == last:
        other = last if local == first else first
        if other and other in domain_norm:
            score += SINGLE_NAME_DOMAIN_POINTS
        else:
            score += SINGLE_NAME_POINTS

    if local.startswith(first):
        score += STARTS_WITH_POINTS
    if local.startswith(last):
        score += STARTS_WITH_POINTS

    if local.startswith(first[0] + last):
        score += INITIAL_PATTERN_POINTS
    if local.startswith(last + first[0]):
        score += INITIAL_PATTERN_POINTS

    if first in local:
        score += WEAK_SUBSTRING_POINTS
    if last in local:
        score += WEAK_SUBSTRING_POINTS

    if _DIGIT_RUN_REGEX.search(local_raw):
        score += DIGIT_RUN_PENALTY
    if _PUNCTUATION_RUN_REGEX.search(local_raw):
        score += PUNCTUATION_RUN_PENALTY

    return score


def best_base_score(email: str, token_variants: Sequence[Sequence[str]]) -> float:
    """Max base_score over token variants (simple and compound surname)."""
    return max(base_score(email, tokens) for tokens in token_variants)


def recency_bonus(seen_at: Optional[datetime], now: Optional[datetime] = None) -> float:
    """
    Tiered bonus for how recently evidence was observed.

    Returns:
        RECENT_POINTS within a year, MID_POINTS within three years, else 0
    """
    if seen_at is None:
        return 0.0
    now = make_aware(now) if now else datetime.now(timezone.utc)
    age_days = (now - make_aware(seen_at)).total_seconds() / 86400
    if age_days <= RECENT_DAYS:
        return float(RECENT_POINTS)
    if age_days <= MID_DAYS:
        return float(MID_POINTS)
    return 0.0


def display_overlap(tokens: Sequence[str], display_name: str) -> int:
    """Count name tokens that appear as substrings of the display name."""
    display = fold_name(display_name)
    if not display:
        return 0
    return sum(1 for t in tokens if fold_name(t) in display)


def display_word_overlap(tokens: Sequence[str], display_name: str) -> int:
    """Count name tokens equal to a word of the display name (split on non-letters)."""
    words = set(_WORD_REGEX.findall(fold_name(display_name)))
    if not words:
        return 0
    return sum(1 for t in tokens if fold_name(t) in words)


def display_bonus(overlap: int) -> float:
    """Bonus tier for display-name token hits."""
    if overlap >= 2:
        return float(DISPLAY_TWO_TOKEN_POINTS)
    if overlap == 1:
        return float(DISPLAY_ONE_TOKEN_POINTS)
    return 0.0


def local_overlap(tokens: Sequence[str], email: str) -> int:
    """Count name tokens found in the normalized local-part."""
    local = normalize_local(split_email(email)[0])
    if not local:
        return 0
    return sum(1 for t in tokens if normalize_local(t) and normalize_local(t) in local)


def strong_local_match(email: str, first: str, surnames: Sequence[str]) -> bool:
    """
    Check the local-part alone identifies the person.

    True when, for some surname variant, the normalized local-part contains
    both first name and surname, or starts with initial+surname or
    surname+initial.
    """
    local = normalize_local(split_email(email)[0])
    first = normalize_local(first)
    if not local or not first:
        return False

    for surname in surnames:
        last = normalize_local(surname)
        if not last:
            continue
        if first in local and last in local:
            return True
        if local.startswith(first[0] + last) or local.startswith(last + first[0]):
            return True
    return False


def confidence_label(score: float) -> str:
    """High >= 20, Medium >= 10, else Low."""
    if score >= HIGH_CONFIDENCE_MIN:
        return "High"
    if score >= MEDIUM_CONFIDENCE_MIN:
        return "Medium"
    return "Low"


def format_score(score: float) -> str:
    """Render a score with at most one decimal (24.5, 32, -1.5)."""
    return f"{round(score, 1):g}"
