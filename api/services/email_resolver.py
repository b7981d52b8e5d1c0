"""
Name-to-email resolution cascade.

Resolves a display name to the address most likely belonging to that
person by searching, in strict priority order:

1. FROM headers
2. TO headers
3. CC headers
4. BCC headers
5. Calendar guest lists
6. Message bodies

The first phase that accepts any candidate wins; later phases never run.
Within a phase, each sighting must pass an acceptance gate before it is
scored, and the CandidatePool picks the winner and alternates.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Callable, Optional, Protocol

from api.services.address_parser import (
    parse_address_header,
    is_valid_email,
    is_junk_address,
    html_to_text,
    extract_email_addresses,
)
from api.services.candidate_aggregator import CandidatePool, PhaseResult, PhaseTag
from api.services.candidate_scorer import (
    best_base_score,
    recency_bonus,
    display_overlap,
    display_word_overlap,
    display_bonus,
    local_overlap,
    strong_local_match,
    fold_name,
    normalize_local,
    split_email,
    format_score,
)
from api.services.gmail import build_gmail_query, quote_term
from api.services.name_query import NameQuery, plan_query
from api.services.rate_limiter import RateLimiter
from api.utils.datetime_utils import years_before
from config.junk_patterns import NOISE_DOMAINS
from config.scoring_weights import (
    HEADER_RECENCY_MULTIPLIER,
    OPAQUE_OUTBOUND_POINTS,
    OPAQUE_INBOUND_POINTS,
    OUTBOUND_CHANNEL_POINTS,
    CORROBORATION_POINTS,
    CALENDAR_OPAQUE_POINTS,
    PARTICIPANT_RECENT_POINTS,
    PARTICIPANT_MID_POINTS,
    LOCAL_MISMATCH_PENALTY,
    LOCAL_MISMATCH_PARTICIPANT_CUT,
    RECENT_POINTS,
    MID_POINTS,
    BODY_INITIAL_POINTS,
    BODY_NOISE_PENALTY,
)

logger = logging.getLogger(__name__)


class SearchFailure(RuntimeError):
    """A phase's external query raised; carries the phase that failed."""

    def __init__(self, phase: PhaseTag, cause: Exception):
        self.phase = phase
        self.cause = cause
        super().__init__(f"{phase.value} search failed: {cause}")


class Channel(Enum):
    """Address header searched by a header phase."""
    FROM = "from"
    TO = "to"
    CC = "cc"
    BCC = "bcc"

    @property
    def phase(self) -> PhaseTag:
        return PhaseTag(self.value)


HEADER_CHANNELS = (Channel.FROM, Channel.TO, Channel.CC, Channel.BCC)


class MessageSearch(Protocol):
    def search_threads(self, query: str, offset: int = 0, limit: int = 50) -> list: ...


class CalendarGuestSearch(Protocol):
    def search_guest_events(self, start: datetime, end: datetime) -> list: ...


@dataclass
class HeaderEvidence:
    """One (display name, address) pair from a message header."""
    channel: Channel
    display_name: str
    raw_address: str
    message_date: Optional[datetime]
    is_outbound: bool
    body_text: Optional[str] = None


@dataclass
class CalendarEvidence:
    """One guest of a calendar event."""
    guest_display_name: str
    guest_email: str
    event_date: Optional[datetime]


@dataclass
class BodyEvidence:
    """An email-shaped substring found in a message body."""
    raw_address: str
    message_date: Optional[datetime]


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ResolverContext:
    """Everything a resolution run depends on, passed explicitly."""
    message_search: MessageSearch
    calendar_search: Optional[CalendarGuestSearch] = None
    self_addresses: frozenset = frozenset()
    rate_limiter: RateLimiter = field(default_factory=lambda: RateLimiter(0.0))
    search_window_years: int = 5
    calendar_window_years: int = 5
    max_threads: int = 50
    noise_domains: frozenset = frozenset(NOISE_DOMAINS)
    exclude_self: bool = True
    clock: Callable[[], datetime] = _utc_now

    def is_self(self, address: str) -> bool:
        return address.strip().lower() in self.self_addresses


# =============================================================================
# QUERY BUILDERS
# =============================================================================

def build_header_query(query: NameQuery, channel: Channel, years: int, noise_domains) -> str:
    """
    Header search: '(from:"Jane Smith" OR from:"Smith, Jane") newer_than:5y -from:...'.
    """
    words = query.full_name.split()
    terms = [f"{channel.value}:{quote_term(query.full_name)}"]
    if len(words) >= 2:
        terms.append(f"{channel.value}:{quote_term(f'{words[-1]}, {words[0]}')}")
    return build_gmail_query(terms, newer_than_years=years, exclude_from=list(noise_domains))


def build_body_query(query: NameQuery, years: int, noise_domains) -> str:
    """Body search: the quoted full name in the recency window."""
    return build_gmail_query(
        [quote_term(query.full_name)],
        newer_than_years=years,
        exclude_from=list(noise_domains),
    )


def message_text(message) -> str:
    """Plain body, falling back to tag-stripped HTML."""
    if message.plain_body and message.plain_body.strip():
        return message.plain_body
    return html_to_text(message.html_body)


# =============================================================================
# GATES AND PHASE SCORING
# =============================================================================

def header_gate(query: NameQuery, evidence: HeaderEvidence) -> bool:
    """Accept on display-name token overlap, else on a strong local-part match."""
    if display_overlap(query.tokens, evidence.display_name) > 0:
        return True
    return strong_local_match(evidence.raw_address, query.first, query.surname_variants)


def calendar_gate(query: NameQuery, evidence: CalendarEvidence) -> bool:
    """Like header_gate, but display names are compared word by word."""
    if display_word_overlap(query.tokens, evidence.guest_display_name) > 0:
        return True
    return strong_local_match(evidence.guest_email, query.first, query.surname_variants)


def body_gate(query: NameQuery, evidence: BodyEvidence) -> bool:
    """Keep only addresses whose local-part or domain holds a surname variant."""
    local, domain = split_email(evidence.raw_address)
    local = normalize_local(local)
    domain = normalize_local(domain)
    for surname in query.surname_variants:
        surname = normalize_local(surname)
        if surname and (surname in local or surname in domain):
            return True
    return False


def _corroboration_bonus(query: NameQuery, evidence: HeaderEvidence) -> float:
    """
    +4 when address and display name cover only one of first/last and the
    message body contains the other.
    """
    if not evidence.body_text or query.first == query.last_simple:
        return 0.0

    local = normalize_local(split_email(evidence.raw_address)[0])
    display = fold_name(evidence.display_name)
    first = normalize_local(query.first)
    surnames = [normalize_local(s) for s in query.surname_variants]

    has_first = bool(first) and (first in local or fold_name(query.first) in display)
    has_last = any(s and (s in local or s in display) for s in surnames)
    if has_first == has_last:
        return 0.0

    body = fold_name(evidence.body_text)
    if has_first:
        missing = [fold_name(s) for s in query.surname_variants]
    else:
        missing = [fold_name(query.first)]
    if any(m and m in body for m in missing):
        return float(CORROBORATION_POINTS)
    return 0.0


def score_header_evidence(
    query: NameQuery,
    evidence: HeaderEvidence,
    now: datetime,
) -> tuple[float, float]:
    """
    Score one accepted header sighting.

    Returns:
        Tuple of (score without recency bump, recency bonus tier)
    """
    recency = recency_bonus(evidence.message_date, now)
    display_hits = display_overlap(query.tokens, evidence.display_name)

    score = best_base_score(evidence.raw_address, query.token_variants)
    score += HEADER_RECENCY_MULTIPLIER * recency
    score += display_bonus(display_hits)

    if display_hits >= 2 and local_overlap(query.tokens, evidence.raw_address) == 0:
        score += OPAQUE_OUTBOUND_POINTS if evidence.is_outbound else OPAQUE_INBOUND_POINTS

    if evidence.is_outbound and evidence.channel in (Channel.TO, Channel.CC):
        score += OUTBOUND_CHANNEL_POINTS

    score += _corroboration_bonus(query, evidence)
    return score, recency


def score_calendar_evidence(query: NameQuery, evidence: CalendarEvidence, now: datetime) -> float:
    """Score one accepted calendar guest."""
    recency = recency_bonus(evidence.event_date, now)
    display_hits = display_word_overlap(query.tokens, evidence.guest_display_name)
    local_hits = local_overlap(query.tokens, evidence.guest_email)

    if recency >= RECENT_POINTS:
        participant = PARTICIPANT_RECENT_POINTS
    elif recency >= MID_POINTS:
        participant = PARTICIPANT_MID_POINTS
    else:
        participant = 0

    score = best_base_score(evidence.guest_email, query.token_variants)
    score += recency + display_bonus(display_hits)

    if display_hits >= 2 and local_hits == 0:
        score += CALENDAR_OPAQUE_POINTS

    if local_hits == 0:
        score += LOCAL_MISMATCH_PENALTY
        participant = max(0, participant - LOCAL_MISMATCH_PARTICIPANT_CUT)

    return score + participant


def score_body_evidence(query: NameQuery, evidence: BodyEvidence, now: datetime) -> float:
    """Score one body address that passed the surname filter."""
    local = normalize_local(split_email(evidence.raw_address)[0])
    score = best_base_score(evidence.raw_address, query.token_variants)
    if local and local.startswith(normalize_local(query.first)[:1]):
        score += BODY_INITIAL_POINTS
    score += recency_bonus(evidence.message_date, now)
    return score + BODY_NOISE_PENALTY


# =============================================================================
# RESOLVER
# =============================================================================

class EmailResolver:
    """
    Runs the phase cascade for one name at a time.

    Stateless between calls apart from the context's rate limiter.
    """

    def __init__(self, context: ResolverContext):
        self.context = context

    def resolve(
        self,
        name: str,
        progress: Optional[Callable[[PhaseTag], None]] = None,
    ) -> Optional[PhaseResult]:
        """
        Resolve a display name to an email address.

        Args:
            name: Raw display name
            progress: Called with each phase tag as the phase starts

        Returns:
            PhaseResult of the first phase that accepted a candidate, or None

        Raises:
            InvalidInput: If the name has no tokens
            SearchFailure: If a phase's query fails
        """
        query = plan_query(name)
        now = self.context.clock()
        logger.info(f"Resolving {query.full_name!r}")

        phases: list[tuple[PhaseTag, Callable[[], Optional[PhaseResult]]]] = [
            (channel.phase, lambda c=channel: self._run_header_phase(query, c, now))
            for channel in HEADER_CHANNELS
        ]
        phases.append((PhaseTag.CALENDAR, lambda: self._run_calendar_phase(query, now)))
        phases.append((PhaseTag.BODY, lambda: self._run_body_phase(query, now)))

        for tag, run in phases:
            if progress:
                progress(tag)
            result = run()
            if result:
                logger.info(
                    f"Resolved {query.full_name!r} -> {result.winner.email} "
                    f"({tag.value}: {format_score(result.score)})"
                )
                return result

        logger.info(f"No match for {query.full_name!r}")
        return None

    def _search(self, tag: PhaseTag, fetch: Callable[[], list]) -> list:
        """Issue one rate-limited external query, wrapping failures."""
        self.context.rate_limiter.wait_if_needed()
        try:
            return fetch()
        except Exception as e:
            logger.error(f"{tag.value} phase query failed: {e}")
            raise SearchFailure(tag, e) from e

    def _admissible(self, address: str) -> bool:
        """Junk and malformed addresses never become candidates; own addresses unless allowed."""
        if is_junk_address(address):
            logger.debug(f"Junk address skipped: {address}")
            return False
        if not is_valid_email(address):
            logger.warning(f"Malformed address skipped: {address!r}")
            return False
        return not (self.context.exclude_self and self.context.is_self(address))

    def _is_outbound(self, message, channel: Channel) -> bool:
        if channel is Channel.BCC:
            return True
        return any(self.context.is_self(p.address) for p in parse_address_header(message.from_header))

    def _run_header_phase(
        self,
        query: NameQuery,
        channel: Channel,
        now: datetime,
    ) -> Optional[PhaseResult]:
        search_query = build_header_query(
            query, channel, self.context.search_window_years, self.context.noise_domains
        )
        threads = self._search(
            channel.phase,
            lambda: self.context.message_search.search_threads(
                search_query, offset=0, limit=self.context.max_threads
            ),
        )

        pool = CandidatePool(track_bump=True)
        for thread in threads:
            for message in thread.messages:
                pairs = parse_address_header(message.header(channel.value))
                if not pairs:
                    continue
                outbound = self._is_outbound(message, channel)
                body_text = None

                for pair in pairs:
                    if not self._admissible(pair.address):
                        continue
                    if body_text is None:
                        body_text = message_text(message)
                    evidence = HeaderEvidence(
                        channel=channel,
                        display_name=pair.display_name,
                        raw_address=pair.address,
                        message_date=message.date,
                        is_outbound=outbound,
                        body_text=body_text,
                    )
                    if not header_gate(query, evidence):
                        logger.debug(f"Gate rejected {pair.address} ({channel.value})")
                        continue

                    score, recency = score_header_evidence(query, evidence, now)
                    pool.offer(pair.address, score, message.date, recency)

        return pool.result(channel.phase)

    def _run_calendar_phase(self, query: NameQuery, now: datetime) -> Optional[PhaseResult]:
        calendar_search = self.context.calendar_search
        if calendar_search is None:
            logger.debug("No calendar configured, skipping calendar phase")
            return None

        start = years_before(now, self.context.calendar_window_years)
        events = self._search(
            PhaseTag.CALENDAR,
            lambda: calendar_search.search_guest_events(start, now),
        )

        pool = CandidatePool()
        for event in events:
            for guest in event.guests:
                if not self._admissible(guest.email):
                    continue
                evidence = CalendarEvidence(
                    guest_display_name=guest.display_name or "",
                    guest_email=guest.email,
                    event_date=event.start_time,
                )
                if not calendar_gate(query, evidence):
                    continue
                score = score_calendar_evidence(query, evidence, now)
                pool.offer(guest.email, score, event.start_time)

        return pool.result(PhaseTag.CALENDAR)

    def _run_body_phase(self, query: NameQuery, now: datetime) -> Optional[PhaseResult]:
        search_query = build_body_query(
            query, self.context.search_window_years, self.context.noise_domains
        )
        threads = self._search(
            PhaseTag.BODY,
            lambda: self.context.message_search.search_threads(
                search_query, offset=0, limit=self.context.max_threads
            ),
        )

        pool = CandidatePool()
        for thread in threads:
            for message in thread.messages:
                for address in extract_email_addresses(message_text(message)):
                    if not self._admissible(address):
                        continue
                    evidence = BodyEvidence(raw_address=address, message_date=message.date)
                    if not body_gate(query, evidence):
                        continue
                    score = score_body_evidence(query, evidence, now)
                    pool.offer(address, score, message.date)

        return pool.result(PhaseTag.BODY)


# Singleton instance
_email_resolver: Optional[EmailResolver] = None


def build_resolver_context() -> ResolverContext:
    """Assemble a context from settings and the Google services."""
    from api.services.calendar import get_calendar_service
    from api.services.gmail import get_gmail_service
    from config.settings import settings

    gmail = get_gmail_service()
    self_addresses = gmail.get_self_addresses() | set(settings.self_aliases)
    logger.info(f"Outbound detection uses {len(self_addresses)} own address(es)")

    return ResolverContext(
        message_search=gmail,
        calendar_search=get_calendar_service(),
        self_addresses=frozenset(self_addresses),
        rate_limiter=RateLimiter(settings.query_spacing_seconds),
        search_window_years=settings.search_window_years,
        calendar_window_years=settings.calendar_window_years,
        max_threads=settings.max_threads_per_query,
        noise_domains=frozenset(NOISE_DOMAINS),
        exclude_self=settings.exclude_self_addresses,
    )


def get_email_resolver() -> EmailResolver:
    """
    Get or create the singleton EmailResolver.

    Returns:
        EmailResolver wired to the Gmail and Calendar services
    """
    global _email_resolver
    if _email_resolver is None:
        _email_resolver = EmailResolver(build_resolver_context())
    return _email_resolver
