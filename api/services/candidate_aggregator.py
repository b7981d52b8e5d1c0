"""
Per-phase candidate aggregation.

Collects accepted candidates keyed by normalized email, merges repeated
sightings, and picks the phase winner plus ranked alternates.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Optional

from api.utils.datetime_utils import make_aware
from api.services.candidate_scorer import format_score
from config.scoring_weights import (
    RECENT_POINTS,
    MID_POINTS,
    BUMP_RECENT_POINTS,
    BUMP_MID_POINTS,
    BUMP_CAP,
    MAX_ALTERNATES,
)

logger = logging.getLogger(__name__)


class PhaseTag(Enum):
    """Resolution phases, in priority order."""
    FROM = "from"
    TO = "to"
    CC = "cc"
    BCC = "bcc"
    CALENDAR = "calendar"
    BODY = "body"

    @property
    def status_label(self) -> str:
        """Human-readable label for the row status column."""
        if self is PhaseTag.CALENDAR:
            return "Found in calendar guests"
        if self is PhaseTag.BODY:
            return "Found in message bodies"
        return f"Found in {self.value.upper()} headers"


def recency_bump_step(recency: float) -> float:
    """Bump earned by one header sighting with the given recency bonus."""
    if recency >= RECENT_POINTS:
        return float(BUMP_RECENT_POINTS)
    if recency >= MID_POINTS:
        return float(BUMP_MID_POINTS)
    return 0.0


@dataclass
class Candidate:
    """An address competing within one phase."""
    email: str  # Original case, for display
    key: str  # Lowercase, for merging
    evidence_score: float  # Best base+bonus score across sightings
    last_seen: Optional[datetime]
    recency_bump: float = 0.0

    @property
    def score(self) -> float:
        """Total score used for ranking."""
        return self.evidence_score + self.recency_bump

    def formatted(self) -> str:
        """Alternate-list form: 'email [score]'."""
        return f"{self.email} [{format_score(self.score)}]"


@dataclass
class PhaseResult:
    """Winner and runners-up for the first phase that produced candidates."""
    winner: Candidate
    source: PhaseTag
    alternates: list[Candidate] = field(default_factory=list)

    @property
    def score(self) -> float:
        return self.winner.score

    def alternates_text(self) -> str:
        """Alternates joined for the sheet column."""
        return ", ".join(c.formatted() for c in self.alternates)


def _rank_key(candidate: Candidate) -> tuple:
    seen = make_aware(candidate.last_seen)
    return (candidate.score, seen.timestamp() if seen else float("-inf"))


class CandidatePool:
    """
    Candidate mapping for a single phase.

    With track_bump=True (header phases) each sighting adds a capped
    recency bump; the evidence score only ever moves up to a strictly
    greater new total, so a candidate's score never decreases.
    """

    def __init__(self, track_bump: bool = False):
        self.track_bump = track_bump
        self._candidates: dict[str, Candidate] = {}

    def __len__(self) -> int:
        return len(self._candidates)

    def __contains__(self, email: str) -> bool:
        return email.strip().lower() in self._candidates

    def get(self, email: str) -> Optional[Candidate]:
        return self._candidates.get(email.strip().lower())

    def offer(
        self,
        email: str,
        score: float,
        seen_at: Optional[datetime],
        recency: float = 0.0,
    ) -> Candidate:
        """
        Merge one accepted sighting into the pool.

        Args:
            email: Candidate address
            score: Base score plus phase bonuses for this sighting (no bump)
            seen_at: Message/event date of the sighting
            recency: Recency bonus tier of the sighting (drives the bump)

        Returns:
            The stored Candidate after merging
        """
        email = email.strip()
        key = email.lower()
        step = recency_bump_step(recency) if self.track_bump else 0.0

        existing = self._candidates.get(key)
        if existing is None:
            candidate = Candidate(
                email=email,
                key=key,
                evidence_score=score,
                last_seen=seen_at,
                recency_bump=min(float(BUMP_CAP), step),
            )
            self._candidates[key] = candidate
            logger.debug(f"New candidate {email}: {format_score(candidate.score)}")
            return candidate

        new_bump = min(float(BUMP_CAP), existing.recency_bump + step)
        existing.recency_bump = new_bump
        if score > existing.evidence_score:
            existing.evidence_score = score
        if seen_at is not None:
            if existing.last_seen is None or make_aware(seen_at) > make_aware(existing.last_seen):
                existing.last_seen = seen_at
        return existing

    def ranked(self) -> list[Candidate]:
        """Candidates by score descending, ties broken by latest sighting."""
        return sorted(self._candidates.values(), key=_rank_key, reverse=True)

    def result(self, source: PhaseTag) -> Optional[PhaseResult]:
        """
        Pick the phase winner.

        Returns:
            PhaseResult, or None if no candidate was accepted
        """
        ranked = self.ranked()
        if not ranked:
            return None
        return PhaseResult(
            winner=ranked[0],
            source=source,
            alternates=ranked[1:1 + MAX_ALTERNATES],
        )
