"""
Row driver for batch name resolution.

Walks the input rows in order, applies the resume rule, runs the resolver
for each remaining name and hands exactly one RowOutcome per processed row
to an OutcomeSink. A failure in one row is recorded for that row and never
stops the run.
"""
import logging
import re
from dataclasses import dataclass, field, asdict
from typing import Optional, Protocol

from api.services.candidate_aggregator import PhaseResult, PhaseTag
from api.services.candidate_scorer import confidence_label, format_score
from api.services.name_query import InvalidInput
from config.scoring_weights import RESUME_MIN_SCORE

logger = logging.getLogger(__name__)

# "High confidence (from: 24.5)" -> 24.5
_CONFIDENCE_SCORE_REGEX = re.compile(r"\(\w+:\s*(-?\d+(?:\.\d+)?)\)")

EMPTY_ROW_STATUS = "Empty row"
NOT_FOUND_STATUS = "Not found"


class NoInputError(ValueError):
    """Raised when there are no rows to process at all."""
    pass


@dataclass
class RowInput:
    """One input row plus whatever a previous run stored for it."""
    row_number: int
    name: str
    prior_email: str = ""
    prior_confidence: str = ""


@dataclass
class RowOutcome:
    """The four values written back for a row."""
    email: str = ""
    status: str = ""
    alternates: str = ""
    confidence: str = ""

    def to_dict(self) -> dict:
        return asdict(self)

    def as_row(self) -> list[str]:
        """Cell values in column order."""
        return [self.email, self.status, self.alternates, self.confidence]


class OutcomeSink(Protocol):
    """Where row outcomes go (a sheet, a list, stdout)."""

    def write_outcome(self, row: RowInput, outcome: RowOutcome) -> None: ...

    def mark_progress(self, row: RowInput, phase: PhaseTag) -> None: ...


class CollectingSink:
    """OutcomeSink that keeps outcomes in memory, keyed by row number."""

    def __init__(self):
        self.outcomes: dict[int, RowOutcome] = {}
        self.progress: list[tuple[int, PhaseTag]] = []

    def write_outcome(self, row: RowInput, outcome: RowOutcome) -> None:
        self.outcomes[row.row_number] = outcome

    def mark_progress(self, row: RowInput, phase: PhaseTag) -> None:
        self.progress.append((row.row_number, phase))


@dataclass
class RunSummary:
    """Counts for one run over the rows."""
    total: int = 0
    found: int = 0
    not_found: int = 0
    skipped: int = 0
    empty: int = 0
    errors: int = 0
    by_phase: dict[str, int] = field(default_factory=dict)

    def to_dict(self) -> dict:
        return asdict(self)


def parse_confidence_score(confidence: Optional[str]) -> Optional[float]:
    """
    Pull the numeric score out of a stored confidence string.

    Returns:
        The score, or None if the string holds no parseable score
    """
    if not confidence:
        return None
    match = _CONFIDENCE_SCORE_REGEX.search(confidence)
    if not match:
        return None
    return float(match.group(1))


def should_skip(row: RowInput) -> bool:
    """A row is done when it has an email and a stored score >= 10."""
    if not (row.prior_email or "").strip():
        return False
    score = parse_confidence_score(row.prior_confidence)
    return score is not None and score >= RESUME_MIN_SCORE


def outcome_from_result(result: Optional[PhaseResult]) -> RowOutcome:
    """Format a resolver result as a row outcome."""
    if result is None:
        return RowOutcome(status=NOT_FOUND_STATUS)

    label = confidence_label(result.score)
    return RowOutcome(
        email=result.winner.email,
        status=result.source.status_label,
        alternates=result.alternates_text(),
        confidence=f"{label} confidence ({result.source.value}: {format_score(result.score)})",
    )


def resolve_row(row: RowInput, resolver, sink: OutcomeSink) -> Optional[RowOutcome]:
    """
    Resolve a single row and write its outcome.

    Args:
        row: Input row
        resolver: Object with resolve(name, progress=None)
        sink: Where the outcome is written

    Returns:
        The written RowOutcome, or None if the row was skipped
    """
    if not (row.name or "").strip():
        outcome = RowOutcome(status=EMPTY_ROW_STATUS)
        sink.write_outcome(row, outcome)
        return outcome

    if should_skip(row):
        logger.info(f"Row {row.row_number}: already resolved ({row.prior_email}), skipping")
        return None

    try:
        result = resolver.resolve(row.name, progress=lambda tag: sink.mark_progress(row, tag))
        outcome = outcome_from_result(result)
    except InvalidInput:
        outcome = RowOutcome(status=EMPTY_ROW_STATUS)
    except Exception as e:
        logger.error(f"Row {row.row_number} ({row.name!r}) failed: {e}")
        outcome = RowOutcome(status=f"Error: {e}")

    sink.write_outcome(row, outcome)
    return outcome


def resolve_rows(rows: list[RowInput], resolver, sink: OutcomeSink) -> RunSummary:
    """
    Resolve every row in order.

    Args:
        rows: Input rows (must not be empty)
        resolver: Object with resolve(name, progress=None)
        sink: Where outcomes are written

    Returns:
        RunSummary with per-status counts

    Raises:
        NoInputError: If rows is empty
    """
    if not rows:
        raise NoInputError("No names to resolve")

    summary = RunSummary(total=len(rows))
    logger.info(f"Resolving {len(rows)} rows")

    for row in rows:
        outcome = resolve_row(row, resolver, sink)

        if outcome is None:
            summary.skipped += 1
        elif outcome.status == EMPTY_ROW_STATUS:
            summary.empty += 1
        elif outcome.status == NOT_FOUND_STATUS:
            summary.not_found += 1
        elif outcome.status.startswith("Error"):
            summary.errors += 1
        else:
            summary.found += 1
            phase = outcome.confidence.split("(", 1)[-1].split(":", 1)[0]
            summary.by_phase[phase] = summary.by_phase.get(phase, 0) + 1

    logger.info(
        f"Done: {summary.found} found, {summary.not_found} not found, "
        f"{summary.skipped} skipped, {summary.empty} empty, {summary.errors} errors"
    )
    return summary
